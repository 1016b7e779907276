"""Резолв вызываемых имён в объявления (синтаксически, без семантической модели)."""

import os
import posixpath
import logging
from typing import Protocol

from .config import ConversionConfig
from .models import DeclarationId, FunctionTarget
from .snapshot import ProjectSnapshot
from .syntax import Binding, CalleeKind, CalleeRef, ParsedFile, Scope

logger = logging.getLogger(__name__)


class DeclarationResolver(Protocol):
    """Интерфейс резолвера: синтаксический и семантический взаимозаменяемы."""

    def target_id(self, target: FunctionTarget) -> DeclarationId: ...

    def resolve_declaration(self, file: str, callee: CalleeRef) -> DeclarationId | None: ...

    def same_declaration(self, a: DeclarationId | None, b: DeclarationId | None) -> bool: ...

    def local_binding(self, file: str, callee: CalleeRef) -> Binding | None: ...


class SyntacticResolver:
    """
    Резолвер по лексическим областям видимости, импортам и экспортам.

    Все кэши живут в пределах одной попытки вместе со снимком.
    """

    def __init__(self, snapshot: ProjectSnapshot, config: ConversionConfig):
        self.snapshot = snapshot
        self.config = config
        self._module_cache: dict[tuple[str, str], str | None] = {}
        self._lookup_cache: dict[tuple[str, int, str], Binding | None] = {}

    def target_id(self, target: FunctionTarget) -> DeclarationId:
        """Идентичность цели: позиция имени (переменной, метода или функции)."""
        function = target.function
        if function.variable is not None:
            offset = function.variable.name_offset
        elif function.name_offset is not None:
            offset = function.name_offset
        else:
            offset = function.start
        return DeclarationId(file=target.file, offset=offset, name=target.name)

    def same_declaration(self, a: DeclarationId | None, b: DeclarationId | None) -> bool:
        """
        Совпадают ли объявления.

        Эвристические идентичности сравниваются только по имени.
        """
        if a is None or b is None:
            return False
        if a.heuristic or b.heuristic:
            return a.name == b.name
        return a.file == b.file and a.offset == b.offset

    def local_binding(self, file: str, callee: CalleeRef) -> Binding | None:
        """Лексическая привязка идентификатора в точке вызова."""
        if callee.kind != CalleeKind.IDENTIFIER or not callee.name:
            return None
        return self._lookup(file, callee.start, callee.name)

    def resolve_declaration(self, file: str, callee: CalleeRef) -> DeclarationId | None:
        """
        Резолвить вызываемое выражение в объявление.

        Args:
            file: путь файла с вызовом
            callee: вызываемое выражение

        Returns:
            DeclarationId, эвристический DeclarationId (импорт вне проекта)
            или None, если имя не резолвится
        """
        if callee.kind == CalleeKind.IDENTIFIER and callee.name:
            binding = self._lookup(file, callee.start, callee.name)
            if binding is None:
                return None
            return self._binding_declaration(file, binding, callee.name)

        if callee.kind in (CalleeKind.MEMBER, CalleeKind.SUBSCRIPT) and callee.name:
            return self._resolve_member(file, callee)

        return None

    # --- лексический поиск ---

    def _lookup(self, file: str, offset: int, name: str) -> Binding | None:
        key = (file, offset, name)
        if key not in self._lookup_cache:
            parsed = self.snapshot.get(file)
            self._lookup_cache[key] = (
                self._lookup_in(parsed, offset, name) if parsed is not None else None
            )
        return self._lookup_cache[key]

    def _lookup_in(self, parsed: ParsedFile, offset: int, name: str) -> Binding | None:
        scope = self._innermost_scope(parsed.scopes, offset)
        while scope is not None:
            binding = parsed.scopes[scope].bindings.get(name)
            if binding is not None:
                return binding
            scope = parsed.scopes[scope].parent
        return None

    def _innermost_scope(self, scopes: list[Scope], offset: int) -> int | None:
        best = None
        for index, scope in enumerate(scopes):
            if index == 0 or scope.start <= offset < scope.end:
                if best is None or scope.end - scope.start <= scopes[best].end - scopes[best].start:
                    best = index
        return best

    def _binding_declaration(self, file: str, binding: Binding, name: str) -> DeclarationId | None:
        if binding.kind != "import":
            return DeclarationId(file=file, offset=binding.offset, name=binding.name)

        imported = binding.imported_name
        if imported == "*":
            # const f = require('./f'); f() -> module.exports = f
            imported = "default"
        return self._resolve_import(file, binding.import_source, imported or name, 0)

    # --- обращение к членам ---

    def _resolve_member(self, file: str, callee: CalleeRef) -> DeclarationId | None:
        receiver = callee.receiver
        if receiver is None:
            return None

        if receiver.kind == CalleeKind.THIS:
            return self._enclosing_member(file, callee.start, callee.name)

        if receiver.kind != CalleeKind.IDENTIFIER or not receiver.name:
            return None

        binding = self._lookup(file, receiver.start, receiver.name)
        if binding is None:
            return None

        if binding.kind == "import":
            if binding.imported_name == "*":
                # import * as ns / const ns = require(...)
                return self._resolve_import(file, binding.import_source, callee.name, 0)
            return None

        if binding.value_start is None:
            return None
        parsed = self.snapshot[file]
        for container in parsed.containers:
            if container.start == binding.value_start and callee.name in container.members:
                return DeclarationId(file, container.members[callee.name], callee.name)
        return None

    def _enclosing_member(self, file: str, offset: int, name: str) -> DeclarationId | None:
        """this.name: член ближайшего объемлющего класса или объектного литерала."""
        parsed = self.snapshot[file]
        enclosing = sorted(
            (c for c in parsed.containers if c.start <= offset < c.end),
            key=lambda c: c.end - c.start,
        )
        for container in enclosing:
            if name in container.members:
                return DeclarationId(file, container.members[name], name)
        return None

    # --- модули ---

    def _resolve_import(
        self, file: str, source: str | None, name: str, depth: int
    ) -> DeclarationId | None:
        module = self.resolve_module(file, source) if source else None
        if module is None:
            return DeclarationId(file=source or "", offset=-1, name=name, heuristic=True)
        return self._resolve_export(module, name, depth)

    def _resolve_export(self, module: str, name: str, depth: int) -> DeclarationId | None:
        """Следовать экспорту name модуля до объявления."""
        if depth > self.config.max_reexport_depth:
            logger.debug(f"[Resolver] Re-export chain too deep at {module}:{name}")
            return DeclarationId(file=module, offset=-1, name=name, heuristic=True)

        parsed = self.snapshot[module]
        entry = parsed.exports.get(name)

        if entry is not None:
            if entry.source is not None:
                return self._resolve_import(module, entry.source, entry.imported or name, depth + 1)
            if entry.offset is not None:
                return DeclarationId(file=module, offset=entry.offset, name=name)
            if entry.local is not None:
                binding = parsed.scopes[0].bindings.get(entry.local) if parsed.scopes else None
                if binding is None:
                    return None
                if binding.kind == "import":
                    imported = binding.imported_name
                    if imported == "*":
                        imported = "default"
                    return self._resolve_import(
                        module, binding.import_source, imported or entry.local, depth + 1
                    )
                return DeclarationId(file=module, offset=binding.offset, name=binding.name)
            # export default <анонимное выражение>
            return DeclarationId(file=module, offset=-1, name=name)

        for star in parsed.star_exports:
            target = self.resolve_module(module, star)
            if target is None:
                continue
            found = self._resolve_export(target, name, depth + 1)
            if found is not None and not found.heuristic:
                return found

        return DeclarationId(file=module, offset=-1, name=name, heuristic=True)

    def resolve_module(self, current_file: str, import_path: str) -> str | None:
        """Путь импорта -> файл снимка, или None для внешних пакетов."""
        key = (current_file, import_path)
        if key not in self._module_cache:
            self._module_cache[key] = self._resolve_import_path(import_path, current_file)
        return self._module_cache[key]

    def _resolve_import_path(self, import_path: str, current_file: str) -> str | None:
        # Обработка алиасов
        for alias, real_path in self.config.path_aliases.items():
            if import_path.startswith(alias):
                resolved = import_path.replace(alias, real_path, 1)
                return self._try_extensions(posixpath.normpath(resolved))

        # Обработка относительных путей
        if import_path.startswith("."):
            current_dir = posixpath.dirname(current_file.replace(os.sep, "/"))
            resolved = posixpath.normpath(posixpath.join(current_dir, import_path))
            return self._try_extensions(resolved)

        # Внешний пакет
        return None

    def _try_extensions(self, base_path: str) -> str | None:
        """Попробовать разные расширения для пути."""
        for suffix in self.config.import_resolution_suffixes:
            candidate = base_path + suffix
            if candidate in self.snapshot:
                return candidate
        # './util.js' в TypeScript-проекте указывает на util.ts
        stem, ext = posixpath.splitext(base_path)
        if ext in (".js", ".jsx", ".mjs", ".cjs"):
            for suffix in (".ts", ".tsx", ".mts", ".cts"):
                if stem + suffix in self.snapshot:
                    return stem + suffix
        return None
