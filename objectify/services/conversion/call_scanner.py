"""Поиск вызовов целевой функции по всему снимку проекта."""

import logging

from .config import ConversionConfig
from .declaration_resolver import DeclarationResolver
from .models import (
    Abort,
    AbortReason,
    CallCandidate,
    Continue,
    DeclarationId,
    FunctionTarget,
    Location,
    LocationKind,
)
from .snapshot import ProjectSnapshot
from .syntax import CalleeKind, CalleeRef, CallExpr, ParsedFile
from .template_scanner import find_indirect_text_uses, find_text_calls

logger = logging.getLogger(__name__)

INDIRECT_METHODS = ("call", "apply", "bind")
NAMED_CALLEE_KINDS = (CalleeKind.IDENTIFIER, CalleeKind.MEMBER, CalleeKind.SUBSCRIPT)


class CallScanner:
    """
    Сбор кандидатов: обход деревьев и текстовый поиск в шаблонах.

    Коллизия имён и косвенный вызов прерывают всю попытку.
    """

    def __init__(
        self,
        snapshot: ProjectSnapshot,
        resolver: DeclarationResolver,
        config: ConversionConfig,
    ):
        self.snapshot = snapshot
        self.resolver = resolver
        self.config = config

    def scan(self, target: FunctionTarget) -> Continue[list[CallCandidate]] | Abort:
        """
        Найти все вызовы цели.

        Returns:
            Continue с кандидатами в порядке файлов и позиций или Abort
        """
        target_id = self.resolver.target_id(target)
        candidates = []

        for path in self.snapshot.paths:
            parsed = self.snapshot[path]

            found = []
            for call in parsed.calls:
                outcome = self._check_call(parsed, call, target, target_id)
                if isinstance(outcome, Abort):
                    return outcome
                if outcome is not None:
                    found.append(outcome)

            if parsed.is_template:
                outcome = self._scan_markup(parsed, target, found)
                if isinstance(outcome, Abort):
                    return outcome
                found.extend(outcome)

            candidates.extend(found)

        files = len({c.file for c in candidates})
        logger.info(f"[Scanner] Found {len(candidates)} call candidates in {files} files")
        return Continue(candidates)

    def _check_call(
        self,
        parsed: ParsedFile,
        call: CallExpr,
        target: FunctionTarget,
        target_id: DeclarationId,
    ) -> CallCandidate | Abort | None:
        callee = call.callee
        name = target.name

        indirect = self._indirect_use(parsed, call, name, target_id)
        if indirect is not None:
            return indirect

        if callee.kind not in NAMED_CALLEE_KINDS or callee.name != name:
            return None

        declaration = self.resolver.resolve_declaration(parsed.path, callee)
        is_target = self.resolver.same_declaration(declaration, target_id)

        if declaration is not None and not is_target:
            binding = self.resolver.local_binding(parsed.path, callee)
            # this.name / obj.name резолвятся в член контейнера этого же файла
            declared_here = callee.kind != CalleeKind.IDENTIFIER or (
                binding is not None and binding.kind != "import"
            )
            if declared_here and not declaration.heuristic and declaration.file == parsed.path:
                return self._collision(parsed, call, declaration, target)
            logger.debug(
                f"[Scanner] Skip {parsed.path}:{parsed.line_of(call.start)}: "
                f"'{callee.text}' is a different declaration"
            )
            return None

        if callee.kind == CalleeKind.IDENTIFIER and target.is_member and not is_target:
            # Метод не вызывается голым идентификатором
            return None

        if call.has_spread:
            return self._incompatible(
                parsed, call.start, f"'{name}' is called with a spread argument", "spread-argument"
            )

        return CallCandidate(
            file=parsed.path,
            start=call.start,
            end=call.end,
            args_start=call.args_start,
            location_kind=LocationKind.NODE,
            callee_text=parsed.text(call.start, call.args_start).rstrip(),
            callee_kind=callee.kind,
            argument_texts=list(call.arguments),
            argument_ranges=list(call.argument_ranges),
            line=parsed.line_of(call.start),
            single_object_argument=call.single_object_argument,
            declaration=declaration,
        )

    def _indirect_use(
        self,
        parsed: ParsedFile,
        call: CallExpr,
        name: str,
        target_id: DeclarationId,
    ) -> Abort | None:
        """fn.call / fn.apply / fn.bind / Reflect.apply(fn, ...)."""
        callee = call.callee

        if callee.kind == CalleeKind.MEMBER and callee.name in INDIRECT_METHODS:
            receiver = callee.receiver
            if receiver is not None and receiver.kind in NAMED_CALLEE_KINDS and receiver.name == name:
                if self._may_be_target(parsed, receiver, target_id):
                    return self._incompatible(
                        parsed,
                        call.start,
                        f"'{name}' is invoked through .{callee.name}()",
                        "indirect-invocation",
                    )

        if callee.text.replace(" ", "") == "Reflect.apply" and call.arguments:
            first = call.arguments[0].strip()
            if first == name or first.endswith(f".{name}"):
                return self._incompatible(
                    parsed,
                    call.start,
                    f"'{name}' is invoked through Reflect.apply()",
                    "indirect-invocation",
                )

        return None

    def _may_be_target(self, parsed: ParsedFile, ref: CalleeRef, target_id: DeclarationId) -> bool:
        declaration = self.resolver.resolve_declaration(parsed.path, ref)
        return declaration is None or self.resolver.same_declaration(declaration, target_id)

    def _scan_markup(
        self,
        parsed: ParsedFile,
        target: FunctionTarget,
        ast_found: list[CallCandidate],
    ) -> list[CallCandidate] | Abort:
        """Текстовый поиск в разметке шаблона вне блоков <script>."""
        name = target.name

        indirect = find_indirect_text_uses(parsed, name)
        if indirect:
            return self._incompatible(
                parsed, indirect[0], f"'{name}' is invoked indirectly in template markup",
                "indirect-invocation",
            )

        found = []
        tolerance = self.config.dedup_tolerance
        for text_call in find_text_calls(parsed, name):
            duplicate = any(
                abs(c.start - text_call.start) <= tolerance or abs(c.end - text_call.end) <= tolerance
                for c in ast_found
            )
            if duplicate:
                continue

            if any(arg.lstrip().startswith("...") for arg in text_call.arguments):
                return self._incompatible(
                    parsed, text_call.start, f"'{name}' is called with a spread argument",
                    "spread-argument",
                )

            found.append(
                CallCandidate(
                    file=parsed.path,
                    start=text_call.start,
                    end=text_call.end,
                    args_start=text_call.args_start,
                    location_kind=LocationKind.TEXT,
                    callee_text=text_call.callee_text,
                    callee_kind=CalleeKind.MEMBER if text_call.has_receiver else CalleeKind.IDENTIFIER,
                    argument_texts=text_call.arguments,
                    argument_ranges=text_call.argument_ranges,
                    line=parsed.line_of(text_call.start),
                    single_object_argument=text_call.single_object_argument,
                )
            )

        return found

    def _collision(
        self,
        parsed: ParsedFile,
        call: CallExpr,
        declaration: DeclarationId,
        target: FunctionTarget,
    ) -> Abort:
        call_at = Location(parsed.path, call.start, parsed.line_of(call.start))
        decl_at = Location(parsed.path, declaration.offset, parsed.line_of(declaration.offset))
        target_at = Location(target.file, target.start, target.line)
        logger.warning(
            f"[Scanner] Name collision: '{target.name}' at {call_at} refers to the local "
            f"declaration at {decl_at}, not the target at {target_at}"
        )
        return Abort(
            AbortReason.NAME_COLLISION,
            f"'{target.name}' called at {call_at} is an unrelated local declaration",
            (call_at, decl_at, target_at),
        )

    def _incompatible(self, parsed: ParsedFile, offset: int, message: str, code: str) -> Abort:
        where = Location(parsed.path, offset, parsed.line_of(offset))
        logger.warning(f"[Scanner] Incompatible usage at {where}: {message}")
        return Abort(AbortReason.INCOMPATIBLE_USAGE, message, (where,), code)
