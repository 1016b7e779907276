"""Парсинг AST: функции, вызовы, области видимости, импорты и экспорты."""

import logging
from typing import cast

from tree_sitter_language_pack import get_parser, SupportedLanguage

from objectify.constants import LANGUAGE_MAP
from .config import ConversionConfig
from .syntax import (
    Binding,
    CalleeKind,
    CalleeRef,
    CallExpr,
    ExportEntry,
    FunctionKind,
    FunctionLike,
    MemberContainer,
    Parameter,
    ParsedFile,
    PatternKind,
    Scope,
    VariableDecl,
)
from .template_scanner import blank_outside, find_script_blocks

logger = logging.getLogger(__name__)

FUNCTION_TYPES = (
    "function_declaration",
    "generator_function_declaration",
    "function_expression",
    "function",
    "generator_function",
    "arrow_function",
    "method_definition",
)
FUNCTION_EXPRESSION_TYPES = (
    "function_expression",
    "function",
    "generator_function",
    "arrow_function",
)
BLOCK_SCOPE_TYPES = ("statement_block", "for_statement", "for_in_statement", "catch_clause")
MODIFIER_TYPES = ("accessibility_modifier", "override_modifier", "readonly")


class ASTParser:
    """Парсер для извлечения фасада синтаксического дерева."""

    def __init__(self, config: ConversionConfig):
        self.config = config
        self._parsers = {}

    def parse_file(self, content: bytes, filename: str) -> ParsedFile:
        """
        Парсинг файла для извлечения функций, вызовов и привязок.

        Returns:
            ParsedFile; при синтаксической ошибке заполнено syntax_error
        """
        if self._is_template(filename):
            return self._parse_template(content, filename)

        lang = self._detect_language(filename)
        if not lang:
            return ParsedFile(path=filename, source=content, language=None)

        return self._parse_source(content, content, filename, lang)

    def _is_template(self, filename: str) -> bool:
        return filename.endswith(tuple(f".{ext}" for ext in self.config.template_extensions))

    def _detect_language(self, filename: str):
        """Определить язык по расширению файла."""
        for ext, lang in LANGUAGE_MAP.items():
            if filename.endswith(f".{ext}"):
                return lang
        return None

    def _get_parser(self, lang: str):
        if lang not in self._parsers:
            self._parsers[lang] = get_parser(cast(SupportedLanguage, lang))
        return self._parsers[lang]

    def _parse_template(self, content: bytes, filename: str) -> ParsedFile:
        """Парсить блоки <script> шаблона, сохраняя смещения файла."""
        blocks = find_script_blocks(content)
        regions = [(b.start, b.end) for b in blocks]

        if not blocks:
            return ParsedFile(
                path=filename, source=content, language=None, is_template=True
            )

        langs = {b.lang for b in blocks}
        if "tsx" in langs:
            lang = "tsx"
        elif "ts" in langs or "typescript" in langs:
            lang = "typescript"
        else:
            lang = "javascript"

        parsed = self._parse_source(
            blank_outside(content, regions), content, filename, lang
        )
        parsed.is_template = True
        parsed.script_regions = regions
        return parsed

    def _parse_source(
        self, buffer: bytes, content: bytes, filename: str, lang: str
    ) -> ParsedFile:
        tree = self._get_parser(lang).parse(buffer)
        parsed = ParsedFile(path=filename, source=content, language=lang)

        root = tree.root_node
        if root.has_error:
            parsed.syntax_error = _first_error_offset(root)
            return parsed

        _TreeWalker(parsed).walk(root)
        return parsed


def _first_error_offset(root) -> int:
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "ERROR" or node.is_missing:
            return node.start_byte
        stack.extend(reversed([c for c in node.children if c.has_error or c.is_missing]))
    return root.start_byte


def _same_node(a, b) -> bool:
    return (
        a is not None
        and b is not None
        and a.start_byte == b.start_byte
        and a.end_byte == b.end_byte
        and a.type == b.type
    )


class _TreeWalker:
    """Обход одного дерева с заполнением ParsedFile."""

    def __init__(self, parsed: ParsedFile):
        self.parsed = parsed
        self.source = parsed.source

    def _text(self, node) -> str:
        return self.source[node.start_byte : node.end_byte].decode("utf-8", errors="replace")

    def walk(self, root) -> None:
        self.parsed.scopes.append(Scope(start=root.start_byte, end=root.end_byte, parent=None))
        stack = [(root, 0)]

        while stack:
            node, scope = stack.pop()
            child_scope = self._visit(node, scope)
            # Анонимные токены (ключевое слово function и т.п.) не узлы фасада
            for child in reversed(node.named_children):
                stack.append((child, child_scope))

    def _visit(self, n, scope: int) -> int:
        """Обработать узел; вернуть область видимости для потомков."""
        t = n.type

        if t in FUNCTION_TYPES:
            function = self._add_function(n)
            if t in ("function_declaration", "generator_function_declaration") and function.name:
                self._bind(scope, function.name, function.name_offset, "function")
            inner = self._new_scope(n, scope)
            for param in function.parameters:
                if param.pattern == PatternKind.THIS:
                    continue
                for name, offset in self._parameter_names(n, param):
                    self._bind(inner, name, offset, "parameter")
            if t in ("function_expression", "function", "generator_function"):
                own = n.child_by_field_name("name")
                if own is not None:
                    self._bind(inner, self._text(own), own.start_byte, "function")
            return inner

        if t == "class_declaration":
            name_node = n.child_by_field_name("name")
            body = n.child_by_field_name("body")
            if name_node is not None:
                self._bind(
                    scope, self._text(name_node), name_node.start_byte, "class",
                    value_start=body.start_byte if body is not None else None,
                )

        elif t in BLOCK_SCOPE_TYPES:
            inner = self._new_scope(n, scope)
            if t == "catch_clause":
                param = n.child_by_field_name("parameter")
                for name, offset in self._pattern_names(param):
                    self._bind(inner, name, offset, "variable")
            return inner

        elif t == "variable_declarator":
            self._add_declarator(n, scope)

        elif t == "import_statement":
            self._add_import(n, scope)

        elif t == "export_statement":
            self._add_export(n)

        elif t == "assignment_expression":
            self._add_commonjs_export(n)

        elif t == "call_expression":
            self._add_call(n)

        elif t in ("class_body", "object"):
            self._add_container(n)

        return scope

    # --- области видимости ---

    def _new_scope(self, n, parent: int) -> int:
        self.parsed.scopes.append(Scope(start=n.start_byte, end=n.end_byte, parent=parent))
        return len(self.parsed.scopes) - 1

    def _bind(self, scope: int, name: str, offset: int | None, kind: str, **extra) -> None:
        if offset is None:
            return
        self.parsed.scopes[scope].bindings.setdefault(
            name, Binding(name=name, offset=offset, kind=kind, **extra)
        )

    def _pattern_names(self, n) -> list[tuple[str, int]]:
        """Имена, связываемые шаблоном деструктуризации."""
        if n is None:
            return []
        t = n.type
        if t in ("identifier", "shorthand_property_identifier_pattern"):
            return [(self._text(n), n.start_byte)]
        if t in ("object_pattern", "array_pattern"):
            names = []
            for child in n.named_children:
                names.extend(self._pattern_names(child))
            return names
        if t == "pair_pattern":
            return self._pattern_names(n.child_by_field_name("value"))
        if t in ("assignment_pattern", "object_assignment_pattern"):
            return self._pattern_names(n.child_by_field_name("left"))
        if t == "rest_pattern":
            named = n.named_children
            return self._pattern_names(named[0]) if named else []
        if t in ("required_parameter", "optional_parameter"):
            return self._pattern_names(n.child_by_field_name("pattern"))
        return []

    def _parameter_names(self, fn, param: Parameter) -> list[tuple[str, int]]:
        if param.pattern == PatternKind.IDENTIFIER and param.name:
            return [(param.name, param.start)]
        params_node = fn.child_by_field_name("parameters")
        if params_node is None:
            return []
        for child in params_node.named_children:
            if child.start_byte == param.start:
                return self._pattern_names(child)
        return []

    def _add_declarator(self, n, scope: int) -> None:
        name_node = n.child_by_field_name("name")
        value = n.child_by_field_name("value")
        source = self._require_source(value)

        if source is None:
            if name_node.type == "identifier" and value is not None:
                self._bind(scope, self._text(name_node), name_node.start_byte, "variable",
                           value_start=value.start_byte)
                return
            for name, offset in self._pattern_names(name_node):
                self._bind(scope, name, offset, "variable")
            return

        # CommonJS: const x = require('./x') / const { a, b: c } = require('./x')
        if name_node.type == "identifier":
            self._bind(
                scope, self._text(name_node), name_node.start_byte, "import",
                import_source=source, imported_name="*",
            )
        elif name_node.type == "object_pattern":
            for child in name_node.named_children:
                if child.type == "shorthand_property_identifier_pattern":
                    name = self._text(child)
                    self._bind(scope, name, child.start_byte, "import",
                               import_source=source, imported_name=name)
                elif child.type == "pair_pattern":
                    key = self._property_name(child.child_by_field_name("key"))
                    local = child.child_by_field_name("value")
                    if key and local is not None and local.type == "identifier":
                        self._bind(scope, self._text(local), local.start_byte, "import",
                                   import_source=source, imported_name=key)

    def _require_source(self, value) -> str | None:
        if value is None or value.type != "call_expression":
            return None
        fn = value.child_by_field_name("function")
        args = value.child_by_field_name("arguments")
        if fn is None or args is None or self._text(fn) != "require":
            return None
        named = [c for c in args.named_children if c.type != "comment"]
        if len(named) != 1 or named[0].type != "string":
            return None
        return self._string_value(named[0])

    # --- импорты и экспорты ---

    def _add_import(self, n, scope: int) -> None:
        source_node = n.child_by_field_name("source")
        if source_node is None:
            return
        source = self._string_value(source_node)

        for clause in n.named_children:
            if clause.type != "import_clause":
                continue
            for c in clause.named_children:
                if c.type == "identifier":
                    self._bind(scope, self._text(c), c.start_byte, "import",
                               import_source=source, imported_name="default")
                elif c.type == "namespace_import":
                    ident = next((x for x in c.named_children if x.type == "identifier"), None)
                    if ident is not None:
                        self._bind(scope, self._text(ident), ident.start_byte, "import",
                                   import_source=source, imported_name="*")
                elif c.type == "named_imports":
                    for spec in c.named_children:
                        if spec.type != "import_specifier":
                            continue
                        name_node = spec.child_by_field_name("name")
                        alias = spec.child_by_field_name("alias")
                        local = alias if alias is not None else name_node
                        self._bind(scope, self._text(local), local.start_byte, "import",
                                   import_source=source, imported_name=self._text(name_node))

    def _export(self, entry: ExportEntry) -> None:
        self.parsed.exports.setdefault(entry.exported, entry)

    def _add_export(self, n) -> None:
        decl = n.child_by_field_name("declaration")
        value = n.child_by_field_name("value")
        source_node = n.child_by_field_name("source")
        source = self._string_value(source_node) if source_node is not None else None
        is_default = any(c.type == "default" for c in n.children)

        if decl is not None:
            for name in self._declared_names(decl):
                self._export(ExportEntry(exported=name, local=name))
                if is_default:
                    self._export(ExportEntry(exported="default", local=name))

        if value is not None:
            if value.type == "identifier":
                self._export(ExportEntry(exported="default", local=self._text(value)))
            else:
                name_node = value.child_by_field_name("name")
                local = self._text(name_node) if name_node is not None else None
                self._export(ExportEntry(exported="default", local=local))

        clauses = [c for c in n.named_children if c.type == "export_clause"]
        for clause in clauses:
            for spec in clause.named_children:
                if spec.type != "export_specifier":
                    continue
                name = self._text(spec.child_by_field_name("name"))
                alias = spec.child_by_field_name("alias")
                exported = self._text(alias) if alias is not None else name
                if source is not None:
                    self._export(ExportEntry(exported=exported, source=source, imported=name))
                else:
                    self._export(ExportEntry(exported=exported, local=name))

        if source is not None and not clauses and decl is None:
            if not any(c.type == "namespace_export" for c in n.named_children):
                self.parsed.star_exports.append(source)

    def _declared_names(self, decl) -> list[str]:
        if decl.type in ("lexical_declaration", "variable_declaration"):
            names = []
            for c in decl.named_children:
                if c.type == "variable_declarator":
                    names.extend(name for name, _ in self._pattern_names(c.child_by_field_name("name")))
            return names
        name_node = decl.child_by_field_name("name")
        return [self._text(name_node)] if name_node is not None else []

    def _add_commonjs_export(self, n) -> None:
        """module.exports = {...} / module.exports = f / exports.f = ..."""
        left = n.child_by_field_name("left")
        right = n.child_by_field_name("right")
        if left is None or right is None or left.type != "member_expression":
            return

        left_text = self._text(left).replace(" ", "")
        if left_text == "module.exports":
            if right.type == "identifier":
                self._export(ExportEntry(exported="default", local=self._text(right)))
            elif right.type in FUNCTION_EXPRESSION_TYPES:
                own = right.child_by_field_name("name")
                if own is not None:
                    self._export(ExportEntry(exported="default", offset=own.start_byte))
            elif right.type == "object":
                for prop in right.named_children:
                    if prop.type == "shorthand_property_identifier":
                        name = self._text(prop)
                        self._export(ExportEntry(exported=name, local=name))
                    elif prop.type == "pair":
                        key = self._property_name(prop.child_by_field_name("key"))
                        val = prop.child_by_field_name("value")
                        if key and val is not None and val.type == "identifier":
                            self._export(ExportEntry(exported=key, local=self._text(val)))
                        elif key and val is not None and val.type in FUNCTION_EXPRESSION_TYPES:
                            key_node = prop.child_by_field_name("key")
                            self._export(ExportEntry(exported=key, offset=key_node.start_byte))
                    elif prop.type == "method_definition":
                        key_node = prop.child_by_field_name("name")
                        key = self._property_name(key_node)
                        if key:
                            self._export(ExportEntry(exported=key, offset=key_node.start_byte))
            return

        obj = left.child_by_field_name("object")
        prop = left.child_by_field_name("property")
        if obj is None or prop is None:
            return
        if self._text(obj).replace(" ", "") not in ("exports", "module.exports"):
            return
        name = self._text(prop)
        if right.type == "identifier":
            self._export(ExportEntry(exported=name, local=self._text(right)))
        elif right.type in FUNCTION_EXPRESSION_TYPES:
            self._export(ExportEntry(exported=name, offset=prop.start_byte))

    # --- функции ---

    def _add_function(self, n) -> FunctionLike:
        kind, name_node, locate, variable = self._function_identity(n)
        name = self._member_name(name_node) if kind == FunctionKind.METHOD else (
            self._text(name_node) if name_node is not None else None
        )
        params_node = n.child_by_field_name("parameters")
        parenthesized = params_node is not None
        if params_node is None:
            params_node = n.child_by_field_name("parameter")
        body = n.child_by_field_name("body")

        function = FunctionLike(
            kind=kind,
            name=name,
            name_offset=name_node.start_byte if name_node is not None and name else None,
            start=n.start_byte,
            end=n.end_byte,
            locate_start=locate.start_byte,
            locate_end=locate.end_byte,
            params_start=params_node.start_byte if params_node is not None else n.start_byte,
            params_end=params_node.end_byte if params_node is not None else n.start_byte,
            params_parenthesized=parenthesized,
            body_start=body.start_byte if body is not None else n.end_byte,
            body_end=body.end_byte if body is not None else n.end_byte,
            body_is_block=body is not None and body.type == "statement_block",
            parameters=self._parameters(params_node, parenthesized),
            variable=variable,
        )
        function.has_overloads = self._has_overloads(n, name)
        self.parsed.functions.append(function)
        return function

    def _function_identity(self, n):
        """Вид, узел имени, диапазон поиска и переменная функции."""
        t = n.type
        if t in ("function_declaration", "generator_function_declaration"):
            return FunctionKind.DECLARATION, n.child_by_field_name("name"), n, None
        if t == "method_definition":
            return FunctionKind.METHOD, n.child_by_field_name("name"), n, None

        parent = n.parent
        if parent is not None:
            pt = parent.type
            if pt == "variable_declarator" and _same_node(parent.child_by_field_name("value"), n):
                name_node = parent.child_by_field_name("name")
                if name_node is not None and name_node.type == "identifier":
                    variable = VariableDecl(
                        name=self._text(name_node),
                        name_offset=name_node.start_byte,
                        start=parent.start_byte,
                        end=parent.end_byte,
                    )
                    return FunctionKind.VARIABLE, name_node, parent, variable
            if pt == "pair" and _same_node(parent.child_by_field_name("value"), n):
                return FunctionKind.METHOD, parent.child_by_field_name("key"), parent, None
            if pt in ("public_field_definition", "field_definition"):
                key = parent.child_by_field_name("name") or parent.child_by_field_name("property")
                return FunctionKind.METHOD, key, parent, None
            if pt == "assignment_expression" and _same_node(parent.child_by_field_name("right"), n):
                left = parent.child_by_field_name("left")
                if (
                    left is not None
                    and left.type == "member_expression"
                    and self._text(left).replace(" ", "") != "module.exports"
                ):
                    return FunctionKind.METHOD, left.child_by_field_name("property"), parent, None

        # function send() {} как выражение: имя видно только внутри
        return FunctionKind.EXPRESSION, n.child_by_field_name("name"), n, None

    def _has_overloads(self, n, name: str | None) -> bool:
        """Есть ли у функции сигнатуры перегрузки TypeScript."""
        if not name:
            return False

        if n.type == "method_definition":
            container = n.parent
            signature_types = ("method_signature", "abstract_method_signature")
        elif n.type in ("function_declaration", "generator_function_declaration"):
            container = n.parent
            if container is not None and container.type == "export_statement":
                container = container.parent
            signature_types = ("function_signature",)
        else:
            return False

        if container is None:
            return False

        for sibling in container.named_children:
            if sibling.type == "export_statement":
                sibling = sibling.child_by_field_name("declaration") or sibling
            if sibling.type not in signature_types:
                continue
            sig_name = sibling.child_by_field_name("name")
            if sig_name is not None and self._member_name(sig_name) == name:
                return True
        return False

    def _parameters(self, params_node, parenthesized: bool) -> list[Parameter]:
        if params_node is None:
            return []
        if not parenthesized:
            # x => ...
            return [
                Parameter(
                    name=self._text(params_node),
                    pattern=PatternKind.IDENTIFIER,
                    start=params_node.start_byte,
                    end=params_node.end_byte,
                    text=self._text(params_node),
                )
            ]
        return [
            self._parameter(child)
            for child in params_node.named_children
            if child.type not in ("comment", "decorator")
        ]

    def _parameter(self, n) -> Parameter:
        t = n.type
        param = Parameter(
            name=None,
            pattern=PatternKind.OTHER,
            start=n.start_byte,
            end=n.end_byte,
            text=self._text(n),
        )

        if t in ("required_parameter", "optional_parameter"):
            pattern = n.child_by_field_name("pattern")
            type_node = n.child_by_field_name("type")
            value = n.child_by_field_name("value")
            param.optional = t == "optional_parameter"
            param.has_modifiers = any(c.type in MODIFIER_TYPES for c in n.children)
            param.type_text = self._type_text(type_node)
            param.default_text = self._text(value) if value is not None else None
            self._apply_pattern(param, pattern)
        elif t == "assignment_pattern":
            param.default_text = self._text(n.child_by_field_name("right"))
            self._apply_pattern(param, n.child_by_field_name("left"))
        else:
            self._apply_pattern(param, n)

        return param

    def _apply_pattern(self, param: Parameter, pattern) -> None:
        if pattern is None:
            return
        t = pattern.type
        if t == "identifier":
            param.pattern = PatternKind.IDENTIFIER
            param.name = self._text(pattern)
        elif t == "this":
            param.pattern = PatternKind.THIS
            param.name = "this"
        elif t == "rest_pattern":
            param.pattern = PatternKind.REST
            ident = next((c for c in pattern.named_children if c.type == "identifier"), None)
            param.name = self._text(ident) if ident is not None else None
        elif t == "object_pattern":
            param.pattern = PatternKind.OBJECT
        elif t == "array_pattern":
            param.pattern = PatternKind.ARRAY
        elif t == "assignment_pattern":
            # { a } = {} в JS-грамматике
            if param.default_text is None:
                right = pattern.child_by_field_name("right")
                param.default_text = self._text(right) if right is not None else None
            self._apply_pattern(param, pattern.child_by_field_name("left"))

    def _type_text(self, type_node) -> str | None:
        if type_node is None:
            return None
        if type_node.type == "type_annotation":
            named = type_node.named_children
            if named:
                return self._text(named[0])
            return self._text(type_node).lstrip(":").strip() or None
        return self._text(type_node)

    # --- вызовы ---

    def _add_call(self, n) -> None:
        fn = n.child_by_field_name("function")
        args = n.child_by_field_name("arguments")
        # Тегированные шаблоны (fn`...`) не считаются вызовами
        if fn is None or args is None or args.type != "arguments":
            return

        arg_nodes = [c for c in args.named_children if c.type != "comment"]
        self.parsed.calls.append(
            CallExpr(
                start=n.start_byte,
                end=n.end_byte,
                callee=self._callee(fn),
                args_start=args.start_byte,
                arguments=[self._text(a) for a in arg_nodes],
                argument_ranges=[(a.start_byte, a.end_byte) for a in arg_nodes],
                has_spread=any(a.type == "spread_element" for a in arg_nodes),
                single_object_argument=len(arg_nodes) == 1 and arg_nodes[0].type == "object",
            )
        )

    def _callee(self, n) -> CalleeRef:
        t = n.type
        ref = CalleeRef(kind=CalleeKind.OTHER, text=self._text(n), start=n.start_byte, end=n.end_byte)

        if t == "identifier":
            ref.kind = CalleeKind.IDENTIFIER
            ref.name = ref.text
        elif t == "this":
            ref.kind = CalleeKind.THIS
        elif t == "member_expression":
            ref.kind = CalleeKind.MEMBER
            prop = n.child_by_field_name("property")
            ref.name = self._text(prop) if prop is not None else None
            obj = n.child_by_field_name("object")
            ref.receiver = self._callee(obj) if obj is not None else None
        elif t == "subscript_expression":
            ref.kind = CalleeKind.SUBSCRIPT
            index = n.child_by_field_name("index")
            if index is not None and index.type == "string":
                ref.name = self._string_value(index)
            elif index is not None and index.type == "identifier":
                ref.name = self._text(index)
            obj = n.child_by_field_name("object")
            ref.receiver = self._callee(obj) if obj is not None else None

        return ref

    def _add_container(self, n) -> None:
        container = MemberContainer(start=n.start_byte, end=n.end_byte)
        for child in n.named_children:
            key = None
            if child.type == "method_definition":
                key = child.child_by_field_name("name")
            elif child.type == "pair":
                key = child.child_by_field_name("key")
            elif child.type in ("public_field_definition", "field_definition"):
                key = child.child_by_field_name("name") or child.child_by_field_name("property")
            elif child.type == "shorthand_property_identifier":
                key = child
            name = self._member_name(key)
            if name:
                container.members.setdefault(name, key.start_byte)
        if container.members:
            self.parsed.containers.append(container)

    # --- утилиты ---

    def _member_name(self, n) -> str | None:
        return self._property_name(n)

    def _property_name(self, n) -> str | None:
        if n is None:
            return None
        if n.type == "string":
            return self._string_value(n)
        if n.type == "computed_property_name":
            return None
        return self._text(n)

    def _string_value(self, n) -> str:
        return self._text(n).strip("\"'`")
