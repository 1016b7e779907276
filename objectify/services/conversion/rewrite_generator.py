"""Генерация текста: новая сигнатура, тело функции и замены вызовов."""

import re

from .config import ConversionConfig
from .models import ParameterSpec, TextEdit
from .syntax import FunctionLike, PatternKind

OPENERS = b"([{"
CLOSERS = b")]}"
QUOTES = b"\"'`"
WHITESPACE = b" \t\r\n"

UNDEFINED_EQUIVALENTS = ("undefined", "void 0", "void0", "void(0)")


def split_call_arguments(
    source: bytes, open_index: int
) -> tuple[list[str], list[tuple[int, int]], int] | None:
    """
    Разбить список аргументов по запятым верхнего уровня.

    Учитываются вложенные скобки и строковые литералы. Пустой хвост
    после завершающей запятой отбрасывается.

    Args:
        source: содержимое файла
        open_index: позиция открывающей скобки

    Returns:
        (тексты аргументов, их диапазоны, позиция закрывающей скобки)
        или None, если скобки не сбалансированы
    """
    if source[open_index : open_index + 1] != b"(":
        return None

    depth = 0
    quote = None
    spans = []
    part_start = open_index + 1
    i = open_index
    close = None

    while i < len(source):
        ch = source[i]
        if quote is not None:
            if ch == 0x5C:  # backslash
                i += 2
                continue
            if ch == quote:
                quote = None
        elif ch in QUOTES:
            quote = ch
        elif ch in OPENERS:
            depth += 1
        elif ch in CLOSERS:
            depth -= 1
            if depth == 0:
                spans.append((part_start, i))
                close = i
                break
        elif ch == 0x2C and depth == 1:  # comma
            spans.append((part_start, i))
            part_start = i + 1
        i += 1

    if close is None:
        return None

    ranges = [_strip_span(source, s, e) for s, e in spans]
    if ranges and ranges[-1][0] == ranges[-1][1]:
        ranges.pop()

    arguments = [source[s:e].decode("utf-8", errors="replace") for s, e in ranges]
    return arguments, ranges, close


def _strip_span(source: bytes, start: int, end: int) -> tuple[int, int]:
    while start < end and source[start] in WHITESPACE:
        start += 1
    while end > start and source[end - 1] in WHITESPACE:
        end -= 1
    return start, end


def is_undefined_literal(text: str) -> bool:
    """Аргумент эквивалентен отсутствующему значению."""
    trimmed = text.strip()
    return not trimmed or trimmed in UNDEFINED_EQUIVALENTS


def build_call_arguments(arguments: list[str], specs: list[ParameterSpec]) -> str:
    """
    Собрать объектный литерал для вызова.

    Опциональный параметр без аргумента (или с undefined) опускается,
    обязательный получает name:undefined. Если текст аргумента совпадает
    с именем параметра, используется сокращённая запись.
    """
    props = []

    for spec in specs:
        arg = arguments[spec.index] if spec.index < len(arguments) else None
        if spec.optional and (arg is None or is_undefined_literal(arg)):
            continue

        emitted = arg if arg is not None and arg.strip() else "undefined"
        if emitted.strip() == spec.name:
            props.append(spec.name)
        else:
            props.append(f"{spec.name}:{emitted}")

    if not props:
        return "{}"
    return "{ " + ", ".join(props) + " }"


def build_call_replacement(
    prefix: str, arguments: list[str], specs: list[ParameterSpec]
) -> str:
    """Текст вызова: неизменный префикс (callee, type args, ?.) + новый аргумент."""
    return f"{prefix}({build_call_arguments(arguments, specs)})"


def build_type_text(specs: list[ParameterSpec]) -> str:
    """Тип объекта параметров: { a: T; b?: U }."""
    members = [
        f"{spec.name}{'?' if spec.optional else ''}: {spec.type_text or 'any'}"
        for spec in specs
    ]
    return "{ " + "; ".join(members) + " }"


def build_destructured_names(specs: list[ParameterSpec]) -> str:
    """Список деструктуризации с сохранёнными значениями по умолчанию."""
    names = []
    for spec in specs:
        if spec.default_expr_text and not spec.is_tuple_rest:
            names.append(f"{spec.name} = {spec.default_expr_text}")
        else:
            names.append(spec.name)
    return ", ".join(names)


def build_parameter_text(
    specs: list[ParameterSpec],
    config: ConversionConfig,
    is_typescript: bool,
) -> str:
    """Новый единственный параметр (без скобок)."""
    if not is_typescript:
        type_text = ""
    elif config.preserve_types:
        type_text = build_type_text(specs)
    else:
        type_text = "any"

    object_var = config.object_variable
    core = object_var if object_var else "{ " + build_destructured_names(specs) + " }"
    return f"{core}: {type_text}" if type_text else core


def build_signature_text(
    function: FunctionLike,
    specs: list[ParameterSpec],
    config: ConversionConfig,
    is_typescript: bool,
) -> str:
    """Новый список параметров в скобках; параметр this сохраняется первым."""
    parts = []
    this_param = function.this_parameter
    if this_param is not None:
        parts.append(this_param.text)
    parts.append(build_parameter_text(specs, config, is_typescript))
    return "(" + ", ".join(parts) + ")"


def insert_destructure_line(body_text: str, destructured: str, object_var: str) -> str:
    """
    Вставить `let { ... } = obj;` первой строкой блока тела.

    Отступ берётся у следующей непустой строки; однострочное тело
    разворачивается на новую строку.
    """
    brace = body_text.find("{")
    if brace < 0:
        return body_text

    head = body_text[: brace + 1]
    tail = body_text[brace + 1 :]
    eol = "\r\n" if "\r\n" in body_text else "\n"
    statement = f"let {{ {destructured} }} = {object_var};"

    newline = tail.find("\n")
    if newline >= 0:
        first_line = tail[: newline + 1]
        rest = tail[newline + 1 :]
        indent = _next_content_indent(rest)
        return f"{head}{first_line}{indent}{statement}{eol}{rest}"

    indent = re.match(r"\s*", tail).group(0)
    rest = tail[len(indent) :]
    return f"{head}{eol}{indent}{statement}{eol}{indent}{rest}"


def _next_content_indent(text: str) -> str:
    for line in re.split(r"\r?\n", text):
        if line.strip():
            return re.match(r"\s*", line).group(0)
    return ""


def rewrite_rest_reads(body_text: str, rest_name: str, names: list[str]) -> str | None:
    """
    Заменить чтения rest[i] в теле именами элементов кортежа.

    Returns:
        новый текст тела или None, если rest используется иначе
        (rest.length, индекс-переменная, передача целиком)
    """
    rest = re.escape(rest_name)

    def replace(match: re.Match) -> str:
        index = int(match.group(1))
        return names[index] if index < len(names) else match.group(0)

    rewritten = re.sub(rf"(?<![\w$.]){rest}\s*\[\s*(\d+)\s*\]", replace, body_text)
    if re.search(rf"(?<![\w$.]){rest}(?![\w$])", rewritten):
        return None
    return rewritten


def build_function_text(
    source: bytes,
    function: FunctionLike,
    specs: list[ParameterSpec],
    config: ConversionConfig,
    is_typescript: bool,
    body_edits: list[TextEdit] | None = None,
) -> str:
    """
    Новый текст всей функции.

    body_edits - замены внутренних вызовов (смещения файла), уже
    проверенные на попадание в тело. Они применяются к старому тексту
    тела до замены сигнатуры.

    Returns:
        текст для диапазона [function.start, function.end)
    """

    def text(start: int, end: int) -> str:
        return source[start:end].decode("utf-8", errors="replace")

    body = apply_byte_edits(source, function.body_start, function.body_end, body_edits or [])
    object_var = config.object_variable

    rest = next((p for p in function.value_parameters if p.pattern == PatternKind.REST), None)
    if rest is not None and rest.name and specs and specs[0].is_tuple_rest:
        rewritten = rewrite_rest_reads(body, rest.name, [spec.name for spec in specs])
        if rewritten is not None:
            body = rewritten

    if object_var:
        destructured = build_destructured_names(specs)
        if function.body_is_block:
            body = insert_destructure_line(body, destructured, object_var)
        else:
            body = f"{{ let {{ {destructured} }} = {object_var}; return {body}; }}"

    return (
        text(function.start, function.params_start)
        + build_signature_text(function, specs, config, is_typescript)
        + text(function.params_end, function.body_start)
        + body
        + text(function.body_end, function.end)
    )


def apply_byte_edits(source: bytes, start: int, end: int, edits: list[TextEdit]) -> str:
    """Применить правки к диапазону байт; смещения правок в байтах файла."""
    chunk = source[start:end]
    for edit in sorted(edits, key=lambda e: e.start, reverse=True):
        lo, hi = edit.start - start, edit.end - start
        chunk = chunk[:lo] + edit.text.encode("utf-8") + chunk[hi:]
    return chunk.decode("utf-8", errors="replace")
