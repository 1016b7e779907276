"""Анализ списка параметров целевой функции."""

import logging
import re

from .models import Abort, AbortReason, Continue, FunctionTarget, Location, ParameterSpec
from .rewrite_generator import rewrite_rest_reads
from .syntax import Parameter, PatternKind

logger = logging.getLogger(__name__)

NUMBER_PATTERN = re.compile(r"^-?(\d[\d_]*\.?\d*([eE][+-]?\d+)?|\.\d+|0[xX][\da-fA-F_]+|0[bB][01_]+|0[oO][0-7_]+)$")
BIGINT_PATTERN = re.compile(r"^-?\d[\d_]*n$")
TUPLE_ELEMENT_PATTERN = re.compile(r"^([A-Za-z_$][\w$]*)(\?)?\s*:\s*(.+)$", re.DOTALL)


def infer_literal_type(default_text: str | None) -> str | None:
    """Тип литерального значения по умолчанию (number, string, boolean, bigint)."""
    if not default_text:
        return None
    text = default_text.strip()
    if text in ("true", "false"):
        return "boolean"
    if BIGINT_PATTERN.match(text):
        return "bigint"
    if NUMBER_PATTERN.match(text):
        return "number"
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "\"'":
        return "string"
    if len(text) >= 2 and text[0] == text[-1] == "`" and "${" not in text:
        return "string"
    return None


def split_type_list(text: str) -> list[str]:
    """Разбить список типов по запятым верхнего уровня (с учётом <> и скобок)."""
    parts = []
    depth = 0
    quote = None
    current = []
    prev = ""

    for ch in text:
        if quote:
            if ch == quote and prev != "\\":
                quote = None
        elif ch in "\"'`":
            quote = ch
        elif ch in "([{<":
            depth += 1
        elif ch in ")]}" or (ch == ">" and prev != "="):
            depth -= 1
        elif ch == "," and depth == 0:
            parts.append("".join(current).strip())
            current = []
            prev = ch
            continue
        current.append(ch)
        prev = ch

    tail = "".join(current).strip()
    if tail:
        parts.append(tail)
    return parts


def parse_named_tuple(type_text: str | None) -> list[tuple[str, bool, str]] | None:
    """
    Разобрать тип кортежа с именованными элементами.

    Args:
        type_text: текст аннотации, например `[cmd: string, val?: number]`

    Returns:
        список (имя, опциональность, тип) или None, если хотя бы один
        элемент без имени, есть вложенный rest или тип не кортеж
    """
    if not type_text:
        return None
    text = type_text.strip()
    if not (text.startswith("[") and text.endswith("]")):
        return None

    elements = split_type_list(text[1:-1])
    if not elements:
        return None

    result = []
    for element in elements:
        if element.startswith("..."):
            return None
        match = TUPLE_ELEMENT_PATTERN.match(element)
        if not match:
            return None
        result.append((match.group(1), bool(match.group(2)), match.group(3).strip()))
    return result


class ParameterAnalyzer:
    """Построение канонического описания параметров или отказ."""

    def analyze(
        self, target: FunctionTarget, source: bytes | None = None
    ) -> Continue[list[ParameterSpec]] | Abort:
        """
        Проанализировать параметры цели.

        Args:
            target: целевая функция
            source: содержимое файла цели; нужно для проверки тела при rest-параметре

        Returns:
            Continue со списком ParameterSpec или Abort с причиной отказа
        """
        function = target.function
        params = function.value_parameters
        location = (Location(target.file, function.start, target.line),)

        def refuse(code: str, message: str) -> Abort:
            logger.info(f"[Params] Refused {target.name}: {message}")
            return Abort(AbortReason.VALIDATION_REFUSAL, message, location, code)

        if target.already_destructured:
            return refuse(
                "already-converted",
                f"'{target.name}' already takes a single destructured object",
            )

        if function.has_overloads:
            return refuse(
                "overloads",
                f"'{target.name}' has overload signatures that would be left out of sync",
            )

        for param in params:
            if param.has_modifiers:
                return refuse(
                    "parameter-property",
                    f"parameter '{param.text}' is a constructor parameter property",
                )

        rest = [p for p in params if p.pattern == PatternKind.REST]
        if rest:
            return self._analyze_rest(params, rest[0], target, source, refuse)

        specs = []
        for index, param in enumerate(params):
            if param.pattern != PatternKind.IDENTIFIER or not param.name:
                return refuse(
                    "unnamed-parameter",
                    f"parameter '{param.text}' has no name to use as a property",
                )
            specs.append(self._spec(param, index, target.is_typescript))

        seen = set()
        for spec in specs:
            if spec.name in seen:
                return refuse("duplicate-parameter", f"parameter '{spec.name}' is declared twice")
            seen.add(spec.name)

        return Continue(specs)

    def _spec(self, param: Parameter, index: int, is_typescript: bool) -> ParameterSpec:
        type_text = None
        if is_typescript:
            type_text = param.type_text or infer_literal_type(param.default_text)
        return ParameterSpec(
            name=param.name,
            index=index,
            optional=param.optional or param.default_text is not None,
            default_expr_text=param.default_text,
            type_text=type_text,
        )

    def _analyze_rest(
        self,
        params: list[Parameter],
        rest: Parameter,
        target: FunctionTarget,
        source: bytes | None,
        refuse,
    ):
        """Rest-параметр допустим, только если он единственный и типизирован именованным кортежем."""
        if len(params) != 1:
            return refuse(
                "rest-parameter",
                f"rest parameter '{rest.text}' must be the only parameter",
            )

        elements = parse_named_tuple(rest.type_text)
        if elements is None:
            return refuse(
                "rest-parameter",
                f"rest parameter '{rest.text}' needs a tuple type with named elements, "
                "e.g. ...args: [cmd: string, value: number]",
            )

        if source is not None and rest.name:
            function = target.function
            body = source[function.body_start : function.body_end].decode("utf-8", errors="replace")
            names = [name for name, _, _ in elements]
            # rest[0]..rest[n-1] переписываются в имена, всё остальное потеряет данные
            if rewrite_rest_reads(body, rest.name, names) is None:
                return refuse(
                    "rest-parameter-used",
                    f"'{rest.name}' is used in the body other than as "
                    f"{rest.name}[0]..{rest.name}[{len(names) - 1}]",
                )

        return Continue(
            [
                ParameterSpec(
                    name=name,
                    index=index,
                    optional=optional,
                    type_text=type_text if target.is_typescript else None,
                    is_tuple_rest=True,
                )
                for index, (name, optional, type_text) in enumerate(elements)
            ]
        )
