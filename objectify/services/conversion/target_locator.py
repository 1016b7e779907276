"""Поиск целевой функции по позиции курсора."""

import logging

from .models import Abort, AbortReason, Continue, FunctionTarget, Location
from .syntax import FunctionLike, ParsedFile, PatternKind

logger = logging.getLogger(__name__)


def offset_from_line_column(source: bytes, line: int, column: int) -> int:
    """Байтовое смещение по строке и колонке (обе с 1)."""
    lines = source.split(b"\n")
    line = max(1, min(line, len(lines)))
    prefix = sum(len(text) + 1 for text in lines[: line - 1])
    return prefix + max(0, column - 1)


def find_innermost_function(parsed: ParsedFile, offset: int) -> FunctionLike | None:
    """Самая вложенная функция, диапазон поиска которой содержит offset."""
    enclosing = [
        fn for fn in parsed.functions if fn.locate_start <= offset <= fn.locate_end
    ]
    if not enclosing:
        return None
    return min(enclosing, key=lambda fn: (fn.locate_end - fn.locate_start, -fn.start))


class TargetLocator:
    """Определение цели преобразования."""

    def locate(self, parsed: ParsedFile, offset: int) -> Continue[FunctionTarget] | Abort:
        """
        Найти функцию под курсором.

        Args:
            parsed: файл с курсором
            offset: байтовое смещение курсора

        Returns:
            Continue с FunctionTarget или Abort (нет цели, анонимная функция)
        """
        where = (Location(parsed.path, offset, parsed.line_of(offset)),)
        function = find_innermost_function(parsed, offset)

        if function is None:
            return Abort(AbortReason.NO_TARGET, "no function at the cursor position", where)

        if not function.value_parameters:
            return Abort(
                AbortReason.NO_TARGET,
                f"function '{function.name or '<anonymous>'}' has no parameters",
                where,
            )

        if not function.name:
            return Abort(
                AbortReason.VALIDATION_REFUSAL,
                "anonymous function has no name to find its call sites by",
                where,
                "anonymous-function",
            )

        params = function.value_parameters
        already = len(params) == 1 and params[0].pattern == PatternKind.OBJECT

        target = FunctionTarget(
            file=parsed.path,
            start=function.start,
            end=function.end,
            name=function.name,
            already_destructured=already,
            function=function,
            is_typescript=parsed.is_typescript,
            line=parsed.line_of(function.start),
        )
        logger.info(
            f"[Target] {target.name} at {target.file}:{target.line} "
            f"({function.kind.value}, {len(params)} params)"
        )
        return Continue(target)
