"""Текстовый поиск вызовов в разметке шаблонов (Vue, Svelte, HTML)."""

import logging
import re
from dataclasses import dataclass

from .rewrite_generator import split_call_arguments
from .syntax import ParsedFile

logger = logging.getLogger(__name__)

SCRIPT_BLOCK_PATTERN = re.compile(
    rb"<script\b([^>]*)>(.*?)</script\s*>", re.IGNORECASE | re.DOTALL
)
STYLE_BLOCK_PATTERN = re.compile(rb"<style\b[^>]*>.*?</style\s*>", re.IGNORECASE | re.DOTALL)
COMMENT_PATTERN = re.compile(rb"<!--.*?-->", re.DOTALL)
LANG_ATTR_PATTERN = re.compile(rb"""\blang\s*=\s*["']?([\w-]+)""", re.IGNORECASE)


@dataclass
class ScriptBlock:
    """Содержимое одного блока <script>."""

    start: int
    end: int
    lang: str | None


@dataclass
class TextCall:
    """Вызов, найденный текстовым поиском."""

    start: int
    args_start: int
    end: int
    callee_text: str
    has_receiver: bool
    arguments: list[str]
    argument_ranges: list[tuple[int, int]]

    @property
    def single_object_argument(self) -> bool:
        return len(self.arguments) == 1 and self.arguments[0].lstrip().startswith("{")


def find_script_blocks(source: bytes) -> list[ScriptBlock]:
    """Найти блоки <script> и язык каждого из них."""
    blocks = []
    for match in SCRIPT_BLOCK_PATTERN.finditer(source):
        lang_match = LANG_ATTR_PATTERN.search(match.group(1))
        lang = lang_match.group(1).decode().lower() if lang_match else None
        blocks.append(ScriptBlock(start=match.start(2), end=match.end(2), lang=lang))
    return blocks


def blank_outside(source: bytes, regions: list[tuple[int, int]]) -> bytes:
    """
    Заменить всё вне regions пробелами, сохранив переводы строк.

    Смещения в результате совпадают со смещениями исходного файла.
    """
    buffer = bytearray(
        b if b in (0x0A, 0x0D) else 0x20 for b in source
    )
    for start, end in regions:
        buffer[start:end] = source[start:end]
    return bytes(buffer)


def _excluded_regions(source: bytes) -> list[tuple[int, int]]:
    """Диапазоны, где текстовый поиск не ведётся: скрипты, стили, комментарии."""
    regions = [m.span() for m in SCRIPT_BLOCK_PATTERN.finditer(source)]
    regions += [m.span() for m in STYLE_BLOCK_PATTERN.finditer(source)]
    regions += [m.span() for m in COMMENT_PATTERN.finditer(source)]
    return sorted(regions)


def find_indirect_text_uses(parsed: ParsedFile, name: str) -> list[int]:
    """Позиции name.call( / name.apply( / name.bind( в разметке."""
    pattern = re.compile(
        rb"(?<![\w$])" + re.escape(name.encode()) + rb"\s*\.\s*(?:call|apply|bind)\s*\("
    )
    excluded = _excluded_regions(parsed.source)
    return [
        m.start()
        for m in pattern.finditer(parsed.source)
        if not any(lo <= m.start() < hi for lo, hi in excluded)
    ]


def find_text_calls(parsed: ParsedFile, name: str) -> list[TextCall]:
    """
    Найти вызовы name(...) в разметке вне встроенных скриптов.

    Args:
        parsed: файл шаблона
        name: имя целевой функции

    Returns:
        Список TextCall в порядке следования в файле
    """
    source = parsed.source
    pattern = re.compile(
        rb"(?<![\w$.])((?:[A-Za-z_$][\w$]*\s*\??\.\s*)*)"
        + re.escape(name.encode())
        + rb"\s*\("
    )
    excluded = _excluded_regions(source)
    calls = []

    for match in pattern.finditer(source):
        start = match.start()
        if any(lo <= start < hi for lo, hi in excluded):
            continue

        args_start = match.end() - 1
        split = split_call_arguments(source, args_start)
        if split is None:
            logger.debug(f"[Template] Unbalanced call at {parsed.path}:{parsed.line_of(start)}")
            continue

        arguments, ranges, close = split
        calls.append(
            TextCall(
                start=start,
                args_start=args_start,
                end=close + 1,
                callee_text=source[start:args_start].decode().rstrip(),
                has_receiver=bool(match.group(1)),
                arguments=arguments,
                argument_ranges=ranges,
            )
        )

    return calls
