"""Shared helpers for building small TS/JS/Vue projects on disk."""

import asyncio
from pathlib import Path

from objectify.services.conversion import ConversionConfig, ConversionService, ReviewDecision
from objectify.services.decision_service import ScriptedDecisionProvider
from objectify.services.edit_service import FileSystemEditSink


def write_project(root: Path, files: dict[str, str]) -> None:
    for rel_path, content in files.items():
        full_path = root / rel_path
        full_path.parent.mkdir(parents=True, exist_ok=True)
        full_path.write_text(content, encoding="utf-8")


def read_project(root: Path, files) -> dict[str, str]:
    return {rel_path: (root / rel_path).read_text(encoding="utf-8") for rel_path in files}


def offset_of(text: str, marker: str) -> int:
    """Byte offset of the first occurrence of marker."""
    return text.encode("utf-8").index(marker.encode("utf-8"))


def run_conversion(
    root: Path,
    target_file: str,
    marker: str,
    answers: list[ReviewDecision] | None = None,
    config: ConversionConfig | None = None,
    dry_run: bool = False,
):
    """Convert the function whose text contains marker; returns (result, decisions)."""
    source = (root / target_file).read_text(encoding="utf-8")
    decisions = ScriptedDecisionProvider(answers or [])
    service = ConversionService(
        repo_path=str(root),
        decisions=decisions,
        edit_sink=FileSystemEditSink(str(root)),
        config=config,
        dry_run=dry_run,
    )
    result = asyncio.run(service.convert(target_file, offset_of(source, marker)))
    return result, decisions
