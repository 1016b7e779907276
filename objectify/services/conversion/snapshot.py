"""Неизменяемый снимок распарсенных файлов одной попытки."""

import os
import posixpath
import logging

from .ast_parser import ASTParser
from .config import ConversionConfig
from .file_scanner import FileScanner
from .models import Abort, AbortReason, Continue, Location
from .syntax import ParsedFile

logger = logging.getLogger(__name__)


def normalize_path(path: str) -> str:
    """Относительный путь в виде ключа снимка (через /)."""
    return posixpath.normpath(path.replace(os.sep, "/"))


class ProjectSnapshot:
    """Файлы проекта, прочитанные и распарсенные ровно один раз."""

    def __init__(self, repo_path: str, files: dict[str, ParsedFile]):
        self.repo_path = repo_path
        self.files = files

    def __contains__(self, path: str) -> bool:
        return path in self.files

    def __getitem__(self, path: str) -> ParsedFile:
        return self.files[path]

    def get(self, path: str) -> ParsedFile | None:
        return self.files.get(path)

    @property
    def paths(self) -> list[str]:
        return list(self.files.keys())

    def sources(self) -> dict[str, bytes]:
        """Исходное содержимое файлов на момент снимка."""
        return {path: parsed.source for path, parsed in self.files.items()}

    @classmethod
    def load(
        cls,
        repo_path: str,
        config: ConversionConfig,
        target_file: str,
        parser: ASTParser | None = None,
    ) -> Continue["ProjectSnapshot"] | Abort:
        """
        Прочитать и распарсить все файлы области проекта.

        Целевой файл включается в снимок всегда, даже вне include.

        Returns:
            Continue со снимком или Abort(parse-failure) с проблемным файлом
        """
        parser = parser if parser is not None else ASTParser(config)
        paths = FileScanner(repo_path, config).scan()
        target_file = normalize_path(target_file)
        if target_file not in paths:
            paths.insert(0, target_file)

        files = {}
        for rel_path in paths:
            full_path = os.path.join(repo_path, rel_path)

            try:
                with open(full_path, "rb") as f:
                    content = f.read()
                content.decode("utf-8")
            except UnicodeDecodeError:
                return cls._failure(rel_path, 0, 1, "file is not valid UTF-8")
            except OSError as e:
                if rel_path == target_file:
                    return Abort(
                        AbortReason.NO_TARGET,
                        f"cannot read target file: {e}",
                        (Location(rel_path, 0, 1),),
                    )
                return cls._failure(rel_path, 0, 1, f"cannot read file: {e}")

            parsed = parser.parse_file(content, rel_path)
            if parsed.syntax_error is not None:
                offset = parsed.syntax_error
                return cls._failure(rel_path, offset, parsed.line_of(offset), "syntax error")

            files[rel_path] = parsed

        logger.info(f"[Snapshot] Parsed {len(files)} files")
        return Continue(cls(repo_path, files))

    @staticmethod
    def _failure(path: str, offset: int, line: int, message: str) -> Abort:
        logger.warning(f"[Snapshot] Parse failure in {path}:{line}: {message}")
        return Abort(
            AbortReason.PARSE_FAILURE,
            f"cannot parse {path}: {message}",
            (Location(path, offset, line),),
        )
