"""Сканирование файлов проекта с учётом include/exclude и gitignore."""

import os
import logging
from pathlib import Path
import pathspec

from objectify.constants import DEFAULT_EXCLUDE, DEFAULT_INCLUDE
from .config import ConversionConfig

logger = logging.getLogger(__name__)


def _glob_spec(patterns: str) -> pathspec.PathSpec:
    return pathspec.PathSpec.from_lines("gitwildmatch", patterns.split())


class FileScanner:
    """Список файлов проекта, попадающих в область преобразования."""

    def __init__(self, repo_path: str, config: ConversionConfig):
        self.repo_path = repo_path
        self.config = config
        self._include_spec = _glob_spec(config.include.strip() or DEFAULT_INCLUDE)
        self._exclude_spec = _glob_spec(config.exclude.strip() or DEFAULT_EXCLUDE)
        self._gitignore_spec = self._load_gitignore()

    def _load_gitignore(self) -> pathspec.PathSpec | None:
        """Загрузить .gitignore."""
        gitignore_path = Path(self.repo_path) / ".gitignore"
        if not gitignore_path.exists():
            return None

        with open(gitignore_path) as f:
            return pathspec.PathSpec.from_lines("gitwildmatch", f)

    def scan(self) -> list[str]:
        """
        Сканировать проект.

        Returns:
            Список относительных путей (через /) в порядке обхода
        """
        logger.info("[Scanner] Scanning files...")
        files = []

        for root, dirs, filenames in os.walk(self.repo_path):
            rel_root = os.path.relpath(root, self.repo_path)

            dirs[:] = sorted(self._filter_directories(dirs, rel_root))

            for filename in sorted(filenames):
                rel_path = self._relative(rel_root, filename)
                if self.is_in_scope(rel_path):
                    files.append(rel_path)

        logger.info(f"[Scanner] Found {len(files)} files")
        return files

    def _relative(self, rel_root: str, name: str) -> str:
        if rel_root == ".":
            return name
        return f"{rel_root}/{name}".replace(os.sep, "/")

    def _filter_directories(self, dirs: list[str], rel_root: str) -> list[str]:
        """Фильтровать директории по .gitignore."""
        # Всегда исключаем .git (служебная папка)
        filtered = [d for d in dirs if d != ".git"]

        if self._gitignore_spec:
            filtered = [
                d
                for d in filtered
                if not self._gitignore_spec.match_file(self._relative(rel_root, d) + "/")
            ]

        return filtered

    def is_in_scope(self, rel_path: str) -> bool:
        """Проверить, входит ли файл в область преобразования."""
        if not self._include_spec.match_file(rel_path):
            return False

        if self._exclude_spec.match_file(rel_path):
            return False

        if self._gitignore_spec and self._gitignore_spec.match_file(rel_path):
            return False

        return True
