"""Атомарное применение плана правок к файлам проекта."""

import os
import logging
import tempfile

from objectify.services.conversion.models import TextEdit

logger = logging.getLogger(__name__)


def apply_edits_to_bytes(source: bytes, edits: list[TextEdit]) -> bytes:
    """Применить непересекающиеся правки (байтовые смещения) к содержимому файла."""
    result = source
    for edit in sorted(edits, key=lambda e: e.start, reverse=True):
        result = result[: edit.start] + edit.text.encode("utf-8") + result[edit.end :]
    return result


class FileSystemEditSink:
    """
    Запись всех файлов плана как одна транзакция.

    Новое содержимое сначала пишется во временные файлы рядом с исходными,
    затем они по очереди переименовываются поверх. При ошибке уже заменённые
    файлы восстанавливаются из исходного содержимого.
    """

    def __init__(self, repo_path: str):
        self.repo_path = repo_path

    def apply_atomic(
        self,
        edits_by_file: dict[str, list[TextEdit]],
        originals: dict[str, bytes] | None = None,
    ) -> bool:
        """
        Применить правки ко всем файлам или ни к одному.

        Args:
            edits_by_file: правки по относительным путям
            originals: содержимое файлов на момент снимка; если файл с тех пор
                изменился, ничего не пишется

        Returns:
            True, если все файлы записаны
        """
        current: dict[str, bytes] = {}
        try:
            for path in edits_by_file:
                with open(self._full(path), "rb") as f:
                    current[path] = f.read()
        except OSError as e:
            logger.error(f"[Edit] Cannot read {e.filename}: {e}")
            return False

        if originals is not None:
            for path, content in current.items():
                if path in originals and originals[path] != content:
                    logger.error(f"[Edit] {path} changed on disk since the snapshot, nothing written")
                    return False

        staged: dict[str, str] = {}
        replaced: list[str] = []
        try:
            for path, edits in edits_by_file.items():
                staged[path] = self._stage(path, apply_edits_to_bytes(current[path], edits))

            for path, temp_path in staged.items():
                os.replace(temp_path, self._full(path))
                replaced.append(path)
        except OSError as e:
            logger.error(f"[Edit] Write failed ({e}), rolling back {len(replaced)} files")
            self._rollback(replaced, current)
            for path, temp_path in staged.items():
                if path not in replaced and os.path.exists(temp_path):
                    os.remove(temp_path)
            return False

        logger.info(f"[Edit] Wrote {len(replaced)} files")
        return True

    def _full(self, path: str) -> str:
        return os.path.join(self.repo_path, path)

    def _stage(self, path: str, content: bytes) -> str:
        full_path = self._full(path)
        fd, temp_path = tempfile.mkstemp(
            prefix=f".{os.path.basename(full_path)}.", suffix=".tmp", dir=os.path.dirname(full_path)
        )
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(content)
            os.chmod(temp_path, os.stat(full_path).st_mode & 0o7777)
        except OSError:
            os.remove(temp_path)
            raise
        return temp_path

    def _rollback(self, replaced: list[str], current: dict[str, bytes]) -> None:
        for path in replaced:
            try:
                with open(self._full(path), "wb") as f:
                    f.write(current[path])
            except OSError as e:
                logger.error(f"[Edit] Rollback of {path} failed: {e}")
