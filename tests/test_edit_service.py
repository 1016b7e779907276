"""Tests for the atomic file edit sink."""

import os

from objectify.services.conversion.models import TextEdit
from objectify.services.edit_service import FileSystemEditSink, apply_edits_to_bytes

from helpers import read_project, write_project


class TestApplyEditsToBytes:
    def test_edits_apply_from_the_end(self):
        """Earlier edits keep their offsets when later ones change length."""
        source = b"f(1, 2); f(3, 4);"
        edits = [TextEdit(0, 7, "f({ a:1, b:2 })"), TextEdit(9, 16, "f({ a:3, b:4 })")]
        assert apply_edits_to_bytes(source, edits) == b"f({ a:1, b:2 }); f({ a:3, b:4 });"

    def test_offsets_are_bytes(self):
        """Multi-byte characters before an edit do not shift it."""
        source = "const ä = f(1);".encode("utf-8")
        start = source.index(b"f(1)")
        edits = [TextEdit(start, start + 4, "f({ a:1 })")]
        assert apply_edits_to_bytes(source, edits).decode("utf-8") == "const ä = f({ a:1 });"


class TestFileSystemEditSink:
    def given_project(self, tmp_path):
        self.root = tmp_path
        self.files = {"src/a.ts": "f(1);\n", "src/b.ts": "f(2);\n"}
        write_project(tmp_path, self.files)
        self.originals = {path: text.encode("utf-8") for path, text in self.files.items()}
        self.edits = {
            "src/a.ts": [TextEdit(0, 4, "f({ x:1 })")],
            "src/b.ts": [TextEdit(0, 4, "f({ x:2 })")],
        }

    def when_applied(self, originals=None):
        self.ok = FileSystemEditSink(str(self.root)).apply_atomic(self.edits, originals)
        self.after = read_project(self.root, self.files)

    def test_all_files_are_written(self, tmp_path):
        """Every file of the plan gets its new content."""
        self.given_project(tmp_path)
        self.when_applied(self.originals)
        assert self.ok
        assert self.after == {"src/a.ts": "f({ x:1 });\n", "src/b.ts": "f({ x:2 });\n"}

    def test_no_temp_files_are_left(self, tmp_path):
        """Staged files are renamed over the originals."""
        self.given_project(tmp_path)
        self.when_applied()
        assert sorted(os.listdir(tmp_path / "src")) == ["a.ts", "b.ts"]

    def test_changed_file_blocks_the_whole_write(self, tmp_path):
        """A file modified after the snapshot means nothing is written."""
        self.given_project(tmp_path)
        (tmp_path / "src/b.ts").write_text("g(2);\n", encoding="utf-8")
        self.when_applied(self.originals)
        assert not self.ok
        assert self.after == {"src/a.ts": "f(1);\n", "src/b.ts": "g(2);\n"}

    def test_missing_file_fails_without_writing(self, tmp_path):
        """An unreadable file stops the write before anything is staged."""
        self.given_project(tmp_path)
        os.remove(tmp_path / "src/b.ts")
        self.ok = FileSystemEditSink(str(tmp_path)).apply_atomic(self.edits, self.originals)
        assert not self.ok
        assert (tmp_path / "src/a.ts").read_text(encoding="utf-8") == "f(1);\n"

    def test_failed_rename_rolls_back(self, tmp_path, monkeypatch):
        """When the second rename fails the first file is restored."""
        self.given_project(tmp_path)
        real_replace = os.replace
        calls = []

        def flaky_replace(src, dst):
            calls.append(dst)
            if len(calls) == 2:
                raise OSError("disk full")
            real_replace(src, dst)

        monkeypatch.setattr(os, "replace", flaky_replace)
        self.when_applied(self.originals)

        assert not self.ok
        assert self.after == self.files
        assert sorted(os.listdir(tmp_path / "src")) == ["a.ts", "b.ts"]

    def test_failed_staging_leaves_no_temp_file(self, tmp_path, monkeypatch):
        """A temp file whose permissions cannot be copied is removed."""
        self.given_project(tmp_path)

        def failing_chmod(path, mode):
            raise OSError("read-only filesystem")

        monkeypatch.setattr(os, "chmod", failing_chmod)
        self.when_applied(self.originals)

        assert not self.ok
        assert self.after == self.files
        assert sorted(os.listdir(tmp_path / "src")) == ["a.ts", "b.ts"]
