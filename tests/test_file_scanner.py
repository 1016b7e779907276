"""Tests for project file discovery."""

from objectify.services.conversion.config import ConversionConfig
from objectify.services.conversion.file_scanner import FileScanner

from helpers import write_project


class TestFileScanner:
    def given_project(self, tmp_path):
        self.root = tmp_path
        write_project(
            tmp_path,
            {
                "src/a.ts": "",
                "src/b.js": "",
                "src/view/App.vue": "",
                "src/readme.md": "",
                "node_modules/lib/index.js": "",
                "dist/bundle.js": "",
                ".gitignore": "dist/\n",
            },
        )

    def when_project_is_scanned(self, **config):
        self.files = FileScanner(str(self.root), ConversionConfig(**config)).scan()

    def test_default_scope(self, tmp_path):
        """Default globs pick source files and skip node_modules and gitignored paths."""
        self.given_project(tmp_path)
        self.when_project_is_scanned()
        assert self.files == ["src/a.ts", "src/b.js", "src/view/App.vue"]

    def test_custom_include_and_exclude(self, tmp_path):
        """Space-separated include and exclude globs narrow the scope."""
        self.given_project(tmp_path)
        self.when_project_is_scanned(include="**/*.ts **/*.vue", exclude="**/view/**")
        assert self.files == ["src/a.ts"]
