"""Tests for call discovery: indirect invocation aborts and markup de-duplication."""

from dataclasses import replace

import pytest

from objectify.services.conversion.call_scanner import CallScanner
from objectify.services.conversion.config import ConversionConfig
from objectify.services.conversion.declaration_resolver import SyntacticResolver
from objectify.services.conversion.models import Abort, AbortReason, LocationKind
from objectify.services.conversion.snapshot import ProjectSnapshot
from objectify.services.conversion.target_locator import TargetLocator

from helpers import offset_of, write_project

GREET_TS = "export function greet(message: string, times: number) {}\n"


class TestCallScanner:
    def given_project(self, tmp_path, files):
        write_project(tmp_path, files)
        config = ConversionConfig(dedup_tolerance=2)
        self.snapshot = ProjectSnapshot.load(str(tmp_path), config, "src/greet.ts").value
        located = TargetLocator().locate(
            self.snapshot["src/greet.ts"], offset_of(GREET_TS, "greet")
        )
        self.target = located.value
        self.scanner = CallScanner(self.snapshot, SyntacticResolver(self.snapshot, config), config)

    def when_scanned(self):
        self.outcome = self.scanner.scan(self.target)

    def then_incompatible(self, code):
        assert isinstance(self.outcome, Abort)
        assert self.outcome.reason == AbortReason.INCOMPATIBLE_USAGE
        assert self.outcome.code == code
        assert self.outcome.locations[0].file == "src/app.ts"

    @pytest.mark.parametrize(
        "usage",
        [
            "greet.call(null, 'a', 1);",
            "greet.apply(null, ['a', 1]);",
            "const later = greet.bind(null, 'a');",
            "Reflect.apply(greet, null, ['a', 1]);",
        ],
    )
    def test_indirect_invocation_forms_abort(self, tmp_path, usage):
        """Every form that rebinds this or spreads an array into the target is refused."""
        self.given_project(
            tmp_path,
            {
                "src/greet.ts": GREET_TS,
                "src/app.ts": f"import {{ greet }} from './greet';\ngreet('ok', 1);\n{usage}\n",
            },
        )
        self.when_scanned()
        self.then_incompatible("indirect-invocation")

    def test_bind_on_unrelated_function_is_ignored(self, tmp_path):
        """.bind on a different declaration with the same name is not the target."""
        self.given_project(
            tmp_path,
            {
                "src/greet.ts": GREET_TS,
                "src/other.ts": "export function greet(id: number) {}\n",
                "src/app.ts": "import { greet } from './other';\nconst g = greet.bind(null, 1);\n",
            },
        )
        self.when_scanned()
        assert self.outcome.value == []

    def test_indirect_use_in_markup_aborts(self, tmp_path):
        """greet.apply(...) in Vue markup is refused like in code."""
        self.given_project(
            tmp_path,
            {
                "src/greet.ts": GREET_TS,
                "src/App.vue": "<template>\n  <b @click=\"greet.apply(null, args)\"></b>\n</template>\n",
            },
        )
        self.when_scanned()
        assert self.outcome.reason == AbortReason.INCOMPATIBLE_USAGE
        assert self.outcome.locations[0].file == "src/App.vue"


class TestMarkupDeduplication:
    def given_markup_call(self, tmp_path):
        write_project(
            tmp_path,
            {
                "src/greet.ts": GREET_TS,
                "src/App.vue": "<template>\n  <b @click=\"greet('hi', 2)\"></b>\n</template>\n",
            },
        )
        config = ConversionConfig(dedup_tolerance=2)
        snapshot = ProjectSnapshot.load(str(tmp_path), config, "src/greet.ts").value
        self.target = TargetLocator().locate(
            snapshot["src/greet.ts"], offset_of(GREET_TS, "greet")
        ).value
        self.scanner = CallScanner(snapshot, SyntacticResolver(snapshot, config), config)
        self.parsed = snapshot["src/App.vue"]
        [self.text_call] = self.scanner.scan(self.target).value

    def when_merged_with(self, parsed_call):
        self.merged = self.scanner._scan_markup(self.parsed, self.target, [parsed_call])

    def test_text_match_is_found_alone(self, tmp_path):
        """Without a parsed call the markup match is a template candidate."""
        self.given_markup_call(tmp_path)
        assert self.text_call.location_kind == LocationKind.TEXT
        assert self.text_call.argument_texts == ["'hi'", "2"]

    def test_match_within_tolerance_is_the_same_call(self, tmp_path):
        """A parsed call starting one byte away absorbs the text match."""
        self.given_markup_call(tmp_path)
        parsed_call = replace(
            self.text_call, start=self.text_call.start + 1, location_kind=LocationKind.NODE
        )
        self.when_merged_with(parsed_call)
        assert self.merged == []

    def test_match_with_close_end_is_the_same_call(self, tmp_path):
        """Ends within the tolerance also identify the same call."""
        self.given_markup_call(tmp_path)
        parsed_call = replace(
            self.text_call,
            start=self.text_call.start - 10,
            end=self.text_call.end - 2,
            location_kind=LocationKind.NODE,
        )
        self.when_merged_with(parsed_call)
        assert self.merged == []

    def test_match_beyond_tolerance_is_kept(self, tmp_path):
        """Three bytes apart on both ends is a different call."""
        self.given_markup_call(tmp_path)
        parsed_call = replace(
            self.text_call,
            start=self.text_call.start + 3,
            end=self.text_call.end + 3,
            location_kind=LocationKind.NODE,
        )
        self.when_merged_with(parsed_call)
        assert [c.start for c in self.merged] == [self.text_call.start]
