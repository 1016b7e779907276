"""Tests for target location and parameter analysis."""

from objectify.services.conversion.ast_parser import ASTParser
from objectify.services.conversion.config import ConversionConfig
from objectify.services.conversion.models import Abort, AbortReason
from objectify.services.conversion.parameter_analyzer import (
    ParameterAnalyzer,
    infer_literal_type,
    parse_named_tuple,
)
from objectify.services.conversion.target_locator import TargetLocator

from helpers import offset_of


class TestParameterAnalyzer:
    def given_source(self, source, filename="src/lib.ts"):
        self.source = source
        self.parsed = ASTParser(ConversionConfig()).parse_file(source.encode("utf-8"), filename)

    def when_function_is_analyzed(self, marker):
        located = TargetLocator().locate(self.parsed, offset_of(self.source, marker))
        self.outcome = located if isinstance(located, Abort) else ParameterAnalyzer().analyze(located.value, self.source.encode("utf-8"))

    def then_specs_are(self, expected):
        assert not isinstance(self.outcome, Abort), self.outcome
        actual = [(s.name, s.optional, s.default_expr_text, s.type_text) for s in self.outcome.value]
        assert actual == expected

    def then_refused_with(self, code):
        assert isinstance(self.outcome, Abort)
        assert self.outcome.reason == AbortReason.VALIDATION_REFUSAL
        assert self.outcome.code == code

    def test_typed_parameters(self):
        """Optional marker and defaults make a parameter optional."""
        self.given_source(
            "export function createUser(name: string, age = 30, email?: string) {}\n"
        )
        self.when_function_is_analyzed("createUser")
        self.then_specs_are(
            [
                ("name", False, None, "string"),
                ("age", True, "30", "number"),
                ("email", True, None, "string"),
            ]
        )

    def test_javascript_parameters_have_no_types(self):
        """JavaScript parameters are untyped even with literal defaults."""
        self.given_source("function sum(a, b = 2) { return a + b; }\n", "src/sum.js")
        self.when_function_is_analyzed("sum")
        self.then_specs_are([("a", False, None, None), ("b", True, "2", None)])

    def test_named_tuple_rest_is_expanded(self):
        """A sole rest parameter with a named tuple becomes one spec per element."""
        self.given_source("function run(...args: [cmd: string, value?: number]) {}\n")
        self.when_function_is_analyzed("run")
        self.then_specs_are([("cmd", False, None, "string"), ("value", True, None, "number")])
        assert all(s.is_tuple_rest for s in self.outcome.value)

    def test_tuple_rest_index_reads_are_accepted(self):
        """Reading rest elements by constant index can be renamed."""
        self.given_source(
            "function run(...args: [cmd: string, value?: number]) { return args[0] + args[1]; }\n"
        )
        self.when_function_is_analyzed("run")
        self.then_specs_are([("cmd", False, None, "string"), ("value", True, None, "number")])

    def test_tuple_rest_other_use_is_refused(self):
        """Passing the rest array along would leave a dangling name."""
        self.given_source(
            "function run(...args: [cmd: string, value?: number]) { log(args); }\n"
        )
        self.when_function_is_analyzed("run")
        self.then_refused_with("rest-parameter-used")

    def test_rest_without_named_tuple_is_refused(self):
        """A rest parameter typed as a plain array cannot be mapped to names."""
        self.given_source("function run(...args: string[]) {}\n")
        self.when_function_is_analyzed("run")
        self.then_refused_with("rest-parameter")

    def test_parameter_property_is_refused(self):
        """Constructor parameter properties would lose their assignment."""
        self.given_source(
            "class Point {\n  constructor(private x: number, y: number) {}\n}\n"
        )
        self.when_function_is_analyzed("constructor")
        self.then_refused_with("parameter-property")

    def test_overloaded_function_is_refused(self):
        """Overload signatures would fall out of sync with the implementation."""
        self.given_source(
            "function pick(a: string): string;\n"
            "function pick(a: number): number;\n"
            "function pick(a: any, b?: any) { return a; }\n"
        )
        self.when_function_is_analyzed("function pick(a: any")
        self.then_refused_with("overloads")

    def test_already_destructured_is_a_no_op(self):
        """A single object pattern parameter is already converted."""
        self.given_source("function draw({ x, y }: { x: number; y: number }) {}\n")
        self.when_function_is_analyzed("draw")
        self.then_refused_with("already-converted")


class TestTargetLocator:
    def given_source(self, source):
        self.source = source
        self.parsed = ASTParser(ConversionConfig()).parse_file(source.encode("utf-8"), "src/lib.ts")

    def when_target_is_located(self, marker):
        self.outcome = TargetLocator().locate(self.parsed, offset_of(self.source, marker))

    def test_innermost_function_wins(self):
        """The most nested enclosing function is chosen."""
        self.given_source(
            "function outer(a: number, b: number) {\n"
            "  const inner = (x: number, y: number) => x + y;\n"
            "  return inner(a, b);\n"
            "}\n"
        )
        self.when_target_is_located("x + y")
        assert self.outcome.value.name == "inner"

    def test_variable_bound_arrow_takes_variable_name(self):
        """An arrow bound to a variable is named after the variable."""
        self.given_source("export const scale = (value: number, factor: number) => value * factor;\n")
        self.when_target_is_located("scale")
        assert self.outcome.value.name == "scale"

    def test_cursor_on_function_keyword(self):
        """The function keyword itself belongs to the declaration."""
        self.given_source("function f(a: number, b = f(1, 0)) { return a; }\n")
        self.when_target_is_located("function")
        assert not isinstance(self.outcome, Abort), self.outcome
        assert self.outcome.value.name == "f"

    def test_keyword_tokens_are_not_functions(self):
        """Only real function nodes are recorded."""
        self.given_source("function f(a: number) {}\nconst g = function (b: number) {};\n")
        assert [(fn.name, len(fn.parameters)) for fn in self.parsed.functions] == [
            ("f", 1),
            ("g", 1),
        ]

    def test_function_without_parameters_is_not_a_target(self):
        """Zero parameters means there is nothing to convert."""
        self.given_source("function now() { return Date.now(); }\n")
        self.when_target_is_located("Date")
        assert isinstance(self.outcome, Abort)
        assert self.outcome.reason == AbortReason.NO_TARGET

    def test_position_outside_functions_is_not_a_target(self):
        """A cursor outside any function finds nothing."""
        self.given_source("const limit = 10;\nfunction f(a: number) {}\n")
        self.when_target_is_located("limit")
        assert self.outcome.reason == AbortReason.NO_TARGET


class TestLiteralTypes:
    def test_infers_literal_default_types(self):
        """Literal defaults give their primitive type."""
        assert infer_literal_type("42") == "number"
        assert infer_literal_type("-1.5e3") == "number"
        assert infer_literal_type("'x'") == "string"
        assert infer_literal_type("false") == "boolean"
        assert infer_literal_type("10n") == "bigint"
        assert infer_literal_type("compute()") is None

    def test_parses_named_tuple_with_generic_members(self):
        """Commas inside generic arguments do not split tuple elements."""
        assert parse_named_tuple("[map: Map<string, number>, done?: boolean]") == [
            ("map", False, "Map<string, number>"),
            ("done", True, "boolean"),
        ]

    def test_unnamed_tuple_element_is_rejected(self):
        """Any unnamed element makes the tuple unusable."""
        assert parse_named_tuple("[cmd: string, number]") is None
