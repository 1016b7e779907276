"""Модели данных для преобразования параметров."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, TypeVar

from .syntax import CalleeKind, FunctionLike

T = TypeVar("T")


@dataclass(frozen=True)
class FunctionTarget:
    """Функция, выбранная для преобразования."""

    file: str
    start: int
    end: int
    name: str | None
    already_destructured: bool
    function: FunctionLike
    is_typescript: bool
    line: int = 1

    @property
    def is_member(self) -> bool:
        return self.function.is_member


@dataclass(frozen=True)
class ParameterSpec:
    """Канонизированное описание одного параметра."""

    name: str
    index: int
    optional: bool
    default_expr_text: str | None = None
    type_text: str | None = None
    is_tuple_rest: bool = False


@dataclass(frozen=True)
class DeclarationId:
    """Идентичность объявления.

    heuristic=True означает, что объявление не доказано синтаксически
    (например, импорт из модуля вне проекта) и сравнивается по имени.
    """

    file: str
    offset: int
    name: str
    heuristic: bool = False


class Classification(str, Enum):
    """Состояние кандидата."""

    UNCLASSIFIED = "unclassified"
    SKIP = "skip"
    SAFE = "safe"
    REVIEW = "review"
    INCOMPATIBLE = "incompatible"


class ReasonCode(str, Enum):
    """Правило, определившее состояние кандидата."""

    ALREADY_CONVERTED = "already-converted"
    UNRESOLVED_PROPERTY_ACCESS = "unresolved-property-access"
    TOO_MANY_ARGS = "too-many-args"
    TEMPLATE_MARKUP = "template-markup"
    UNRESOLVED_IMPORT = "unresolved-import"
    RESOLVED = "resolved"
    UNRESOLVED_IDENTIFIER = "unresolved-identifier"
    INDIRECT_INVOCATION = "indirect-invocation"
    SPREAD_ARGUMENT = "spread-argument"


# Приоритет показа REVIEW-кандидатов (больше - раньше)
REVIEW_PRIORITY = {
    ReasonCode.UNRESOLVED_PROPERTY_ACCESS: 30,
    ReasonCode.TOO_MANY_ARGS: 20,
    ReasonCode.TEMPLATE_MARKUP: 12,
    ReasonCode.UNRESOLVED_IMPORT: 10,
}


class LocationKind(str, Enum):
    NODE = "node"  # диапазон узла дерева
    TEXT = "text"  # текстовое совпадение в шаблоне


@dataclass
class CallCandidate:
    """Обнаруженный вызов целевой функции."""

    file: str
    start: int
    end: int
    # Позиция открывающей скобки: всё до неё сохраняется как есть
    args_start: int
    location_kind: LocationKind
    callee_text: str
    callee_kind: CalleeKind
    argument_texts: list[str]
    argument_ranges: list[tuple[int, int]]
    line: int
    single_object_argument: bool = False
    declaration: DeclarationId | None = None
    classification: Classification = Classification.UNCLASSIFIED
    reason: ReasonCode | None = None

    @property
    def key(self) -> tuple[str, int, int] | tuple[str, int]:
        if self.location_kind == LocationKind.TEXT:
            return (self.file, self.start)
        return (self.file, self.start, self.end)

    @property
    def range_start(self) -> int:
        return self.start

    @property
    def range_end(self) -> int:
        return self.end

    @property
    def score(self) -> int:
        return REVIEW_PRIORITY.get(self.reason, 0) if self.reason else 0

    @property
    def is_property_access(self) -> bool:
        return self.callee_kind in (CalleeKind.MEMBER, CalleeKind.SUBSCRIPT)

    def describe(self) -> str:
        return f"{self.file}:{self.line}"


@dataclass(frozen=True)
class TextEdit:
    """Замена диапазона байт в файле."""

    start: int
    end: int
    text: str


@dataclass
class PlannedCall:
    """Принятый вызов с готовым текстом замены."""

    candidate: CallCandidate
    replacement: str


@dataclass
class ConversionPlan:
    """Итоговый согласованный набор правок."""

    target: FunctionTarget
    signature_text: str
    function_text: str
    internal: list[PlannedCall] = field(default_factory=list)
    external: list[PlannedCall] = field(default_factory=list)
    edits_by_file: dict[str, list[TextEdit]] = field(default_factory=dict)

    @property
    def files(self) -> list[str]:
        return list(self.edits_by_file.keys())


class AbortReason(str, Enum):
    """Причина прерывания всей попытки."""

    NO_TARGET = "no-target"
    VALIDATION_REFUSAL = "validation-refusal"
    PARSE_FAILURE = "parse-failure"
    NAME_COLLISION = "name-collision"
    INCOMPATIBLE_USAGE = "incompatible-usage"
    USER_CANCELLATION = "user-cancellation"
    PLAN_CONFLICT = "plan-conflict"
    EDIT_FAILED = "edit-failed"


@dataclass(frozen=True)
class Location:
    """Позиция в файле для сообщений."""

    file: str
    offset: int
    line: int

    def __str__(self) -> str:
        return f"{self.file}:{self.line}"


@dataclass(frozen=True)
class Continue(Generic[T]):
    """Шаг завершился, работа продолжается."""

    value: T


@dataclass(frozen=True)
class Abort:
    """Попытка прервана, ни один файл не изменён."""

    reason: AbortReason
    message: str
    locations: tuple[Location, ...] = ()
    code: str | None = None

    def describe(self) -> str:
        where = ", ".join(str(loc) for loc in self.locations)
        suffix = f" ({where})" if where else ""
        return f"[{self.reason.value}] {self.message}{suffix}. No files were modified."


@dataclass(frozen=True)
class Planned:
    """План правок готов к применению."""

    plan: ConversionPlan


class ReviewDecision(str, Enum):
    """Ответ на вопрос о REVIEW-кандидате."""

    ACCEPT = "accept"
    REJECT = "reject"
    ABORT_ALL = "abort-all"


@dataclass(frozen=True)
class ReviewRequest:
    """Вопрос к человеку по одному REVIEW-кандидату."""

    candidate: CallCandidate
    index: int
    total: int
    original_text: str
    preview_text: str
    function_name: str


@dataclass
class ClassificationResult:
    """Кандидаты, разложенные по состояниям."""

    safe: list[CallCandidate] = field(default_factory=list)
    review: list[CallCandidate] = field(default_factory=list)
    skipped: list[CallCandidate] = field(default_factory=list)

    @property
    def already_converted(self) -> int:
        return sum(1 for c in self.skipped if c.reason == ReasonCode.ALREADY_CONVERTED)


@dataclass
class ConversionResult:
    """Итог одной попытки преобразования."""

    status: str  # converted, aborted, dry-run
    abort: Abort | None = None
    plan: ConversionPlan | None = None
    safe_count: int = 0
    accepted_count: int = 0
    rejected_count: int = 0
    already_converted_count: int = 0

    @property
    def ok(self) -> bool:
        return self.abort is None

    @property
    def files_modified(self) -> list[str]:
        if self.status != "converted" or self.plan is None:
            return []
        return self.plan.files
