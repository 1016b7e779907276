"""Фасад над синтаксическим деревом: только то, что нужно движку преобразования."""

from dataclasses import dataclass, field
from enum import Enum


class FunctionKind(str, Enum):
    """Вид функциональной конструкции."""

    DECLARATION = "declaration"  # function f() {}
    VARIABLE = "variable"  # const f = () => {}
    METHOD = "method"  # class/object member
    EXPRESSION = "expression"  # анонимное выражение


class PatternKind(str, Enum):
    """Вид шаблона параметра."""

    IDENTIFIER = "identifier"
    OBJECT = "object"
    ARRAY = "array"
    REST = "rest"
    THIS = "this"
    OTHER = "other"


class CalleeKind(str, Enum):
    """Форма вызываемого выражения."""

    IDENTIFIER = "identifier"
    MEMBER = "member"  # obj.name
    SUBSCRIPT = "subscript"  # obj[name] / obj['name']
    THIS = "this"
    OTHER = "other"


@dataclass
class Parameter:
    """Параметр функции."""

    name: str | None
    pattern: PatternKind
    start: int
    end: int
    text: str
    optional: bool = False
    default_text: str | None = None
    type_text: str | None = None
    # public/private/protected/readonly/override
    has_modifiers: bool = False


@dataclass
class VariableDecl:
    """Объявление переменной, к которой привязана функция."""

    name: str
    name_offset: int
    start: int
    end: int


@dataclass
class FunctionLike:
    """Функция, метод или функциональное выражение."""

    kind: FunctionKind
    name: str | None
    # Позиция идентификатора имени (идентичность объявления)
    name_offset: int | None
    start: int
    end: int
    # Диапазон для поиска по курсору (для переменной - весь declarator)
    locate_start: int
    locate_end: int
    # Диапазон списка параметров, включая скобки (или одиночный идентификатор)
    params_start: int
    params_end: int
    params_parenthesized: bool
    body_start: int
    body_end: int
    body_is_block: bool
    parameters: list[Parameter] = field(default_factory=list)
    has_overloads: bool = False
    variable: VariableDecl | None = None

    @property
    def is_member(self) -> bool:
        return self.kind == FunctionKind.METHOD

    @property
    def this_parameter(self) -> Parameter | None:
        for param in self.parameters:
            if param.pattern == PatternKind.THIS:
                return param
        return None

    @property
    def value_parameters(self) -> list[Parameter]:
        return [p for p in self.parameters if p.pattern != PatternKind.THIS]


@dataclass
class CalleeRef:
    """Вызываемое выражение (рекурсивно для получателя)."""

    kind: CalleeKind
    text: str
    start: int
    end: int
    # Имя: идентификатор, свойство или строковый индекс
    name: str | None = None
    receiver: "CalleeRef | None" = None


@dataclass
class CallExpr:
    """Выражение вызова."""

    start: int
    end: int
    callee: CalleeRef
    # Позиция открывающей скобки аргументов
    args_start: int
    arguments: list[str] = field(default_factory=list)
    argument_ranges: list[tuple[int, int]] = field(default_factory=list)
    has_spread: bool = False
    single_object_argument: bool = False


@dataclass
class Binding:
    """Лексическая привязка имени в области видимости."""

    name: str
    offset: int
    kind: str  # function, variable, class, parameter, import
    import_source: str | None = None
    imported_name: str | None = None  # default, *, или имя
    # Начало инициализатора (объектный литерал, тело класса)
    value_start: int | None = None


@dataclass
class Scope:
    """Лексическая область видимости."""

    start: int
    end: int
    parent: int | None
    bindings: dict[str, Binding] = field(default_factory=dict)


@dataclass
class ExportEntry:
    """Экспортируемое имя модуля."""

    exported: str
    local: str | None = None
    source: str | None = None  # реэкспорт из другого модуля
    imported: str | None = None
    # Позиция имени, если экспортируется не лексическая привязка (exports.f = function ...)
    offset: int | None = None


@dataclass
class MemberContainer:
    """Тело класса или объектный литерал с именованными членами."""

    start: int
    end: int
    members: dict[str, int] = field(default_factory=dict)


@dataclass
class ParsedFile:
    """Результат парсинга файла."""

    path: str
    source: bytes
    language: str | None
    is_template: bool = False
    functions: list[FunctionLike] = field(default_factory=list)
    calls: list[CallExpr] = field(default_factory=list)
    scopes: list[Scope] = field(default_factory=list)
    exports: dict[str, ExportEntry] = field(default_factory=dict)
    star_exports: list[str] = field(default_factory=list)
    containers: list[MemberContainer] = field(default_factory=list)
    # Диапазоны содержимого <script> в файлах шаблонов
    script_regions: list[tuple[int, int]] = field(default_factory=list)
    # Позиция первой синтаксической ошибки
    syntax_error: int | None = None

    @property
    def is_typescript(self) -> bool:
        return self.language in ("typescript", "tsx")

    def text(self, start: int, end: int) -> str:
        return self.source[start:end].decode("utf-8", errors="replace")

    def line_of(self, offset: int) -> int:
        return self.source.count(b"\n", 0, offset) + 1
