"""Конфигурация движка преобразования."""

from dataclasses import dataclass, field

from objectify.constants import TEMPLATE_EXTENSIONS


@dataclass
class ConversionConfig:
    """Настройки одной попытки преобразования."""

    # Сохранять типы параметров (False -> заглушка any)
    preserve_types: bool = True

    # Пусто -> деструктуризация прямо в списке параметров,
    # иначе весь объект привязывается к этому имени
    object_variable_name: str = ""

    # Пробельно-разделённые glob-шаблоны области проекта
    include: str = ""
    exclude: str = ""

    # Расширения файлов с разметкой шаблонов
    template_extensions: tuple[str, ...] = TEMPLATE_EXTENSIONS

    # Алиасы путей (для резолва импортов), например {"@/": "src/"}
    path_aliases: dict[str, str] = field(default_factory=dict)

    # Суффиксы для резолва импортов в Node.js/JS экосистеме (пробуем по порядку)
    import_resolution_suffixes: tuple[str, ...] = (
        "",
        ".ts",
        ".tsx",
        ".js",
        ".jsx",
        ".mjs",
        ".cjs",
        ".vue",
        "/index.ts",
        "/index.tsx",
        "/index.js",
        "/index.jsx",
    )

    # Текстовое совпадение в шаблоне считается тем же вызовом,
    # если начало или конец отличаются не больше чем на столько байт
    dedup_tolerance: int = 2

    # Максимальная глубина цепочки реэкспортов
    max_reexport_depth: int = 8

    @property
    def object_variable(self) -> str:
        return self.object_variable_name.strip()
