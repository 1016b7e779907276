"""Настройки конфигурации."""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator

from objectify.services.conversion.config import ConversionConfig

REVIEW_MODES = ("prompt", "accept", "reject", "abort")


class Config(BaseSettings):
    """Конфигурация приложения."""

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, extra="ignore"
    )

    # Репозиторий и цель (обязательно)
    repo_path: str
    target_file: str

    # Позиция курсора: байтовое смещение либо строка + колонка (с 1)
    target_offset: int | None = Field(default=None)
    target_line: int | None = Field(default=None)
    target_column: int = Field(default=1)

    # Настройки преобразования
    preserve_types: bool = Field(default=True)
    object_variable_name: str = Field(default="")  # пусто = деструктуризация в параметрах

    # Область проекта (glob через пробел)
    include: str = Field(default="")
    exclude: str = Field(default="")

    # Алиасы импортов, например {"@/": "src/"}
    path_aliases: dict[str, str] = Field(default_factory=dict)

    # Ревью
    review_mode: str = Field(default="prompt")  # prompt, accept, reject, abort
    preview_delay: float = Field(default=0.0)  # секунды перед каждым вопросом
    dry_run: bool = Field(default=False)

    @field_validator("review_mode")
    @classmethod
    def _check_review_mode(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in REVIEW_MODES:
            raise ValueError(f"review_mode must be one of {', '.join(REVIEW_MODES)}")
        return value

    def conversion_config(self) -> ConversionConfig:
        """Настройки движка преобразования."""
        return ConversionConfig(
            preserve_types=self.preserve_types,
            object_variable_name=self.object_variable_name,
            include=self.include,
            exclude=self.exclude,
            path_aliases=dict(self.path_aliases),
        )
