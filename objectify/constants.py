"""Константы: соответствие расширений файлов грамматикам tree-sitter."""

# Расширение -> грамматика для полностью разбираемых исходников
LANGUAGE_MAP = {
    "ts": "typescript",
    "mts": "typescript",
    "cts": "typescript",
    "tsx": "tsx",
    "js": "javascript",
    "jsx": "javascript",
    "mjs": "javascript",
    "cjs": "javascript",
}

# Файлы с разметкой шаблонов: скрипты внутри <script>, остальное ищется текстом
TEMPLATE_EXTENSIONS = ("vue", "svelte", "html", "htm")

TYPESCRIPT_LANGUAGES = ("typescript", "tsx")

DEFAULT_INCLUDE = (
    "**/*.ts **/*.tsx **/*.js **/*.jsx **/*.mjs **/*.cjs **/*.vue **/*.svelte"
)
DEFAULT_EXCLUDE = "**/node_modules/**"
