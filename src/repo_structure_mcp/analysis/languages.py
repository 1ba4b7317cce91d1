from typing import Literal

ComplexityLevel = Literal["low", "medium", "high"]

LANGUAGE_BY_EXTENSION: dict[str, str] = {
    ".ts": "TypeScript",
    ".tsx": "TSX",
    ".js": "JavaScript",
    ".jsx": "JSX",
    ".py": "Python",
    ".java": "Java",
    ".css": "CSS",
    ".scss": "SCSS",
    ".html": "HTML",
    ".json": "JSON",
    ".md": "Markdown",
    ".yml": "YAML",
    ".yaml": "YAML",
}

CODE_FILE_EXTENSIONS: frozenset[str] = frozenset({".ts", ".tsx", ".js", ".jsx", ".py", ".java"})

JAVASCRIPT_EXTENSIONS: frozenset[str] = frozenset({".ts", ".tsx", ".js", ".jsx"})
COMPONENT_EXTENSIONS: frozenset[str] = frozenset({".tsx", ".jsx"})

SKIPPED_DIRECTORIES: frozenset[str] = frozenset(
    {"node_modules", ".git", "dist", "build", "coverage", ".next", "__pycache__", ".venv", "venv"}
)

HIGH_SIZE_THRESHOLD = 5000
MEDIUM_SIZE_THRESHOLD = 1000


def get_file_extension(name: str) -> str | None:
    """Return the extension of a file name including the leading dot, or None for dotfiles and names without one."""

    index = name.rfind(".")

    if index <= 0:
        return None

    return name[index:].lower()


def get_language(name: str) -> str | None:
    if extension := get_file_extension(name):
        return LANGUAGE_BY_EXTENSION.get(extension)
    return None


def is_code_file(name: str) -> bool:
    return get_file_extension(name) in CODE_FILE_EXTENSIONS


def is_javascript_file(name: str) -> bool:
    return get_file_extension(name) in JAVASCRIPT_EXTENSIONS


def is_python_file(name: str) -> bool:
    return get_file_extension(name) == ".py"


def should_analyze_directory(name: str, skipped_directories: frozenset[str] = SKIPPED_DIRECTORIES) -> bool:
    return name not in skipped_directories


def estimate_size_complexity(size: int) -> ComplexityLevel:
    """Bucket a file by its size in bytes."""

    if size > HIGH_SIZE_THRESHOLD:
        return "high"
    if size > MEDIUM_SIZE_THRESHOLD:
        return "medium"
    return "low"
