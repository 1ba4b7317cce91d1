import math
import re

from repo_structure_mcp.models.structure import CodeSmell, FileMetrics, FileRole

DECISION_POINTS = re.compile(r"\b(?:if|elif|for|while|case|catch|except|and|or)\b|&&|\|\||\?\?")
DOCUMENTATION_MARKERS: tuple[str, ...] = ("/**", '"""', "'''")

LINES_PER_COGNITIVE_UNIT = 20
LONG_FILE_LINES = 200
DEBT_FREE_LINES = 100
HIGH_CYCLOMATIC_COMPLEXITY = 20

DOCUMENTED_SCORE = 85.0
UNDOCUMENTED_SCORE = 50.0

ENTRY_POINT_NAMES: frozenset[str] = frozenset(
    {"index.ts", "index.tsx", "index.js", "index.jsx", "main.ts", "main.tsx", "main.js", "main.jsx", "main.py", "__main__.py"}
)
COMPONENT_PATH_MARKERS: tuple[str, ...] = ("components/",)
UTILITY_PATH_MARKERS: tuple[str, ...] = ("utils/", "helpers/", "lib/", "services/")

PURPOSE_BY_ROLE: dict[FileRole, str] = {
    "component": "UI Component",
    "utility": "Utility Functions",
    "config": "Configuration",
    "test": "Test Suite",
    "entry-point": "Application Entry Point",
}
GENERAL_PURPOSE = "General Module"
TYPESCRIPT_LANGUAGES: frozenset[str] = frozenset({"TypeScript", "TSX"})


def count_lines(content: str) -> int:
    return len(content.split("\n"))


def calculate_cyclomatic_complexity(content: str) -> int:
    """Estimate cyclomatic complexity as one plus the number of branching keywords and operators."""
    return 1 + len(DECISION_POINTS.findall(content))


def calculate_maintainability_index(lines_of_code: int, cyclomatic_complexity: int) -> float:
    return round(max(0.0, 171 - 5.2 * math.log(max(lines_of_code, 1)) - 0.23 * cyclomatic_complexity), 2)


def calculate_maintainability_score(lines_of_code: int) -> float:
    return round(max(20.0, 100 - lines_of_code / 10), 2)


def calculate_documentation_score(content: str) -> float:
    return DOCUMENTED_SCORE if any(marker in content for marker in DOCUMENTATION_MARKERS) else UNDOCUMENTED_SCORE


def detect_code_smells(lines_of_code: int, cyclomatic_complexity: int) -> list[CodeSmell]:
    smells: list[CodeSmell] = []

    if lines_of_code > LONG_FILE_LINES:
        smells.append(
            CodeSmell(type="Long File", severity="medium", description=f"File has {lines_of_code} lines, consider splitting it up.")
        )

    if cyclomatic_complexity > HIGH_CYCLOMATIC_COMPLEXITY:
        smells.append(
            CodeSmell(
                type="Complex File",
                severity="high",
                description=f"File has a cyclomatic complexity of {cyclomatic_complexity}, consider simplifying its control flow.",
            )
        )

    return smells


def calculate_file_metrics(content: str) -> FileMetrics:
    lines_of_code = count_lines(content)
    cyclomatic_complexity = calculate_cyclomatic_complexity(content)

    return FileMetrics(
        lines_of_code=lines_of_code,
        cyclomatic_complexity=cyclomatic_complexity,
        cognitive_complexity=math.ceil(lines_of_code / LINES_PER_COGNITIVE_UNIT),
        maintainability_index=calculate_maintainability_index(lines_of_code, cyclomatic_complexity),
        maintainability=calculate_maintainability_score(lines_of_code),
        documentation=calculate_documentation_score(content),
        technical_debt=max(0, lines_of_code - DEBT_FREE_LINES),
        code_smells=detect_code_smells(lines_of_code, cyclomatic_complexity),
    )


def determine_file_role(name: str, path: str) -> FileRole:
    """Guess the role of a file from its name and location. Earlier checks win."""

    lowered = name.lower()

    if "test" in lowered or "spec" in lowered:
        return "test"
    if name in ENTRY_POINT_NAMES:
        return "entry-point"
    if "config" in lowered:
        return "config"
    if any(marker in path for marker in COMPONENT_PATH_MARKERS) or lowered.endswith(".component.tsx"):
        return "component"
    if any(marker in path for marker in UTILITY_PATH_MARKERS):
        return "utility"
    return "unknown"


def describe_purpose(role: FileRole) -> str:
    return PURPOSE_BY_ROLE.get(role, GENERAL_PURPOSE)


def generate_tags(content: str, role: FileRole, language: str | None = None) -> list[str]:
    tags: list[str] = []

    if "React" in content or "from 'react'" in content or 'from "react"' in content:
        tags.append("react")
    if "useState" in content or "useEffect" in content:
        tags.append("hooks")
    if "async " in content:
        tags.append("async")
    if language in TYPESCRIPT_LANGUAGES and ("interface " in content or "type " in content):
        tags.append("typescript")
    if "getInstance(" in content:
        tags.append("singleton")
    if "subscribe(" in content and ("listener" in content.lower() or "notify" in content.lower()):
        tags.append("observer")
    if role != "unknown":
        tags.append(role)

    return tags
