from typing import Literal

from pydantic import BaseModel, Field

from repo_structure_mcp.analysis.languages import ComplexityLevel

NodeType = Literal["file", "directory"]

FileRole = Literal["entry-point", "component", "utility", "config", "test", "unknown"]

ImportType = Literal["default", "named", "namespace", "side-effect", "dynamic", "require", "re-export", "module"]

Severity = Literal["low", "medium", "high"]

DEFAULT_IMPORT_STRENGTH = 0.8
IMPORT_STRENGTH: dict[ImportType, float] = {
    "default": 1.0,
    "re-export": 0.7,
    "dynamic": 0.6,
    "side-effect": 0.5,
}


class ImportAnalysis(BaseModel):
    """A single import statement found in a source file."""

    source: str = Field(description="The module specifier as written in the source.")
    names: list[str] = Field(default_factory=list, description="The names bound or re-exported by the import.")
    type: ImportType = Field(description="The syntactic form of the import.")
    is_external: bool = Field(description="Whether the import refers to a package outside the repository.")

    @property
    def strength(self) -> float:
        return IMPORT_STRENGTH.get(self.type, DEFAULT_IMPORT_STRENGTH)


class FunctionInfo(BaseModel):
    name: str = Field(description="The name of the function.")
    parameters: list[str] = Field(default_factory=list, description="The parameter names of the function.")
    is_async: bool = Field(default=False, description="Whether the function is asynchronous.")
    is_exported: bool = Field(default=False, description="Whether the function is exported from its module.")
    line: int = Field(description="The 1-based line the function is declared on.")


class ClassInfo(BaseModel):
    name: str = Field(description="The name of the class.")
    extends: str | None = Field(default=None, description="The base class, if any.")
    implements: list[str] = Field(default_factory=list, description="Implemented interfaces.")
    is_exported: bool = Field(default=False, description="Whether the class is exported from its module.")
    line: int = Field(description="The 1-based line the class is declared on.")


class ComponentInfo(BaseModel):
    name: str = Field(description="The name of the UI component.")
    is_exported: bool = Field(default=False, description="Whether the component is exported from its module.")
    line: int = Field(description="The 1-based line the component is declared on.")


class CodeSmell(BaseModel):
    type: str = Field(description="The kind of smell.")
    severity: Severity = Field(description="How serious the smell is.")
    description: str = Field(description="A human readable description of the smell.")


class FileMetrics(BaseModel):
    """Heuristic quality metrics for a source file."""

    lines_of_code: int = Field(description="The number of lines in the file.")
    cyclomatic_complexity: int = Field(description="One plus the number of decision points in the file.")
    cognitive_complexity: int = Field(description="One unit per twenty lines of code.")
    maintainability_index: float = Field(description="The maintainability index of the file.")
    maintainability: float = Field(description="The maintainability score of the file, from 20 to 100.")
    documentation: float = Field(description="The documentation score of the file.")
    technical_debt: int = Field(description="The number of lines beyond a hundred.")
    code_smells: list[CodeSmell] = Field(default_factory=list, description="The code smells found in the file.")


class FileNode(BaseModel):
    """A file or directory found while walking a repository."""

    id: str = Field(description="The unique identifier of the node, equal to its path.")
    name: str = Field(description="The name of the file or directory.")
    path: str = Field(description="The repository-relative path of the node.")
    type: NodeType = Field(description="Whether the node is a file or a directory.")
    size: int = Field(default=0, description="The size of the file in bytes.")
    extension: str | None = Field(default=None, description="The extension of the file including the leading dot.")
    language: str | None = Field(default=None, description="The language of the file.")
    depth: int = Field(description="The depth of the node, 0 for entries at the repository root.")
    parent: str | None = Field(default=None, description="The id of the containing directory, absent at the root.")
    complexity: ComplexityLevel = Field(default="low", description="A size based complexity estimate.")

    role: FileRole = Field(default="unknown", description="The role the file plays in the codebase.")
    purpose: str | None = Field(default=None, description="A short description of what the file is for.")
    tags: list[str] = Field(default_factory=list, description="Descriptive tags derived from the file content.")

    imports: list[str] = Field(default_factory=list, description="The repository-local import specifiers of the file.")
    exports: list[str] = Field(default_factory=list, description="The names exported by the file.")
    import_details: list[ImportAnalysis] = Field(default_factory=list, description="Every import statement of the file.")
    functions: list[FunctionInfo] = Field(default_factory=list, description="Functions declared in the file.")
    classes: list[ClassInfo] = Field(default_factory=list, description="Classes declared in the file.")
    components: list[ComponentInfo] = Field(default_factory=list, description="UI components declared in the file.")
    hooks: list[str] = Field(default_factory=list, description="React hooks used by the file.")
    metrics: FileMetrics | None = Field(default=None, description="Quality metrics, present for analyzed code files.")

    dependencies: list[str] = Field(default_factory=list, description="Paths of repository files this file imports.")
    dependents: list[str] = Field(default_factory=list, description="Paths of repository files that import this file.")

    @property
    def is_directory(self) -> bool:
        return self.type == "directory"

    @property
    def cyclomatic_complexity(self) -> int:
        return self.metrics.cyclomatic_complexity if self.metrics else 1

    @property
    def maintainability(self) -> float | None:
        return self.metrics.maintainability if self.metrics else None


class DependencyConnection(BaseModel):
    """A directed edge from an importing file to an imported file."""

    source: str = Field(description="The id of the importing file.")
    target: str = Field(description="The id of the imported file.")
    type: Literal["import"] = Field(default="import", description="The kind of relationship.")
    strength: float = Field(
        default=1.0, description="The weight of the edge, from 1.0 for default imports down to 0.5 for side-effect imports."
    )
    context: str | None = Field(default=None, description="A short description of what is imported.")


class LanguageMetrics(BaseModel):
    file_count: int = Field(default=0, description="The number of analyzed files in the language.")
    lines_of_code: int = Field(default=0, description="The total lines of code in the language.")
    complexity: float = Field(default=0, description="The average cyclomatic complexity of the files.")
    maintainability: float = Field(default=0, description="The average maintainability score of the files.")


class ComplexityHotspot(BaseModel):
    file: str = Field(description="The path of the file.")
    score: float = Field(description="The score that made the file a hotspot.")


class RepositoryStats(BaseModel):
    """Aggregate counts and metrics for an analyzed repository."""

    total_files: int = Field(default=0, description="The number of files discovered.")
    total_directories: int = Field(default=0, description="The number of directories discovered.")
    languages: dict[str, int] = Field(default_factory=dict, description="The number of files per language.")
    complexity: dict[ComplexityLevel, int] = Field(
        default_factory=lambda: {"low": 0, "medium": 0, "high": 0}, description="The number of files per size complexity bucket."
    )
    language_metrics: dict[str, LanguageMetrics] = Field(default_factory=dict, description="Metrics for analyzed code per language.")
    average_complexity: float = Field(default=0, description="The average cyclomatic complexity of analyzed files.")
    highest_complexity: ComplexityHotspot | None = Field(default=None, description="The most complex analyzed file.")
    maintainability: float = Field(default=0, description="The average maintainability score of analyzed files.")
    technical_debt: int = Field(default=0, description="The summed technical debt of analyzed files.")


class ArchitectureLayer(BaseModel):
    name: str = Field(description="The name of the layer.")
    files: list[str] = Field(default_factory=list, description="The files in the layer.")
    responsibilities: list[str] = Field(default_factory=list, description="What the layer is responsible for.")
    dependencies: list[str] = Field(default_factory=list, description="The names of the layers this layer imports from.")


class ArchitectureViolation(BaseModel):
    type: str = Field(description="The kind of violation.")
    description: str = Field(description="A human readable description of the violation.")
    files: list[str] = Field(default_factory=list, description="The files involved.")
    severity: Severity = Field(description="How serious the violation is.")


class ArchitectureInfo(BaseModel):
    layers: list[ArchitectureLayer] = Field(default_factory=list, description="The layers of the codebase by file role.")
    patterns: list[str] = Field(default_factory=list, description="Architectural patterns recognized in the codebase.")
    principles: list[str] = Field(default_factory=list, description="Design principles the layout follows.")
    violations: list[ArchitectureViolation] = Field(default_factory=list, description="Detected layering problems.")


class DesignPattern(BaseModel):
    name: str = Field(description="The name of the pattern.")
    type: Literal["creational", "structural", "behavioral"] = Field(description="The category of the pattern.")
    files: list[str] = Field(default_factory=list, description="The files where the pattern was recognized.")
    confidence: float = Field(description="How confident the detection is, from 0 to 1.")
    description: str = Field(description="What the pattern does.")


class RepositoryInsight(BaseModel):
    type: Literal["architecture", "quality", "performance", "maintainability"] = Field(description="The area the insight concerns.")
    severity: Literal["info", "warning", "error"] = Field(description="How urgent the insight is.")
    title: str = Field(description="A short title.")
    description: str = Field(description="What was found.")
    files: list[str] = Field(default_factory=list, description="The files the insight refers to.")
    suggestion: str = Field(description="What to do about it.")
    priority: int = Field(description="Priority from 1 to 10, higher first.")


class RepositoryStructure(BaseModel):
    """The result of analyzing a repository."""

    owner: str = Field(description="The owner of the repository.")
    repo: str = Field(description="The name of the repository.")
    nodes: list[FileNode] = Field(default_factory=list, description="Every discovered node, parents before children.")
    connections: list[DependencyConnection] = Field(default_factory=list, description="Resolved import edges between files.")
    stats: RepositoryStats = Field(default_factory=RepositoryStats, description="Aggregate counts and metrics.")
    architecture: ArchitectureInfo = Field(default_factory=ArchitectureInfo, description="The inferred architecture.")
    patterns: list[DesignPattern] = Field(default_factory=list, description="Recognized design patterns.")
    insights: list[RepositoryInsight] = Field(default_factory=list, description="Findings ordered by priority, highest first.")
    is_placeholder: bool = Field(default=False, description="Whether the structure is a placeholder returned after a failure.")

    @property
    def files(self) -> list[FileNode]:
        return [node for node in self.nodes if not node.is_directory]

    def get_node(self, node_id: str) -> FileNode | None:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None
