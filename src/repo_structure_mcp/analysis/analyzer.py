import asyncio
from collections import defaultdict
from logging import Logger
from statistics import mean

from fastmcp.utilities.logging import get_logger
from pydantic import BaseModel, Field

from repo_structure_mcp.analysis.errors import RepositoryAnalysisError
from repo_structure_mcp.analysis.extract import (
    analyze_classes,
    analyze_components,
    analyze_functions,
    analyze_imports,
    dedupe,
    extract_exports,
    find_hooks,
    get_source_language,
)
from repo_structure_mcp.analysis.languages import (
    SKIPPED_DIRECTORIES,
    estimate_size_complexity,
    get_file_extension,
    get_language,
    is_code_file,
    should_analyze_directory,
)
from repo_structure_mcp.analysis.metrics import (
    HIGH_CYCLOMATIC_COMPLEXITY,
    calculate_file_metrics,
    describe_purpose,
    determine_file_role,
    generate_tags,
)
from repo_structure_mcp.analysis.resolve import (
    DEFAULT_ALIASES,
    resolve_import_path,
    resolve_python_module,
    resolve_python_relative_import,
)
from repo_structure_mcp.clients.errors.github import ClientError
from repo_structure_mcp.clients.github import RepositoryClient
from repo_structure_mcp.clients.models.github import ContentEntry
from repo_structure_mcp.models.structure import (
    ArchitectureInfo,
    ArchitectureLayer,
    ArchitectureViolation,
    ComplexityHotspot,
    DependencyConnection,
    DesignPattern,
    FileNode,
    FileRole,
    ImportAnalysis,
    LanguageMetrics,
    RepositoryInsight,
    RepositoryStats,
    RepositoryStructure,
)

DEFAULT_MAX_DEPTH = 4
DEFAULT_MAX_CONCURRENT_REQUESTS = 8
DEFAULT_MAX_FILE_SIZE = 500_000

MAX_INSIGHT_FILES = 10

LAYERS_BY_ROLE: dict[FileRole, tuple[str, list[str]]] = {
    "entry-point": ("Entry Points", ["Application Bootstrap"]),
    "component": ("Components", ["UI Rendering", "User Interaction"]),
    "utility": ("Services", ["Business Logic", "API Calls"]),
    "config": ("Configuration", ["Application Settings"]),
    "test": ("Tests", ["Verification"]),
}


class AnalyzerSettings(BaseModel):
    """Limits applied while walking a repository."""

    max_depth: int = Field(default=DEFAULT_MAX_DEPTH, description="Directories deeper than this are not listed. The root is depth 0.")
    skipped_directories: frozenset[str] = Field(default=SKIPPED_DIRECTORIES, description="Directory names that are never listed.")
    max_concurrent_requests: int = Field(default=DEFAULT_MAX_CONCURRENT_REQUESTS, description="The maximum number of requests in flight.")
    max_file_size: int = Field(default=DEFAULT_MAX_FILE_SIZE, description="Code files larger than this many bytes are not fetched.")
    aliases: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_ALIASES), description="Import alias prefixes and their targets.")


def create_node(entry: ContentEntry, parent: str | None, depth: int) -> FileNode:
    role: FileRole = determine_file_role(entry.name, entry.path)

    if entry.is_directory:
        return FileNode(id=entry.path, name=entry.name, path=entry.path, type="directory", depth=depth, parent=parent, role=role)

    return FileNode(
        id=entry.path,
        name=entry.name,
        path=entry.path,
        type="file",
        size=entry.size,
        extension=get_file_extension(entry.name),
        language=get_language(entry.name),
        depth=depth,
        parent=parent,
        complexity=estimate_size_complexity(entry.size),
        role=role,
        purpose=describe_purpose(role),
    )


def analyze_file_content(node: FileNode, content: str, aliases: dict[str, str] | None = None) -> FileNode:
    """Populate the import, export, declaration and metric fields of a file node from its source text."""

    if (language := get_source_language(node.name)) is None:
        return node

    alias_prefixes = tuple((aliases if aliases is not None else DEFAULT_ALIASES).keys())

    node.import_details = analyze_imports(content, language, alias_prefixes)
    node.imports = dedupe([analysis.source for analysis in node.import_details if not analysis.is_external])
    node.exports = extract_exports(content, language)
    node.functions = analyze_functions(content, language)
    node.classes = analyze_classes(content, language)
    node.components = analyze_components(node.name, node.functions, node.classes)
    node.hooks = find_hooks(content) if language == "javascript" else []
    node.metrics = calculate_file_metrics(content)
    node.tags = generate_tags(content, node.role, node.language)

    return node


def resolve_dependency(node: FileNode, analysis: ImportAnalysis, known_paths: set[str], aliases: dict[str, str]) -> str | None:
    if node.extension == ".py":
        if analysis.is_external:
            return resolve_python_module(analysis.source, analysis.names, known_paths)

        return resolve_python_relative_import(node.path, analysis.source, analysis.names, known_paths)

    if not analysis.is_external:
        return resolve_import_path(node.path, analysis.source, known_paths=known_paths, aliases=aliases)

    return None


def build_connections(nodes: list[FileNode], aliases: dict[str, str] | None = None) -> list[DependencyConnection]:
    """Resolve the imports of every file against the files in the repository and link them.

    Fills in the `dependencies` and `dependents` of the nodes. Imports that do not resolve to a known file
    and imports of a file by itself produce no connection. Several imports of the same target collapse into
    one connection carrying the strongest import."""

    aliases = aliases if aliases is not None else DEFAULT_ALIASES
    known_paths: set[str] = {node.path for node in nodes if not node.is_directory}
    nodes_by_path: dict[str, FileNode] = {node.path: node for node in nodes}

    connections: list[DependencyConnection] = []

    for node in nodes:
        imports_by_target: dict[str, list[ImportAnalysis]] = defaultdict(list)

        for analysis in node.import_details:
            target = resolve_dependency(node, analysis, known_paths, aliases)
            if target is None or target == node.path:
                continue
            imports_by_target[target].append(analysis)

        for target, analyses in imports_by_target.items():
            names = dedupe([name for analysis in analyses for name in analysis.names])
            connections.append(
                DependencyConnection(
                    source=node.id,
                    target=target,
                    strength=max(analysis.strength for analysis in analyses),
                    context=f"imports {', '.join(names)}" if names else None,
                )
            )
            node.dependencies.append(target)
            nodes_by_path[target].dependents.append(node.id)

    return connections


def build_stats(nodes: list[FileNode]) -> RepositoryStats:
    stats = RepositoryStats()
    analyzed: dict[str, list[FileNode]] = defaultdict(list)

    for node in nodes:
        if node.is_directory:
            stats.total_directories += 1
            continue

        stats.total_files += 1
        stats.complexity[node.complexity] += 1

        if node.language:
            stats.languages[node.language] = stats.languages.get(node.language, 0) + 1

        if node.metrics and node.language:
            analyzed[node.language].append(node)

    for language, language_nodes in analyzed.items():
        stats.language_metrics[language] = LanguageMetrics(
            file_count=len(language_nodes),
            lines_of_code=sum(node.metrics.lines_of_code for node in language_nodes if node.metrics),
            complexity=round(mean(node.cyclomatic_complexity for node in language_nodes), 2),
            maintainability=round(mean(node.maintainability or 0 for node in language_nodes), 2),
        )

    if analyzed_nodes := [node for language_nodes in analyzed.values() for node in language_nodes]:
        most_complex = max(analyzed_nodes, key=lambda node: node.cyclomatic_complexity)

        stats.average_complexity = round(mean(node.cyclomatic_complexity for node in analyzed_nodes), 2)
        stats.highest_complexity = ComplexityHotspot(file=most_complex.path, score=most_complex.cyclomatic_complexity)
        stats.maintainability = round(mean(node.maintainability or 0 for node in analyzed_nodes), 2)
        stats.technical_debt = sum(node.metrics.technical_debt for node in analyzed_nodes if node.metrics)

    return stats


def find_violations(nodes: list[FileNode], connections: list[DependencyConnection]) -> list[ArchitectureViolation]:
    roles: dict[str, FileRole] = {node.id: node.role for node in nodes}
    edges: set[tuple[str, str]] = {(connection.source, connection.target) for connection in connections}

    violations: list[ArchitectureViolation] = [
        ArchitectureViolation(
            type="Layer Violation",
            description=f"Service file {connection.source} imports the UI component {connection.target}.",
            files=[connection.source, connection.target],
            severity="medium",
        )
        for connection in connections
        if roles.get(connection.source) == "utility" and roles.get(connection.target) == "component"
    ]

    violations.extend(
        ArchitectureViolation(
            type="Circular Dependency",
            description=f"{source} and {target} import each other.",
            files=[source, target],
            severity="high",
        )
        for source, target in sorted(edges)
        if source < target and (target, source) in edges
    )

    return violations


def build_architecture(nodes: list[FileNode], connections: list[DependencyConnection]) -> ArchitectureInfo:
    layer_by_path: dict[str, str] = {}
    files_by_layer: dict[str, list[str]] = defaultdict(list)

    for node in nodes:
        if node.is_directory or node.role not in LAYERS_BY_ROLE:
            continue
        layer_name, _ = LAYERS_BY_ROLE[node.role]
        layer_by_path[node.path] = layer_name
        files_by_layer[layer_name].append(node.path)

    layer_dependencies: dict[str, list[str]] = defaultdict(list)
    for connection in connections:
        source_layer, target_layer = layer_by_path.get(connection.source), layer_by_path.get(connection.target)
        if source_layer and target_layer and source_layer != target_layer and target_layer not in layer_dependencies[source_layer]:
            layer_dependencies[source_layer].append(target_layer)

    layers: list[ArchitectureLayer] = [
        ArchitectureLayer(
            name=layer_name,
            files=files_by_layer[layer_name],
            responsibilities=responsibilities,
            dependencies=layer_dependencies[layer_name],
        )
        for layer_name, responsibilities in LAYERS_BY_ROLE.values()
        if files_by_layer[layer_name]
    ]

    patterns: list[str] = []
    if files_by_layer["Components"] and files_by_layer["Services"]:
        patterns.append("Component-Service Architecture")
    elif files_by_layer["Components"]:
        patterns.append("Component-Based Architecture")
    elif files_by_layer["Services"]:
        patterns.append("Modular Architecture")

    return ArchitectureInfo(
        layers=layers,
        patterns=patterns,
        principles=["Separation of Concerns"] if len(layers) > 1 else [],
        violations=find_violations(nodes, connections),
    )


def detect_design_patterns(nodes: list[FileNode]) -> list[DesignPattern]:
    files: list[FileNode] = [node for node in nodes if not node.is_directory]
    patterns: list[DesignPattern] = []

    if components := [node.path for node in files if node.role == "component"]:
        patterns.append(
            DesignPattern(
                name="Component Pattern",
                type="structural",
                files=components,
                confidence=0.9,
                description="UI is composed from reusable components that encapsulate their own rendering.",
            )
        )

    if hooks := [
        node.path for node in files if any(f.is_exported and f.name.startswith("use") and f.name[3:4].isupper() for f in node.functions)
    ]:
        patterns.append(
            DesignPattern(
                name="Custom Hook Pattern",
                type="behavioral",
                files=hooks,
                confidence=0.8,
                description="Stateful logic is shared between components through custom hooks.",
            )
        )

    if singletons := [node.path for node in files if "singleton" in node.tags]:
        patterns.append(
            DesignPattern(
                name="Singleton Pattern",
                type="creational",
                files=singletons,
                confidence=0.7,
                description="A single shared instance is exposed through an accessor.",
            )
        )

    if observers := [node.path for node in files if "observer" in node.tags]:
        patterns.append(
            DesignPattern(
                name="Observer Pattern",
                type="behavioral",
                files=observers,
                confidence=0.6,
                description="Listeners subscribe to a subject and are notified of changes.",
            )
        )

    return patterns


def generate_insights(nodes: list[FileNode], architecture: ArchitectureInfo) -> list[RepositoryInsight]:
    files: list[FileNode] = [node for node in nodes if not node.is_directory]
    insights: list[RepositoryInsight] = []

    if complex_files := [node.path for node in files if node.cyclomatic_complexity > HIGH_CYCLOMATIC_COMPLEXITY]:
        insights.append(
            RepositoryInsight(
                type="quality",
                severity="warning",
                title="High Complexity Files Detected",
                description=f"{len(complex_files)} files have a cyclomatic complexity above {HIGH_CYCLOMATIC_COMPLEXITY}.",
                files=complex_files[:MAX_INSIGHT_FILES],
                suggestion="Break complex files into smaller, focused modules.",
                priority=7,
            )
        )

    if architecture.violations:
        insights.append(
            RepositoryInsight(
                type="architecture",
                severity="error",
                title="Architecture Violations Found",
                description=f"{len(architecture.violations)} architecture violations were detected.",
                files=dedupe([file for violation in architecture.violations for file in violation.files])[:MAX_INSIGHT_FILES],
                suggestion="Review the dependencies between layers and break import cycles.",
                priority=9,
            )
        )

    if long_files := [node.path for node in files if node.metrics and any(smell.type == "Long File" for smell in node.metrics.code_smells)]:
        insights.append(
            RepositoryInsight(
                type="maintainability",
                severity="info",
                title="Large Files Detected",
                description=f"{len(long_files)} files are longer than the recommended size.",
                files=long_files[:MAX_INSIGHT_FILES],
                suggestion="Split large files along their responsibilities.",
                priority=5,
            )
        )

    if any(is_code_file(node.name) for node in files) and not any(node.role == "test" for node in files):
        insights.append(
            RepositoryInsight(
                type="quality",
                severity="info",
                title="No Test Files Detected",
                description="No test files were found within the analyzed depth.",
                suggestion="Add tests for the most critical modules.",
                priority=6,
            )
        )

    return sorted(insights, key=lambda insight: insight.priority, reverse=True)


def placeholder_structure(owner: str, repo: str) -> RepositoryStructure:
    """A minimal structure returned in place of a failed analysis."""

    nodes: list[FileNode] = [
        FileNode(id="src", name="src", path="src", type="directory", depth=0),
        FileNode(
            id="src/App.tsx",
            name="App.tsx",
            path="src/App.tsx",
            type="file",
            extension=".tsx",
            language="TSX",
            depth=1,
            parent="src",
            role="unknown",
            purpose=describe_purpose("unknown"),
        ),
    ]

    return RepositoryStructure(
        owner=owner,
        repo=repo,
        nodes=nodes,
        stats=build_stats(nodes),
        insights=[
            RepositoryInsight(
                type="quality",
                severity="warning",
                title="Repository Could Not Be Analyzed",
                description=f"The file tree of {owner}/{repo} could not be retrieved, placeholder data is shown instead.",
                suggestion="Check that the repository exists and that the GitHub token can read it, then run the analysis again.",
                priority=10,
            )
        ],
        is_placeholder=True,
    )


class RepositoryAnalyzer:
    """Walks a GitHub repository and builds its dependency structure."""

    client: RepositoryClient
    settings: AnalyzerSettings
    logger: Logger

    def __init__(self, client: RepositoryClient | None = None, settings: AnalyzerSettings | None = None, logger: Logger | None = None):
        self.logger = logger or get_logger(name=__name__)
        self.client = client or RepositoryClient(logger=self.logger)
        self.settings = settings or AnalyzerSettings()

    async def analyze_repository(
        self, owner: str, repo: str, ref: str | None = None, fallback_on_error: bool = False
    ) -> RepositoryStructure:
        """Walk a repository and build its structure.

        Args:
            owner: The owner of the repository.
            repo: The name of the repository.
            ref: The ref of the branch or tag to analyze. If not provided, the default branch will be used.
            fallback_on_error: Return a placeholder structure instead of raising if the repository root cannot be listed.

        Raises:
            RepositoryAnalysisError: If the repository root cannot be listed and fallback_on_error is False.
        """

        self.logger.info(f"Analyzing the structure of {owner}/{repo}")

        try:
            root_entries: list[ContentEntry] = await self.client.get_directory_contents(owner=owner, repo=repo, path="", ref=ref)
        except ClientError as e:
            if fallback_on_error:
                self.logger.warning(f"Could not list the root of {owner}/{repo}, returning a placeholder structure: {e}")
                return placeholder_structure(owner=owner, repo=repo)

            raise RepositoryAnalysisError(owner=owner, repo=repo, message=str(e)) from e

        semaphore = asyncio.Semaphore(self.settings.max_concurrent_requests)

        nodes: list[FileNode] = await self._process_entries(
            owner=owner, repo=repo, ref=ref, entries=root_entries, parent=None, depth=0, semaphore=semaphore
        )

        connections = build_connections(nodes, aliases=self.settings.aliases)
        architecture = build_architecture(nodes, connections)

        structure = RepositoryStructure(
            owner=owner,
            repo=repo,
            nodes=nodes,
            connections=connections,
            stats=build_stats(nodes),
            architecture=architecture,
            patterns=detect_design_patterns(nodes),
            insights=generate_insights(nodes, architecture),
        )

        self.logger.info(
            f"Analyzed {owner}/{repo}: {structure.stats.total_files} files, "
            + f"{structure.stats.total_directories} directories, {len(connections)} connections"
        )

        return structure

    async def _process_entries(
        self,
        owner: str,
        repo: str,
        ref: str | None,
        entries: list[ContentEntry],
        parent: str | None,
        depth: int,
        semaphore: asyncio.Semaphore,
    ) -> list[FileNode]:
        nodes: list[FileNode] = [create_node(entry=entry, parent=parent, depth=depth) for entry in entries]

        directories: list[FileNode] = [
            node
            for node in nodes
            if node.is_directory
            and depth < self.settings.max_depth
            and should_analyze_directory(node.name, self.settings.skipped_directories)
        ]
        code_files: list[FileNode] = [
            node for node in nodes if not node.is_directory and is_code_file(node.name) and node.size <= self.settings.max_file_size
        ]

        subtrees, _ = await asyncio.gather(
            asyncio.gather(
                *[
                    self._walk_directory(owner=owner, repo=repo, ref=ref, path=node.path, depth=depth + 1, semaphore=semaphore)
                    for node in directories
                ]
            ),
            asyncio.gather(*[self._analyze_file(owner=owner, repo=repo, ref=ref, node=node, semaphore=semaphore) for node in code_files]),
        )

        subtree_by_directory: dict[str, list[FileNode]] = {node.id: subtree for node, subtree in zip(directories, subtrees, strict=True)}

        ordered: list[FileNode] = []
        for node in nodes:
            ordered.append(node)
            ordered.extend(subtree_by_directory.get(node.id, []))

        return ordered

    async def _walk_directory(
        self, owner: str, repo: str, ref: str | None, path: str, depth: int, semaphore: asyncio.Semaphore
    ) -> list[FileNode]:
        try:
            async with semaphore:
                entries: list[ContentEntry] = await self.client.get_directory_contents(owner=owner, repo=repo, path=path, ref=ref)
        except ClientError as e:
            self.logger.warning(f"Skipping directory {path} of {owner}/{repo}: {e}")
            return []

        return await self._process_entries(owner=owner, repo=repo, ref=ref, entries=entries, parent=path, depth=depth, semaphore=semaphore)

    async def _analyze_file(self, owner: str, repo: str, ref: str | None, node: FileNode, semaphore: asyncio.Semaphore) -> None:
        try:
            async with semaphore:
                file = await self.client.get_file(owner=owner, repo=repo, path=node.path, ref=ref)
        except ClientError as e:
            self.logger.warning(f"Skipping analysis of {node.path} in {owner}/{repo}: {e}")
            return

        if file is None:
            self.logger.debug(f"File {node.path} in {owner}/{repo} disappeared before it could be analyzed")
            return

        _ = analyze_file_content(node=node, content=file.content, aliases=self.settings.aliases)
