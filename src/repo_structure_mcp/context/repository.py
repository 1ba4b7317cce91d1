from collections.abc import Iterator
from typing import Literal

from pydantic import BaseModel, Field

from repo_structure_mcp.analysis.extract import dedupe
from repo_structure_mcp.analysis.languages import ComplexityLevel
from repo_structure_mcp.analysis.metrics import HIGH_CYCLOMATIC_COMPLEXITY
from repo_structure_mcp.clients.models.github import RepositoryOverview
from repo_structure_mcp.models.structure import FileNode, FileRole, RepositoryInsight, RepositoryStructure
from repo_structure_mcp.servers.shared.utility import dump_model_as_yaml

POPULAR_REPOSITORY_STARS = 100
LARGE_CONTRIBUTOR_COMMUNITY = 10
RECENT_COMMITS_CONSIDERED = 5
TOP_CONTRIBUTORS_SHOWN = 3

FLOW_COMPONENTS_SHOWN = 5
HOTSPOT_COMPLEXITY = 15
HOTSPOT_MAINTAINABILITY = 60
HOTSPOTS_LIMIT = 10
KEY_FILE_COMPLEXITY = 10
KEY_FILE_CONNECTIONS = 5
KEY_FILES_LIMIT = 10
LOW_MAINTAINABILITY = 70
MANY_DEPENDENCIES = 10
MANY_HOTSPOTS = 5
RECOMMENDATIONS_LIMIT = 5
PROMPT_INSIGHTS_LIMIT = 5


class ContextValidation(BaseModel):
    is_valid: bool = Field(description="Whether the context holds everything the assistant needs.")
    issues: list[str] = Field(default_factory=list, description="What is missing from the context.")


class RepositoryAnalysisSummary(BaseModel):
    """Observations about a repository drawn from its metadata and recent activity."""

    summary: str = Field(description="A one paragraph description of the repository.")
    insights: list[str] = Field(default_factory=list, description="Observations about the repository.")
    suggestions: list[str] = Field(default_factory=list, description="Suggestions for the maintainers.")


class CodeFlowPath(BaseModel):
    name: str = Field(description="The name of the flow.")
    description: str = Field(description="What the flow covers.")
    files: list[str] = Field(default_factory=list, description="The files along the flow.")
    complexity: ComplexityLevel = Field(description="How complex the flow is.")


class CodeHotspot(BaseModel):
    file: str = Field(description="The path of the file.")
    type: Literal["complexity", "bug-prone"] = Field(description="Why the file is a hotspot.")
    score: float = Field(description="How hot the file is, higher is worse.")
    description: str = Field(description="A human readable explanation.")


class CodeFlowAnalysis(BaseModel):
    path: list[str] = Field(default_factory=list, description="The files along the dependency path, in order.")
    complexity: int = Field(default=0, description="The summed cyclomatic complexity of the files along the path.")
    description: str = Field(description="A human readable description of the path.")


class FileRelationship(BaseModel):
    file: str = Field(description="The path of the related file.")
    description: str = Field(description="How the files are related.")


class FileRelationshipExplanation(BaseModel):
    """How a file fits into the rest of the repository."""

    file: str = Field(description="The path of the file.")
    role: FileRole = Field(description="The role the file plays in the codebase.")
    purpose: str | None = Field(default=None, description="A short description of what the file is for.")
    dependencies: list[FileRelationship] = Field(default_factory=list, description="The files this file imports.")
    dependents: list[FileRelationship] = Field(default_factory=list, description="The files that import this file.")
    suggestions: list[str] = Field(default_factory=list, description="Suggestions for improving the file.")


class KeyFile(BaseModel):
    path: str = Field(description="The path of the file.")
    role: FileRole = Field(description="The role the file plays in the codebase.")
    purpose: str | None = Field(default=None, description="A short description of what the file is for.")
    complexity: int = Field(description="The cyclomatic complexity of the file.")
    dependencies: int = Field(description="The number of repository files the file imports.")
    dependents: int = Field(description="The number of repository files that import the file.")


class ContextMetrics(BaseModel):
    total_files: int = Field(default=0, description="The number of files discovered.")
    total_connections: int = Field(default=0, description="The number of import connections between files.")
    average_complexity: float = Field(default=0, description="The average cyclomatic complexity of analyzed files.")
    maintainability: float = Field(default=0, description="The average maintainability score of analyzed files.")
    technical_debt: int = Field(default=0, description="The summed technical debt of analyzed files.")


class RepositoryContextSummary(BaseModel):
    """Everything the assistant knows about a repository, condensed."""

    repository: str = Field(description="The owner and name of the repository.")
    overview: str = Field(description="A one paragraph description of the repository.")
    architecture: str = Field(description="A description of the architecture of the repository.")
    key_files: list[KeyFile] = Field(default_factory=list, description="The most important files of the repository.")
    code_flows: list[CodeFlowPath] = Field(default_factory=list, description="The main flows through the codebase.")
    hotspots: list[CodeHotspot] = Field(default_factory=list, description="Files that deserve attention.")
    metrics: ContextMetrics = Field(default_factory=ContextMetrics, description="Aggregate metrics.")
    insights: list[RepositoryInsight] = Field(default_factory=list, description="The highest priority findings.")
    recommendations: list[str] = Field(default_factory=list, description="What to improve first.")
    validation: ContextValidation = Field(description="Whether the context is complete.")


def find_code_path(graph: dict[str, list[str]], start: str, end: str | None = None) -> list[str]:
    """Find a chain of imports from `start`.

    With an `end`, a depth first search returns the first path found, or an empty list if `end` cannot be
    reached. Without one, the first unvisited dependency is followed until the chain ends."""

    if start not in graph:
        return []

    if end is None:
        path: list[str] = [start]
        visited: set[str] = {start}

        while next_file := next((dependency for dependency in graph.get(path[-1], []) if dependency not in visited), None):
            path.append(next_file)
            visited.add(next_file)

        return path

    visited = {start}
    path = [start]
    # the remaining dependencies of each file on the path
    pending: list[Iterator[str]] = [iter(graph.get(start, []))]

    while pending:
        if path[-1] == end:
            return path

        if (dependency := next((dependency for dependency in pending[-1] if dependency not in visited), None)) is None:
            _ = pending.pop()
            _ = path.pop()
            continue

        visited.add(dependency)
        path.append(dependency)
        pending.append(iter(graph.get(dependency, [])))

    return []


def describe_complexity(count: int) -> ComplexityLevel:
    if count > 10:
        return "high"
    if count > 5:
        return "medium"
    return "low"


class RepositoryContext(BaseModel):
    """The repository data the chat assistant reasons over."""

    overview: RepositoryOverview | None = Field(default=None, description="Repository metadata and recent activity.")
    structure: RepositoryStructure | None = Field(default=None, description="The analyzed structure of the repository.")

    @property
    def files(self) -> list[FileNode]:
        return self.structure.files if self.structure else []

    @property
    def code_map(self) -> dict[str, FileNode]:
        return {node.path: node for node in self.files}

    @property
    def dependency_graph(self) -> dict[str, list[str]]:
        return {node.path: node.dependencies for node in self.files}

    @property
    def full_name(self) -> str:
        if self.overview:
            return self.overview.repository.full_name
        if self.structure:
            return f"{self.structure.owner}/{self.structure.repo}"
        return "unknown"

    def analyze(self) -> RepositoryAnalysisSummary:
        """Derive observations from the repository metadata, commits and contributors."""

        if self.overview is None:
            return RepositoryAnalysisSummary(summary="No repository is loaded.")

        repository = self.overview.repository
        commits = self.overview.commits
        contributors = self.overview.contributors

        insights: list[str] = []
        suggestions: list[str] = []

        if repository.language:
            insights.append(f"Primary language: {repository.language}")

        insights.append(f"{len(commits)} recent commits analyzed")
        insights.append(f"{len(contributors)} contributors")

        if repository.stars > POPULAR_REPOSITORY_STARS:
            insights.append(f"Popular repository with {repository.stars} stars")

        recent_messages: list[str] = [commit.message.lower() for commit in commits[:RECENT_COMMITS_CONSIDERED]]

        if any("fix" in message or "bug" in message for message in recent_messages):
            insights.append("Recent commits focus on bug fixes")
            suggestions.append("Consider implementing more comprehensive testing")

        if any("refactor" in message for message in recent_messages):
            insights.append("Recent commits include refactoring work")

        if any("feat" in message or "add" in message for message in recent_messages):
            insights.append("Recent commits add new features")

        if len(contributors) == 1:
            suggestions.append("Consider inviting collaborators to share review and maintenance work")
        elif len(contributors) > LARGE_CONTRIBUTOR_COMMUNITY:
            insights.append("Large contributor community")
            suggestions.append("Keep contribution guidelines and code owners up to date for the large contributor base")

        summary = (
            f"{repository.full_name} is a {repository.language or 'multi-language'} repository "
            + f"with {repository.stars} stars and {repository.forks} forks."
        )
        if repository.description:
            summary += f" {repository.description}"

        return RepositoryAnalysisSummary(summary=summary, insights=insights, suggestions=suggestions)

    def validate_context(self) -> ContextValidation:
        issues: list[str] = []

        if self.overview is None:
            issues.append("No repository metadata is loaded")
        else:
            if not self.overview.commits:
                issues.append("No commit history available")
            if not self.overview.contributors:
                issues.append("No contributor information available")

        if self.structure is None:
            issues.append("The repository structure has not been analyzed")
        elif self.structure.is_placeholder:
            issues.append("The repository structure is placeholder data")

        return ContextValidation(is_valid=not issues, issues=issues)

    def code_flow_paths(self) -> list[CodeFlowPath]:
        entry_points: list[str] = [node.path for node in self.files if node.role == "entry-point"]
        components: list[str] = [node.path for node in self.files if node.role == "component"]
        services: list[str] = [node.path for node in self.files if node.role == "utility"]

        flows: list[CodeFlowPath] = []

        if entry_points or components:
            flows.append(
                CodeFlowPath(
                    name="Main Component Flow",
                    description="From the application entry points through the main UI components.",
                    files=entry_points + components[:FLOW_COMPONENTS_SHOWN],
                    complexity=describe_complexity(len(components)),
                )
            )

        if services:
            flows.append(
                CodeFlowPath(
                    name="Service Flow",
                    description="Shared business logic and API access used by the rest of the codebase.",
                    files=services[:FLOW_COMPONENTS_SHOWN],
                    complexity=describe_complexity(len(services)),
                )
            )

        return flows

    def hotspots(self, limit: int = HOTSPOTS_LIMIT) -> list[CodeHotspot]:
        hotspots: list[CodeHotspot] = []

        for node in self.files:
            if node.metrics is None:
                continue

            if node.metrics.cyclomatic_complexity > HOTSPOT_COMPLEXITY:
                hotspots.append(
                    CodeHotspot(
                        file=node.path,
                        type="complexity",
                        score=node.metrics.cyclomatic_complexity,
                        description=f"High cyclomatic complexity ({node.metrics.cyclomatic_complexity})",
                    )
                )

            if node.metrics.maintainability < HOTSPOT_MAINTAINABILITY:
                hotspots.append(
                    CodeHotspot(
                        file=node.path,
                        type="bug-prone",
                        score=round(100 - node.metrics.maintainability, 2),
                        description=f"Low maintainability score ({node.metrics.maintainability})",
                    )
                )

        return sorted(hotspots, key=lambda hotspot: hotspot.score, reverse=True)[:limit]

    def architecture_overview(self) -> str:
        if self.structure is None:
            return "The repository structure has not been analyzed."

        architecture = self.structure.architecture

        patterns = ", ".join(architecture.patterns) or "modular"
        lines: list[str] = [f"The repository follows a {patterns} layout."]

        if architecture.layers:
            lines.append("Layers: " + ", ".join(f"{layer.name} ({len(layer.files)} files)" for layer in architecture.layers) + ".")

        if architecture.principles:
            lines.append("Principles: " + ", ".join(architecture.principles) + ".")

        if architecture.violations:
            lines.append(f"{len(architecture.violations)} architecture violations were detected.")

        return " ".join(lines)

    def analyze_code_flow(self, start_file: str, end_file: str | None = None) -> CodeFlowAnalysis:
        """Trace how `start_file` reaches `end_file` through its imports, or follow its first chain of imports."""

        path = find_code_path(self.dependency_graph, start_file, end_file)

        code_map = self.code_map
        complexity = sum(code_map[file].cyclomatic_complexity if file in code_map else 1 for file in path)

        if not path:
            description = "No flow path found"
        elif len(path) == 1:
            description = f"Single file: {path[0]}"
        else:
            description = f"Flow from {path[0]} through {len(path) - 2} intermediate files to {path[-1]}"

        return CodeFlowAnalysis(path=path, complexity=complexity, description=description)

    def explain_file_relationships(self, file_path: str) -> FileRelationshipExplanation | None:
        if (node := self.code_map.get(file_path)) is None or self.structure is None:
            return None

        contexts: dict[tuple[str, str], str | None] = {
            (connection.source, connection.target): connection.context for connection in self.structure.connections
        }

        dependencies: list[FileRelationship] = []
        for dependency in node.dependencies:
            context = contexts.get((node.path, dependency))
            description = f"{context[:1].upper()}{context[1:]} from {dependency}" if context else f"Uses functionality from {dependency}"
            dependencies.append(FileRelationship(file=dependency, description=description))

        dependents: list[FileRelationship] = [
            FileRelationship(file=dependent, description=f"Used by {dependent}") for dependent in node.dependents
        ]

        suggestions: list[str] = []
        if node.cyclomatic_complexity > HIGH_CYCLOMATIC_COMPLEXITY:
            suggestions.append("Consider breaking this file into smaller, more focused modules")
        if node.metrics and node.metrics.maintainability < LOW_MAINTAINABILITY:
            suggestions.append("Improve maintainability by shortening the file and documenting its public interface")
        if len(node.dependencies) > MANY_DEPENDENCIES:
            suggestions.append("This file has many dependencies, consider whether it has too many responsibilities")
        if node.metrics and node.metrics.code_smells:
            suggestions.append("Address code smells: " + ", ".join(smell.type for smell in node.metrics.code_smells))

        return FileRelationshipExplanation(
            file=node.path,
            role=node.role,
            purpose=node.purpose,
            dependencies=dependencies,
            dependents=dependents,
            suggestions=suggestions,
        )

    def key_files(self, limit: int = KEY_FILES_LIMIT) -> list[KeyFile]:
        candidates: list[FileNode] = [
            node
            for node in self.files
            if node.role == "entry-point"
            or node.cyclomatic_complexity > KEY_FILE_COMPLEXITY
            or len(node.dependencies) > KEY_FILE_CONNECTIONS
            or len(node.dependents) > KEY_FILE_CONNECTIONS
        ]

        return [
            KeyFile(
                path=node.path,
                role=node.role,
                purpose=node.purpose,
                complexity=node.cyclomatic_complexity,
                dependencies=len(node.dependencies),
                dependents=len(node.dependents),
            )
            for node in sorted(candidates, key=lambda node: node.cyclomatic_complexity, reverse=True)[:limit]
        ]

    def recommendations(self) -> list[str]:
        if self.structure is None:
            return []

        recommendations: list[str] = [insight.suggestion for insight in self.structure.insights if insight.severity == "error"]

        stats = self.structure.stats
        if stats.language_metrics and stats.maintainability < LOW_MAINTAINABILITY:
            recommendations.append(
                f"Improve overall maintainability (average score {stats.maintainability}) by splitting long files and documenting modules"
            )

        if len(hotspots := self.hotspots()) > MANY_HOTSPOTS:
            recommendations.append(f"Focus refactoring on the {len(hotspots)} identified hotspots, starting with {hotspots[0].file}")

        return dedupe(recommendations)[:RECOMMENDATIONS_LIMIT]

    def metrics(self) -> ContextMetrics:
        if self.structure is None:
            return ContextMetrics()

        stats = self.structure.stats

        return ContextMetrics(
            total_files=stats.total_files,
            total_connections=len(self.structure.connections),
            average_complexity=stats.average_complexity,
            maintainability=stats.maintainability,
            technical_debt=stats.technical_debt,
        )

    def summarize(self) -> RepositoryContextSummary:
        return RepositoryContextSummary(
            repository=self.full_name,
            overview=self.analyze().summary,
            architecture=self.architecture_overview(),
            key_files=self.key_files(),
            code_flows=self.code_flow_paths(),
            hotspots=self.hotspots(),
            metrics=self.metrics(),
            insights=self.structure.insights[:PROMPT_INSIGHTS_LIMIT] if self.structure else [],
            recommendations=self.recommendations(),
            validation=self.validate_context(),
        )

    def format_for_prompt(self) -> str:
        """Render the context as text for a language model."""

        sections: list[str] = []

        if self.overview is not None:
            repository = self.overview.repository
            analysis = self.analyze()

            commit_lines = "\n".join(f"- {commit.summary}" for commit in self.overview.commits[:RECENT_COMMITS_CONSIDERED]) or "- None"
            contributor_lines = (
                "\n".join(
                    f"- {contributor.login} ({contributor.contributions} contributions)"
                    for contributor in self.overview.top_contributors[:TOP_CONTRIBUTORS_SHOWN]
                )
                or "- None"
            )
            insight_lines = "\n".join(f"- {insight}" for insight in analysis.insights) or "- None"

            sections.append(f"""# Repository
- Name: {repository.full_name}
- Description: {repository.description or "No description"}
- Language: {repository.language or "Unknown"}
- Stars: {repository.stars}
- Forks: {repository.forks}
- Recent commits: {len(self.overview.commits)}
- Contributors: {len(self.overview.contributors)}
- Branches: {len(self.overview.branches)}

## Recent Commits
{commit_lines}

## Top Contributors
{contributor_lines}

## Observations
{insight_lines}
""")

        if self.structure is not None:
            stats = self.structure.stats
            languages = ", ".join(f"{language} ({count})" for language, count in stats.languages.items()) or "None"
            key_files = self.key_files()
            flows = self.code_flow_paths()
            hotspots = self.hotspots()
            insights = self.structure.insights[:PROMPT_INSIGHTS_LIMIT]
            recommendation_lines = "\n".join(f"- {recommendation}" for recommendation in self.recommendations()) or "- None"

            sections.append(f"""# Repository Structure
{self.architecture_overview()}

## Metrics
- Files: {stats.total_files}
- Directories: {stats.total_directories}
- Connections: {len(self.structure.connections)}
- Languages: {languages}
- Average complexity: {stats.average_complexity}
- Average maintainability: {stats.maintainability}
- Technical debt: {stats.technical_debt} lines

## Key Files
{dump_model_as_yaml(key_files) if key_files else "None"}

## Code Flows
{dump_model_as_yaml(flows) if flows else "None"}

## Hotspots
{dump_model_as_yaml(hotspots) if hotspots else "None"}

## Insights
{dump_model_as_yaml(insights) if insights else "None"}

## Recommendations
{recommendation_lines}
""")

        if not sections:
            return "No repository context is available."

        return "\n".join(sections)
