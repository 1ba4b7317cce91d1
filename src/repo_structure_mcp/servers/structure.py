import asyncio
from collections import defaultdict
from logging import Logger
from typing import Any

from async_lru import alru_cache
from fastmcp.server import FastMCP
from fastmcp.tools import Tool
from fastmcp.tools.tool_transform import TransformedTool
from fastmcp.utilities.logging import get_logger
from pydantic import BaseModel, Field

from repo_structure_mcp.analysis.analyzer import RepositoryAnalyzer
from repo_structure_mcp.clients.github import RepositoryClient
from repo_structure_mcp.clients.models.github import RepositoryOverview, RepositoryReference
from repo_structure_mcp.context.repository import CodeFlowAnalysis, FileRelationshipExplanation, RepositoryContext, RepositoryContextSummary
from repo_structure_mcp.models.hierarchy import (
    DEFAULT_MAX_PRIMARY_CONNECTIONS,
    DEFAULT_MAX_SECONDARY_CONNECTIONS,
    FilteredConnections,
    RepositoryHierarchy,
)
from repo_structure_mcp.models.structure import RepositoryStructure
from repo_structure_mcp.servers.shared.annotations import (
    COMMIT_LIMIT_ARG_TRANSFORM,
    END_FILE_PATH,
    EXPANDED_PATHS,
    FILE_PATH,
    MAX_PRIMARY_CONNECTIONS,
    MAX_SECONDARY_CONNECTIONS,
    OWNER,
    OWNER_ARG_TRANSFORM,
    REPO,
    REPO_ARG_TRANSFORM,
    REPOSITORY_URL,
)
from repo_structure_mcp.servers.shared.errors import FileNotAnalyzedError, InvalidRepositoryUrlError

ONE_DAY_IN_SECONDS = 60 * 60 * 24


class HierarchyView(BaseModel):
    """The file tree of a repository and the connections between its visible nodes."""

    hierarchy: RepositoryHierarchy = Field(description="The file tree with the requested directories expanded.")
    visible_node_ids: list[str] = Field(default_factory=list, description="The ids of the visible nodes, in display order.")
    connections: FilteredConnections = Field(description="The connections between visible nodes worth drawing.")


class StructureServer:
    client: RepositoryClient
    analyzer: RepositoryAnalyzer
    logger: Logger

    analysis_locks: dict[str, asyncio.Lock]
    overview_locks: dict[str, asyncio.Lock]

    def __init__(self, client: RepositoryClient | None = None, analyzer: RepositoryAnalyzer | None = None, logger: Logger | None = None):
        self.logger = logger or get_logger(name=__name__)
        self.client = client or RepositoryClient(logger=self.logger)
        self.analyzer = analyzer or RepositoryAnalyzer(client=self.client, logger=self.logger)
        self.analysis_locks = defaultdict(asyncio.Lock)
        self.overview_locks = defaultdict(asyncio.Lock)

    def register_tools(self, fastmcp: FastMCP[Any]) -> FastMCP[Any]:
        for tool in self.passthrough_tools().values():
            _ = fastmcp.add_tool(tool=tool)

        _ = fastmcp.add_tool(tool=Tool.from_function(fn=self.resolve_repository))
        _ = fastmcp.add_tool(tool=Tool.from_function(fn=self.analyze_repository_structure))
        _ = fastmcp.add_tool(tool=Tool.from_function(fn=self.get_repository_hierarchy))
        _ = fastmcp.add_tool(tool=Tool.from_function(fn=self.explain_file))
        _ = fastmcp.add_tool(tool=Tool.from_function(fn=self.trace_code_flow))
        _ = fastmcp.add_tool(tool=Tool.from_function(fn=self.summarize_repository_context))

        return fastmcp

    def passthrough_tools(self) -> dict[str, TransformedTool]:
        get_repository_overview_tool = TransformedTool.from_tool(
            tool=Tool.from_function(fn=self.client.get_repository_overview),
            description=(
                "Get the metadata of a GitHub repository (description, language, stars, forks, topics, license) "
                + "along with its recent commits, branches and contributors."
            ),
            transform_args={
                "owner": OWNER_ARG_TRANSFORM,
                "repo": REPO_ARG_TRANSFORM,
                "commit_limit": COMMIT_LIMIT_ARG_TRANSFORM,
            },
        )

        return {
            "get_repository_overview": get_repository_overview_tool,
        }

    async def resolve_repository(self, url: REPOSITORY_URL) -> RepositoryReference:
        """Parse the owner and name of a GitHub repository out of a URL or an `owner/repo` string."""

        if (reference := RepositoryReference.from_url(url.strip())) is None:
            raise InvalidRepositoryUrlError(url=url)

        return reference

    async def analyze_repository_structure(self, owner: OWNER, repo: REPO) -> RepositoryStructure:
        """Walk a GitHub repository and map its files, the import connections between them, complexity metrics,
        architecture layers, design patterns and prioritized insights. Results are cached for a day."""

        async with self.analysis_locks[f"{owner}/{repo}"]:
            return await self._analyze(owner=owner, repo=repo)

    @alru_cache(maxsize=100, ttl=ONE_DAY_IN_SECONDS)
    async def _analyze(self, owner: str, repo: str) -> RepositoryStructure:
        return await self.analyzer.analyze_repository(owner=owner, repo=repo)

    async def get_overview(self, owner: str, repo: str) -> RepositoryOverview:
        async with self.overview_locks[f"{owner}/{repo}"]:
            return await self._get_overview(owner=owner, repo=repo)

    @alru_cache(maxsize=100, ttl=ONE_DAY_IN_SECONDS)
    async def _get_overview(self, owner: str, repo: str) -> RepositoryOverview:
        return await self.client.get_repository_overview(owner=owner, repo=repo)

    async def get_context(self, owner: str, repo: str) -> RepositoryContext:
        """Gather the overview and the structure of a repository into a context."""

        overview, structure = await asyncio.gather(
            self.get_overview(owner=owner, repo=repo),
            self.analyze_repository_structure(owner=owner, repo=repo),
        )

        return RepositoryContext(overview=overview, structure=structure)

    async def get_repository_hierarchy(
        self,
        owner: OWNER,
        repo: REPO,
        expanded_paths: EXPANDED_PATHS = None,
        max_primary: MAX_PRIMARY_CONNECTIONS = DEFAULT_MAX_PRIMARY_CONNECTIONS,
        max_secondary: MAX_SECONDARY_CONNECTIONS = DEFAULT_MAX_SECONDARY_CONNECTIONS,
    ) -> HierarchyView:
        """Get the file tree of a GitHub repository with every directory collapsed except the expanded paths, along with
        the most important import connections between the visible files."""

        structure: RepositoryStructure = await self.analyze_repository_structure(owner=owner, repo=repo)

        hierarchy: RepositoryHierarchy = RepositoryHierarchy.from_nodes(structure.nodes).expand_paths(expanded_paths or [])

        visible_node_ids: list[str] = [node.id for node in hierarchy.visible_nodes()]

        connections: FilteredConnections = FilteredConnections.from_connections(
            connections=structure.connections,
            visible_nodes=visible_node_ids,
            max_primary=max_primary,
            max_secondary=max_secondary,
        )

        return HierarchyView(hierarchy=hierarchy, visible_node_ids=visible_node_ids, connections=connections)

    async def explain_file(self, owner: OWNER, repo: REPO, path: FILE_PATH) -> FileRelationshipExplanation:
        """Explain how a file fits into a GitHub repository: its role, the files it imports, the files that import it
        and suggestions for improving it."""

        structure: RepositoryStructure = await self.analyze_repository_structure(owner=owner, repo=repo)

        context = RepositoryContext(structure=structure)

        if (explanation := context.explain_file_relationships(path)) is None:
            raise FileNotAnalyzedError(owner=owner, repo=repo, path=path)

        return explanation

    async def trace_code_flow(self, owner: OWNER, repo: REPO, start_file: FILE_PATH, end_file: END_FILE_PATH = None) -> CodeFlowAnalysis:
        """Trace a chain of imports through a GitHub repository, starting at one file and optionally ending at another."""

        structure: RepositoryStructure = await self.analyze_repository_structure(owner=owner, repo=repo)

        context = RepositoryContext(structure=structure)

        return context.analyze_code_flow(start_file=start_file, end_file=end_file)

    async def summarize_repository_context(self, owner: OWNER, repo: REPO) -> RepositoryContextSummary:
        """Summarize a GitHub repository: its architecture, key files, main code flows, hotspots, metrics, insights
        and recommendations."""

        context: RepositoryContext = await self.get_context(owner=owner, repo=repo)

        return context.summarize()
