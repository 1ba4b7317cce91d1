from collections.abc import Callable, Iterable, Sequence
from typing import Any, Self

from pydantic import BaseModel, Field

from repo_structure_mcp.analysis.languages import ComplexityLevel
from repo_structure_mcp.models.structure import DependencyConnection, FileNode, FileRole, NodeType

APPLICATION_ENTRY_FILES: frozenset[str] = frozenset(
    {"App.tsx", "App.jsx", "main.tsx", "main.jsx", "main.ts", "main.js", "index.tsx", "main.py", "__main__.py"}
)
PRIMARY_STRENGTH_THRESHOLD = 0.8

DEFAULT_MAX_PRIMARY_CONNECTIONS = 5
DEFAULT_MAX_SECONDARY_CONNECTIONS = 3


class HierarchyNode(BaseModel):
    """A node of the repository tree with its children attached."""

    id: str = Field(description="The unique identifier of the node, equal to its path.")
    name: str = Field(description="The name of the file or directory.")
    path: str = Field(description="The repository-relative path of the node.")
    type: NodeType = Field(description="Whether the node is a file or a directory.")
    size: int = Field(default=0, description="The size of the file in bytes.")
    language: str | None = Field(default=None, description="The language of the file.")
    complexity: ComplexityLevel = Field(default="low", description="A size based complexity estimate.")
    role: FileRole = Field(default="unknown", description="The role the file plays in the codebase.")
    level: int = Field(description="The depth of the node, 0 for entries at the repository root.")
    parent_id: str | None = Field(default=None, description="The id of the parent node.")
    is_expanded: bool = Field(default=False, description="Whether the children of a directory are shown.")
    children: list["HierarchyNode"] = Field(default_factory=list, description="The child nodes, directories first, then by name.")

    @classmethod
    def from_file_node(cls, node: FileNode) -> Self:
        return cls(
            id=node.id,
            name=node.name,
            path=node.path,
            type=node.type,
            size=node.size,
            language=node.language,
            complexity=node.complexity,
            role=node.role,
            level=node.depth,
            parent_id=node.parent,
        )

    @property
    def is_directory(self) -> bool:
        return self.type == "directory"


def sort_key(node: HierarchyNode) -> tuple[bool, str, str]:
    return (not node.is_directory, node.name.casefold(), node.name)


def sort_nodes(nodes: list[HierarchyNode]) -> list[HierarchyNode]:
    nodes.sort(key=sort_key)
    for node in nodes:
        _ = sort_nodes(node.children)
    return nodes


def transform_nodes(nodes: Sequence[HierarchyNode], update: Callable[[HierarchyNode], dict[str, Any]]) -> list[HierarchyNode]:
    """Rebuild a tree, applying `update` to every node. The original nodes are left untouched."""

    return [node.model_copy(update={**update(node), "children": transform_nodes(node.children, update)}) for node in nodes]


def path_prefixes(path: str) -> set[str]:
    segments: list[str] = [segment for segment in path.split("/") if segment]
    return {"/".join(segments[: index + 1]) for index in range(len(segments))}


class RepositoryHierarchy(BaseModel):
    """The file tree of a repository with expand and collapse state.

    Operations that change the expansion state return a new hierarchy."""

    roots: list[HierarchyNode] = Field(default_factory=list, description="The top-level nodes of the tree.")

    @classmethod
    def from_nodes(cls, nodes: Iterable[FileNode]) -> Self:
        """Attach every node to its parent. Nodes whose parent is unknown become roots. Every directory starts collapsed."""

        nodes_by_id: dict[str, HierarchyNode] = {}
        for node in nodes:
            if node.id not in nodes_by_id:
                nodes_by_id[node.id] = HierarchyNode.from_file_node(node)

        roots: list[HierarchyNode] = []
        for node in nodes_by_id.values():
            parent = nodes_by_id.get(node.parent_id) if node.parent_id is not None else None

            if parent is None or parent is node:
                roots.append(node)
            else:
                parent.children.append(node)

        return cls(roots=sort_nodes(roots))

    def visible_nodes(self) -> list[HierarchyNode]:
        """Return the nodes a reader would see, in display order. Only expanded directories show their children."""

        visible: list[HierarchyNode] = []
        stack: list[HierarchyNode] = list(reversed(self.roots))

        while stack:
            node = stack.pop()
            visible.append(node)
            if node.is_directory and node.is_expanded:
                stack.extend(reversed(node.children))

        return visible

    def root_level_nodes(self) -> list[HierarchyNode]:
        return [node for node in self.roots if node.level == 0]

    def find_node(self, node_id: str) -> HierarchyNode | None:
        stack: list[HierarchyNode] = list(self.roots)

        while stack:
            node = stack.pop()
            if node.id == node_id:
                return node
            stack.extend(node.children)

        return None

    def toggle_node_expansion(self, node_id: str) -> Self:
        """Flip the expansion state of a directory. Files and unknown ids leave the hierarchy unchanged."""

        def update(node: HierarchyNode) -> dict[str, Any]:
            if node.id == node_id and node.is_directory:
                return {"is_expanded": not node.is_expanded}
            return {}

        return self.model_copy(update={"roots": transform_nodes(self.roots, update)})

    def expand_path(self, path: str) -> Self:
        """Expand every directory on the way to `path`, including `path` itself if it is a directory."""

        prefixes = path_prefixes(path)

        def update(node: HierarchyNode) -> dict[str, Any]:
            if node.is_directory and node.path in prefixes:
                return {"is_expanded": True}
            return {}

        return self.model_copy(update={"roots": transform_nodes(self.roots, update)})

    def expand_paths(self, paths: Iterable[str]) -> Self:
        hierarchy = self
        for path in paths:
            hierarchy = hierarchy.expand_path(path)
        return hierarchy

    def collapse_all(self) -> Self:
        def update(node: HierarchyNode) -> dict[str, Any]:
            return {"is_expanded": False} if node.is_directory else {}

        return self.model_copy(update={"roots": transform_nodes(self.roots, update)})


def is_entry_connection(connection: DependencyConnection) -> bool:
    return any(path.rpartition("/")[2] in APPLICATION_ENTRY_FILES for path in (connection.source, connection.target))


def is_primary_connection(connection: DependencyConnection) -> bool:
    return is_entry_connection(connection) or connection.strength >= PRIMARY_STRENGTH_THRESHOLD


class FilteredConnections(BaseModel):
    """The connections worth drawing between the visible nodes of a hierarchy."""

    primary: list[DependencyConnection] = Field(default_factory=list, description="The most important connections.")
    secondary: list[DependencyConnection] = Field(default_factory=list, description="Additional, weaker connections.")
    total: int = Field(default=0, description="The number of connections between visible nodes before truncation.")

    @classmethod
    def from_connections(
        cls,
        connections: Iterable[DependencyConnection],
        visible_nodes: Iterable[HierarchyNode | str],
        max_primary: int = DEFAULT_MAX_PRIMARY_CONNECTIONS,
        max_secondary: int = DEFAULT_MAX_SECONDARY_CONNECTIONS,
    ) -> Self:
        """Keep the connections between visible nodes and split them into primary and secondary buckets.

        Primary connections touch an application entry file or are strong. Entry file connections rank first,
        then stronger connections. The remaining connections are secondary, strongest first."""

        visible_ids: set[str] = {node if isinstance(node, str) else node.id for node in visible_nodes}

        relevant: list[DependencyConnection] = [
            connection for connection in connections if connection.source in visible_ids and connection.target in visible_ids
        ]

        primary: list[DependencyConnection] = sorted(
            [connection for connection in relevant if is_primary_connection(connection)],
            key=lambda connection: (not is_entry_connection(connection), -connection.strength),
        )
        secondary: list[DependencyConnection] = sorted(
            [connection for connection in relevant if not is_primary_connection(connection)],
            key=lambda connection: -connection.strength,
        )

        return cls(primary=primary[:max_primary], secondary=secondary[:max_secondary], total=len(relevant))
