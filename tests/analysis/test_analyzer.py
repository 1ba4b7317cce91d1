import pytest
from inline_snapshot import snapshot

from repo_structure_mcp.analysis.analyzer import (
    AnalyzerSettings,
    RepositoryAnalyzer,
    analyze_file_content,
    build_architecture,
    build_connections,
    create_node,
    generate_insights,
    placeholder_structure,
)
from repo_structure_mcp.analysis.errors import RepositoryAnalysisError
from repo_structure_mcp.analysis.resolve import dirname
from repo_structure_mcp.clients.github import RepositoryClient
from repo_structure_mcp.clients.models.github import ContentEntry
from repo_structure_mcp.models.structure import DependencyConnection, FileNode, RepositoryStructure
from tests.conftest import FakeGitHub, dump_list_for_snapshot

DEMO_NODE_IDS: list[str] = [
    "README.md",
    "node_modules",
    "package.json",
    "src",
    "src/App.tsx",
    "src/components",
    "src/components/Header.tsx",
    "src/components/ui",
    "src/components/ui/Button.tsx",
    "src/index.css",
    "src/main.tsx",
    "src/utils",
    "src/utils/format.ts",
]


def analyzed_node(path: str, content: str) -> FileNode:
    name = path.rpartition("/")[2]
    entry = ContentEntry(name=name, path=path, size=len(content), type="file")
    node = create_node(entry=entry, parent=dirname(path) or None, depth=path.count("/"))
    return analyze_file_content(node=node, content=content)


def edges(connections: list[DependencyConnection]) -> list[tuple[str, str, float]]:
    return [(connection.source, connection.target, connection.strength) for connection in connections]


def test_init():
    analyzer = RepositoryAnalyzer()
    assert analyzer is not None
    assert analyzer.settings.max_depth == 4


class TestAnalyzeRepository:
    async def test_nodes(self, demo_structure: RepositoryStructure):
        assert [node.id for node in demo_structure.nodes] == DEMO_NODE_IDS
        assert not demo_structure.is_placeholder

    async def test_parents_precede_children(self, demo_structure: RepositoryStructure):
        seen: set[str] = set()

        for node in demo_structure.nodes:
            if node.parent is not None:
                assert node.parent in seen
            seen.add(node.id)

    async def test_depth_and_parent(self, demo_structure: RepositoryStructure):
        button = demo_structure.get_node("src/components/ui/Button.tsx")

        assert button is not None
        assert button.depth == 3
        assert button.parent == "src/components/ui"
        assert button.language == "TSX"
        assert button.extension == ".tsx"
        assert button.role == "component"

        src = demo_structure.get_node("src")
        assert src is not None
        assert src.depth == 0
        assert src.parent is None
        assert src.is_directory

    async def test_skipped_directories_are_not_listed(self, demo_structure: RepositoryStructure, fake_github: FakeGitHub):
        assert demo_structure.get_node("node_modules") is not None
        assert demo_structure.get_node("node_modules/react") is None
        assert not any("node_modules" in path for path in fake_github.requested_paths)

    async def test_only_code_files_are_fetched(self, demo_structure: RepositoryStructure, fake_github: FakeGitHub):
        assert "/repos/octo/demo/contents/README.md" not in fake_github.requested_paths
        assert "/repos/octo/demo/contents/src/index.css" not in fake_github.requested_paths
        assert "/repos/octo/demo/contents/src/App.tsx" in fake_github.requested_paths

        readme = demo_structure.get_node("README.md")
        assert readme is not None
        assert readme.metrics is None

    async def test_file_analysis(self, demo_structure: RepositoryStructure):
        app = demo_structure.get_node("src/App.tsx")

        assert app is not None
        assert app.imports == ["./components/Header", "@/utils/format"]
        assert app.exports == ["App"]
        assert [component.name for component in app.components] == ["App"]
        assert app.hooks == ["useState"]
        assert app.tags == ["react", "hooks"]
        assert app.metrics is not None
        assert app.metrics.lines_of_code == 15

        main = demo_structure.get_node("src/main.tsx")
        assert main is not None
        assert main.role == "entry-point"
        assert main.purpose == "Application Entry Point"

    async def test_connections(self, demo_structure: RepositoryStructure):
        assert dump_list_for_snapshot(demo_structure.connections) == snapshot(
            [
                {
                    "source": "src/App.tsx",
                    "target": "src/components/Header.tsx",
                    "type": "import",
                    "strength": 1.0,
                    "context": "imports Header",
                },
                {
                    "source": "src/App.tsx",
                    "target": "src/utils/format.ts",
                    "type": "import",
                    "strength": 0.8,
                    "context": "imports formatDate",
                },
                {
                    "source": "src/components/Header.tsx",
                    "target": "src/components/ui/Button.tsx",
                    "type": "import",
                    "strength": 1.0,
                    "context": "imports Button",
                },
                {"source": "src/main.tsx", "target": "src/App.tsx", "type": "import", "strength": 1.0, "context": "imports App"},
                {"source": "src/main.tsx", "target": "src/index.css", "type": "import", "strength": 0.5},
            ]
        )

    async def test_dependencies_and_dependents(self, demo_structure: RepositoryStructure):
        app = demo_structure.get_node("src/App.tsx")
        header = demo_structure.get_node("src/components/Header.tsx")

        assert app is not None
        assert header is not None
        assert app.dependencies == ["src/components/Header.tsx", "src/utils/format.ts"]
        assert app.dependents == ["src/main.tsx"]
        assert header.dependencies == ["src/components/ui/Button.tsx"]
        assert header.dependents == ["src/App.tsx"]

    async def test_stats(self, demo_structure: RepositoryStructure):
        stats = demo_structure.stats

        assert stats.total_files == 8
        assert stats.total_directories == 5
        assert stats.languages == {"Markdown": 1, "JSON": 1, "TSX": 4, "CSS": 1, "TypeScript": 1}
        assert stats.complexity == {"low": 8, "medium": 0, "high": 0}
        assert set(stats.language_metrics.keys()) == {"TSX", "TypeScript"}
        assert stats.language_metrics["TSX"].file_count == 4
        assert stats.highest_complexity is not None
        assert stats.technical_debt == 0

    async def test_architecture(self, demo_structure: RepositoryStructure):
        architecture = demo_structure.architecture

        assert [(layer.name, layer.files) for layer in architecture.layers] == [
            ("Entry Points", ["src/main.tsx"]),
            ("Components", ["src/components/Header.tsx", "src/components/ui/Button.tsx"]),
            ("Services", ["src/utils/format.ts"]),
        ]
        assert architecture.patterns == ["Component-Service Architecture"]
        assert architecture.principles == ["Separation of Concerns"]
        assert architecture.violations == []

    async def test_patterns_and_insights(self, demo_structure: RepositoryStructure):
        assert [(pattern.name, pattern.files) for pattern in demo_structure.patterns] == [
            ("Component Pattern", ["src/components/Header.tsx", "src/components/ui/Button.tsx"])
        ]
        assert [insight.title for insight in demo_structure.insights] == ["No Test Files Detected"]

    async def test_max_depth(self, repository_client: RepositoryClient):
        analyzer = RepositoryAnalyzer(client=repository_client, settings=AnalyzerSettings(max_depth=1))

        structure = await analyzer.analyze_repository(owner="octo", repo="demo")

        assert structure.get_node("src/components") is not None
        assert structure.get_node("src/components/Header.tsx") is None
        assert edges(structure.connections) == [
            ("src/main.tsx", "src/App.tsx", 1.0),
            ("src/main.tsx", "src/index.css", 0.5),
        ]

    async def test_failed_directory_is_skipped(self, analyzer: RepositoryAnalyzer, fake_github: FakeGitHub):
        fake_github.failing_paths.add("/repos/octo/demo/contents/src/components")

        structure = await analyzer.analyze_repository(owner="octo", repo="demo")

        assert structure.get_node("src/components") is not None
        assert structure.get_node("src/components/Header.tsx") is None
        assert structure.get_node("src/utils/format.ts") is not None
        assert ("src/App.tsx", "src/utils/format.ts", 0.8) in edges(structure.connections)

    async def test_failed_file_is_skipped(self, analyzer: RepositoryAnalyzer, fake_github: FakeGitHub):
        fake_github.failing_paths.add("/repos/octo/demo/contents/src/App.tsx")

        structure = await analyzer.analyze_repository(owner="octo", repo="demo")

        app = structure.get_node("src/App.tsx")
        assert app is not None
        assert app.metrics is None
        assert app.imports == []
        assert ("src/main.tsx", "src/App.tsx", 1.0) in edges(structure.connections)

    async def test_missing_repository(self, analyzer: RepositoryAnalyzer):
        with pytest.raises(RepositoryAnalysisError, match="Failed to analyze repository"):
            _ = await analyzer.analyze_repository(owner="octo", repo="missing")

    async def test_missing_repository_fallback(self, analyzer: RepositoryAnalyzer):
        structure = await analyzer.analyze_repository(owner="octo", repo="missing", fallback_on_error=True)

        assert structure.is_placeholder
        assert [node.id for node in structure.nodes] == ["src", "src/App.tsx"]


class TestBuildConnections:
    def test_strongest_import_wins(self):
        nodes = [
            analyzed_node("src/main.ts", "import './App'\nimport App, { routes } from './App'\n"),
            analyzed_node("src/App.ts", "export const routes = []\n"),
        ]

        connections = build_connections(nodes)

        assert edges(connections) == [("src/main.ts", "src/App.ts", 1.0)]
        assert connections[0].context == "imports App, routes"
        assert nodes[0].dependencies == ["src/App.ts"]
        assert nodes[1].dependents == ["src/main.ts"]

    def test_self_and_unresolved_imports(self):
        nodes = [analyzed_node("src/self.ts", "import { x } from './self'\nimport { y } from './missing'\nimport z from 'zod'\n")]

        assert build_connections(nodes) == []
        assert nodes[0].dependencies == []

    def test_python_imports(self):
        nodes = [
            analyzed_node("src/shop/__init__.py", ""),
            analyzed_node("src/shop/api.py", "from .models import Order\nfrom shop import utils\nimport requests\n"),
            analyzed_node("src/shop/models.py", "class Order:\n    pass\n"),
            analyzed_node("src/shop/utils.py", "def slugify(text):\n    return text\n"),
        ]

        connections = build_connections(nodes)

        assert edges(connections) == [
            ("src/shop/api.py", "src/shop/models.py", 0.8),
            ("src/shop/api.py", "src/shop/utils.py", 0.8),
        ]

    def test_python_relative_submodule_imports(self):
        nodes = [
            analyzed_node("app/__init__.py", ""),
            analyzed_node("app/main.py", "from .models import user\nfrom .models import Base\nfrom . import config\n"),
            analyzed_node("app/config.py", "DEBUG = False\n"),
            analyzed_node("app/models/__init__.py", "class Base:\n    pass\n"),
            analyzed_node("app/models/user.py", "from . import Base\n\nclass User(Base):\n    pass\n"),
        ]

        connections = build_connections(nodes)

        assert edges(connections) == [
            ("app/main.py", "app/models/user.py", 0.8),
            ("app/main.py", "app/models/__init__.py", 0.8),
            ("app/main.py", "app/config.py", 0.8),
            ("app/models/user.py", "app/models/__init__.py", 0.8),
        ]
        assert connections[0].context == "imports user"
        assert nodes[3].dependents == ["app/main.py", "app/models/user.py"]

    def test_violations(self):
        nodes = [
            analyzed_node("src/utils/a.ts", "import { b } from './b'\nexport const a = 1\n"),
            analyzed_node("src/utils/b.ts", "import { a } from './a'\nexport const b = 2\n"),
            analyzed_node("src/utils/render.ts", "import Card from '../components/Card'\n"),
            analyzed_node("src/components/Card.tsx", "export default function Card() {}\n"),
        ]

        connections = build_connections(nodes)
        architecture = build_architecture(nodes, connections)

        assert [(violation.type, violation.severity, violation.files) for violation in architecture.violations] == [
            ("Layer Violation", "medium", ["src/utils/render.ts", "src/components/Card.tsx"]),
            ("Circular Dependency", "high", ["src/utils/a.ts", "src/utils/b.ts"]),
        ]
        assert architecture.layers[1].name == "Services"
        assert architecture.layers[0].dependencies == []
        assert architecture.layers[1].dependencies == ["Components"]

        insights = generate_insights(nodes, architecture)

        assert [(insight.title, insight.priority) for insight in insights] == [
            ("Architecture Violations Found", 9),
            ("No Test Files Detected", 6),
        ]
        assert insights[0].severity == "error"


def test_placeholder_structure():
    structure = placeholder_structure(owner="octo", repo="demo")

    assert structure.is_placeholder
    assert structure.stats.total_files == 1
    assert structure.stats.total_directories == 1
    assert structure.insights[0].priority == 10
