import base64
from collections import defaultdict
from collections.abc import AsyncGenerator, Sequence
from types import SimpleNamespace
from typing import Any, overload
from urllib.parse import quote

import httpx
import pytest
from fastmcp import FastMCP
from fastmcp.server.middleware.logging import LoggingMiddleware
from githubkit import GitHub
from google.genai.types import (
    Candidate,
    Content,
    FinishReason,
    GenerateContentResponse,
    GenerateContentResponseUsageMetadata,
    Part,
)
from pydantic import BaseModel

from repo_structure_mcp.analysis.analyzer import RepositoryAnalyzer
from repo_structure_mcp.clients.github import GITHUB_API_URL, RepositoryClient
from repo_structure_mcp.models.structure import RepositoryStructure

MAIN_TSX = """import React from 'react'
import ReactDOM from 'react-dom/client'
import App from './App'
import './index.css'

ReactDOM.createRoot(document.getElementById('root')!).render(<App />)
"""

APP_TSX = """import React, { useState } from 'react'
import Header from './components/Header'
import { formatDate } from '@/utils/format'

export default function App() {
  const [today] = useState(new Date())

  return (
    <div>
      <Header title="Demo" />
      <p>{formatDate(today)}</p>
    </div>
  )
}
"""

HEADER_TSX = """import Button from './ui/Button'

interface HeaderProps {
  title: string
}

export function Header({ title }: HeaderProps) {
  return (
    <header>
      <h1>{title}</h1>
      <Button label="Menu" />
    </header>
  )
}

export default Header
"""

BUTTON_TSX = """interface ButtonProps {
  label: string
}

export default function Button({ label }: ButtonProps) {
  return <button>{label}</button>
}
"""

FORMAT_TS = """export function formatDate(date: Date): string {
  return date.toISOString().slice(0, 10)
}

export const formatNumber = (value: number) => value.toLocaleString()
"""

DEMO_FILES: dict[str, str] = {
    "README.md": "# Demo\n\nA demo React application.\n",
    "package.json": '{"name": "demo", "dependencies": {"react": "^18.0.0"}}\n',
    "src/main.tsx": MAIN_TSX,
    "src/App.tsx": APP_TSX,
    "src/index.css": "body { margin: 0; }\n",
    "src/components/Header.tsx": HEADER_TSX,
    "src/components/ui/Button.tsx": BUTTON_TSX,
    "src/utils/format.ts": FORMAT_TS,
    "node_modules/react/index.js": "module.exports = require('./cjs/react.production.min.js')\n",
}

RATE_LIMIT_RESET = 1700000000

REPOSITORY_URL_TEMPLATES: dict[str, str] = {
    "archive_url": "/{archive_format}{/ref}",
    "assignees_url": "/assignees{/user}",
    "blobs_url": "/git/blobs{/sha}",
    "branches_url": "/branches{/branch}",
    "collaborators_url": "/collaborators{/collaborator}",
    "comments_url": "/comments{/number}",
    "commits_url": "/commits{/sha}",
    "compare_url": "/compare/{base}...{head}",
    "contents_url": "/contents/{+path}",
    "contributors_url": "/contributors",
    "deployments_url": "/deployments",
    "downloads_url": "/downloads",
    "events_url": "/events",
    "forks_url": "/forks",
    "git_commits_url": "/git/commits{/sha}",
    "git_refs_url": "/git/refs{/sha}",
    "git_tags_url": "/git/tags{/sha}",
    "hooks_url": "/hooks",
    "issue_comment_url": "/issues/comments{/number}",
    "issue_events_url": "/issues/events{/number}",
    "issues_url": "/issues{/number}",
    "keys_url": "/keys{/key_id}",
    "labels_url": "/labels{/name}",
    "languages_url": "/languages",
    "merges_url": "/merges",
    "milestones_url": "/milestones{/number}",
    "notifications_url": "/notifications{?since,all,participating}",
    "pulls_url": "/pulls{/number}",
    "releases_url": "/releases{/id}",
    "stargazers_url": "/stargazers",
    "statuses_url": "/statuses/{sha}",
    "subscribers_url": "/subscribers",
    "subscription_url": "/subscription",
    "tags_url": "/tags",
    "teams_url": "/teams",
    "trees_url": "/git/trees{/sha}",
}


def simple_user(login: str, user_id: int) -> dict[str, Any]:
    api_url = f"{GITHUB_API_URL}/users/{login}"

    return {
        "login": login,
        "id": user_id,
        "node_id": f"MDQ6VXNlcj{user_id}",
        "avatar_url": f"https://avatars.githubusercontent.com/u/{user_id}",
        "gravatar_id": "",
        "url": api_url,
        "html_url": f"https://github.com/{login}",
        "followers_url": f"{api_url}/followers",
        "following_url": f"{api_url}/following{{/other_user}}",
        "gists_url": f"{api_url}/gists{{/gist_id}}",
        "starred_url": f"{api_url}/starred{{/owner}}{{/repo}}",
        "subscriptions_url": f"{api_url}/subscriptions",
        "organizations_url": f"{api_url}/orgs",
        "repos_url": f"{api_url}/repos",
        "events_url": f"{api_url}/events{{/privacy}}",
        "received_events_url": f"{api_url}/received_events",
        "type": "User",
        "user_view_type": "public",
        "site_admin": False,
    }


OCTOCAT = simple_user(login="octocat", user_id=1)
HUBOT = simple_user(login="hubot", user_id=2)


def full_repository(owner: str, repo: str, **overrides: Any) -> dict[str, Any]:
    """Build a repository the way `GET /repos/{owner}/{repo}` returns it."""

    api_url = f"{GITHUB_API_URL}/repos/{owner}/{repo}"
    html_url = f"https://github.com/{owner}/{repo}"

    repository: dict[str, Any] = {
        "id": 1296269,
        "node_id": "MDEwOlJlcG9zaXRvcnkxMjk2MjY5",
        "name": repo,
        "full_name": f"{owner}/{repo}",
        "owner": OCTOCAT,
        "private": False,
        "html_url": html_url,
        "description": None,
        "fork": False,
        "url": api_url,
        **{field: f"{api_url}{suffix}" for field, suffix in REPOSITORY_URL_TEMPLATES.items()},
        "git_url": f"git://github.com/{owner}/{repo}.git",
        "ssh_url": f"git@github.com:{owner}/{repo}.git",
        "clone_url": f"{html_url}.git",
        "svn_url": html_url,
        "mirror_url": None,
        "homepage": None,
        "language": None,
        "forks_count": 0,
        "stargazers_count": 0,
        "watchers_count": 0,
        "size": 108,
        "default_branch": "main",
        "open_issues_count": 0,
        "is_template": False,
        "topics": [],
        "has_issues": True,
        "has_projects": True,
        "has_wiki": True,
        "has_pages": False,
        "has_downloads": True,
        "has_discussions": False,
        "archived": False,
        "disabled": False,
        "visibility": "public",
        "pushed_at": "2024-05-01T12:00:00Z",
        "created_at": "2024-01-01T00:00:00Z",
        "updated_at": "2024-05-01T12:00:00Z",
        "allow_forking": True,
        "web_commit_signoff_required": False,
        "license": None,
        "forks": 0,
        "open_issues": 0,
        "watchers": 0,
        "network_count": 0,
        "subscribers_count": 0,
    }

    return {**repository, **overrides}


DEMO_REPOSITORY: dict[str, Any] = full_repository(
    owner="octo",
    repo="demo",
    description="A demo React application",
    stargazers_count=150,
    watchers_count=150,
    watchers=150,
    forks_count=12,
    forks=12,
    homepage="",
    language="TypeScript",
    topics=["react", "demo"],
    license={
        "key": "mit",
        "name": "MIT License",
        "spdx_id": "MIT",
        "url": f"{GITHUB_API_URL}/licenses/mit",
        "node_id": "MDc6TGljZW5zZTEz",
    },
)


def git_commit(sha: str, message: str, author: dict[str, Any], author_name: str, date: str) -> dict[str, Any]:
    """Build a commit the way `GET /repos/{owner}/{repo}/commits` lists it."""

    api_url = f"{GITHUB_API_URL}/repos/octo/demo"
    git_user = {"name": author_name, "email": f"{author['login']}@users.noreply.github.com", "date": date}

    return {
        "url": f"{api_url}/commits/{sha}",
        "sha": sha,
        "node_id": f"C_{sha}",
        "html_url": f"https://github.com/octo/demo/commit/{sha}",
        "comments_url": f"{api_url}/commits/{sha}/comments",
        "commit": {
            "url": f"{api_url}/git/commits/{sha}",
            "author": git_user,
            "committer": git_user,
            "message": message,
            "comment_count": 0,
            "tree": {"sha": f"tree-{sha}", "url": f"{api_url}/git/trees/tree-{sha}"},
            "verification": {"verified": False, "reason": "unsigned", "signature": None, "payload": None, "verified_at": None},
        },
        "author": author,
        "committer": author,
        "parents": [],
    }


DEMO_COMMITS: list[dict[str, Any]] = [
    git_commit(
        sha="abc123",
        message="fix: handle empty dates\n\nformatDate no longer throws on missing values.",
        author=OCTOCAT,
        author_name="Octo Cat",
        date="2024-05-01T12:00:00Z",
    ),
    git_commit(sha="def456", message="feat: add header component", author=HUBOT, author_name="Hubot", date="2024-04-30T09:30:00Z"),
]

DEMO_BRANCHES: list[dict[str, Any]] = [
    {"name": "main", "commit": {"sha": "abc123", "url": f"{GITHUB_API_URL}/repos/octo/demo/commits/abc123"}, "protected": True}
]

DEMO_CONTRIBUTORS: list[dict[str, Any]] = [{**HUBOT, "contributions": 3}, {**OCTOCAT, "contributions": 42}]


def content_links(owner: str, repo: str, entry_path: str, is_file: bool) -> dict[str, Any]:
    api_url = f"{GITHUB_API_URL}/repos/{owner}/{repo}"
    quoted_path = quote(entry_path)
    git_url = f"{api_url}/git/{'blobs' if is_file else 'trees'}/{quoted_path}"
    html_url = f"https://github.com/{owner}/{repo}/{'blob' if is_file else 'tree'}/main/{quoted_path}"
    self_url = f"{api_url}/contents/{quoted_path}?ref=main"

    return {
        "sha": f"sha-{quoted_path}",
        "url": self_url,
        "git_url": git_url,
        "html_url": html_url,
        "download_url": f"https://raw.githubusercontent.com/{owner}/{repo}/main/{quoted_path}" if is_file else None,
        "_links": {"self": self_url, "git": git_url, "html": html_url},
    }


def build_listings(files: dict[str, str], owner: str = "octo", repo: str = "demo") -> dict[str, list[dict[str, Any]]]:
    """Build the directory listings GitHub would return for a set of files, keyed by directory path."""

    listings: dict[str, dict[str, dict[str, Any]]] = defaultdict(dict)

    for path, content in files.items():
        segments = path.split("/")

        for index, name in enumerate(segments):
            entry_path = "/".join(segments[: index + 1])
            is_file = index == len(segments) - 1
            listings["/".join(segments[:index])][entry_path] = {
                "name": name,
                "path": entry_path,
                "type": "file" if is_file else "dir",
                "size": len(content.encode()) if is_file else 0,
                **content_links(owner=owner, repo=repo, entry_path=entry_path, is_file=is_file),
            }

    return {directory: sorted(entries.values(), key=lambda entry: entry["name"]) for directory, entries in listings.items()}


class FakeGitHub:
    """Serves a small repository through the GitHub REST API routes the client uses."""

    def __init__(self, owner: str = "octo", repo: str = "demo", files: dict[str, str] | None = None):
        self.owner: str = owner
        self.repo: str = repo
        self.files: dict[str, str] = files if files is not None else DEMO_FILES
        self.listings: dict[str, list[dict[str, Any]]] = build_listings(self.files, owner=owner, repo=repo)
        self.requested_paths: list[str] = []
        self.requested_raw_paths: list[str] = []
        self.failing_paths: set[str] = set()

    def content_file(self, content_path: str) -> dict[str, Any]:
        content = self.files[content_path]

        return {
            "type": "file",
            "encoding": "base64",
            "name": content_path.rpartition("/")[2],
            "path": content_path,
            "size": len(content.encode()),
            "content": base64.b64encode(content.encode()).decode(),
            **content_links(owner=self.owner, repo=self.repo, entry_path=content_path, is_file=True),
        }

    def handler(self, request: httpx.Request) -> httpx.Response:
        path: str = request.url.path.rstrip("/")
        self.requested_paths.append(path)
        self.requested_raw_paths.append(request.url.raw_path.decode().partition("?")[0].rstrip("/"))

        if path.startswith("/repos/octo/limited"):
            return httpx.Response(
                status_code=403,
                headers={"x-ratelimit-remaining": "0", "x-ratelimit-reset": str(RATE_LIMIT_RESET)},
                json={"message": "API rate limit exceeded"},
            )

        headers = {"x-ratelimit-remaining": "4999", "x-ratelimit-reset": str(RATE_LIMIT_RESET)}
        prefix = f"/repos/{self.owner}/{self.repo}"

        if path in self.failing_paths:
            return httpx.Response(status_code=500, headers=headers, json={"message": "Server Error"})

        if path == prefix:
            repository = DEMO_REPOSITORY if (self.owner, self.repo) == ("octo", "demo") else full_repository(self.owner, self.repo)
            return httpx.Response(status_code=200, headers=headers, json=repository)

        if path == f"{prefix}/commits":
            return httpx.Response(status_code=200, headers=headers, json=DEMO_COMMITS)

        if path == f"{prefix}/branches":
            return httpx.Response(status_code=200, headers=headers, json=DEMO_BRANCHES)

        if path == f"{prefix}/contributors":
            return httpx.Response(status_code=200, headers=headers, json=DEMO_CONTRIBUTORS)

        if path == f"{prefix}/contents" or path.startswith(f"{prefix}/contents/"):
            content_path = path.removeprefix(f"{prefix}/contents").strip("/")

            if content_path in self.listings:
                return httpx.Response(status_code=200, headers=headers, json=self.listings[content_path])

            if content_path in self.files:
                return httpx.Response(status_code=200, headers=headers, json=self.content_file(content_path))

        return httpx.Response(status_code=404, headers=headers, json={"message": "Not Found"})


@pytest.fixture
def fake_github() -> FakeGitHub:
    return FakeGitHub()


def fake_githubkit_client(fake_github: FakeGitHub) -> GitHub[Any]:
    return GitHub(base_url=GITHUB_API_URL, auto_retry=False, http_cache=False, async_transport=httpx.MockTransport(fake_github.handler))


@pytest.fixture
async def githubkit_client(fake_github: FakeGitHub) -> AsyncGenerator[GitHub[Any], Any]:
    githubkit_client = fake_githubkit_client(fake_github)

    async with githubkit_client:
        yield githubkit_client


@pytest.fixture
def repository_client(githubkit_client: GitHub[Any]) -> RepositoryClient:
    return RepositoryClient(githubkit_client=githubkit_client)


@pytest.fixture
def analyzer(repository_client: RepositoryClient) -> RepositoryAnalyzer:
    return RepositoryAnalyzer(client=repository_client)


@pytest.fixture
async def demo_structure(analyzer: RepositoryAnalyzer) -> RepositoryStructure:
    return await analyzer.analyze_repository(owner="octo", repo="demo")


@pytest.fixture
def fastmcp() -> FastMCP[Any]:
    return FastMCP(name="Repository Structure MCP", middleware=[LoggingMiddleware(include_payloads=True)])


class StubModels:
    """Stands in for `client.aio.models` of a google-genai client and records every request."""

    def __init__(self, response: GenerateContentResponse):
        self.response: GenerateContentResponse = response
        self.calls: list[dict[str, Any]] = []

    async def generate_content(self, **kwargs: Any) -> GenerateContentResponse:
        self.calls.append(kwargs)
        return self.response


class StubGenaiClient:
    def __init__(self, response: GenerateContentResponse):
        self.models: StubModels = StubModels(response=response)
        self.aio: SimpleNamespace = SimpleNamespace(models=self.models)


def text_response(text: str) -> GenerateContentResponse:
    return GenerateContentResponse(
        candidates=[Candidate(content=Content(role="model", parts=[Part(text=text)]), finish_reason=FinishReason.STOP)],
        usage_metadata=GenerateContentResponseUsageMetadata(prompt_token_count=120, candidates_token_count=30, total_token_count=150),
    )


def empty_response() -> GenerateContentResponse:
    return GenerateContentResponse(candidates=[Candidate(finish_reason=FinishReason.MAX_TOKENS)])


@pytest.fixture
def genai_client() -> StubGenaiClient:
    return StubGenaiClient(response=text_response("src/App.tsx renders the Header component."))


def dump_structured_content(result: Any) -> Any:  # pyright: ignore[reportAny]
    """Unwrap the structured content of a tool call, which FastMCP wraps in `result` for non-object outputs."""

    structured_content: dict[str, Any] = result.structured_content  # pyright: ignore[reportAny]

    if set(structured_content.keys()) == {"result"}:
        return structured_content["result"]

    return structured_content



def handle_exclude_keys(dictionary: dict[str, Any], exclude_keys: list[str] | None = None) -> dict[str, Any]:
    if exclude_keys is None:
        return dictionary
    return {key: value for key, value in dictionary.items() if key not in exclude_keys}


@overload
def dump_for_snapshot(
    basemodel: None,
    /,
    exclude_keys: list[str] | None = None,
    exclude_none: bool = True,
    **dump_kwargs: Any,
) -> None: ...


@overload
def dump_for_snapshot(
    basemodel: BaseModel,
    /,
    exclude_keys: list[str] | None = None,
    exclude_none: bool = True,
    **dump_kwargs: Any,
) -> dict[str, Any]: ...


def dump_for_snapshot(
    basemodel: None | BaseModel,
    /,
    exclude_keys: list[str] | None = None,
    exclude_none: bool = True,
    **dump_kwargs: Any,
) -> dict[str, Any] | None:
    if basemodel is None:
        return None

    return handle_exclude_keys(basemodel.model_dump(exclude_none=exclude_none, **dump_kwargs), exclude_keys)


def dump_list_for_snapshot(
    basemodel: None | Sequence[BaseModel],
    /,
    exclude_keys: list[str] | None = None,
    exclude_none: bool = True,
    **dump_kwargs: Any,
) -> list[dict[str, Any]]:
    if basemodel is None:
        return []

    return [dump_for_snapshot(item, exclude_keys, exclude_none, **dump_kwargs) for item in basemodel]
