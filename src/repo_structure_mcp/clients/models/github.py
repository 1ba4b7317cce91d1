import re
from datetime import UTC, datetime
from typing import Any, Literal, Self

from githubkit.versions.v2022_11_28.models import Commit as GitHubKitCommit
from githubkit.versions.v2022_11_28.models import ContentDirectoryItems as GitHubKitContentDirectoryItems
from githubkit.versions.v2022_11_28.models import ContentFile as GitHubKitContentFile
from githubkit.versions.v2022_11_28.models import Contributor as GitHubKitContributor
from githubkit.versions.v2022_11_28.models import (
    FullRepository as GitHubKitFullRepository,
)
from githubkit.versions.v2022_11_28.models import (
    LicenseSimple as GitHubKitLicenseSimple,
)
from githubkit.versions.v2022_11_28.models import ShortBranch as GitHubKitShortBranch
from githubkit.versions.v2022_11_28.models import SimpleUser as GitHubKitSimpleUser
from pydantic import BaseModel, ConfigDict, Field

from repo_structure_mcp.servers.shared.utility import decode_content

REPOSITORY_URL_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"^https?://github\.com/([^/]+)/([^/]+?)(?:\.git)?/?$"),
    re.compile(r"^github\.com/([^/]+)/([^/]+?)(?:\.git)?/?$"),
    re.compile(r"^([^/\s:]+)/([^/\s]+?)(?:\.git)?$"),
]


class RepositoryReference(BaseModel):
    """An owner/name pair identifying a GitHub repository."""

    model_config = ConfigDict(frozen=True)

    owner: str = Field(description="The owner of the repository.")
    repo: str = Field(description="The name of the repository.")

    @classmethod
    def from_url(cls, url: str) -> Self | None:
        """Parse `https://github.com/owner/repo`, `github.com/owner/repo` or `owner/repo`."""

        url = url.strip()

        for pattern in REPOSITORY_URL_PATTERNS:
            if match := pattern.match(url):
                return cls(owner=match.group(1), repo=match.group(2))

        return None

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


class RepositoryLicense(BaseModel):
    """A repository license."""

    name: str = Field(description="The name of the license.")
    url: str | None = Field(default=None, description="The URL of the license.")

    @classmethod
    def from_license_simple(cls, license_simple: GitHubKitLicenseSimple) -> Self:
        return cls(name=license_simple.name, url=license_simple.url)


class Repository(BaseModel):
    """A repository."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = Field(description="The name of the repository.")
    full_name: str = Field(description="The owner and name of the repository.")
    description: str | None = Field(default=None, description="The description of the repository.")
    fork: bool = Field(default=False, description="Whether the repository is a fork.")
    url: str = Field(description="The URL of the repository.")
    stars: int = Field(default=0, description="The number of stars the repository has.")
    forks: int = Field(default=0, description="The number of forks of the repository.")
    homepage_url: str | None = Field(default=None, description="The homepage URL of the repository.")
    language: str | None = Field(default=None, description="The primary language of the repository.")
    default_branch: str = Field(description="The default branch of the repository.")
    topics: list[str] = Field(default_factory=list, description="The topics of the repository.")
    archived: bool = Field(default=False, description="Whether the repository is archived.")
    created_at: datetime | None = Field(default=None, description="The date and time the repository was created.")
    updated_at: datetime | None = Field(default=None, description="The date and time the repository was updated.")
    pushed_at: datetime | None = Field(default=None, description="The date and time the repository was pushed to.")
    license: RepositoryLicense | None = Field(default=None, description="The license information of the repository.")

    @classmethod
    def from_full_repository(cls, full_repository: GitHubKitFullRepository) -> Self:
        repository_license = (
            RepositoryLicense.from_license_simple(license_simple=full_repository.license_) if full_repository.license_ else None
        )
        return cls(
            name=full_repository.name,
            full_name=full_repository.full_name,
            description=full_repository.description,
            fork=full_repository.fork,
            url=full_repository.html_url,
            stars=full_repository.stargazers_count,
            forks=full_repository.forks_count,
            homepage_url=full_repository.homepage or None,
            language=full_repository.language,
            default_branch=full_repository.default_branch,
            topics=full_repository.topics or [],
            archived=full_repository.archived,
            created_at=full_repository.created_at,
            updated_at=full_repository.updated_at,
            pushed_at=full_repository.pushed_at,
            license=repository_license,
        )


class CommitStats(BaseModel):
    additions: int = Field(description="The number of lines added.")
    deletions: int = Field(description="The number of lines deleted.")
    total: int = Field(description="The total number of lines changed.")


class Commit(BaseModel):
    """A commit on the default branch of a repository."""

    sha: str = Field(description="The SHA of the commit.")
    message: str = Field(description="The commit message.")
    author_name: str | None = Field(default=None, description="The name of the commit author.")
    author_login: str | None = Field(default=None, description="The GitHub login of the commit author.")
    author_avatar_url: str | None = Field(default=None, description="The avatar URL of the commit author.")
    date: datetime | None = Field(default=None, description="The date the commit was authored.")
    stats: CommitStats | None = Field(default=None, description="Line change statistics, when GitHub provides them.")

    @classmethod
    def from_commit(cls, commit: GitHubKitCommit) -> Self:
        commit_author = commit.commit.author

        # GitHub reports an empty object when the author has no GitHub account
        author = commit.author if isinstance(commit.author, GitHubKitSimpleUser) else None

        stats = (
            CommitStats(additions=commit.stats.additions or 0, deletions=commit.stats.deletions or 0, total=commit.stats.total or 0)
            if commit.stats
            else None
        )

        return cls(
            sha=commit.sha,
            message=commit.commit.message,
            author_name=(commit_author.name or None) if commit_author else None,
            author_login=author.login if author else None,
            author_avatar_url=author.avatar_url if author else None,
            date=(commit_author.date or None) if commit_author else None,
            stats=stats,
        )

    @property
    def summary(self) -> str:
        """The first line of the commit message."""
        return self.message.split("\n", 1)[0]


class Branch(BaseModel):
    name: str = Field(description="The name of the branch.")
    sha: str = Field(description="The SHA of the commit at the head of the branch.")
    protected: bool = Field(default=False, description="Whether the branch is protected.")

    @classmethod
    def from_short_branch(cls, short_branch: GitHubKitShortBranch) -> Self:
        return cls(name=short_branch.name, sha=short_branch.commit.sha, protected=short_branch.protected)


class Contributor(BaseModel):
    login: str = Field(description="The GitHub login of the contributor.")
    contributions: int = Field(description="The number of contributions made to the repository.")
    avatar_url: str | None = Field(default=None, description="The avatar URL of the contributor.")

    @classmethod
    def from_contributor(cls, contributor: GitHubKitContributor) -> Self:
        return cls(
            login=contributor.login or contributor.name or "anonymous",
            contributions=contributor.contributions,
            avatar_url=contributor.avatar_url or None,
        )


ContentType = Literal["file", "dir", "symlink", "submodule"]


class ContentEntry(BaseModel):
    """An entry in a directory listing."""

    name: str = Field(description="The name of the file or directory.")
    path: str = Field(description="The repository-relative path of the entry.")
    size: int = Field(default=0, description="The size of the entry in bytes.")
    type: ContentType = Field(description="The kind of entry.")
    download_url: str | None = Field(default=None, description="The raw download URL of a file.")

    @classmethod
    def from_content_directory_item(cls, item: GitHubKitContentDirectoryItems) -> Self:
        return cls(name=item.name, path=item.path, size=item.size, type=item.type, download_url=item.download_url)

    @property
    def is_directory(self) -> bool:
        return self.type == "dir"


class RepositoryFileWithContent(BaseModel):
    """A file with its path and decoded content."""

    path: str = Field(description="The path of the file.")
    size: int = Field(default=0, description="The size of the file in bytes.")
    content: str = Field(description="The decoded text content of the file.")

    @classmethod
    def from_content_file(cls, content_file: GitHubKitContentFile) -> Self:
        content = decode_content(content_file.content) if content_file.encoding == "base64" else content_file.content

        return cls(path=content_file.path, size=content_file.size, content=content)

    @property
    def total_lines(self) -> int:
        return len(self.content.split("\n"))


class RateLimit(BaseModel):
    """The most recently reported GitHub rate limit."""

    remaining: int | None = Field(default=None, description="The number of requests remaining in the current window.")
    reset_at: datetime | None = Field(default=None, description="When the current rate limit window resets.")

    @classmethod
    def from_headers(cls, headers: Any) -> Self | None:  # pyright: ignore[reportAny]
        remaining: str | None = headers.get("x-ratelimit-remaining")
        reset: str | None = headers.get("x-ratelimit-reset")

        if remaining is None and reset is None:
            return None

        return cls(
            remaining=int(remaining) if remaining and remaining.isdigit() else None,
            reset_at=datetime.fromtimestamp(int(reset), tz=UTC) if reset and reset.isdigit() else None,
        )

    @property
    def exhausted(self) -> bool:
        return self.remaining == 0


class RepositoryOverview(BaseModel):
    """Repository metadata together with recent activity."""

    repository: Repository = Field(description="The repository metadata.")
    commits: list[Commit] = Field(default_factory=list, description="The most recent commits on the default branch.")
    branches: list[Branch] = Field(default_factory=list, description="The branches of the repository.")
    contributors: list[Contributor] = Field(default_factory=list, description="The contributors, most active first.")

    @property
    def top_contributors(self) -> list[Contributor]:
        return sorted(self.contributors, key=lambda contributor: contributor.contributions, reverse=True)
