import asyncio
import os
from collections.abc import Awaitable, Callable, Sequence
from logging import Logger, getLogger
from typing import Any, Literal, overload
from urllib.parse import quote

from githubkit import GitHub as GitHubKit
from githubkit.auth.token import TokenAuthStrategy
from githubkit.exception import GitHubException as GitHubKitGitHubException
from githubkit.exception import RateLimitExceeded as GitHubKitRateLimitExceeded
from githubkit.exception import RequestFailed as GitHubKitRequestFailed
from githubkit.response import Response as GitHubKitResponse
from githubkit.retry import RetryServerError
from githubkit.versions.v2022_11_28.models import ContentFile as GitHubKitContentFile
from pydantic import BaseModel

from repo_structure_mcp.clients.errors.github import (
    RateLimitExceededError,
    RequestError,
    ResourceNotFoundError,
    ResourceTypeMismatchError,
)
from repo_structure_mcp.clients.models.github import (
    Branch,
    Commit,
    ContentEntry,
    Contributor,
    RateLimit,
    Repository,
    RepositoryFileWithContent,
    RepositoryOverview,
)

GITHUB_API_URL = "https://api.github.com"

NOT_FOUND_ERROR = 404
FORBIDDEN_ERROR = 403
TOO_MANY_REQUESTS_ERROR = 429

GITHUBKIT_RESPONSE_TYPE = BaseModel | Sequence[BaseModel]

DEFAULT_COMMITS_LIMIT = 30
DEFAULT_BRANCHES_LIMIT = 100
DEFAULT_CONTRIBUTORS_LIMIT = 100


def extract_response[T: GITHUBKIT_RESPONSE_TYPE](response: GitHubKitResponse[T], /) -> T:
    """Extract the response from a response."""

    return response.parsed_data


def quote_content_path(path: str) -> str:
    """Percent-encode a repository path for use in a contents URL, leaving the separators intact."""

    return quote(path.strip("/"), safe="/")


def ref_argument(ref: str | None) -> dict[str, str]:
    """The ref argument of a contents request, omitted when no ref is given."""

    return {"ref": ref} if ref else {}


def get_github_token() -> str | None:
    for env_var in ("GITHUB_TOKEN", "GITHUB_PERSONAL_ACCESS_TOKEN"):
        if token := os.getenv(env_var):
            return token
    return None


def get_githubkit_client(token: str | None = None) -> GitHubKit[Any]:
    # Retry server errors up to 3 times, rate limits are surfaced to the caller
    retry_server_error = RetryServerError()

    if token is None:
        return GitHubKit(auto_retry=retry_server_error)

    return GitHubKit[TokenAuthStrategy](auth=TokenAuthStrategy(token=token), auto_retry=retry_server_error)


class RepositoryClient:
    """Reads repository metadata and file contents from the GitHub REST API."""

    githubkit_client: GitHubKit[Any]
    logger: Logger

    log_requests: bool
    log_responses: bool
    log_on_error: bool

    rate_limit: RateLimit | None

    def __init__(
        self,
        githubkit_client: GitHubKit[Any] | None = None,
        logger: Logger | None = None,
        log_requests: bool = True,
        log_responses: bool = False,
        log_on_error: bool = True,
    ):
        self.logger = logger or getLogger(__name__)
        self.log_requests = log_requests
        self.log_responses = log_responses
        self.log_on_error = log_on_error
        self.rate_limit = None

        if githubkit_client is None:
            token = get_github_token()
            if token is None:
                self.logger.warning("GITHUB_TOKEN or GITHUB_PERSONAL_ACCESS_TOKEN is not set, requests will be unauthenticated.")
            githubkit_client = get_githubkit_client(token=token)

        self.githubkit_client = githubkit_client

    def _get_loggers(
        self, log_request: bool | None = None, log_response: bool | None = None, log_on_error: bool | None = None
    ) -> tuple[Callable[[str], Any], Callable[[str], Any], Callable[[BaseException | str], Any]]:
        request_logger = self.logger.info if log_request or self.log_requests else self.logger.debug
        response_logger = self.logger.info if log_response or self.log_responses else self.logger.debug
        error_logger = self.logger.exception if log_on_error or self.log_on_error else self.logger.debug
        return request_logger, response_logger, error_logger

    def _track_rate_limit(self, response: GitHubKitResponse[Any]) -> None:
        if rate_limit := RateLimit.from_headers(response.headers):
            self.rate_limit = rate_limit

    @overload
    async def _perform_rest_request[T: GITHUBKIT_RESPONSE_TYPE](
        self,
        action: str,
        log_request: bool | None = None,
        log_response: bool | None = None,
        log_on_error: bool | None = None,
        error_on_not_found: Literal[False] = False,
        *,
        method: Callable[..., Awaitable[GitHubKitResponse[T]]],
        **request_args: Any,  # pyright: ignore[reportAny]
    ) -> T | None: ...

    @overload
    async def _perform_rest_request[T: GITHUBKIT_RESPONSE_TYPE](
        self,
        action: str,
        log_request: bool | None = None,
        log_response: bool | None = None,
        log_on_error: bool | None = None,
        error_on_not_found: Literal[True] = True,
        *,
        method: Callable[..., Awaitable[GitHubKitResponse[T]]],
        **request_args: Any,  # pyright: ignore[reportAny]
    ) -> T: ...

    async def _perform_rest_request[T: GITHUBKIT_RESPONSE_TYPE](
        self,
        action: str,
        log_request: bool | None = None,
        log_response: bool | None = None,
        log_on_error: bool | None = None,
        error_on_not_found: bool | None = None,
        *,
        method: Callable[..., Awaitable[GitHubKitResponse[T]]],
        **request_args: Any,  # pyright: ignore[reportAny]
    ) -> T | None:
        """Perform a request and extract the response.

        Args:
            action: The action being performed.
            log_request: Whether to log the request.
            log_response: Whether to log the response.
            log_on_error: Whether to log on error.
            error_on_not_found: Whether to raise an error if the resource is not found.
            method: The githubkit REST method to call.

        Raises:
            ResourceNotFoundError: If the resource is not found and error_on_not_found is True.
            RateLimitExceededError: If GitHub rejected the request because the rate limit is exhausted.
            RequestError: If the request fails.
        """

        request_logger, response_logger, error_logger = self._get_loggers(
            log_request=log_request, log_response=log_response, log_on_error=log_on_error
        )

        request_logger(f"Performing {action} using {method.__name__} with kwargs {request_args}")

        try:
            response: GitHubKitResponse[T] = await method(**request_args)
        except GitHubKitRequestFailed as e:
            self._track_rate_limit(e.response)

            if e.response.status_code == NOT_FOUND_ERROR:
                if error_on_not_found:
                    raise ResourceNotFoundError(action=action, resource=e.request.url.path) from e

                return None

            if isinstance(e, GitHubKitRateLimitExceeded) or (
                e.response.status_code in (FORBIDDEN_ERROR, TOO_MANY_REQUESTS_ERROR) and self.rate_limit and self.rate_limit.exhausted
            ):
                reset_at = self.rate_limit.reset_at.isoformat() if self.rate_limit and self.rate_limit.reset_at else None

                error_logger(f"Rate limit exceeded performing {action} using {method.__name__}, resets at {reset_at}")

                raise RateLimitExceededError(action=action, reset_at=reset_at) from e

            error_logger(f"RequestFailed error performing {action} using {method.__name__} with kwargs {request_args}: {e}")

            raise RequestError(action=action, message=str(e)) from e
        except GitHubKitGitHubException as e:
            error_logger(f"Error performing {action} using {method.__name__} with kwargs {request_args}: {e}")

            raise RequestError(action=action, message=str(e)) from e

        self._track_rate_limit(response)

        extracted_response = extract_response(response)

        response_logger(f"Extracted response for {action} using {method.__name__} with kwargs {request_args}: {extracted_response}")

        return extracted_response

    @overload
    async def get_repository(self, owner: str, repo: str, error_on_not_found: Literal[True] = True) -> Repository: ...

    @overload
    async def get_repository(self, owner: str, repo: str, error_on_not_found: Literal[False] = False) -> Repository | None: ...

    async def get_repository(self, owner: str, repo: str, error_on_not_found: bool = False) -> Repository | None:
        """Get a repository."""

        if response := await self._perform_rest_request(
            action="Get repository",
            error_on_not_found=error_on_not_found,
            method=self.githubkit_client.rest.repos.async_get,
            owner=owner,
            repo=repo,
        ):
            return Repository.from_full_repository(full_repository=response)

        return None

    async def get_commits(self, owner: str, repo: str, limit: int = DEFAULT_COMMITS_LIMIT) -> list[Commit]:
        """Get the most recent commits on the default branch of a repository."""

        response = await self._perform_rest_request(
            action="Get commits",
            method=self.githubkit_client.rest.repos.async_list_commits,
            owner=owner,
            repo=repo,
            per_page=limit,
        )

        return [Commit.from_commit(commit=commit) for commit in response or []]

    async def get_branches(self, owner: str, repo: str, limit: int = DEFAULT_BRANCHES_LIMIT) -> list[Branch]:
        """Get the branches of a repository."""

        response = await self._perform_rest_request(
            action="Get branches",
            method=self.githubkit_client.rest.repos.async_list_branches,
            owner=owner,
            repo=repo,
            per_page=limit,
        )

        return [Branch.from_short_branch(short_branch=short_branch) for short_branch in response or []]

    async def get_contributors(self, owner: str, repo: str, limit: int = DEFAULT_CONTRIBUTORS_LIMIT) -> list[Contributor]:
        """Get the contributors of a repository."""

        response = await self._perform_rest_request(
            action="Get contributors",
            method=self.githubkit_client.rest.repos.async_list_contributors,
            owner=owner,
            repo=repo,
            per_page=limit,
        )

        return [Contributor.from_contributor(contributor=contributor) for contributor in response or []]

    async def get_directory_contents(self, owner: str, repo: str, path: str = "", ref: str | None = None) -> list[ContentEntry]:
        """List the entries of a directory in a repository.

        Args:
            owner: The owner of the repository.
            repo: The name of the repository.
            path: The path of the directory. The empty string is the root of the repository.
            ref: The ref of the branch or tag to list. If not provided, the default branch will be used.
        """

        response = await self._perform_rest_request(
            action="Get directory contents",
            error_on_not_found=True,
            method=self.githubkit_client.rest.repos.async_get_content,
            owner=owner,
            repo=repo,
            path=quote_content_path(path),
            **ref_argument(ref),
        )

        if not isinstance(response, list):
            raise ResourceTypeMismatchError(action="Get directory contents", resource=path, expected_type="dir", actual_type=response.type)

        return [ContentEntry.from_content_directory_item(item=item) for item in response]

    @overload
    async def get_file(
        self, owner: str, repo: str, path: str, ref: str | None = None, error_on_not_found: Literal[True] = True
    ) -> RepositoryFileWithContent: ...

    @overload
    async def get_file(
        self, owner: str, repo: str, path: str, ref: str | None = None, error_on_not_found: Literal[False] = False
    ) -> RepositoryFileWithContent | None: ...

    async def get_file(
        self,
        owner: str,
        repo: str,
        path: str,
        ref: str | None = None,
        error_on_not_found: bool = False,
    ) -> RepositoryFileWithContent | None:
        """Get a file from a repository.

        Args:
            owner: The owner of the repository.
            repo: The name of the repository.
            path: The path of the file.
            ref: The ref of the branch or tag to get the file from. If not provided, the default branch will be used.
            error_on_not_found: Whether to raise an error if the file is not found.
        """

        file = await self._perform_rest_request(
            action="Get file",
            log_request=False,
            error_on_not_found=error_on_not_found,
            method=self.githubkit_client.rest.repos.async_get_content,
            owner=owner,
            repo=repo,
            path=quote_content_path(path),
            **ref_argument(ref),
        )

        if file is None:
            return None

        if not isinstance(file, GitHubKitContentFile):
            actual_type = "dir" if isinstance(file, list) else file.type
            raise ResourceTypeMismatchError(action="Get file", resource=path, expected_type="file", actual_type=actual_type)

        return RepositoryFileWithContent.from_content_file(content_file=file)

    async def get_repository_overview(self, owner: str, repo: str, commit_limit: int = DEFAULT_COMMITS_LIMIT) -> RepositoryOverview:
        """Get a repository along with its recent commits, branches and contributors."""

        repository, commits, branches, contributors = await asyncio.gather(
            self.get_repository(owner=owner, repo=repo, error_on_not_found=True),
            self.get_commits(owner=owner, repo=repo, limit=commit_limit),
            self.get_branches(owner=owner, repo=repo),
            self.get_contributors(owner=owner, repo=repo),
        )

        return RepositoryOverview(repository=repository, commits=commits, branches=branches, contributors=contributors)
