from typing import Annotated

from fastmcp.tools.tool_transform import ArgTransform
from pydantic import Field

OWNER_DESCRIPTION = "The owner of the repository."
OWNER = Annotated[str, Field(description=OWNER_DESCRIPTION)]
OWNER_ARG_TRANSFORM = ArgTransform(description=OWNER_DESCRIPTION)

REPO_DESCRIPTION = "The name of the repository."
REPO = Annotated[str, Field(description=REPO_DESCRIPTION)]
REPO_ARG_TRANSFORM = ArgTransform(description=REPO_DESCRIPTION)

COMMIT_LIMIT_DESCRIPTION = "The maximum number of recent commits to include."
COMMIT_LIMIT_ARG_TRANSFORM = ArgTransform(description=COMMIT_LIMIT_DESCRIPTION)

REPOSITORY_URL = Annotated[
    str, Field(description="A GitHub repository URL such as `https://github.com/owner/repo`, `github.com/owner/repo` or `owner/repo`.")
]

FILE_PATH = Annotated[str, Field(description="The repository-relative path of a file, for example `src/App.tsx`.")]
END_FILE_PATH = Annotated[
    str | None,
    Field(description="The file to trace to. If not provided, the first chain of imports starting at the start file is followed."),
]

EXPANDED_PATHS = Annotated[
    list[str] | None,
    Field(description="Directories to expand, for example `src/components`. Every directory on the way to each path is expanded too."),
]
MAX_PRIMARY_CONNECTIONS = Annotated[int, Field(description="The maximum number of primary connections to return.")]
MAX_SECONDARY_CONNECTIONS = Annotated[int, Field(description="The maximum number of secondary connections to return.")]

CHAT_MESSAGE = Annotated[str, Field(description="The question or request about the repository.")]
