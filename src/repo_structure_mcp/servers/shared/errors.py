ExtraInfoType = dict[str, str | None]


class ServerError(Exception):
    """An error from the repository structure server."""

    def __init__(self, message: str, extra_info: ExtraInfoType | None = None):
        msg = message
        if extra_info:
            msg += " (" + ", ".join([f"{key}: {value}" for key, value in extra_info.items() if value is not None]) + ")"
        super().__init__(msg)


class InvalidRepositoryUrlError(ServerError):
    """The text could not be parsed as a GitHub repository."""

    def __init__(self, url: str):
        super().__init__(message="Could not parse a GitHub repository from the provided URL.", extra_info={"url": url})


class FileNotAnalyzedError(ServerError):
    """The file is not part of the analyzed structure of the repository."""

    def __init__(self, owner: str, repo: str, path: str):
        super().__init__(
            message="The file was not found in the analyzed structure of the repository.",
            extra_info={"repository": f"{owner}/{repo}", "path": path},
        )
