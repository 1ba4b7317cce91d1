ExtraInfoType = dict[str, str | None]


class AnalysisError(Exception):
    """An error raised while analyzing a repository."""

    def __init__(self, message: str, extra_info: ExtraInfoType | None = None):
        msg = message
        if extra_info:
            msg += " (" + ", ".join([f"{key}: {value}" for key, value in extra_info.items() if value is not None]) + ")"
        super().__init__(msg)


class RepositoryAnalysisError(AnalysisError):
    """The repository could not be walked."""

    def __init__(self, owner: str, repo: str, message: str | None = None):
        super().__init__(message="Failed to analyze repository.", extra_info={"repository": f"{owner}/{repo}", "message": message})
