ExtraInfoType = dict[str, str | None]


class ClientError(Exception):
    """An error from the repository client."""

    def __init__(self, message: str, extra_info: ExtraInfoType | None = None):
        msg = message
        if extra_info:
            msg += " (" + ", ".join([f"{key}: {value}" for key, value in extra_info.items() if value is not None]) + ")"
        super().__init__(msg)


class RequestError(ClientError):
    """A request error from the repository client."""

    def __init__(self, action: str, message: str | None = None, extra_info: ExtraInfoType | None = None):
        if not extra_info:
            extra_info = {}
        super().__init__(message="A request error occured.", extra_info={"action": action, "message": message, **extra_info})


class ResourceNotFoundError(RequestError):
    """A not found error from the repository client."""

    def __init__(self, action: str, resource: str | None = None, extra_info: ExtraInfoType | None = None):
        if not extra_info:
            extra_info = {}
        super().__init__(
            action=action,
            message="The resource could not be found.",
            extra_info={"resource": resource, **extra_info},
        )


class ResourceTypeMismatchError(RequestError):
    """Raised when a path resolves to a different kind of object than the one requested."""

    def __init__(self, action: str, resource: str, expected_type: str, actual_type: str):
        super().__init__(action, f"{resource}: Expected {expected_type}, got {actual_type}")


class RateLimitExceededError(RequestError):
    """The GitHub API rate limit has been exhausted."""

    def __init__(self, action: str, reset_at: str | None = None):
        super().__init__(action=action, message="Rate limit exceeded.", extra_info={"reset_at": reset_at})
