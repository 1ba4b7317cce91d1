from repo_structure_mcp.clients.errors.github import ClientError


class ChatCompletionError(ClientError):
    """The language model did not produce a usable completion."""

    def __init__(self, model: str, finish_reason: str | None = None, message: str | None = None):
        super().__init__(
            message="The chat completion failed.",
            extra_info={"model": model, "finish_reason": finish_reason, "message": message},
        )
