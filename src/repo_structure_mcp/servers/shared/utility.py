import base64
from collections.abc import Sequence

import yaml
from pydantic import BaseModel


def estimate_tokens(text: str) -> int:
    """Estimate the number of tokens for a given text."""
    return len(text) // 4


def decode_content(content: str) -> str:
    return base64.b64decode(content).decode("utf-8", errors="replace")


def dump_model_as_yaml(model: BaseModel | Sequence[BaseModel], /) -> str:
    if isinstance(model, BaseModel):
        return yaml.safe_dump(model.model_dump(mode="json", exclude_none=True), sort_keys=False, indent=1, width=400)

    return "\n".join([dump_model_as_yaml(item) for item in model])
