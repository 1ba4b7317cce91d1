import os
from collections.abc import Sequence
from logging import Logger, getLogger
from typing import Literal

from google.genai import Client as GoogleGenaiClient
from google.genai.types import (
    Candidate,
    Content,
    GenerateContentConfig,
    GenerateContentResponse,
    ModelContent,
    Part,
    UserContent,
)
from pydantic import BaseModel, Field

from repo_structure_mcp.clients.errors.gemini import ChatCompletionError

DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"

DEFAULT_TEMPERATURE = 0.7
DEFAULT_TOP_K = 40
DEFAULT_TOP_P = 0.95
DEFAULT_MAX_OUTPUT_TOKENS = 2048


def get_gemini_api_key() -> str | None:
    return os.getenv("GOOGLE_API_KEY") or os.getenv("GEMINI_API_KEY")


def get_gemini_model() -> str:
    return os.getenv("GOOGLE_MODEL") or DEFAULT_GEMINI_MODEL


class ChatMessage(BaseModel):
    """A previous turn of the conversation."""

    role: Literal["user", "assistant"] = Field(description="Who wrote the message.")
    content: str = Field(description="The text of the message.")


class TokenUsage(BaseModel):
    prompt_tokens: int | None = Field(default=None, description="The number of tokens in the prompt.")
    response_tokens: int | None = Field(default=None, description="The number of tokens in the response.")
    total_tokens: int | None = Field(default=None, description="The total number of tokens used.")


class ChatResponse(BaseModel):
    """The reply of the assistant."""

    response: str = Field(description="The text of the reply.")
    model: str = Field(description="The model that produced the reply.")
    usage: TokenUsage | None = Field(default=None, description="Token usage reported by the model.")


def chat_message_to_content(message: ChatMessage) -> Content:
    if message.role == "user":
        return UserContent(parts=[Part(text=message.content)])

    return ModelContent(parts=[Part(text=message.content)])


def get_candidate_from_response(response: GenerateContentResponse) -> Candidate | None:
    if response.candidates and response.candidates[0]:
        return response.candidates[0]

    return None


def get_usage_from_response(response: GenerateContentResponse) -> TokenUsage | None:
    if (usage_metadata := response.usage_metadata) is None:
        return None

    return TokenUsage(
        prompt_tokens=usage_metadata.prompt_token_count,
        response_tokens=usage_metadata.candidates_token_count,
        total_tokens=usage_metadata.total_token_count,
    )


class GeminiChatClient:
    """Answers questions with a Gemini model through google-genai."""

    def __init__(
        self,
        client: GoogleGenaiClient | None = None,
        model: str | None = None,
        logger: Logger | None = None,
        temperature: float = DEFAULT_TEMPERATURE,
        top_k: float = DEFAULT_TOP_K,
        top_p: float = DEFAULT_TOP_P,
        max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS,
    ):
        self.client: GoogleGenaiClient = client or GoogleGenaiClient(api_key=get_gemini_api_key())
        self.model: str = model or get_gemini_model()
        self.logger: Logger = logger or getLogger(__name__)
        self.temperature: float = temperature
        self.top_k: float = top_k
        self.top_p: float = top_p
        self.max_output_tokens: int = max_output_tokens

    async def chat(self, system_prompt: str, message: str, history: Sequence[ChatMessage] = ()) -> ChatResponse:
        """Send a message, preceded by the conversation history, and return the reply.

        Raises:
            ChatCompletionError: If the model returns no text.
        """

        contents: list[Content] = [chat_message_to_content(previous) for previous in history]
        contents.append(chat_message_to_content(ChatMessage(role="user", content=message)))

        self.logger.info(f"Sending chat message to {self.model} with {len(history)} previous messages")

        response: GenerateContentResponse = await self.client.aio.models.generate_content(
            model=self.model,
            contents=contents,  # pyright: ignore[reportArgumentType]
            config=GenerateContentConfig(
                system_instruction=system_prompt,
                temperature=self.temperature,
                top_k=self.top_k,
                top_p=self.top_p,
                max_output_tokens=self.max_output_tokens,
            ),
        )

        if not (text := response.text):
            candidate = get_candidate_from_response(response)
            finish_reason = str(candidate.finish_reason) if candidate and candidate.finish_reason else None

            self.logger.error(f"No content in response from {self.model}: {finish_reason}")

            raise ChatCompletionError(model=self.model, finish_reason=finish_reason)

        usage = get_usage_from_response(response)

        self.logger.debug(f"Received chat response from {self.model}: {usage}")

        return ChatResponse(response=text, model=self.model, usage=usage)
