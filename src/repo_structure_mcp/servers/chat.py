from logging import Logger
from typing import Annotated, Any

from fastmcp.server import FastMCP
from fastmcp.tools import Tool
from fastmcp.utilities.logging import get_logger
from pydantic import Field

from repo_structure_mcp.clients.gemini import ChatMessage, ChatResponse, GeminiChatClient
from repo_structure_mcp.context.repository import RepositoryContext
from repo_structure_mcp.servers.prompts.chat import build_chat_system_prompt
from repo_structure_mcp.servers.shared.annotations import CHAT_MESSAGE, OWNER, REPO
from repo_structure_mcp.servers.shared.utility import estimate_tokens
from repo_structure_mcp.servers.structure import StructureServer

CHAT_HISTORY = Annotated[
    list[ChatMessage] | None,
    Field(description="The previous messages of the conversation, oldest first. Leave empty to start a new conversation."),
]


class ChatServer:
    structure_server: StructureServer
    chat_client: GeminiChatClient
    logger: Logger

    def __init__(self, structure_server: StructureServer, chat_client: GeminiChatClient | None = None, logger: Logger | None = None):
        self.logger = logger or get_logger(name=__name__)
        self.structure_server = structure_server
        self.chat_client = chat_client or GeminiChatClient(logger=self.logger)

    def register_tools(self, fastmcp: FastMCP[Any]) -> FastMCP[Any]:
        _ = fastmcp.add_tool(tool=Tool.from_function(fn=self.ask_about_repository))

        return fastmcp

    async def ask_about_repository(self, owner: OWNER, repo: REPO, message: CHAT_MESSAGE, history: CHAT_HISTORY = None) -> ChatResponse:
        """Ask a question about a GitHub repository. The answer is grounded in the metadata, recent activity and analyzed
        structure of the repository."""

        context: RepositoryContext = await self.structure_server.get_context(owner=owner, repo=repo)

        system_prompt: str = build_chat_system_prompt(context)

        self.logger.info(f"Answering a question about {owner}/{repo} with a context of about {estimate_tokens(system_prompt)} tokens")

        return await self.chat_client.chat(system_prompt=system_prompt, message=message, history=history or [])
