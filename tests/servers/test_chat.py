from collections.abc import AsyncGenerator
from typing import Any

import pytest
from fastmcp import FastMCP
from fastmcp.client import Client
from fastmcp.client.transports import FastMCPTransport
from fastmcp.exceptions import ToolError
from google.genai.types import GenerateContentConfig

from repo_structure_mcp.clients.gemini import GeminiChatClient
from repo_structure_mcp.clients.github import RepositoryClient
from repo_structure_mcp.servers.chat import ChatServer
from repo_structure_mcp.servers.structure import StructureServer
from tests.conftest import StubGenaiClient, dump_structured_content, empty_response


@pytest.fixture
def chat_server(repository_client: RepositoryClient, genai_client: StubGenaiClient) -> ChatServer:
    return ChatServer(
        structure_server=StructureServer(client=repository_client),
        chat_client=GeminiChatClient(client=genai_client, model="gemini-test"),  # pyright: ignore[reportArgumentType]
    )


@pytest.fixture
async def chat_mcp_client(fastmcp: FastMCP[Any], chat_server: ChatServer) -> AsyncGenerator[Client[FastMCPTransport], Any]:
    async with Client[FastMCPTransport](transport=chat_server.register_tools(fastmcp=fastmcp)) as fastmcp_client:
        yield fastmcp_client


async def test_list_tools(chat_mcp_client: Client[FastMCPTransport]):
    tools = await chat_mcp_client.list_tools()

    assert [tool.name for tool in tools] == ["ask_about_repository"]


class TestAskAboutRepository:
    async def test_ask(self, chat_mcp_client: Client[FastMCPTransport], genai_client: StubGenaiClient):
        result = await chat_mcp_client.call_tool(
            "ask_about_repository", arguments={"owner": "octo", "repo": "demo", "message": "What renders the header?"}
        )

        assert dump_structured_content(result) == {
            "response": "src/App.tsx renders the Header component.",
            "model": "gemini-test",
            "usage": {"prompt_tokens": 120, "response_tokens": 30, "total_tokens": 150},
        }

        config: GenerateContentConfig = genai_client.models.calls[0]["config"]
        system_instruction = str(config.system_instruction)

        assert "# Repository Context for octo/demo" in system_instruction
        assert "- Name: octo/demo" in system_instruction
        assert "# Repository Structure" in system_instruction
        assert "src/main.tsx" in system_instruction

    async def test_ask_with_history(self, chat_mcp_client: Client[FastMCPTransport], genai_client: StubGenaiClient):
        _ = await chat_mcp_client.call_tool(
            "ask_about_repository",
            arguments={
                "owner": "octo",
                "repo": "demo",
                "message": "And what does the header render?",
                "history": [
                    {"role": "user", "content": "What renders the header?"},
                    {"role": "assistant", "content": "src/App.tsx renders the Header component."},
                ],
            },
        )

        contents = genai_client.models.calls[0]["contents"]

        assert [content.role for content in contents] == ["user", "model", "user"]

    async def test_empty_completion(self, chat_mcp_client: Client[FastMCPTransport], genai_client: StubGenaiClient):
        genai_client.models.response = empty_response()

        with pytest.raises(ToolError, match="MAX_TOKENS"):
            _ = await chat_mcp_client.call_tool(
                "ask_about_repository", arguments={"owner": "octo", "repo": "demo", "message": "What renders the header?"}
            )
