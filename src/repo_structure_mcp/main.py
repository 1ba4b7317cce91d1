import os
from logging import Logger
from typing import Literal

import click
from fastmcp import FastMCP
from fastmcp.server.middleware.logging import LoggingMiddleware
from fastmcp.utilities.logging import get_logger

from repo_structure_mcp.clients.gemini import get_gemini_api_key
from repo_structure_mcp.clients.github import RepositoryClient
from repo_structure_mcp.servers.chat import ChatServer
from repo_structure_mcp.servers.structure import StructureServer

logger: Logger = get_logger(name=__name__)

enable_chat: bool = not bool(os.getenv("DISABLE_CHAT")) and get_gemini_api_key() is not None

mcp: FastMCP[None] = FastMCP[None](name="Repository Structure MCP")

mcp.add_middleware(middleware=LoggingMiddleware(include_payloads=True, logger=logger))

structure_server: StructureServer = StructureServer(client=RepositoryClient(logger=logger), logger=logger)
_ = structure_server.register_tools(fastmcp=mcp)

if enable_chat:
    chat_server: ChatServer = ChatServer(structure_server=structure_server, logger=logger)
    _ = chat_server.register_tools(fastmcp=mcp)
else:
    logger.info("Chat is disabled, set GOOGLE_API_KEY or GEMINI_API_KEY and unset DISABLE_CHAT to enable it.")


@click.command()
@click.option(
    "--mcp-transport",
    type=click.Choice(["stdio", "streamable-http"]),
    default="stdio",
    help="The transport to run the MCP server on",
)
def run_mcp(mcp_transport: Literal["stdio", "streamable-http"]):
    mcp.run(transport=mcp_transport)


if __name__ == "__main__":
    run_mcp()
