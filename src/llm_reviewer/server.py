"""MCP stdio server exposing the review agent as a `review` tool."""

import structlog
from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError

from .config import settings
from .exceptions import PersonaNotFoundError, ReviewError
from .logging_config import setup_logging
from .services import ReviewService

logger = structlog.get_logger(__name__)

mcp = FastMCP("llm-reviewer")


@mcp.tool()
async def review(project_path: str, query: str, persona: str = settings.default_persona) -> str:
    """Run an LLM code review of a Python project.

    The agent gathers evidence from the language server, the AST, the files
    and the git diff before answering.

    Args:
        project_path: Path of the project to review
        query: Review instruction or question (e.g. "Review the architecture of this project")
        persona: Reviewer persona name (architect, python-expert)
    """
    service = ReviewService()
    try:
        return await service.review(project_path, query, persona)
    except PersonaNotFoundError as e:
        raise ToolError(f"failed to load persona {persona!r}: {e}") from e
    except ReviewError as e:
        logger.error("Review failed", project=project_path, error=str(e))
        raise ToolError(f"agent error: {e}") from e


def run() -> None:
    """Serve the MCP server over stdio."""
    setup_logging()
    logger.info("llm-reviewer MCP server starting")
    mcp.run()
