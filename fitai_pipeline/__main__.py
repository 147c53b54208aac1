# fitai_pipeline/__main__.py
"""
Entry point for the fitai-pipeline MCP server.

CRITICAL: Server imports configure_logging() first to prevent stdout pollution.

FastMCP doesn't have built-in lifecycle hooks, so lifecycle startup and
shutdown happen here around the stdio server.
"""

import asyncio
import logging

# Import server (which configures logging before anything else)
from fitai_pipeline.server import get_lifecycle, initialize_lifecycle, mcp

logger = logging.getLogger(__name__)


async def main() -> None:
    """Initialize lifecycle (DB + sweep + signals), run the MCP server, shut down on exit."""
    await initialize_lifecycle()

    logger.info("Starting MCP server on stdio transport")
    try:
        await mcp.run_stdio_async()
    finally:
        # Client disconnected or server stopped; a signal may already have shut down
        await get_lifecycle().shutdown()


if __name__ == "__main__":
    asyncio.run(main())
