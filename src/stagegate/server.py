"""MCP server exposing the workflow engine as a single ``workflow`` tool.

Usage:
    stagegate-mcp            # stdio transport
"""

import logging
from typing import Optional

from mcp.server.fastmcp import FastMCP

from stagegate.config import EngineConfig, get_config
from stagegate.core.engine import WorkflowEngine
from stagegate.tools.unified import register_unified_workflow_tool

logger = logging.getLogger(__name__)


def create_server(config: Optional[EngineConfig] = None) -> FastMCP:
    """Build a FastMCP server bound to one engine instance."""
    config = config or get_config()
    engine = WorkflowEngine(config)
    mcp = FastMCP("stagegate")
    register_unified_workflow_tool(mcp, engine)
    for warning in config.startup_warnings:
        logger.warning("Startup: %s", warning)
    logger.info("stagegate MCP server ready (state dir %s)", config.state_dir)
    return mcp


def main() -> None:
    config = get_config()
    config.setup_logging()
    create_server(config).run()


if __name__ == "__main__":
    main()
