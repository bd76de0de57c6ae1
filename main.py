"""Launch the tasksync MCP server over stdio."""

from __future__ import annotations

import os

from tasksync.server import mcp
from tasksync.tasksync_logging import setup_logging


if __name__ == "__main__":
    setup_logging(os.getenv("TASKSYNC_LOG_LEVEL", "INFO"))
    mcp.run(transport="stdio")
