"""Entry point for the governed GitHub MCP server."""

import os
import sys

from loguru import logger

from .config import Config, ConfigManager

SERVER_NAME = "GitHubTools"
LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> | <level>{message}</level>"
)


def configure_logging(level: str = Config.LOG_LEVEL, log_path: str = Config.LOG_PATH) -> None:
    """Route loguru to stderr (stdout carries the stdio protocol) and a rotating file."""
    logger.remove()
    logger.add(sys.stderr, format=LOG_FORMAT, level=level)
    if log_path:
        logger.add(
            log_path,
            rotation="10 MB",
            retention="7 days",
            compression="zip",
            level="DEBUG",
        )


def main():
    """
    Load config, build the server and run it.

    Transport is selected by GH_AUTONOMY_TRANSPORT ("stdio" by default, or
    "sse" bound to GH_AUTONOMY_HOST / GH_AUTONOMY_PORT).
    """
    from servers.github_tools import create_github_server

    configure_logging()

    try:
        Config.validate()
    except ValueError as e:
        logger.error(str(e))
        sys.exit(1)

    config = ConfigManager(worktree=os.getenv("GH_AUTONOMY_WORKTREE")).load()
    mcp = create_github_server(config)

    transport = os.getenv("GH_AUTONOMY_TRANSPORT", "stdio")
    logger.info(f"Starting {SERVER_NAME} ({transport}, policy mode={config.policy.mode.value})...")

    try:
        if transport == "sse":
            mcp.run(
                transport="sse",
                host=os.getenv("GH_AUTONOMY_HOST", "127.0.0.1"),
                port=int(os.getenv("GH_AUTONOMY_PORT", "8001")),
            )
        else:
            mcp.run()
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except Exception as e:
        logger.error(f"Server error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
