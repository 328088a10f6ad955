"""Entry point for FreshBooks MCP Server."""

from __future__ import annotations

import logging
import os
import sys

from dotenv import load_dotenv

REQUIRED_ENV_VARS = [
    "FRESHBOOKS_CLIENT_ID",
    "FRESHBOOKS_CLIENT_SECRET",
    "FRESHBOOKS_REDIRECT_URI",
]


def configure_logging() -> None:
    """Configure logging to stderr (STDIO-safe).

    Sends all logs to stderr so they don't interfere with MCP's
    STDIO transport which uses stdout for JSON-RPC messages.

    Respects LOG_LEVEL env var (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """
    log_level_str = os.getenv("LOG_LEVEL", "INFO").upper()
    log_level = logging.getLevelNamesMapping().get(log_level_str, logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )
    # Request logs include full URLs
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def validate_environment() -> bool:
    """Validate required environment variables.

    Returns:
        True if all required variables are present, False otherwise.
    """
    logger = logging.getLogger(__name__)

    missing = [var for var in REQUIRED_ENV_VARS if not os.getenv(var)]
    if missing:
        logger.error("Missing required environment variables: %s", ", ".join(missing))
        return False

    if not os.getenv("FRESHBOOKS_ACCESS_TOKEN") and not os.getenv(
        "FRESHBOOKS_TOKEN_PASSWORD"
    ):
        logger.warning(
            "FRESHBOOKS_TOKEN_PASSWORD is not set; the token file key is derived "
            "from the machine identity only"
        )

    return True


def main() -> None:
    """Main entry point.

    Loads environment, validates configuration, builds the OAuth client
    once and starts the MCP server with the selected transport.
    """
    load_dotenv()

    configure_logging()
    logger = logging.getLogger(__name__)

    if not validate_environment():
        logger.error("Environment validation failed. Exiting.")
        sys.exit(1)

    from freshbooks_mcp.auth import (
        FreshBooksOAuth,
        OAuthStateStore,
        create_token_store,
        initialize_oauth_config,
    )
    from freshbooks_mcp.auth.config import get_state_ttl_seconds
    from freshbooks_mcp.server import create_server
    from freshbooks_mcp.utils.errors import ValidationError

    try:
        config = initialize_oauth_config()
    except ValidationError as e:
        logger.error("Invalid OAuth configuration: %s", e)
        sys.exit(1)

    oauth = FreshBooksOAuth(config, create_token_store())
    states = OAuthStateStore(ttl_seconds=get_state_ttl_seconds())
    mcp = create_server(oauth, states)

    transport = os.getenv("TRANSPORT", "stdio").lower()

    match transport:
        case "sse" | "http":
            host = os.getenv("HOST", "0.0.0.0")
            port = int(os.getenv("PORT", "3000"))
            logger.info(
                "Starting FreshBooks MCP Server with SSE transport on %s:%d",
                host,
                port,
            )
            try:
                import uvicorn

                uvicorn.run(mcp.sse_app(), host=host, port=port, log_level="info")
            except ImportError:
                logger.error(
                    "uvicorn required for SSE transport: pip install freshbooks-mcp[sse]"
                )
                sys.exit(1)
        case "streamable-http":
            logger.info("Starting FreshBooks MCP Server with streamable-http transport")
            mcp.run(transport="streamable-http")
        case _:
            logger.info("Starting FreshBooks MCP Server with STDIO transport")
            mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
