"""FastMCP server for FreshBooks MCP.

This module builds the FastMCP server with the authentication tools
registered:

- auth_status: Report the current session state (pure read)
- auth_get_url: Start the authorization code flow
- auth_exchange_code: Finish the flow and store tokens
- auth_set_account: Select the active FreshBooks account
- auth_revoke: Sign out and clear stored credentials

The OAuth client and state store are created once by the entry point and
passed in; the server holds no module-level credential state. A lifespan
context manager drops expired authorization states at startup.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Any

from mcp.server.fastmcp import FastMCP
from mcp.types import ToolAnnotations

from freshbooks_mcp.auth.oauth import FreshBooksOAuth
from freshbooks_mcp.auth.state import OAuthStateStore
from freshbooks_mcp.schemas.tools import ExchangeCodeParams, SetActiveAccountParams
from freshbooks_mcp.tools import (
    auth_exchange_code,
    auth_get_url,
    auth_revoke,
    auth_set_account,
    auth_status,
)

logger = logging.getLogger(__name__)

SERVER_NAME = "freshbooks-mcp-server"


# =============================================================================
# Cleanup Resources Helper
# =============================================================================


async def cleanup_resources(states: OAuthStateStore) -> None:
    """Drop expired authorization states.

    Called during server startup via the lifespan context manager. It can
    also be called directly for testing or manual cleanup.
    """
    try:
        expired_count = states.cleanup_expired()
        if expired_count > 0:
            logger.info("Cleaned up %d expired authorization states", expired_count)
    except Exception as e:
        logger.warning("Error cleaning up expired authorization states: %s", e)


# =============================================================================
# Lifespan Context Manager
# =============================================================================


def make_lifespan(
    states: OAuthStateStore,
) -> Callable[[FastMCP], AbstractAsyncContextManager[dict[str, Any]]]:
    """Build the lifespan context manager bound to a state store."""

    @asynccontextmanager
    async def server_lifespan(server: FastMCP) -> AsyncIterator[dict[str, Any]]:
        logger.info("FreshBooks MCP server starting up...")
        await cleanup_resources(states)
        logger.info("FreshBooks MCP server ready")

        yield {}

        logger.info("FreshBooks MCP server shutting down...")

    return server_lifespan


# =============================================================================
# Auth Tool Wrappers
# =============================================================================


def _register_auth_tools(
    mcp: FastMCP, oauth: FreshBooksOAuth, states: OAuthStateStore
) -> None:
    """Register all authentication tools with the FastMCP server.

    Args:
        mcp: The FastMCP server instance.
        oauth: The process OAuth client.
        states: Store for authorization CSRF states.
    """

    @mcp.tool(
        name="auth_status",
        annotations=ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
        ),
    )
    async def auth_status_tool() -> dict[str, Any]:
        """Check whether the server is authenticated with FreshBooks.

        Never refreshes tokens or contacts FreshBooks.

        Returns:
            Success response with:
            - authenticated: True/False
            - expires_in: Seconds until the access token expires
            - account_id / business_id: Selected identity, if any
            - reason: "no_token" or "token_expired" when not authenticated
            - can_refresh: True if the session can be renewed without login
        """
        return await auth_status(oauth)

    @mcp.tool(
        name="auth_get_url",
        annotations=ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=False,
        ),
    )
    async def auth_get_url_tool() -> dict[str, Any]:
        """Get the FreshBooks authorization URL to sign in.

        Open the URL in a browser, approve access, then pass the 'code' and
        'state' query parameters from the redirect to auth_exchange_code.

        Returns:
            Success: {status, data: {authorization_url, state, state_expires_at}, message}
        """
        return await auth_get_url(oauth, states)

    @mcp.tool(
        name="auth_exchange_code",
        annotations=ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=False,
            openWorldHint=True,
        ),
    )
    async def auth_exchange_code_tool(
        code: str,
        state: str | None = None,
    ) -> dict[str, Any]:
        """Exchange the authorization code from the redirect for tokens.

        Tokens are stored encrypted and are never returned.

        Args:
            code: The 'code' query parameter from the redirect URL.
            state: The 'state' query parameter from the redirect URL.

        Returns:
            Success: {status, data: {expires_at, account_id, business_id, ...}, message}
            Error: {status, error, error_code, reauthenticate, retryable}
        """
        params = ExchangeCodeParams(code=code, state=state)
        return await auth_exchange_code(oauth, states, params)

    @mcp.tool(
        name="auth_set_account",
        annotations=ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=True,
        ),
    )
    async def auth_set_account_tool(
        account_id: str,
        business_id: int | None = None,
    ) -> dict[str, Any]:
        """Select the FreshBooks account (and business) to work with.

        Args:
            account_id: FreshBooks account ID.
            business_id: Optional FreshBooks business ID.

        Returns:
            Success: {status, data: {account_id, business_id}, message}
            Error: {status, error, error_code}
        """
        params = SetActiveAccountParams(account_id=account_id, business_id=business_id)
        return await auth_set_account(oauth, params)

    @mcp.tool(
        name="auth_revoke",
        annotations=ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=True,
            idempotentHint=True,
            openWorldHint=True,
        ),
    )
    async def auth_revoke_tool() -> dict[str, Any]:
        """Sign out of FreshBooks.

        Revokes the token with FreshBooks and removes stored credentials.
        Use auth_get_url to sign in again.

        Returns:
            Success response with logout confirmation.
        """
        return await auth_revoke(oauth)


# =============================================================================
# Server Factory
# =============================================================================


def create_server(
    oauth: FreshBooksOAuth,
    states: OAuthStateStore | None = None,
) -> FastMCP:
    """Create and configure the FastMCP server instance.

    Args:
        oauth: The process OAuth client.
        states: Authorization state store; a default one is created if omitted.

    Returns:
        Configured FastMCP server instance.
    """
    if states is None:
        states = OAuthStateStore()

    server = FastMCP(
        name=SERVER_NAME,
        lifespan=make_lifespan(states),
    )

    _register_auth_tools(server, oauth, states)

    logger.info(
        "FreshBooks MCP server created (token store: %s)",
        type(oauth.token_store).__name__,
    )
    return server
