"""FreshBooks logout tool - Revoke and clear stored credentials."""

from __future__ import annotations

import logging
from typing import Any

from freshbooks_mcp.auth.oauth import FreshBooksOAuth
from freshbooks_mcp.tools.base import (
    build_exception_response,
    build_success_response,
    execute_tool,
)
from freshbooks_mcp.utils.errors import FreshBooksMCPError

logger = logging.getLogger(__name__)


async def auth_revoke(oauth: FreshBooksOAuth) -> dict[str, Any]:
    """Sign out of FreshBooks.

    Revokes the access token with FreshBooks (best effort) and removes the
    stored credentials. Calling it while signed out is not an error.

    Returns:
        Success response with logout confirmation.
    """
    had_credentials = oauth.token_store.load() is not None

    try:
        await execute_tool("auth_revoke", {}, oauth.revoke_token)
    except FreshBooksMCPError as e:
        logger.warning("Logout failed: %s", e.message)
        return build_exception_response(e)

    if had_credentials:
        return build_success_response(
            data={"logged_out": True},
            message="Successfully logged out. You will need to re-authenticate.",
        )

    return build_success_response(
        data={"logged_out": False},
        message="No credentials were stored. Already logged out.",
    )
