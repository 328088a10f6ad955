"""FreshBooks auth status tool - Check authentication state.

The check is a pure read: it never refreshes tokens or calls FreshBooks, so
it is always cheap and safe to poll.
"""

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


async def auth_status(oauth: FreshBooksOAuth) -> dict[str, Any]:
    """Report whether the server holds a usable FreshBooks session.

    Returns:
        Success response with:
        - authenticated: True/False
        - expires_in: Seconds until the access token expires
        - account_id / business_id: Selected identity, if any
        - reason: no_token / token_expired when not authenticated
        - can_refresh: Whether the session can be restored without login
    """
    try:
        status = await execute_tool("auth_status", {}, oauth.get_status)
    except FreshBooksMCPError as e:
        logger.error("Error checking auth status: %s", e.message)
        return build_exception_response(e)

    if status.authenticated:
        message = f"Authenticated. Access token expires in {status.expires_in} seconds."
        if status.account_id is None:
            message += " No account selected; use auth_set_account."
    elif status.can_refresh:
        message = "Access token expired; it will be refreshed on the next API call."
    else:
        message = "Not authenticated. Use auth_get_url to sign in."

    return build_success_response(data=status.model_dump(), message=message)
