"""FreshBooks login tools - Two-step authorization code flow.

Flow:
1. auth_get_url()
   → Returns the FreshBooks authorization URL and a one-time state
   → User opens the URL, approves access, and is redirected with ?code=...

2. auth_exchange_code(code, state)
   → State is checked and consumed
   → Code is exchanged for tokens, which are stored encrypted
   → Returns expiry and account metadata (never the tokens)
"""

from __future__ import annotations

import logging
from typing import Any

from freshbooks_mcp.auth.oauth import FreshBooksOAuth
from freshbooks_mcp.auth.state import OAuthStateStore
from freshbooks_mcp.schemas.tools import ExchangeCodeParams
from freshbooks_mcp.tools.base import (
    build_error_response,
    build_exception_response,
    build_success_response,
    execute_tool,
)
from freshbooks_mcp.utils.errors import FreshBooksMCPError

logger = logging.getLogger(__name__)


async def auth_get_url(oauth: FreshBooksOAuth, states: OAuthStateStore) -> dict[str, Any]:
    """Start the FreshBooks authorization flow.

    Args:
        oauth: The process OAuth client.
        states: Store that issues the CSRF state.

    Returns:
        {status, data: {authorization_url, state, state_expires_at}, message}
    """
    issued = states.create()
    url = oauth.generate_authorization_url(state=issued.state)

    return build_success_response(
        data={
            "authorization_url": url,
            "state": issued.state,
            "state_expires_at": issued.expires_at.isoformat(),
        },
        message=(
            "1. Open the authorization URL in a browser. "
            "2. Sign in to FreshBooks and approve access. "
            "3. Copy the 'code' (and 'state') parameters from the redirect URL. "
            "4. Call auth_exchange_code with the code and state."
        ),
    )


async def auth_exchange_code(
    oauth: FreshBooksOAuth,
    states: OAuthStateStore,
    params: ExchangeCodeParams,
) -> dict[str, Any]:
    """Finish the authorization flow by exchanging the code for tokens.

    Args:
        oauth: The process OAuth client.
        states: Store holding the issued CSRF states.
        params: Code and optional state from the redirect.

    Returns:
        Success: {status, data: {expires_at, account_id, ...}, message}
        Error: {status, error, error_code, ...}
    """
    if params.state is not None and not states.consume(params.state):
        return build_error_response(
            error="Unknown, expired or already used authorization state",
            error_code="invalid_state",
            details={"hint": "Call auth_get_url to start the sign-in again."},
        )

    try:
        record = await execute_tool(
            "auth_exchange_code",
            params.model_dump(),
            lambda: oauth.exchange_code(params.code),
        )
    except FreshBooksMCPError as e:
        logger.error("Authorization code exchange failed: %s", e.message)
        return build_exception_response(e)

    return build_success_response(
        data=record.safe_summary(),
        message=(
            "Successfully authenticated with FreshBooks. "
            "Use auth_set_account to select the account to work with."
        ),
    )
