"""FreshBooks account selection tool."""

from __future__ import annotations

import logging
from typing import Any

from freshbooks_mcp.auth.oauth import FreshBooksOAuth
from freshbooks_mcp.schemas.tools import SetActiveAccountParams
from freshbooks_mcp.tools.base import (
    build_exception_response,
    build_success_response,
    execute_tool,
)
from freshbooks_mcp.utils.errors import FreshBooksMCPError

logger = logging.getLogger(__name__)


async def auth_set_account(
    oauth: FreshBooksOAuth, params: SetActiveAccountParams
) -> dict[str, Any]:
    """Select the FreshBooks account and business for subsequent calls.

    Returns:
        Success: {status, data: {account_id, business_id}, message}
        Error: {status, error, error_code, ...}
    """
    try:
        record = await execute_tool(
            "auth_set_account",
            params.model_dump(),
            lambda: oauth.set_active_account(params.account_id, params.business_id),
        )
    except FreshBooksMCPError as e:
        logger.warning("Could not set active account: %s", e.message)
        return build_exception_response(e)

    return build_success_response(
        data={"account_id": record.account_id, "business_id": record.business_id},
        message=f"Active account set to {record.account_id}.",
    )
