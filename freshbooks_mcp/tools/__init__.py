"""FreshBooks MCP tools package.

This package contains the MCP tool implementations. Auth tools drive the
OAuth flow; resource tools obtain bearer tokens through
FreshBooksOAuth.get_valid_token().
"""

from freshbooks_mcp.tools.auth import (
    auth_exchange_code,
    auth_get_url,
    auth_revoke,
    auth_set_account,
    auth_status,
)
from freshbooks_mcp.tools.base import (
    build_error_response,
    build_exception_response,
    build_success_response,
    execute_tool,
)

__all__ = [
    # Base utilities
    "build_error_response",
    "build_exception_response",
    "build_success_response",
    "execute_tool",
    # Auth tools
    "auth_get_url",
    "auth_exchange_code",
    "auth_revoke",
    "auth_status",
    "auth_set_account",
]
