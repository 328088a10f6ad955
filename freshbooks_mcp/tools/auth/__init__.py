"""FreshBooks MCP authentication tools package.

This package contains MCP tool implementations for OAuth authentication:

- auth_get_url / auth_exchange_code: Two-step authorization code flow
- auth_revoke: Revoke and clear stored credentials
- auth_status: Check authentication state
- auth_set_account: Select the active FreshBooks account
"""

from freshbooks_mcp.tools.auth.account import auth_set_account
from freshbooks_mcp.tools.auth.login import auth_exchange_code, auth_get_url
from freshbooks_mcp.tools.auth.logout import auth_revoke
from freshbooks_mcp.tools.auth.status import auth_status

__all__ = [
    "auth_get_url",
    "auth_exchange_code",
    "auth_revoke",
    "auth_status",
    "auth_set_account",
]
