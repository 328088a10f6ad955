"""Authentication module for FreshBooks MCP server.

This module provides OAuth 2.0 authentication for the FreshBooks API:

- Authorization code flow (URL, code exchange, refresh, revoke, status)
- Single-flight token refresh with a staleness margin
- Pluggable token stores: in-memory, environment (read-only), encrypted file
- AES-256-GCM encryption under a machine-bound scrypt key
- CSRF state issuance for the authorization leg

Usage:
    >>> from freshbooks_mcp.auth import (
    ...     FreshBooksOAuth, create_token_store, initialize_oauth_config,
    ... )
    >>>
    >>> oauth = FreshBooksOAuth(initialize_oauth_config(), create_token_store())
    >>> print(oauth.generate_authorization_url())
    >>> oauth.exchange_code(code)
    >>>
    >>> # Later, from any tool
    >>> token = oauth.get_valid_token()
"""

from freshbooks_mcp.auth.config import (
    create_token_store,
    initialize_oauth_config,
    load_oauth_config,
    validate_oauth_config,
)
from freshbooks_mcp.auth.models import AuthStatus, OAuthConfig, TokenRecord
from freshbooks_mcp.auth.oauth import (
    EXPIRY_MARGIN,
    FRESHBOOKS_AUTH_URI,
    FRESHBOOKS_REVOKE_URI,
    FRESHBOOKS_TOKEN_URI,
    FreshBooksOAuth,
)
from freshbooks_mcp.auth.state import OAuthState, OAuthStateStore
from freshbooks_mcp.auth.storage import (
    EncryptedFileTokenStore,
    EnvTokenStore,
    InMemoryTokenStore,
    TokenStore,
)
from freshbooks_mcp.auth.tokens import decrypt_token, encrypt_token, get_encryption_key

__all__ = [
    # OAuth
    "FreshBooksOAuth",
    "EXPIRY_MARGIN",
    "FRESHBOOKS_AUTH_URI",
    "FRESHBOOKS_TOKEN_URI",
    "FRESHBOOKS_REVOKE_URI",
    # Models
    "OAuthConfig",
    "TokenRecord",
    "AuthStatus",
    # Configuration
    "load_oauth_config",
    "validate_oauth_config",
    "initialize_oauth_config",
    "create_token_store",
    # Token Storage
    "TokenStore",
    "InMemoryTokenStore",
    "EnvTokenStore",
    "EncryptedFileTokenStore",
    # Token Encryption
    "encrypt_token",
    "decrypt_token",
    "get_encryption_key",
    # CSRF state
    "OAuthState",
    "OAuthStateStore",
]
