"""Utility functions and helpers for FreshBooks MCP Server.

This module provides common utilities including custom exceptions and
encryption helpers.
"""

from freshbooks_mcp.utils.encryption import (
    decrypt_data,
    derive_key,
    encrypt_data,
)
from freshbooks_mcp.utils.errors import (
    AuthenticationError,
    FreshBooksMCPError,
    OAuthError,
    OAuthErrorCode,
    TokenStoreError,
    TokenStoreErrorCode,
    ValidationError,
)

__all__ = [
    # Encryption utilities
    "derive_key",
    "encrypt_data",
    "decrypt_data",
    # Exception hierarchy
    "FreshBooksMCPError",
    "AuthenticationError",
    "OAuthError",
    "OAuthErrorCode",
    "TokenStoreError",
    "TokenStoreErrorCode",
    "ValidationError",
]
