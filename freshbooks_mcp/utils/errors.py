"""Custom exception hierarchy for FreshBooks MCP Server.

This module defines a structured exception hierarchy for the credential
lifecycle: OAuth flow failures, token store failures and input validation.
Every error carries a human-readable ``message`` and a ``details`` dict.
Callers branch on the ``code`` attribute (an error kind), not on the
exception class.

Tokens must never be placed in ``message`` or ``details``.
"""

from __future__ import annotations

from enum import Enum


class OAuthErrorCode(str, Enum):
    """Kinds of OAuth failures surfaced to callers.

    The remediation differs per kind: ``INVALID_GRANT`` means the code or
    refresh token is dead (restart the flow), ``INVALID_CLIENT`` means the
    client credentials are wrong (fix configuration), ``SESSION_EXPIRED``
    means local state was cleared and the user must log in again.
    """

    NOT_AUTHENTICATED = "not_authenticated"
    TOKEN_EXCHANGE_FAILED = "token_exchange_failed"
    REFRESH_FAILED = "refresh_failed"
    INVALID_GRANT = "invalid_grant"
    INVALID_CLIENT = "invalid_client"
    INVALID_REQUEST = "invalid_request"
    UNAUTHORIZED_CLIENT = "unauthorized_client"
    UNSUPPORTED_GRANT_TYPE = "unsupported_grant_type"
    NO_REFRESH_TOKEN = "no_refresh_token"
    SESSION_EXPIRED = "session_expired"


class TokenStoreErrorCode(str, Enum):
    """Kinds of token store failures."""

    UNSUPPORTED_OPERATION = "unsupported_operation"
    DECRYPTION_FAILED = "decryption_failed"
    CORRUPT_RECORD = "corrupt_record"
    NOT_FOUND = "not_found"
    WRITE_FAILED = "write_failed"


class FreshBooksMCPError(Exception):
    """Base exception for all FreshBooks MCP Server errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary containing additional error context.
    """

    def __init__(self, message: str, details: dict[str, object] | None = None) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            details: Optional dictionary containing additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class AuthenticationError(FreshBooksMCPError):
    """Exception raised for OAuth and credential-related errors.

    Examples:
        - OAuth client is not configured
        - Authorization state is unknown or expired
        - Any OAuthError
    """

    pass


class OAuthError(AuthenticationError):
    """Exception raised when an OAuth operation fails.

    Attributes:
        code: The error kind.
        transient: True when the failure came from the transport (timeout,
            DNS, connection reset) rather than from the provider. Transient
            failures are worth retrying; the others require
            re-authentication or a configuration fix.
    """

    def __init__(
        self,
        code: OAuthErrorCode,
        message: str,
        details: dict[str, object] | None = None,
        transient: bool = False,
    ) -> None:
        """Initialize the OAuth error.

        Args:
            code: The error kind.
            message: Human-readable error description.
            details: Optional dictionary containing additional error context.
            transient: Whether the failure is a retryable transport failure.
        """
        super().__init__(message, details)
        self.code = code
        self.transient = transient

    @property
    def requires_reauthentication(self) -> bool:
        """Whether the user has to go through the authorization flow again."""
        return self.code in (
            OAuthErrorCode.NOT_AUTHENTICATED,
            OAuthErrorCode.NO_REFRESH_TOKEN,
            OAuthErrorCode.SESSION_EXPIRED,
            OAuthErrorCode.INVALID_GRANT,
        )


class TokenStoreError(FreshBooksMCPError):
    """Exception raised for token persistence failures.

    Attributes:
        code: The error kind.
    """

    def __init__(
        self,
        code: TokenStoreErrorCode,
        message: str,
        details: dict[str, object] | None = None,
    ) -> None:
        """Initialize the token store error.

        Args:
            code: The error kind.
            message: Human-readable error description.
            details: Optional dictionary containing additional error context.
        """
        super().__init__(message, details)
        self.code = code


class ValidationError(FreshBooksMCPError):
    """Exception raised for configuration and input validation errors.

    Attributes:
        field: The name of the field that failed validation, if applicable.
    """

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, object] | None = None,
    ) -> None:
        """Initialize the validation error exception.

        Args:
            message: Human-readable error description.
            field: The name of the field that failed validation.
            details: Optional dictionary containing additional error context.
        """
        super().__init__(message, details)
        self.field = field


__all__ = [
    "FreshBooksMCPError",
    "AuthenticationError",
    "OAuthError",
    "OAuthErrorCode",
    "TokenStoreError",
    "TokenStoreErrorCode",
    "ValidationError",
]
