"""Pydantic models for FreshBooks OAuth configuration and token state.

- OAuthConfig: immutable client configuration, never persisted
- TokenRecord: the unit of persistence and of truth about authentication
- AuthStatus: read-only view derived from the current TokenRecord

Token fields are excluded from ``repr`` so records can be logged or shown in
tracebacks without leaking credentials.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class OAuthConfig(BaseModel):
    """OAuth2 client configuration for the FreshBooks API."""

    model_config = ConfigDict(frozen=True)

    client_id: str = Field(..., min_length=1, description="OAuth2 client ID")
    client_secret: str = Field(
        ...,
        min_length=1,
        repr=False,
        description="OAuth2 client secret",
    )
    redirect_uri: str = Field(
        ...,
        min_length=1,
        description="Redirect URI registered with the FreshBooks app",
    )
    scopes: tuple[str, ...] | None = Field(
        default=None,
        description="Optional OAuth2 scopes (FreshBooks applies app defaults)",
    )


class TokenRecord(BaseModel):
    """Persisted OAuth2 credentials plus the selected FreshBooks identity.

    A record is replaced wholesale on every refresh. The identity fields are
    carried through refreshes unless explicitly overwritten.

    Example:
        >>> record = TokenRecord(
        ...     access_token="tok1",
        ...     refresh_token="ref1",
        ...     expires_at=datetime.now(UTC) + timedelta(hours=12),
        ... )
        >>> record.is_expired()
        False
    """

    model_config = ConfigDict(frozen=True)

    access_token: str = Field(..., min_length=1, repr=False)
    refresh_token: str | None = Field(default=None, repr=False)
    expires_at: datetime = Field(..., description="Absolute expiry (UTC)")
    token_type: str = Field(default="Bearer")
    account_id: str | None = Field(default=None)
    business_id: int | None = Field(default=None)

    @field_validator("refresh_token")
    @classmethod
    def _blank_refresh_token_is_absent(cls, value: str | None) -> str | None:
        return value or None

    @field_validator("expires_at")
    @classmethod
    def _normalize_to_utc(cls, value: datetime) -> datetime:
        # Naive timestamps are taken to be UTC
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    @property
    def has_refresh_token(self) -> bool:
        """Whether this record can be refreshed without user interaction."""
        return self.refresh_token is not None

    def expires_in(self, now: datetime | None = None) -> int:
        """Seconds until the access token expires (negative once expired)."""
        now = now or datetime.now(UTC)
        return int((self.expires_at - now).total_seconds())

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check whether the access token is past its expiry."""
        now = now or datetime.now(UTC)
        return now >= self.expires_at

    def is_stale(self, margin: timedelta, now: datetime | None = None) -> bool:
        """Check whether the token expires within ``margin`` (or already has)."""
        now = now or datetime.now(UTC)
        return now >= self.expires_at - margin

    def with_identity(
        self, account_id: str, business_id: int | None = None
    ) -> TokenRecord:
        """Return a copy with the identity fields replaced.

        The business ID is kept when ``business_id`` is None.
        """
        update: dict[str, object] = {"account_id": account_id}
        if business_id is not None:
            update["business_id"] = business_id
        return self.model_copy(update=update)

    def safe_summary(self) -> dict[str, object]:
        """Metadata that is safe to log or return to an agent."""
        return {
            "expires_at": self.expires_at.isoformat(),
            "token_type": self.token_type,
            "has_refresh_token": self.has_refresh_token,
            "account_id": self.account_id,
            "business_id": self.business_id,
        }


class AuthStatus(BaseModel):
    """Authentication status derived from the stored token record."""

    authenticated: bool = Field(..., description="Whether a live token is stored")
    expires_in: int | None = Field(
        default=None,
        description="Seconds until the access token expires",
    )
    account_id: str | None = Field(default=None)
    business_id: int | None = Field(default=None)
    reason: Literal["no_token", "token_expired"] | None = Field(
        default=None,
        description="Why the session is not authenticated",
    )
    can_refresh: bool = Field(
        default=False,
        description="Whether a refresh token is available to restore the session",
    )


__all__ = [
    "OAuthConfig",
    "TokenRecord",
    "AuthStatus",
]
