"""Audit trail for tool invocations and credential lifecycle events.

Entries are JSON lines on stderr so they never mix with the MCP STDIO
stream on stdout. Every parameter or detail dict passes through redaction
first; values under credential-bearing keys are replaced outright.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

REDACTED = "[REDACTED]"

SENSITIVE_KEYS = frozenset(
    {
        "access_token",
        "refresh_token",
        "token",
        "client_secret",
        "secret",
        "code",
        "state",
        "authorization",
        "bearer",
        "password",
        "passphrase",
        "key",
    }
)


class AuthEvent(str, Enum):
    """Credential lifecycle events worth an audit entry."""

    EXCHANGE_CODE = "exchange_code"
    REFRESH = "refresh"
    SESSION_EXPIRED = "session_expired"
    REVOKE = "revoke"
    SET_ACTIVE_ACCOUNT = "set_active_account"


class AuditEntry(BaseModel):
    """One audit line."""

    timestamp: str = Field(
        default_factory=lambda: datetime.now(UTC).isoformat(),
        description="ISO format timestamp",
    )
    tool_name: str = Field(..., description="Tool name, or 'auth' for lifecycle events")
    action: str = Field(default="invoke", description="'invoke' or an AuthEvent value")
    parameters: dict[str, Any] = Field(
        default_factory=dict,
        description="Redacted parameters or event details",
    )
    result_status: str | None = Field(default=None, description="success or error")
    error_code: str | None = Field(default=None, description="Error kind if failed")
    duration_ms: float | None = Field(default=None, description="Tool run time")


def redact(value: Any) -> Any:
    """Return ``value`` with credential-bearing entries replaced.

    Dicts are walked recursively, including dicts inside lists and tuples.
    """
    if isinstance(value, dict):
        return {
            k: REDACTED if str(k).lower() in SENSITIVE_KEYS else redact(v)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact(item) for item in value]
    return value


class AuditLogger:
    """Writes audit entries to stderr (STDIO-safe)."""

    def __init__(self, enabled: bool = True):
        self._enabled = enabled
        logger.info("AuditLogger initialized (enabled=%s)", enabled)

    @property
    def enabled(self) -> bool:
        return self._enabled

    def log(self, entry: AuditEntry) -> None:
        if not self._enabled:
            return

        try:
            print(
                json.dumps({"audit": entry.model_dump()}, default=str),
                file=sys.stderr,
                flush=True,
            )
        except (TypeError, ValueError, OSError) as e:
            logger.error("Failed to write audit log: %s", e)

    def log_tool_call(
        self,
        tool_name: str,
        parameters: dict[str, Any],
        result_status: str | None = None,
        error_code: str | None = None,
        duration_ms: float | None = None,
    ) -> None:
        """Record one MCP tool invocation."""
        self.log(
            AuditEntry(
                tool_name=tool_name,
                parameters=redact(parameters),
                result_status=result_status,
                error_code=error_code,
                duration_ms=duration_ms,
            )
        )

    def log_auth_event(
        self,
        event: AuthEvent,
        success: bool = True,
        details: dict[str, Any] | None = None,
        error_code: str | None = None,
    ) -> None:
        """Record a credential lifecycle event.

        Args:
            event: What happened.
            success: Whether it succeeded.
            details: Token-free metadata such as expiry or account ID.
            error_code: Error kind if the event failed.
        """
        self.log(
            AuditEntry(
                tool_name="auth",
                action=AuthEvent(event).value,
                parameters=redact(details or {}),
                result_status="success" if success else "error",
                error_code=error_code,
            )
        )


def _audit_enabled() -> bool:
    return os.getenv("AUDIT_LOG", "true").lower() not in ("false", "0", "no")


# Global singleton
audit_logger = AuditLogger(enabled=_audit_enabled())


__all__ = [
    "AuditEntry",
    "AuditLogger",
    "AuthEvent",
    "audit_logger",
    "redact",
]
