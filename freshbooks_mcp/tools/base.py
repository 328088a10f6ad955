"""Base utilities for FreshBooks MCP tools.

Every tool answers with the same envelope:

    {"status": "success", "data": ..., "message": ...}
    {"status": "error", "error": ..., "error_code": ..., <extra fields>}

Errors from the hierarchy in ``freshbooks_mcp.utils.errors`` are translated
here so that ``error_code`` is always the error kind an agent can branch
on, plus flags telling it whether to retry or send the user back through
the authorization flow.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any, TypeVar

from freshbooks_mcp.middleware.audit_logger import audit_logger
from freshbooks_mcp.utils.errors import (
    FreshBooksMCPError,
    OAuthError,
    OAuthErrorCode,
    TokenStoreError,
    ValidationError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_SIGN_IN_HINT = "Call auth_get_url to sign in to FreshBooks."

# Remediation hints by error kind
_HINTS: dict[OAuthErrorCode, str] = {
    OAuthErrorCode.NOT_AUTHENTICATED: _SIGN_IN_HINT,
    OAuthErrorCode.NO_REFRESH_TOKEN: _SIGN_IN_HINT,
    OAuthErrorCode.SESSION_EXPIRED: "Your FreshBooks session ended. " + _SIGN_IN_HINT,
    OAuthErrorCode.INVALID_GRANT: (
        "The authorization code is invalid or already used. "
        "Call auth_get_url to start over."
    ),
    OAuthErrorCode.INVALID_CLIENT: (
        "Check FRESHBOOKS_CLIENT_ID and FRESHBOOKS_CLIENT_SECRET."
    ),
}


class ResponseKeys:
    """Standard keys for tool responses."""

    STATUS = "status"
    DATA = "data"
    MESSAGE = "message"
    ERROR = "error"
    ERROR_CODE = "error_code"


def build_success_response(data: Any, message: str | None = None) -> dict[str, Any]:
    response: dict[str, Any] = {ResponseKeys.STATUS: "success", ResponseKeys.DATA: data}
    if message:
        response[ResponseKeys.MESSAGE] = message
    return response


def build_error_response(
    error: str,
    error_code: str | None = None,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build an error envelope; ``details`` are merged in at the top level."""
    response: dict[str, Any] = {ResponseKeys.STATUS: "error", ResponseKeys.ERROR: error}
    if error_code:
        response[ResponseKeys.ERROR_CODE] = error_code
    response.update(details or {})
    return response


def error_code_for(error: BaseException) -> str:
    """Error kind for OAuth and store errors, class name for anything else."""
    if isinstance(error, (OAuthError, TokenStoreError)):
        return error.code.value
    return type(error).__name__


def build_exception_response(error: FreshBooksMCPError) -> dict[str, Any]:
    """Translate an error from the hierarchy into an error envelope.

    OAuth errors gain ``retryable`` (transport failure) and
    ``reauthenticate`` flags and, where one exists, a ``hint``. Validation
    errors name the offending ``field``. Only ``message`` is exposed, never
    ``details``, which may carry provider payload fragments.
    """
    extra: dict[str, Any] = {}

    if isinstance(error, OAuthError):
        extra["retryable"] = error.transient
        extra["reauthenticate"] = error.requires_reauthentication
        if error.code in _HINTS:
            extra["hint"] = _HINTS[error.code]
    elif isinstance(error, ValidationError) and error.field:
        extra["field"] = error.field

    return build_error_response(error.message, error_code_for(error), extra)


async def execute_tool(
    tool_name: str,
    params: dict[str, Any],
    operation: Callable[[], T],
) -> T:
    """Run ``operation`` and write one audit entry for it.

    Exceptions propagate unchanged; the audit entry records their kind.
    ``params`` are redacted by the audit logger.
    """
    start_time = time.perf_counter()
    error_code: str | None = None

    try:
        return operation()
    except Exception as e:
        error_code = error_code_for(e)
        raise
    finally:
        audit_logger.log_tool_call(
            tool_name=tool_name,
            parameters=params,
            result_status="error" if error_code else "success",
            error_code=error_code,
            duration_ms=(time.perf_counter() - start_time) * 1000,
        )
