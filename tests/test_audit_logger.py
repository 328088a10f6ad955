"""Tests for the audit logger."""

from __future__ import annotations

import json

from freshbooks_mcp.middleware.audit_logger import (
    AuditEntry,
    AuditLogger,
    AuthEvent,
    redact,
)


def _last_entry(err: str) -> dict:
    lines = [line for line in err.splitlines() if line.strip()]
    return json.loads(lines[-1])["audit"]


class TestRedaction:
    """Tests for sensitive value redaction."""

    def test_redacts_sensitive_keys(self) -> None:
        """Token-bearing keys are fully replaced."""
        redacted = redact(
            {
                "access_token": "abc",
                "Refresh_Token": "def",
                "code": "ABC123",
                "state": "xyz",
                "account_id": "ABC12",
            }
        )

        assert redacted["access_token"] == "[REDACTED]"
        assert redacted["Refresh_Token"] == "[REDACTED]"
        assert redacted["code"] == "[REDACTED]"
        assert redacted["state"] == "[REDACTED]"
        assert redacted["account_id"] == "ABC12"

    def test_redacts_nested_dicts(self) -> None:
        """Nested dictionaries are redacted too."""
        redacted = redact(
            {
                "response": {"access_token": "abc", "expires_in": 3600},
                "grants": [{"refresh_token": "def"}],
            }
        )

        assert redacted["response"] == {"access_token": "[REDACTED]", "expires_in": 3600}
        assert redacted["grants"] == [{"refresh_token": "[REDACTED]"}]


class TestLogging:
    """Tests for log output."""

    def test_tool_call_written_as_json(self, capsys) -> None:
        """Tool calls are JSON lines on stderr."""
        AuditLogger().log_tool_call(
            "auth_exchange_code",
            {"code": "ABC123"},
            result_status="success",
            duration_ms=1.5,
        )

        captured = capsys.readouterr()
        entry = _last_entry(captured.err)
        assert entry["tool_name"] == "auth_exchange_code"
        assert entry["parameters"] == {"code": "[REDACTED]"}
        assert entry["result_status"] == "success"
        assert captured.out == ""

    def test_auth_event(self, capsys) -> None:
        """Auth events record the action and outcome."""
        AuditLogger().log_auth_event(
            AuthEvent.SESSION_EXPIRED, success=False, error_code="invalid_grant"
        )

        entry = _last_entry(capsys.readouterr().err)
        assert entry["tool_name"] == "auth"
        assert entry["action"] == "session_expired"
        assert entry["result_status"] == "error"
        assert entry["error_code"] == "invalid_grant"

    def test_disabled_logger_is_silent(self, capsys) -> None:
        """A disabled logger writes nothing."""
        audit = AuditLogger(enabled=False)
        audit.log(AuditEntry(tool_name="auth_status"))

        assert audit.enabled is False
        assert capsys.readouterr().err == ""
