"""Middleware module for FreshBooks MCP server."""

from freshbooks_mcp.middleware.audit_logger import (
    AuditEntry,
    AuditLogger,
    AuthEvent,
    audit_logger,
    redact,
)

__all__ = [
    "AuditLogger",
    "AuditEntry",
    "AuthEvent",
    "audit_logger",
    "redact",
]
