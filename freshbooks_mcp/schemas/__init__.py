"""Pydantic schemas for FreshBooks MCP tool parameters."""

from freshbooks_mcp.schemas.tools import ExchangeCodeParams, SetActiveAccountParams

__all__ = [
    "ExchangeCodeParams",
    "SetActiveAccountParams",
]
