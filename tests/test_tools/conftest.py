"""Fixtures for tool tests."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from freshbooks_mcp.auth.oauth import FreshBooksOAuth
from freshbooks_mcp.auth.state import OAuthStateStore


@pytest.fixture
def mock_audit_logger():
    """Mock audit_logger.log_tool_call()."""
    with patch("freshbooks_mcp.tools.base.audit_logger") as mock:
        yield mock


@pytest.fixture
def mock_oauth() -> MagicMock:
    """Mock FreshBooksOAuth client."""
    return MagicMock(spec=FreshBooksOAuth)


@pytest.fixture
def states(clock) -> OAuthStateStore:
    """State store on the fake clock."""
    return OAuthStateStore(ttl_seconds=600, clock=clock)
