"""Pytest configuration and fixtures for FreshBooks MCP server tests."""

from __future__ import annotations

import json
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any
from unittest.mock import MagicMock

import pytest
import requests

from freshbooks_mcp.auth.models import OAuthConfig, TokenRecord
from freshbooks_mcp.auth.oauth import FreshBooksOAuth
from freshbooks_mcp.auth.storage import InMemoryTokenStore

START_TIME = datetime(2026, 1, 20, 12, 0, tzinfo=UTC)


class FakeClock:
    """Controllable UTC clock."""

    def __init__(self, now: datetime = START_TIME) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    """Fixture providing a clock frozen at START_TIME."""
    return FakeClock()


@pytest.fixture
def oauth_config() -> OAuthConfig:
    """Fixture providing a FreshBooks OAuth client configuration."""
    return OAuthConfig(
        client_id="test-client-id-0001",
        client_secret="test-client-secret-0001",
        redirect_uri="https://localhost:3000/callback",
    )


@pytest.fixture
def make_record(clock: FakeClock) -> Callable[..., TokenRecord]:
    """Factory for token records expiring relative to the fake clock."""

    def _make(
        expires_in: float = 3600,
        access_token: str = "access-token-1",
        refresh_token: str | None = "refresh-token-1",
        **kwargs: Any,
    ) -> TokenRecord:
        return TokenRecord(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=clock.now + timedelta(seconds=expires_in),
            **kwargs,
        )

    return _make


@pytest.fixture
def token_record(make_record: Callable[..., TokenRecord]) -> TokenRecord:
    """Fixture providing a record valid for one hour."""
    return make_record()


@pytest.fixture
def make_response() -> Callable[[int, Any], requests.Response]:
    """Factory for real requests.Response objects with a JSON body."""

    def _make(status_code: int = 200, body: Any = None) -> requests.Response:
        response = requests.Response()
        response.status_code = status_code
        response._content = json.dumps(body).encode("utf-8") if body is not None else b""
        response.headers["Content-Type"] = "application/json"
        return response

    return _make


@pytest.fixture
def token_response(make_response: Callable[..., requests.Response]) -> Callable[..., requests.Response]:
    """Factory for successful token endpoint responses."""

    def _make(
        access_token: str = "new-access-token",
        refresh_token: str | None = "new-refresh-token",
        expires_in: int = 3600,
    ) -> requests.Response:
        body: dict[str, Any] = {
            "access_token": access_token,
            "token_type": "Bearer",
            "expires_in": expires_in,
        }
        if refresh_token is not None:
            body["refresh_token"] = refresh_token
        return make_response(200, body)

    return _make


@pytest.fixture
def mock_session() -> MagicMock:
    """Fixture providing a mocked requests.Session."""
    return MagicMock(spec=requests.Session)


@pytest.fixture
def memory_store() -> InMemoryTokenStore:
    """Fixture providing an empty in-memory token store."""
    return InMemoryTokenStore()


@pytest.fixture
def oauth(
    oauth_config: OAuthConfig,
    memory_store: InMemoryTokenStore,
    mock_session: MagicMock,
    clock: FakeClock,
) -> FreshBooksOAuth:
    """Fixture providing an OAuth client wired to fakes."""
    return FreshBooksOAuth(oauth_config, memory_store, session=mock_session, clock=clock)
