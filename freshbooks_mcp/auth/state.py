"""OAuth ``state`` values for CSRF protection on the authorization leg.

A state is issued when the authorization URL is handed out and must come
back with the authorization code. States are random, expire after a TTL and
can be consumed only once.
"""

from __future__ import annotations

import logging
import secrets
import threading
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_STATE_TTL_SECONDS = 600

# 32 bytes = 256 bits of entropy
STATE_BYTES = 32


class OAuthState(BaseModel):
    """An issued OAuth state value."""

    state: str = Field(..., description="Random hex state value")
    created_at: datetime = Field(..., description="When the state was issued (UTC)")
    expires_at: datetime = Field(..., description="When the state stops being valid")

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


class OAuthStateStore:
    """Thread-safe in-memory store of issued OAuth states with TTL.

    Example:
        >>> states = OAuthStateStore(ttl_seconds=600)
        >>> issued = states.create()
        >>> url = oauth.generate_authorization_url(state=issued.state)
        >>> # ... user comes back with code and state ...
        >>> states.consume(returned_state)
        True
    """

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_STATE_TTL_SECONDS,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the state store.

        Args:
            ttl_seconds: How long an issued state stays valid.
            clock: Returns the current UTC time. Injected by tests.
        """
        self._ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock or (lambda: datetime.now(UTC))
        self._states: dict[str, OAuthState] = {}
        self._lock = threading.Lock()

    @property
    def size(self) -> int:
        """Number of stored states, expired ones included."""
        with self._lock:
            return len(self._states)

    def create(self) -> OAuthState:
        """Issue a new random state, dropping any that have expired."""
        now = self._clock()
        issued = OAuthState(
            state=secrets.token_hex(STATE_BYTES),
            created_at=now,
            expires_at=now + self._ttl,
        )
        with self._lock:
            self._purge_expired(now)
            self._states[issued.state] = issued

        logger.debug("Issued OAuth state expiring at %s", issued.expires_at.isoformat())
        return issued

    def validate(self, state: str) -> bool:
        """Check that a state was issued and has not expired, without consuming it."""
        with self._lock:
            issued = self._states.get(state)
            if issued is None:
                return False

            if issued.is_expired(self._clock()):
                del self._states[state]
                return False

            return True

    def consume(self, state: str) -> bool:
        """Validate and remove a state (one-time use).

        Returns:
            True if the state was live and is now consumed, False otherwise.
        """
        with self._lock:
            issued = self._states.pop(state, None)

        if issued is None:
            logger.warning("Rejected unknown or already used OAuth state")
            return False

        if issued.is_expired(self._clock()):
            logger.warning("Rejected expired OAuth state")
            return False

        return True

    def cleanup_expired(self) -> int:
        """Remove all expired states.

        Returns:
            The number of states removed.
        """
        with self._lock:
            removed = self._purge_expired(self._clock())

        if removed:
            logger.info("Cleaned up %d expired OAuth states", removed)
        return removed

    def _purge_expired(self, now: datetime) -> int:
        # Caller holds self._lock
        expired = [s for s, issued in self._states.items() if issued.is_expired(now)]
        for state in expired:
            del self._states[state]
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._states.clear()


__all__ = [
    "OAuthState",
    "OAuthStateStore",
    "DEFAULT_STATE_TTL_SECONDS",
]
