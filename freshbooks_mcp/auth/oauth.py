"""FreshBooks OAuth 2.0 client.

Owns the authorization code flow against FreshBooks and the lifecycle of the
stored token record:

1. Authorization URL: built locally, the user grants access in a browser.
2. Code exchange: the code returned on the redirect is traded for an access
   and refresh token, which are written to the token store.
3. Valid token: resource tools call get_valid_token(). A token that expires
   within the staleness margin is refreshed first, so a caller never gets a
   token that dies mid-request.
4. Revoke: best-effort remote revocation, then local logout.

Refresh is single-flight: concurrent callers that need a refresh share one
request to the token endpoint. FreshBooks rotates refresh tokens, so two
parallel refreshes would invalidate each other.

Security considerations:
- Access and refresh tokens are never logged or put in error details
- A refresh token rejected with invalid_grant is discarded immediately
- Transport failures never clear local state
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future
from datetime import UTC, datetime, timedelta
from typing import Any
from urllib.parse import urlencode

import requests

from freshbooks_mcp.auth.models import AuthStatus, OAuthConfig, TokenRecord
from freshbooks_mcp.auth.storage import TokenStore
from freshbooks_mcp.middleware.audit_logger import AuthEvent, audit_logger
from freshbooks_mcp.utils.errors import (
    OAuthError,
    OAuthErrorCode,
    TokenStoreError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# FreshBooks OAuth endpoints
FRESHBOOKS_AUTH_URI = "https://my.freshbooks.com/service/auth/oauth/authorize"
FRESHBOOKS_TOKEN_URI = "https://api.freshbooks.com/auth/oauth/token"
FRESHBOOKS_REVOKE_URI = "https://api.freshbooks.com/auth/oauth/revoke"

# Refresh when the token expires in less than this
EXPIRY_MARGIN = timedelta(minutes=5)

REQUEST_TIMEOUT_SECONDS = 30

_PROVIDER_ERROR_CODES = {
    "invalid_grant": OAuthErrorCode.INVALID_GRANT,
    "invalid_client": OAuthErrorCode.INVALID_CLIENT,
    "invalid_request": OAuthErrorCode.INVALID_REQUEST,
    "unauthorized_client": OAuthErrorCode.UNAUTHORIZED_CLIENT,
    "unsupported_grant_type": OAuthErrorCode.UNSUPPORTED_GRANT_TYPE,
}


def _utcnow() -> datetime:
    return datetime.now(UTC)


class FreshBooksOAuth:
    """OAuth 2.0 client for a single FreshBooks identity.

    Construct one instance at process start and hand it to every tool that
    needs a bearer token.

    Attributes:
        config: OAuth client configuration.
        token_store: Where the token record lives.

    Example:
        >>> oauth = FreshBooksOAuth(config, EncryptedFileTokenStore(path))
        >>> print(oauth.generate_authorization_url(state="xyz"))
        >>> oauth.exchange_code(code)
        >>> headers = {"Authorization": f"Bearer {oauth.get_valid_token()}"}
    """

    def __init__(
        self,
        config: OAuthConfig,
        token_store: TokenStore,
        session: requests.Session | None = None,
        clock: Callable[[], datetime] | None = None,
        expiry_margin: timedelta = EXPIRY_MARGIN,
    ) -> None:
        """Initialize the OAuth client.

        Args:
            config: OAuth client configuration.
            token_store: Token persistence backend.
            session: HTTP session for the token and revoke endpoints.
            clock: Returns the current UTC time. Injected by tests.
            expiry_margin: How long before expiry a token counts as stale.
        """
        self.config = config
        self.token_store = token_store
        self._session = session or requests.Session()
        self._clock = clock or _utcnow
        self._expiry_margin = expiry_margin

        # Guards the in-flight refresh slot
        self._refresh_mutex = threading.Lock()
        self._inflight: Future[TokenRecord] | None = None

        # Serializes read-modify-write cycles on the stored record
        self._write_lock = threading.RLock()

        # Read-only stores only: (store record, refreshed record) kept in process
        self._overlay: tuple[TokenRecord, TokenRecord] | None = None
        # Read-only stores only: store record whose refresh token was rejected
        self._retired: TokenRecord | None = None

    def _load(self) -> TokenRecord | None:
        """Load the current record as seen through the read-only overlay.

        A read-only store cannot take a refreshed or discarded record, so
        both are remembered here for as long as the store still returns the
        record they replaced. Rotating the external source ends either one.
        """
        record = self.token_store.load()
        if record is None:
            return None

        if self._retired is not None and record == self._retired:
            return None

        overlay = self._overlay
        if overlay is not None and record == overlay[0]:
            return overlay[1]

        return record

    # =========================================================================
    # Authorization Code Flow
    # =========================================================================

    def generate_authorization_url(self, state: str | None = None) -> str:
        """Build the FreshBooks authorization URL.

        The caller is responsible for checking ``state`` when the redirect
        comes back.

        Args:
            state: Optional opaque value for CSRF binding.

        Returns:
            URL the user must visit to grant access.
        """
        params = {
            "client_id": self.config.client_id,
            "response_type": "code",
            "redirect_uri": self.config.redirect_uri,
        }
        if self.config.scopes:
            params["scope"] = " ".join(self.config.scopes)
        if state:
            params["state"] = state

        return f"{FRESHBOOKS_AUTH_URI}?{urlencode(params)}"

    def exchange_code(self, code: str) -> TokenRecord:
        """Exchange an authorization code for tokens and store them.

        Args:
            code: Authorization code from the OAuth redirect.

        Returns:
            The stored token record.

        Raises:
            ValidationError: If the code is empty.
            OAuthError: INVALID_GRANT for a used or expired code,
                INVALID_CLIENT for bad client credentials,
                TOKEN_EXCHANGE_FAILED for anything else (transient=True for
                transport failures). Nothing is stored on failure.
        """
        if not code or not code.strip():
            raise ValidationError("Authorization code must not be empty", field="code")

        try:
            data = self._request_token(
                {
                    "grant_type": "authorization_code",
                    "code": code.strip(),
                    "redirect_uri": self.config.redirect_uri,
                },
                OAuthErrorCode.TOKEN_EXCHANGE_FAILED,
            )
            record = self._parse_token_response(
                data, OAuthErrorCode.TOKEN_EXCHANGE_FAILED
            )
        except OAuthError as e:
            logger.error("Authorization code exchange failed (%s)", e.code.value)
            audit_logger.log_auth_event(
                AuthEvent.EXCHANGE_CODE, success=False, error_code=e.code.value
            )
            raise

        with self._write_lock:
            self.token_store.save(record)

        logger.info(
            "Exchanged authorization code; access token expires at %s",
            record.expires_at.isoformat(),
        )
        audit_logger.log_auth_event(AuthEvent.EXCHANGE_CODE, details=record.safe_summary())
        return record

    # =========================================================================
    # Refresh
    # =========================================================================

    def refresh_access_token(self) -> TokenRecord:
        """Refresh the access token using the stored refresh token.

        If a refresh is already running, waits for it and returns its result
        instead of issuing a second request.

        Returns:
            The new stored token record.

        Raises:
            OAuthError: NO_REFRESH_TOKEN if nothing can be refreshed,
                SESSION_EXPIRED if the refresh token was rejected (the store
                is cleared), INVALID_CLIENT or REFRESH_FAILED otherwise.
        """
        return self._refresh(force=True)

    def _refresh(self, force: bool) -> TokenRecord:
        with self._refresh_mutex:
            inflight = self._inflight
            if inflight is None:
                future: Future[TokenRecord] = Future()
                self._inflight = future

        if inflight is not None:
            logger.debug("Joining in-flight token refresh")
            return inflight.result()

        try:
            record = self._do_refresh(force)
        except BaseException as e:
            future.set_exception(e)
            raise
        else:
            future.set_result(record)
            return record
        finally:
            with self._refresh_mutex:
                self._inflight = None

    def _do_refresh(self, force: bool) -> TokenRecord:
        current = self._load()
        if current is None or not current.has_refresh_token:
            raise OAuthError(
                OAuthErrorCode.NO_REFRESH_TOKEN,
                "No refresh token available. Please re-authenticate.",
            )

        # A refresh that finished just before we got here already did the work
        if not force and not current.is_stale(self._expiry_margin, self._clock()):
            return current

        try:
            data = self._request_token(
                {
                    "grant_type": "refresh_token",
                    "refresh_token": current.refresh_token,
                },
                OAuthErrorCode.REFRESH_FAILED,
            )
            record = self._parse_token_response(
                data, OAuthErrorCode.REFRESH_FAILED, previous=current
            )
        except OAuthError as e:
            if e.code is OAuthErrorCode.INVALID_GRANT:
                self._discard_session()
                audit_logger.log_auth_event(
                    AuthEvent.SESSION_EXPIRED,
                    success=False,
                    error_code=e.code.value,
                )
                raise OAuthError(
                    OAuthErrorCode.SESSION_EXPIRED,
                    "FreshBooks session expired. Please re-authenticate.",
                    details=e.details,
                ) from e

            logger.error("Token refresh failed (%s)", e.code.value)
            audit_logger.log_auth_event(
                AuthEvent.REFRESH, success=False, error_code=e.code.value
            )
            raise

        with self._write_lock:
            # Identity may have been changed while the request was in flight
            latest = self._load() or current
            record = record.model_copy(
                update={
                    "account_id": latest.account_id,
                    "business_id": latest.business_id,
                }
            )
            if self.token_store.is_read_only():
                source = self.token_store.load()
                if source is not None:
                    self._overlay = (source, record)
                logger.warning(
                    "Token store is read-only; refreshed token is kept in memory only"
                )
            else:
                self.token_store.save(record)

        logger.info(
            "Refreshed access token; expires at %s", record.expires_at.isoformat()
        )
        audit_logger.log_auth_event(AuthEvent.REFRESH, details=record.safe_summary())
        return record

    def _discard_session(self) -> None:
        logger.warning("Refresh token rejected by FreshBooks; clearing stored session")
        with self._write_lock:
            self._overlay = None
            try:
                self.token_store.clear()
            except TokenStoreError as e:
                logger.warning(
                    "Could not clear token store (%s): %s; "
                    "ignoring its record until it changes",
                    e.code.value,
                    e.message,
                )
                self._retired = self.token_store.load()

    # =========================================================================
    # Consumer API
    # =========================================================================

    def get_valid_token(self) -> str:
        """Return an access token that is valid beyond the staleness margin.

        This is the only entry point resource tools need. When the stored
        token is fresh no network call is made.

        Returns:
            Bearer access token.

        Raises:
            OAuthError: NOT_AUTHENTICATED if nothing is stored, or any refresh
                failure when the stored token is stale.
        """
        record = self._load()
        if record is None:
            raise OAuthError(
                OAuthErrorCode.NOT_AUTHENTICATED,
                "No authentication found. Please authenticate first.",
            )

        if not record.is_stale(self._expiry_margin, self._clock()):
            return record.access_token

        logger.info(
            "Access token expires within %d seconds; refreshing",
            int(self._expiry_margin.total_seconds()),
        )
        return self._refresh(force=False).access_token

    def revoke_token(self) -> None:
        """Log out: revoke remotely if possible, then clear local state.

        The remote call is best effort; its failure never blocks local logout.

        Raises:
            TokenStoreError: If the store cannot be cleared (read-only store).
        """
        record = self._load()
        if record is not None:
            self._revoke_remote(record)

        with self._write_lock:
            self.token_store.clear()

        logger.info("Cleared stored FreshBooks credentials")
        audit_logger.log_auth_event(AuthEvent.REVOKE, details={"had_token": record is not None})

    def _revoke_remote(self, record: TokenRecord) -> None:
        try:
            response = self._session.post(
                FRESHBOOKS_REVOKE_URI,
                json={"token": record.access_token},
                headers={
                    "Authorization": f"Bearer {record.access_token}",
                    "Api-Version": "alpha",
                },
                timeout=REQUEST_TIMEOUT_SECONDS,
            )
        except requests.RequestException as e:
            logger.warning("Token revocation request failed: %s", type(e).__name__)
            return

        if response.ok:
            logger.info("Revoked access token with FreshBooks")
        else:
            logger.warning(
                "FreshBooks rejected token revocation (HTTP %d)", response.status_code
            )

    def get_status(self) -> AuthStatus:
        """Report authentication state without refreshing or touching the network."""
        record = self._load()
        if record is None:
            return AuthStatus(authenticated=False, reason="no_token")

        expires_in = record.expires_in(self._clock())
        if expires_in <= 0:
            return AuthStatus(
                authenticated=False,
                reason="token_expired",
                account_id=record.account_id,
                business_id=record.business_id,
                can_refresh=record.has_refresh_token,
            )

        return AuthStatus(
            authenticated=True,
            expires_in=expires_in,
            account_id=record.account_id,
            business_id=record.business_id,
            can_refresh=record.has_refresh_token,
        )

    def set_active_account(
        self, account_id: str, business_id: int | None = None
    ) -> TokenRecord:
        """Select the FreshBooks account (and business) for resource calls.

        Credential fields are left untouched. An expired record is refreshed
        first so an expired token is never written back.

        Args:
            account_id: FreshBooks account ID.
            business_id: FreshBooks business ID. Kept as-is when omitted.

        Returns:
            The updated token record.

        Raises:
            ValidationError: If account_id is empty.
            OAuthError: NOT_AUTHENTICATED if nothing is stored, or a refresh
                failure for an expired record.
        """
        if not account_id or not account_id.strip():
            raise ValidationError("Account ID must not be empty", field="account_id")

        record = self._load()
        if record is not None and record.is_expired(self._clock()):
            # Outside the write lock: the refresh leader needs it to save
            self.refresh_access_token()

        with self._write_lock:
            record = self._load()
            if record is None:
                raise OAuthError(
                    OAuthErrorCode.NOT_AUTHENTICATED,
                    "No authentication found. Please authenticate first.",
                )

            updated = record.with_identity(account_id.strip(), business_id)
            self.token_store.save(updated)

        logger.info(
            "Active account set to %s (business %s)",
            updated.account_id,
            updated.business_id,
        )
        audit_logger.log_auth_event(
            AuthEvent.SET_ACTIVE_ACCOUNT,
            details={"account_id": updated.account_id, "business_id": updated.business_id},
        )
        return updated

    # =========================================================================
    # Token Endpoint
    # =========================================================================

    def _request_token(
        self, grant: dict[str, Any], failure_code: OAuthErrorCode
    ) -> dict[str, Any]:
        """POST a grant to the token endpoint and return the JSON body."""
        payload = {
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
            **grant,
        }

        try:
            response = self._session.post(
                FRESHBOOKS_TOKEN_URI,
                json=payload,
                headers={"Api-Version": "alpha"},
                timeout=REQUEST_TIMEOUT_SECONDS,
            )
        except requests.RequestException as e:
            logger.warning(
                "Token endpoint unreachable (%s): %s",
                grant["grant_type"],
                type(e).__name__,
            )
            raise OAuthError(
                failure_code,
                "Could not reach the FreshBooks token endpoint",
                details={"error_type": type(e).__name__},
                transient=True,
            ) from e

        if not response.ok:
            raise self._provider_error(response, failure_code)

        try:
            data = response.json()
        except ValueError as e:
            raise OAuthError(
                failure_code,
                "FreshBooks token endpoint returned a non-JSON response",
                details={"status_code": response.status_code},
            ) from e

        if not isinstance(data, dict):
            raise OAuthError(
                failure_code,
                "FreshBooks token endpoint returned an unexpected response",
                details={"status_code": response.status_code},
            )
        return data

    def _provider_error(
        self, response: requests.Response, fallback: OAuthErrorCode
    ) -> OAuthError:
        """Translate an error response from the token endpoint."""
        provider_error: str | None = None
        description: str | None = None
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            provider_error = body.get("error")
            description = body.get("error_description")

        code = _PROVIDER_ERROR_CODES.get(provider_error or "", fallback)
        logger.warning(
            "FreshBooks token endpoint returned HTTP %d (%s)",
            response.status_code,
            provider_error or "no error code",
        )
        return OAuthError(
            code,
            description or f"FreshBooks token request failed ({code.value})",
            details={
                "status_code": response.status_code,
                "provider_error": provider_error,
            },
            transient=response.status_code >= 500,
        )

    def _parse_token_response(
        self,
        data: dict[str, Any],
        failure_code: OAuthErrorCode,
        previous: TokenRecord | None = None,
    ) -> TokenRecord:
        """Convert a token endpoint response into a TokenRecord.

        ``expires_in`` is turned into an absolute expiry at receipt time. When
        a refresh response omits the refresh token, the previous one stays in
        use.
        """
        access_token = data.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise OAuthError(failure_code, "Token response is missing access_token")

        expires_in = data.get("expires_in")
        if isinstance(expires_in, bool) or not isinstance(expires_in, (int, float)):
            raise OAuthError(failure_code, "Token response is missing expires_in")
        if expires_in <= 0:
            raise OAuthError(
                failure_code,
                "Token response carries an already expired token",
                details={"expires_in": expires_in},
            )

        refresh_token = data.get("refresh_token") or (
            previous.refresh_token if previous else None
        )
        if not refresh_token:
            raise OAuthError(failure_code, "Token response is missing refresh_token")

        return TokenRecord(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=self._clock() + timedelta(seconds=expires_in),
            token_type=data.get("token_type") or "Bearer",
            account_id=previous.account_id if previous else None,
            business_id=previous.business_id if previous else None,
        )


__all__ = [
    "FreshBooksOAuth",
    "EXPIRY_MARGIN",
    "FRESHBOOKS_AUTH_URI",
    "FRESHBOOKS_TOKEN_URI",
    "FRESHBOOKS_REVOKE_URI",
]
