"""Token storage backends.

Three interchangeable implementations of the TokenStore protocol:

- InMemoryTokenStore: process-local, for tests and ephemeral sessions
- EnvTokenStore: read-only, reads FRESHBOOKS_* environment variables on
  every load (for CI)
- EncryptedFileTokenStore: AES-256-GCM encrypted file with owner-only
  permissions (production)

A store holds at most one TokenRecord. ``load()`` returns None when there is
no usable record; it never raises for "no token found".

Security considerations:
- Tokens are encrypted at rest using AES-256-GCM
- Token files are created with 0600 permissions before any byte is written
- Writes go to a temp file that is atomically renamed over the target, so a
  crash leaves either the old file or the new one, never a partial write
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol, runtime_checkable

from freshbooks_mcp.auth.models import TokenRecord
from freshbooks_mcp.auth.tokens import decrypt_token, encrypt_token, get_encryption_key
from freshbooks_mcp.utils.errors import TokenStoreError, TokenStoreErrorCode

logger = logging.getLogger(__name__)

# Environment variables read by EnvTokenStore
ENV_ACCESS_TOKEN = "FRESHBOOKS_ACCESS_TOKEN"
ENV_REFRESH_TOKEN = "FRESHBOOKS_REFRESH_TOKEN"
ENV_TOKEN_EXPIRES = "FRESHBOOKS_TOKEN_EXPIRES"
ENV_ACCOUNT_ID = "FRESHBOOKS_ACCOUNT_ID"
ENV_BUSINESS_ID = "FRESHBOOKS_BUSINESS_ID"


@runtime_checkable
class TokenStore(Protocol):
    """Persistence capability for the single OAuth token record."""

    def load(self) -> TokenRecord | None:
        """Return the stored record, or None if there is no usable record."""
        ...

    def save(self, record: TokenRecord) -> None:
        """Replace the stored record."""
        ...

    def clear(self) -> None:
        """Remove the stored record. Clearing an empty store is not an error."""
        ...

    def is_read_only(self) -> bool:
        """Whether save() and clear() are unsupported."""
        ...


class InMemoryTokenStore:
    """Token store backed by a single process-local variable."""

    def __init__(self, record: TokenRecord | None = None) -> None:
        self._record = record
        self._lock = threading.Lock()

    def load(self) -> TokenRecord | None:
        with self._lock:
            return self._record

    def save(self, record: TokenRecord) -> None:
        with self._lock:
            self._record = record

    def clear(self) -> None:
        with self._lock:
            self._record = None

    def is_read_only(self) -> bool:
        return False


class EnvTokenStore:
    """Read-only token store backed by environment variables.

    Variables are read on every load() so that external rotation is picked
    up without a restart:

    - FRESHBOOKS_ACCESS_TOKEN (required, otherwise no record)
    - FRESHBOOKS_REFRESH_TOKEN (optional)
    - FRESHBOOKS_TOKEN_EXPIRES (Unix timestamp; missing means expired)
    - FRESHBOOKS_ACCOUNT_ID (optional)
    - FRESHBOOKS_BUSINESS_ID (optional integer)
    """

    def load(self) -> TokenRecord | None:
        access_token = os.getenv(ENV_ACCESS_TOKEN)
        if not access_token:
            return None

        expires_raw = os.getenv(ENV_TOKEN_EXPIRES, "0")
        try:
            expires_at = datetime.fromtimestamp(int(expires_raw), UTC)
        except (ValueError, OverflowError, OSError):
            # Also catches millisecond timestamps, which overflow the year range
            logger.warning(
                "%s is not a Unix timestamp in seconds; treating token as expired",
                ENV_TOKEN_EXPIRES,
            )
            expires_at = datetime.fromtimestamp(0, UTC)

        business_id: int | None = None
        business_raw = os.getenv(ENV_BUSINESS_ID)
        if business_raw:
            try:
                business_id = int(business_raw)
            except ValueError:
                logger.warning("%s is not an integer; ignoring it", ENV_BUSINESS_ID)

        return TokenRecord(
            access_token=access_token,
            refresh_token=os.getenv(ENV_REFRESH_TOKEN) or None,
            expires_at=expires_at,
            account_id=os.getenv(ENV_ACCOUNT_ID) or None,
            business_id=business_id,
        )

    def save(self, record: TokenRecord) -> None:
        raise TokenStoreError(
            TokenStoreErrorCode.UNSUPPORTED_OPERATION,
            "EnvTokenStore is read-only; update FRESHBOOKS_ACCESS_TOKEN and "
            "related environment variables instead",
            details={"operation": "save"},
        )

    def clear(self) -> None:
        raise TokenStoreError(
            TokenStoreErrorCode.UNSUPPORTED_OPERATION,
            "EnvTokenStore is read-only; environment variables cannot be cleared",
            details={"operation": "clear"},
        )

    def is_read_only(self) -> bool:
        return True


class EncryptedFileTokenStore:
    """File-based encrypted token storage.

    Stores one token record encrypted with a machine-bound key. All file
    operations on the path are serialized by an in-process lock.

    Attributes:
        path: Location of the encrypted token file.

    Example:
        >>> store = EncryptedFileTokenStore(Path("~/.freshbooks-mcp/tokens.enc"))
        >>> store.save(record)
        >>> store.load() == record
        True
    """

    def __init__(
        self,
        path: Path | str,
        key: bytes | None = None,
        passphrase: str | None = None,
    ) -> None:
        """Initialize the store for a single file path.

        Args:
            path: Token file location.
            key: Explicit 32-byte key. When omitted the key is derived lazily
                from the machine identity and passphrase.
            passphrase: Passphrase for key derivation. When None,
                FRESHBOOKS_TOKEN_PASSWORD is used.
        """
        self.path = Path(path).expanduser()
        self._key = key
        self._passphrase = passphrase
        self._lock = threading.RLock()
        logger.info("EncryptedFileTokenStore initialized at %s", self.path)

    def _get_key(self) -> bytes:
        if self._key is None:
            self._key = get_encryption_key(self._passphrase)
        return self._key

    def is_read_only(self) -> bool:
        return False

    def read(self) -> TokenRecord:
        """Read and decrypt the token file, raising on any failure.

        Returns:
            The stored TokenRecord.

        Raises:
            TokenStoreError: NOT_FOUND if there is no file,
                DECRYPTION_FAILED if the file is unreadable, tampered or
                encrypted under a different key, CORRUPT_RECORD if it
                decrypts to something that is not a token record.
        """
        with self._lock:
            try:
                raw = self.path.read_text(encoding="utf-8")
            except FileNotFoundError as e:
                raise TokenStoreError(
                    TokenStoreErrorCode.NOT_FOUND,
                    "No token file found",
                    details={"path": str(self.path)},
                ) from e
            except (OSError, UnicodeDecodeError) as e:
                raise TokenStoreError(
                    TokenStoreErrorCode.DECRYPTION_FAILED,
                    "Token file could not be read",
                    details={"path": str(self.path), "error_type": type(e).__name__},
                ) from e

            try:
                envelope = json.loads(raw)
            except json.JSONDecodeError as e:
                raise TokenStoreError(
                    TokenStoreErrorCode.DECRYPTION_FAILED,
                    "Token file is not a valid envelope",
                    details={"path": str(self.path)},
                ) from e

            if not isinstance(envelope, dict):
                raise TokenStoreError(
                    TokenStoreErrorCode.DECRYPTION_FAILED,
                    "Token file is not a valid envelope",
                    details={"path": str(self.path)},
                )

            return decrypt_token(envelope, self._get_key())

    def load(self) -> TokenRecord | None:
        """Load the token record, treating any failure as "no token".

        Failures other than a missing file are logged with their kind.
        """
        try:
            record = self.read()
        except TokenStoreError as e:
            if e.code is TokenStoreErrorCode.NOT_FOUND:
                logger.debug("No token file at %s", self.path)
            else:
                logger.warning(
                    "Ignoring unusable token file %s (%s): %s",
                    self.path,
                    e.code.value,
                    e.message,
                )
            return None

        logger.debug("Loaded token record from %s", self.path)
        return record

    def save(self, record: TokenRecord) -> None:
        """Encrypt and atomically write the token record.

        Raises:
            TokenStoreError: WRITE_FAILED if the file cannot be written.
        """
        with self._lock:
            envelope = encrypt_token(record, self._get_key())
            tmp_path: Path | None = None

            try:
                self.path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

                # mkstemp creates the file with 0600 before anything is written
                fd, tmp_name = tempfile.mkstemp(
                    dir=self.path.parent,
                    prefix=f".{self.path.name}.",
                    suffix=".tmp",
                )
                tmp_path = Path(tmp_name)
                tmp_path.chmod(0o600)

                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(envelope, f)
                    f.flush()
                    os.fsync(f.fileno())

                os.replace(tmp_path, self.path)
                tmp_path = None

            except OSError as e:
                logger.error("Failed to write token file %s: %s", self.path, e)
                raise TokenStoreError(
                    TokenStoreErrorCode.WRITE_FAILED,
                    "Failed to write token file",
                    details={"path": str(self.path), "error_type": type(e).__name__},
                ) from e
            finally:
                if tmp_path is not None:
                    tmp_path.unlink(missing_ok=True)

            logger.info("Saved encrypted token record to %s", self.path)

    def clear(self) -> None:
        """Delete the token file if present.

        Raises:
            TokenStoreError: WRITE_FAILED if the file exists but cannot be
                removed.
        """
        with self._lock:
            try:
                self.path.unlink()
            except FileNotFoundError:
                logger.debug("No token file to delete at %s", self.path)
                return
            except OSError as e:
                logger.error("Failed to delete token file %s: %s", self.path, e)
                raise TokenStoreError(
                    TokenStoreErrorCode.WRITE_FAILED,
                    "Failed to delete token file",
                    details={"path": str(self.path), "error_type": type(e).__name__},
                ) from e

            logger.info("Deleted token file %s", self.path)


__all__ = [
    "TokenStore",
    "InMemoryTokenStore",
    "EnvTokenStore",
    "EncryptedFileTokenStore",
    "ENV_ACCESS_TOKEN",
    "ENV_REFRESH_TOKEN",
    "ENV_TOKEN_EXPIRES",
    "ENV_ACCOUNT_ID",
    "ENV_BUSINESS_ID",
]
