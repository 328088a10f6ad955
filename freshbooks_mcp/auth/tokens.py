"""Token encryption for the encrypted file store.

Turns a TokenRecord into an envelope that is safe to leave on disk, and back.

The key is derived with scrypt from machine-bound material: the OS user, the
platform, the hostname and an optional operator passphrase
(FRESHBOOKS_TOKEN_PASSWORD), salted with a fixed application salt. There is
no recovery path: a file written on one host, by one user, with one
passphrase cannot be read if any of those change.

Envelope format (JSON):
    {"version": 1, "iv": "<hex>", "ciphertext": "<hex, tag appended>"}
"""

from __future__ import annotations

import getpass
import logging
import os
import socket
import sys

from pydantic import ValidationError as PydanticValidationError

from freshbooks_mcp.auth.models import TokenRecord
from freshbooks_mcp.utils.encryption import decrypt_data, derive_key, encrypt_data
from freshbooks_mcp.utils.errors import (
    TokenStoreError,
    TokenStoreErrorCode,
    ValidationError,
)

logger = logging.getLogger(__name__)

ENVELOPE_VERSION = 1
APP_SALT = b"freshbooks-mcp/token-store/v1"
PASSPHRASE_ENV_VAR = "FRESHBOOKS_TOKEN_PASSWORD"


def _current_user() -> str:
    try:
        return getpass.getuser()
    except (OSError, KeyError):
        return "unknown"


def machine_identity() -> str:
    """Describe the user/platform/host this process runs as.

    Returns:
        A string combining the OS user, platform and hostname.
    """
    return "-".join([_current_user(), sys.platform, socket.gethostname()])


def get_encryption_key(passphrase: str | None = None) -> bytes:
    """Derive the token encryption key for this machine.

    Args:
        passphrase: Operator passphrase mixed into the derivation. When None,
            FRESHBOOKS_TOKEN_PASSWORD is read from the environment.

    Returns:
        A 32-byte (256-bit) encryption key.
    """
    if passphrase is None:
        passphrase = os.getenv(PASSPHRASE_ENV_VAR, "")

    material = "\x00".join([machine_identity(), passphrase]).encode("utf-8")
    key = derive_key(material, APP_SALT)
    logger.debug("Derived token encryption key (passphrase set: %s)", bool(passphrase))
    return key


def encrypt_token(record: TokenRecord, key: bytes) -> dict[str, object]:
    """Encrypt a token record into a storable envelope.

    Args:
        record: The token record to protect.
        key: A 32-byte encryption key.

    Returns:
        Envelope dict with version, hex IV and hex ciphertext.
    """
    plaintext = record.model_dump_json().encode("utf-8")
    encrypted = encrypt_data(plaintext, key)
    return {
        "version": ENVELOPE_VERSION,
        "iv": encrypted["iv"].hex(),
        "ciphertext": encrypted["ciphertext"].hex(),
    }


def decrypt_token(envelope: dict[str, object], key: bytes) -> TokenRecord:
    """Decrypt an envelope back into a token record.

    Args:
        envelope: Envelope produced by encrypt_token().
        key: The 32-byte key used for encryption.

    Returns:
        The decrypted TokenRecord.

    Raises:
        TokenStoreError: DECRYPTION_FAILED when the envelope is malformed,
            the key is wrong or the ciphertext was tampered with;
            CORRUPT_RECORD when decryption succeeds but the plaintext is not a
            valid token record.
    """
    version = envelope.get("version")
    if version != ENVELOPE_VERSION:
        raise TokenStoreError(
            TokenStoreErrorCode.DECRYPTION_FAILED,
            "Unsupported token envelope version",
            details={"version": version},
        )

    try:
        iv = bytes.fromhex(str(envelope["iv"]))
        ciphertext = bytes.fromhex(str(envelope["ciphertext"]))
    except KeyError as e:
        raise TokenStoreError(
            TokenStoreErrorCode.DECRYPTION_FAILED,
            "Invalid token envelope - missing required field",
            details={"missing_field": str(e)},
        ) from e
    except ValueError as e:
        raise TokenStoreError(
            TokenStoreErrorCode.DECRYPTION_FAILED,
            "Invalid token envelope - invalid hex encoding",
        ) from e

    try:
        plaintext = decrypt_data(iv, ciphertext, key)
    except ValidationError as e:
        raise TokenStoreError(
            TokenStoreErrorCode.DECRYPTION_FAILED,
            "Invalid token envelope - bad IV or key length",
            details={"field": e.field},
        ) from e

    try:
        return TokenRecord.model_validate_json(plaintext)
    except (PydanticValidationError, UnicodeDecodeError) as e:
        # Error text may quote the offending input, so only the count is kept
        error_count = e.error_count() if isinstance(e, PydanticValidationError) else 1
        raise TokenStoreError(
            TokenStoreErrorCode.CORRUPT_RECORD,
            "Decrypted data is not a valid token record",
            details={"error_count": error_count},
        ) from e


__all__ = [
    "APP_SALT",
    "PASSPHRASE_ENV_VAR",
    "machine_identity",
    "get_encryption_key",
    "encrypt_token",
    "decrypt_token",
]
