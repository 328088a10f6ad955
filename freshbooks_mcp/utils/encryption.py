"""AES-256-GCM and scrypt primitives for secure token storage.

This module provides the cryptographic building blocks used by the
encrypted token store: scrypt key derivation and AES-256-GCM authenticated
encryption. GCM mode provides both confidentiality and integrity protection,
so a wrong key and a tampered ciphertext fail the same way.

Security considerations:
- Keys must be 256 bits (32 bytes) for AES-256
- IVs are 96 bits (12 bytes) and must be unique per encryption
- Never reuse an IV with the same key
"""

from __future__ import annotations

import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from freshbooks_mcp.utils.errors import (
    TokenStoreError,
    TokenStoreErrorCode,
    ValidationError,
)

# Constants
KEY_SIZE_BITS = 256
KEY_SIZE_BYTES = KEY_SIZE_BITS // 8  # 32 bytes
IV_SIZE_BYTES = 12  # 96 bits, recommended for GCM

# scrypt work factors (interactive-login profile)
SCRYPT_N = 2**15
SCRYPT_R = 8
SCRYPT_P = 1


def derive_key(password: bytes, salt: bytes) -> bytes:
    """Derive a 256-bit key from password material with scrypt.

    The derivation is deterministic: the same password and salt always
    produce the same key, which is what lets a file written by one process
    be read by the next one on the same machine.

    Args:
        password: Secret input material.
        salt: KDF salt.

    Returns:
        A 32-byte key.

    Raises:
        ValidationError: If the salt is empty.
    """
    if not salt:
        raise ValidationError("KDF salt must not be empty", field="salt")

    kdf = Scrypt(salt=salt, length=KEY_SIZE_BYTES, n=SCRYPT_N, r=SCRYPT_R, p=SCRYPT_P)
    return kdf.derive(password)


def encrypt_data(plaintext: bytes, key: bytes) -> dict[str, bytes]:
    """Encrypt data using AES-256-GCM authenticated encryption.

    Generates a unique 12-byte IV for each encryption operation. The IV must
    be stored alongside the ciphertext for decryption.

    Args:
        plaintext: The data to encrypt.
        key: A 32-byte (256-bit) encryption key.

    Returns:
        A dictionary containing:
            - "iv": The 12-byte initialization vector (nonce)
            - "ciphertext": The encrypted data with the 16-byte tag appended

    Raises:
        ValidationError: If the key is not exactly 32 bytes.
    """
    _validate_key(key)

    iv = os.urandom(IV_SIZE_BYTES)
    ciphertext = AESGCM(key).encrypt(iv, plaintext, None)
    return {"iv": iv, "ciphertext": ciphertext}


def decrypt_data(iv: bytes, ciphertext: bytes, key: bytes) -> bytes:
    """Decrypt data using AES-256-GCM authenticated decryption.

    Decrypts and verifies the authentication tag in a single operation.

    Args:
        iv: The 12-byte initialization vector used during encryption.
        ciphertext: The encrypted data with authentication tag.
        key: The 32-byte (256-bit) encryption key used for encryption.

    Returns:
        The decrypted plaintext data.

    Raises:
        ValidationError: If the key or IV has invalid length.
        TokenStoreError: With kind DECRYPTION_FAILED if the key is wrong or
            the ciphertext was tampered with.
    """
    _validate_key(key)
    _validate_iv(iv)

    try:
        return AESGCM(key).decrypt(iv, ciphertext, None)
    except InvalidTag as e:
        raise TokenStoreError(
            TokenStoreErrorCode.DECRYPTION_FAILED,
            "Failed to decrypt data - invalid key or corrupted ciphertext",
            details={"error_type": type(e).__name__},
        ) from e


def _validate_key(key: bytes) -> None:
    """Validate that the key is the correct length for AES-256.

    Raises:
        ValidationError: If the key is not exactly 32 bytes.
    """
    if len(key) != KEY_SIZE_BYTES:
        raise ValidationError(
            f"Invalid key length: expected {KEY_SIZE_BYTES} bytes, got {len(key)}",
            field="key",
            details={"expected_length": KEY_SIZE_BYTES, "actual_length": len(key)},
        )


def _validate_iv(iv: bytes) -> None:
    """Validate that the IV is the correct length for GCM.

    Raises:
        ValidationError: If the IV is not exactly 12 bytes.
    """
    if len(iv) != IV_SIZE_BYTES:
        raise ValidationError(
            f"Invalid IV length: expected {IV_SIZE_BYTES} bytes, got {len(iv)}",
            field="iv",
            details={"expected_length": IV_SIZE_BYTES, "actual_length": len(iv)},
        )


__all__ = [
    "derive_key",
    "encrypt_data",
    "decrypt_data",
]
