"""Tests for encryption utilities."""

import pytest
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from freshbooks_mcp.utils.encryption import (
    decrypt_data,
    derive_key,
    encrypt_data,
)
from freshbooks_mcp.utils.errors import (
    TokenStoreError,
    TokenStoreErrorCode,
    ValidationError,
)


class TestDeriveKey:
    """Tests for derive_key function."""

    def test_derives_32_byte_key(self) -> None:
        """Derived key should be usable for AES-256."""
        key = derive_key(b"password", b"salt")
        assert len(key) == 32

    def test_is_deterministic(self) -> None:
        """Same password and salt should give the same key."""
        assert derive_key(b"password", b"salt") == derive_key(b"password", b"salt")

    def test_different_password_gives_different_key(self) -> None:
        """Changing the password material should change the key."""
        assert derive_key(b"password-a", b"salt") != derive_key(b"password-b", b"salt")

    def test_different_salt_gives_different_key(self) -> None:
        """Changing the salt should change the key."""
        assert derive_key(b"password", b"salt-a") != derive_key(b"password", b"salt-b")

    def test_raises_on_empty_salt(self) -> None:
        """Should raise ValidationError for an empty salt."""
        with pytest.raises(ValidationError) as exc_info:
            derive_key(b"password", b"")
        assert exc_info.value.field == "salt"


class TestEncryptDecrypt:
    """Tests for encrypt_data and decrypt_data functions."""

    @pytest.fixture
    def key(self) -> bytes:
        """Generate a test encryption key."""
        return AESGCM.generate_key(bit_length=256)

    def test_encrypt_returns_iv_and_ciphertext(self, key: bytes) -> None:
        """Encrypted result should contain iv and ciphertext."""
        plaintext = b"Hello, World!"
        result = encrypt_data(plaintext, key)

        assert "iv" in result
        assert "ciphertext" in result
        assert len(result["iv"]) == 12  # 96-bit IV
        assert len(result["ciphertext"]) == len(plaintext) + 16  # GCM tag

    def test_decrypt_recovers_plaintext(self, key: bytes) -> None:
        """Decryption should recover original plaintext."""
        plaintext = b'{"access_token": "abc"}'
        encrypted = encrypt_data(plaintext, key)

        decrypted = decrypt_data(encrypted["iv"], encrypted["ciphertext"], key)
        assert decrypted == plaintext

    def test_unique_iv_per_encryption(self, key: bytes) -> None:
        """Each encryption should use a unique IV."""
        encryptions = [encrypt_data(b"Same message", key) for _ in range(10)]
        ivs = [e["iv"] for e in encryptions]
        assert len(set(ivs)) == 10

    def test_same_plaintext_produces_different_ciphertext(self, key: bytes) -> None:
        """Same plaintext should produce different ciphertext due to unique IV."""
        encryptions = [encrypt_data(b"Same message", key) for _ in range(10)]
        ciphertexts = [e["ciphertext"] for e in encryptions]
        assert len(set(ciphertexts)) == 10


class TestDecryptionFailures:
    """Tests for authenticated decryption failures."""

    @pytest.fixture
    def key(self) -> bytes:
        return AESGCM.generate_key(bit_length=256)

    def test_wrong_key_raises_decryption_failed(self, key: bytes) -> None:
        """A different key should fail authentication."""
        encrypted = encrypt_data(b"secret", key)

        with pytest.raises(TokenStoreError) as exc_info:
            other_key = AESGCM.generate_key(bit_length=256)
            decrypt_data(encrypted["iv"], encrypted["ciphertext"], other_key)
        assert exc_info.value.code is TokenStoreErrorCode.DECRYPTION_FAILED

    def test_tampered_ciphertext_raises_decryption_failed(self, key: bytes) -> None:
        """Flipping a ciphertext bit should fail authentication."""
        encrypted = encrypt_data(b"secret", key)
        tampered = bytearray(encrypted["ciphertext"])
        tampered[0] ^= 0x01

        with pytest.raises(TokenStoreError) as exc_info:
            decrypt_data(encrypted["iv"], bytes(tampered), key)
        assert exc_info.value.code is TokenStoreErrorCode.DECRYPTION_FAILED

    def test_tampered_iv_raises_decryption_failed(self, key: bytes) -> None:
        """A different IV should fail authentication."""
        encrypted = encrypt_data(b"secret", key)
        tampered_iv = bytes([encrypted["iv"][0] ^ 0x01]) + encrypted["iv"][1:]

        with pytest.raises(TokenStoreError) as exc_info:
            decrypt_data(tampered_iv, encrypted["ciphertext"], key)
        assert exc_info.value.code is TokenStoreErrorCode.DECRYPTION_FAILED


class TestValidation:
    """Tests for key and IV validation."""

    def test_encrypt_rejects_short_key(self) -> None:
        """Should raise ValidationError for a key that is not 32 bytes."""
        with pytest.raises(ValidationError) as exc_info:
            encrypt_data(b"data", b"short")
        assert "32" in str(exc_info.value)

    def test_decrypt_rejects_short_key(self) -> None:
        """Should raise ValidationError for a key that is not 32 bytes."""
        with pytest.raises(ValidationError):
            decrypt_data(b"\x00" * 12, b"data", b"short")

    def test_decrypt_rejects_bad_iv(self) -> None:
        """Should raise ValidationError for an IV that is not 12 bytes."""
        with pytest.raises(ValidationError) as exc_info:
            decrypt_data(b"\x00" * 8, b"data", AESGCM.generate_key(bit_length=256))
        assert "12" in str(exc_info.value)
