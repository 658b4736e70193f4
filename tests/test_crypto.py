"""
test_crypto.py - Cryptographic Function Tests

Tests for the AES-256-GCM cipher context and key derivation.
"""

import pytest
from pathlib import Path
import sys

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from secure_storage.crypto import (
    CipherContext,
    KEY_SIZE,
    NONCE_SIZE,
    TAG_SIZE,
    derive_key,
)
from secure_storage.exceptions import CipherInitError, DecryptionError, StorageIOError


TEST_KEY = b"12345678901234567890123456789012"


class TestCipherContext:
    """Test cases for CipherContext."""

    def setup_method(self):
        """Setup test environment."""
        self.cipher = CipherContext(TEST_KEY)

    def test_key_length_enforced(self):
        """Keys that are not exactly 32 bytes are rejected."""
        with pytest.raises(CipherInitError, match="exactly 32 bytes"):
            CipherContext(b"too-short")

        with pytest.raises(CipherInitError):
            CipherContext(TEST_KEY + b"x")

        with pytest.raises(CipherInitError):
            CipherContext(b"")

    def test_string_key_accepted(self):
        """A 32-character string key is UTF-8 encoded."""
        cipher = CipherContext(TEST_KEY.decode())
        assert cipher.open(self.cipher.seal(b"data")) == b"data"

    def test_seal_layout(self):
        """Sealed blob is nonce || ciphertext || tag."""
        plaintext = b"This is sensitive test data!"
        blob = self.cipher.seal(plaintext)

        assert len(blob) == NONCE_SIZE + len(plaintext) + TAG_SIZE
        assert plaintext not in blob

    def test_seal_open_round_trip(self):
        """Basic encryption and decryption."""
        plaintext = b"This is sensitive test data!"
        assert self.cipher.open(self.cipher.seal(plaintext)) == plaintext

    def test_empty_plaintext(self):
        """Empty input still produces an authenticated blob."""
        blob = self.cipher.seal(b"")
        assert len(blob) == NONCE_SIZE + TAG_SIZE
        assert self.cipher.open(blob) == b""

    def test_fresh_nonce_per_seal(self):
        """Identical plaintexts never share a nonce."""
        first = self.cipher.seal(b"same content")
        second = self.cipher.seal(b"same content")

        assert first[:NONCE_SIZE] != second[:NONCE_SIZE]
        assert first != second

    def test_authentication_failure(self):
        """Tampered ciphertext fails authentication."""
        blob = bytearray(self.cipher.seal(b"Secret message"))
        blob[NONCE_SIZE] ^= 1  # Flip one bit

        with pytest.raises(DecryptionError):
            self.cipher.open(bytes(blob))

    def test_tampered_nonce(self):
        """Tampered nonce fails authentication."""
        blob = bytearray(self.cipher.seal(b"Secret message"))
        blob[0] ^= 0x80

        with pytest.raises(DecryptionError):
            self.cipher.open(bytes(blob))

    def test_wrong_key(self):
        """A different key cannot open the blob."""
        blob = self.cipher.seal(b"Secret message")
        other = CipherContext(b"abcdefghijklmnopqrstuvwxyz012345")

        with pytest.raises(DecryptionError):
            other.open(blob)

    def test_truncated_blob(self):
        """Blobs shorter than a nonce are malformed."""
        with pytest.raises(DecryptionError, match="too small"):
            self.cipher.open(b"\x00" * (NONCE_SIZE - 1))

    def test_blob_without_full_tag(self):
        """A nonce with a partial tag fails authentication."""
        with pytest.raises(DecryptionError):
            self.cipher.open(b"\x00" * (NONCE_SIZE + 4))

    def test_random_source_failure(self, monkeypatch):
        def broken_rng(n):
            raise OSError("entropy source unavailable")

        monkeypatch.setattr("secure_storage.crypto.secrets.token_bytes", broken_rng)

        with pytest.raises(StorageIOError):
            self.cipher.seal(b"data")


class TestKeyDerivation:
    """Test cases for HKDF key derivation."""

    def test_derived_key_length(self):
        key = derive_key("correct horse battery staple")
        assert len(key) == KEY_SIZE
        CipherContext(key)

    def test_derivation_is_deterministic(self):
        assert derive_key("secret") == derive_key(b"secret")

    def test_different_secrets_differ(self):
        assert derive_key("secret-a") != derive_key("secret-b")

    def test_context_separates_keys(self):
        assert derive_key("secret", info=b"one") != derive_key("secret", info=b"two")

    def test_empty_secret_rejected(self):
        with pytest.raises(CipherInitError):
            derive_key("")


if __name__ == "__main__":
    # Run tests
    pytest.main([__file__, "-v"])
