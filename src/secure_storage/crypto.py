"""
src/secure_storage/crypto.py - File Encryption at Rest

🔐 FEATURE: AUTHENTICATED ENCRYPTION
Seals file contents with AES-256-GCM under a single process-wide key.

🏗️ ARCHITECTURE:
- Storage Key: 256-bit key, loaded once at startup and never mutated
- Nonce: 96-bit random value drawn from the OS CSPRNG for every seal
- Authentication Tag: 128-bit tag appended to the ciphertext by GCM
- Sealed Blob: nonce || ciphertext || tag, exactly what is persisted

🛡️ SECURITY FEATURES:
- Fresh random nonce per encryption, never a counter
- Tampered ciphertext, tampered nonce or wrong key all fail authentication
- Optional HKDF-SHA256 derivation for secrets that are not 32 raw bytes
"""

import secrets
from typing import Tuple, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from .exceptions import CipherInitError, DecryptionError, StorageIOError


KEY_SIZE = 32      # AES-256
NONCE_SIZE = 12    # 96-bit nonce for AES-GCM
TAG_SIZE = 16      # 128-bit authentication tag
ALGORITHM = "AES-256-GCM"


def derive_key(secret: Union[str, bytes], info: bytes = b'secure-storage-key') -> bytes:
    """
    Derive a 32-byte storage key from an arbitrary-length secret using HKDF.

    Args:
        secret: Passphrase or raw secret of any length
        info: Application-specific context

    Returns:
        32-byte key
    """
    if isinstance(secret, str):
        secret = secret.encode('utf-8')
    if not secret:
        raise CipherInitError("cannot derive a key from an empty secret")

    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=KEY_SIZE,
        salt=None,
        info=info
    )
    return hkdf.derive(secret)


class CipherContext:
    """
    AES-256-GCM context bound to the storage key.

    Immutable after construction, so one instance is safely shared by any
    number of concurrent save/load calls.
    """

    def __init__(self, key: Union[str, bytes]):
        """
        Initialize the cipher.

        Args:
            key: Exactly 32 bytes (a str is UTF-8 encoded first)

        Raises:
            CipherInitError: If the key has the wrong length
        """
        if isinstance(key, str):
            key = key.encode('utf-8')
        if not isinstance(key, (bytes, bytearray)):
            raise CipherInitError("encryption key must be bytes")
        if len(key) != KEY_SIZE:
            raise CipherInitError(
                f"encryption key must be exactly {KEY_SIZE} bytes for AES-256, got {len(key)}"
            )

        try:
            self._aesgcm = AESGCM(bytes(key))
        except (ValueError, TypeError) as e:
            raise CipherInitError(f"failed to create cipher: {e}") from e

    @staticmethod
    def generate_nonce() -> bytes:
        """
        Draw a fresh nonce from the OS CSPRNG.

        Raises:
            StorageIOError: If the random source fails
        """
        try:
            return secrets.token_bytes(NONCE_SIZE)
        except (OSError, NotImplementedError) as e:
            raise StorageIOError(f"failed to generate nonce: {e}") from e

    def seal(self, plaintext: bytes) -> bytes:
        """
        Encrypt plaintext under a fresh nonce.

        Args:
            plaintext: Data to encrypt

        Returns:
            nonce || ciphertext || tag
        """
        nonce = self.generate_nonce()
        return nonce + self._aesgcm.encrypt(nonce, plaintext, None)

    def split(self, blob: bytes) -> Tuple[bytes, bytes]:
        """
        Split a sealed blob into nonce and ciphertext+tag.

        Raises:
            DecryptionError: If the blob is shorter than a nonce
        """
        if len(blob) < NONCE_SIZE:
            raise DecryptionError("encrypted file is too small")
        return blob[:NONCE_SIZE], blob[NONCE_SIZE:]

    def open(self, blob: bytes) -> bytes:
        """
        Decrypt and authenticate a sealed blob.

        Args:
            blob: nonce || ciphertext || tag

        Returns:
            Decrypted plaintext

        Raises:
            DecryptionError: If the blob is malformed or authentication fails
        """
        nonce, ciphertext = self.split(blob)
        try:
            return self._aesgcm.decrypt(nonce, ciphertext, None)
        except InvalidTag as e:
            raise DecryptionError("failed to decrypt file: authentication failed") from e
