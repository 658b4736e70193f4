"""
src/secure_storage/exceptions.py - Error Taxonomy

Every failure the storage core can report has its own exception type so the
HTTP layer can map outcomes to responses without parsing messages.
"""


class SecureStorageError(Exception):
    """Base class for all secure storage errors."""


class ValidationError(SecureStorageError):
    """Filename failed the safety predicate. Raised before any disk access."""


class CipherInitError(SecureStorageError):
    """Encryption key has the wrong length or the AEAD context could not be built."""


class StorageIOError(SecureStorageError):
    """Underlying read, write or random source failure."""


class NotFoundError(SecureStorageError):
    """Requested artifact does not exist."""


class DecryptionError(SecureStorageError):
    """AEAD authentication failed (wrong key, corrupted or truncated artifact)."""


class IntegrityError(SecureStorageError):
    """Checksum sidecar is missing or does not match the decrypted content."""


class RateLimitExceeded(SecureStorageError):
    """Admission denied by the token bucket."""

    def __init__(self, client: str):
        super().__init__(f"Rate limit exceeded for {client}")
        self.client = client


class ConfigurationError(SecureStorageError):
    """Invalid or missing settings at startup."""
