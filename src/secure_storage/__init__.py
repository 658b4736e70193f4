"""
Secure Storage - Encrypted file storage with integrity checks and rate limiting.

Features:
- File Encryption at Rest (AES-256-GCM)
- SHA-256 Checksum Sidecars (fail-closed verification)
- Filename Safety Gate (path injection protection)
- Per-Client Token-Bucket Rate Limiting
- Structured Audit Logging
"""

from .exceptions import (
    CipherInitError,
    ConfigurationError,
    DecryptionError,
    IntegrityError,
    NotFoundError,
    RateLimitExceeded,
    SecureStorageError,
    StorageIOError,
    ValidationError,
)
from .rate_limiter import RateLimiter
from .storage import StorageService
from .validation import is_valid_filename, validate_filename

__version__ = "1.0.0"
__author__ = "Secure Storage Team"

__all__ = [
    "CipherInitError",
    "ConfigurationError",
    "DecryptionError",
    "IntegrityError",
    "NotFoundError",
    "RateLimitExceeded",
    "RateLimiter",
    "SecureStorageError",
    "StorageIOError",
    "StorageService",
    "ValidationError",
    "is_valid_filename",
    "validate_filename",
]
