"""
src/secure_storage/integrity.py - Checksums and Integrity Verification

🔍 FEATURE: CHECKSUM SIDECARS
SHA-256 fingerprints of the plaintext, stored next to each encrypted artifact
and re-verified after every successful decryption.

🏗️ ARCHITECTURE:
- Checksum Tap: hashes bytes as they are read off the upload stream
- Checksum Record: 64 lowercase hex characters, no trailing newline
- Verification: constant-time comparison against the stored record

Decryption already authenticates the ciphertext; the checksum is a second,
human-inspectable check that fails closed when its record is missing.
"""

import hashlib
import hmac
from typing import BinaryIO

from .exceptions import IntegrityError


CHUNK_SIZE = 64 * 1024
CHECKSUM_LENGTH = 64


class ChecksumTap:
    """
    Reads a binary stream to the end while feeding a SHA-256 accumulator.

    The accumulator observes exactly the bytes returned by ``read_all``.
    """

    def __init__(self, stream: BinaryIO, chunk_size: int = CHUNK_SIZE):
        self.stream = stream
        self.chunk_size = chunk_size
        self._hasher = hashlib.sha256()
        self.bytes_read = 0

    def read_all(self) -> bytes:
        """
        Consume the stream into memory.

        Returns:
            Every byte read from the stream
        """
        buffer = bytearray()
        for chunk in iter(lambda: self.stream.read(self.chunk_size), b''):
            self._hasher.update(chunk)
            buffer += chunk
            self.bytes_read += len(chunk)
        return bytes(buffer)

    def hexdigest(self) -> str:
        return self._hasher.hexdigest()


def calculate_checksum(data: bytes) -> str:
    """
    Calculate SHA-256 checksum of data in memory.

    Args:
        data: Data to checksum

    Returns:
        Hex-encoded SHA-256 checksum
    """
    return hashlib.sha256(data).hexdigest()


def verify_checksum(data: bytes, stored: bytes) -> None:
    """
    Compare the checksum of ``data`` to a stored checksum record.

    The stored record must match exactly: no whitespace stripping and no
    case folding.

    Args:
        data: Decrypted plaintext
        stored: Raw bytes of the checksum sidecar

    Raises:
        IntegrityError: If the checksums differ
    """
    calculated = calculate_checksum(data).encode('ascii')
    if not hmac.compare_digest(calculated, stored):
        raise IntegrityError("integrity check failed: hash mismatch")
