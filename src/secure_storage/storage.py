"""
src/secure_storage/storage.py - Encryption & Integrity Engine

🔗 FEATURE: END-TO-END INTEGRITY
Turns a plaintext byte stream into a persisted, authenticated, checksummed
artifact and back.

🔄 SAVE FLOW:
Validate name → Read stream (hash tapped) → Seal (fresh nonce) → Write .enc → Write .sha256

🔄 LOAD FLOW:
Validate name → Read .enc → Open (AEAD verify) → Read .sha256 → Compare → Plaintext
         ↓ (Any failure)
    Distinct exception per failed check, no partial plaintext
"""

import errno
import io
import logging
from pathlib import Path
from typing import BinaryIO, Union

from .artifact_store import ArtifactStore
from .crypto import CipherContext
from .exceptions import IntegrityError, NotFoundError, StorageIOError
from .integrity import ChecksumTap, verify_checksum
from .validation import is_valid_filename, validate_filename


logger = logging.getLogger(__name__)


class StorageService:
    """
    Encrypted file storage.

    Features:
    - AES-256-GCM authenticated encryption with a fresh nonce per save
    - SHA-256 checksum sidecar verified on every load (fail closed)
    - Filename gate evaluated before any disk access
    - Atomic artifact writes, serialized per filename
    """

    def __init__(self, key: Union[str, bytes], data_dir: Union[str, Path]):
        """
        Initialize storage service.

        Args:
            key: 32-byte encryption key
            data_dir: Directory holding the artifacts

        Raises:
            CipherInitError: If the key is not valid for AES-256
            StorageIOError: If the data directory cannot be created or written
        """
        self.cipher = CipherContext(key)
        self.store = ArtifactStore(data_dir)
        logger.info("Storage service ready (data dir: %s)", self.store.root)

    def save(self, filename: str, content: Union[BinaryIO, bytes, bytearray]) -> str:
        """
        Encrypt and persist a file.

        Args:
            filename: Client-supplied filename
            content: Readable binary stream (or raw bytes)

        Returns:
            Hex SHA-256 checksum of the stored plaintext

        Raises:
            ValidationError: If the filename is unsafe or too long to store
            StorageIOError: If reading, nonce generation or writing fails
        """
        validate_filename(filename)
        self.store.check_name_length(filename)

        if isinstance(content, (bytes, bytearray)):
            content = io.BytesIO(content)

        tap = ChecksumTap(content)
        try:
            data = tap.read_all()
        except OSError as e:
            raise StorageIOError(f"failed to read file content: {e}") from e

        blob = self.cipher.seal(data)
        checksum = tap.hexdigest()

        with self.store.lock(filename):
            self.store.write_ciphertext(filename, blob)
            self.store.write_checksum(filename, checksum)

        logger.debug("Saved %s (%d bytes)", filename, tap.bytes_read)
        return checksum

    def load(self, filename: str) -> bytes:
        """
        Read, decrypt and verify a file.

        Args:
            filename: Client-supplied filename

        Returns:
            Decrypted plaintext

        Raises:
            ValidationError: If the filename is unsafe
            NotFoundError: If no artifact exists under this name
            DecryptionError: If the artifact is malformed or fails authentication
            IntegrityError: If the checksum is missing or does not match
            StorageIOError: On any other read failure
        """
        validate_filename(filename)

        with self.store.lock(filename):
            try:
                blob = self.store.read_ciphertext(filename)
            except FileNotFoundError as e:
                raise NotFoundError(f"file not found: {filename}") from e
            except OSError as e:
                if e.errno == errno.ENAMETOOLONG:
                    raise NotFoundError(f"file not found: {filename}") from e
                raise StorageIOError(f"failed to read file: {e}") from e

            plaintext = self.cipher.open(blob)

            try:
                stored_checksum = self.store.read_checksum(filename)
            except FileNotFoundError as e:
                raise IntegrityError("integrity check failed: checksum file missing") from e
            except OSError as e:
                raise StorageIOError(f"failed to read checksum: {e}") from e

        verify_checksum(plaintext, stored_checksum)
        return plaintext

    def exists(self, filename: str) -> bool:
        """
        Check whether an encrypted artifact is stored under ``filename``.

        Invalid names report False. The checksum sidecar is not consulted.
        """
        if not is_valid_filename(filename):
            return False
        return self.store.has_ciphertext(filename)
