"""
src/secure_storage/artifact_store.py - On-Disk Artifact Layout

Maps a validated filename to two sibling files in the data directory:
- <name>.enc     nonce || ciphertext || tag, owner read/write only
- <name>.sha256  hex SHA-256 of the plaintext, world readable

Writes go to a temporary file in the same directory and are renamed into
place, so readers never see a half-written artifact. Saves and loads of the
same name are serialized through a per-name lock.
"""

import os
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, Union

from .exceptions import StorageIOError, ValidationError


CIPHERTEXT_SUFFIX = ".enc"
CHECKSUM_SUFFIX = ".sha256"

CIPHERTEXT_MODE = 0o600
CHECKSUM_MODE = 0o644

TEMP_PREFIX = ".tmp-"
DEFAULT_NAME_MAX = 255


class ArtifactStore:
    """
    Filesystem persistence for encrypted artifacts and their checksums.

    Callers are expected to validate names first; the store only joins them
    onto its root directory.
    """

    def __init__(self, root: Union[str, Path]):
        """
        Initialize the store, creating the root directory if needed.

        Args:
            root: Data directory

        Raises:
            StorageIOError: If the directory cannot be created or written
        """
        self.root = Path(root)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageIOError(f"failed to create data directory {self.root}: {e}") from e

        if not os.access(self.root, os.W_OK | os.X_OK):
            raise StorageIOError(f"data directory {self.root} is not writable")

        try:
            self.name_max = os.pathconf(self.root, "PC_NAME_MAX")
        except (OSError, ValueError, AttributeError):
            self.name_max = DEFAULT_NAME_MAX

        # Thread safety
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def ciphertext_path(self, name: str) -> Path:
        return self.root / (name + CIPHERTEXT_SUFFIX)

    def checksum_path(self, name: str) -> Path:
        return self.root / (name + CHECKSUM_SUFFIX)

    def check_name_length(self, name: str):
        """
        Reject names whose artifact files cannot exist in this directory.

        Raises:
            ValidationError: If name plus the longest suffix exceeds NAME_MAX
        """
        longest = max(len(CIPHERTEXT_SUFFIX), len(CHECKSUM_SUFFIX))
        if len(os.fsencode(name)) + longest > self.name_max:
            raise ValidationError(
                f"filename too long: at most {self.name_max - longest} characters allowed"
            )

    @contextmanager
    def lock(self, name: str) -> Iterator[None]:
        """Hold the per-name lock for the duration of the block."""
        with self._locks_guard:
            name_lock = self._locks.setdefault(name, threading.Lock())
        with name_lock:
            yield

    def _atomic_write(self, target: Path, data: bytes, mode: int):
        """Write data to a temp file next to target, then rename it over target."""
        fd, tmp_name = tempfile.mkstemp(dir=self.root, prefix=TEMP_PREFIX, suffix=".tmp")
        try:
            with os.fdopen(fd, 'wb') as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_name, mode)
            os.replace(tmp_name, target)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise

    def write_ciphertext(self, name: str, blob: bytes):
        """
        Persist a sealed blob, replacing any previous artifact.

        Raises:
            StorageIOError: If the write fails
        """
        try:
            self._atomic_write(self.ciphertext_path(name), blob, CIPHERTEXT_MODE)
        except OSError as e:
            raise StorageIOError(f"failed to write encrypted file: {e}") from e

    def write_checksum(self, name: str, checksum: str):
        """
        Persist a checksum record, replacing any previous record.

        Raises:
            StorageIOError: If the write fails
        """
        try:
            self._atomic_write(self.checksum_path(name), checksum.encode('ascii'), CHECKSUM_MODE)
        except OSError as e:
            raise StorageIOError(f"failed to write checksum file: {e}") from e

    def read_ciphertext(self, name: str) -> bytes:
        """
        Read a sealed blob.

        Raises:
            FileNotFoundError: If no artifact exists under this name
            OSError: On any other read failure
        """
        return self.ciphertext_path(name).read_bytes()

    def read_checksum(self, name: str) -> bytes:
        """
        Read a checksum record.

        Raises:
            FileNotFoundError: If the sidecar is missing
            OSError: On any other read failure
        """
        return self.checksum_path(name).read_bytes()

    def has_ciphertext(self, name: str) -> bool:
        try:
            return self.ciphertext_path(name).is_file()
        except OSError:
            return False
