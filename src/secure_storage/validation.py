"""
src/secure_storage/validation.py - Filename Safety Gate

Rejects identifiers that could escape the storage directory before any
filesystem access happens. Only literal character classes are checked; no
case folding or Unicode normalization is applied.
"""

import re

from .exceptions import ValidationError


_ALLOWED_PATTERN = re.compile(r'[A-Za-z0-9_.\-]+')


class FileValidator:
    """
    Validator for client-supplied filenames.
    """

    @staticmethod
    def validate(name: str) -> None:
        """
        Validate a filename for use as a storage key.

        Args:
            name: Filename as supplied by the client

        Raises:
            ValidationError: If the filename is unsafe
        """
        if not isinstance(name, str):
            raise ValidationError("filename must be a string")

        if name == "":
            raise ValidationError("filename cannot be empty")

        # Path traversal attempts
        if '..' in name:
            raise ValidationError("filename contains path traversal attempt")

        if '/' in name or '\\' in name:
            raise ValidationError("filename cannot contain path separators")

        if not _ALLOWED_PATTERN.fullmatch(name):
            raise ValidationError("filename contains invalid characters")

        if name in ('.', '..'):
            raise ValidationError("invalid filename")

    @staticmethod
    def is_valid(name: str) -> bool:
        """
        Check a filename without raising.

        Args:
            name: Filename to check

        Returns:
            True if the filename is safe
        """
        try:
            FileValidator.validate(name)
        except ValidationError:
            return False
        return True


def validate_filename(name: str) -> None:
    """Raise ValidationError unless ``name`` is a safe storage key."""
    FileValidator.validate(name)


def is_valid_filename(name: str) -> bool:
    return FileValidator.is_valid(name)
