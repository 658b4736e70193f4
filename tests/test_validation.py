"""
test_validation.py - Filename Safety Gate Tests
"""

import pytest
from pathlib import Path
import sys

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from secure_storage.exceptions import ValidationError
from secure_storage.validation import FileValidator, is_valid_filename, validate_filename


class TestFilenameValidation:
    """Test cases for the filename gate."""

    @pytest.mark.parametrize("name", [
        "file123.txt",
        "my-file_1.txt",
        "README",
        ".hidden",
        "archive.tar.gz",
        "A-Z_a-z.0-9",
    ])
    def test_accepts_safe_names(self, name):
        validate_filename(name)
        assert is_valid_filename(name)

    @pytest.mark.parametrize("name,message", [
        ("", "empty"),
        ("..", "path traversal"),
        ("../../etc/passwd", "path traversal"),
        ("a..b", "path traversal"),
        ("dir/file.txt", "path separators"),
        ("/etc/passwd", "path separators"),
        ("dir\\file.txt", "path separators"),
        ("name with space", "invalid characters"),
        ("semi;colon", "invalid characters"),
        ("café.txt", "invalid characters"),
        ("trailing\n", "invalid characters"),
        ("nul\x00byte", "invalid characters"),
        (".", "invalid filename"),
    ])
    def test_rejects_unsafe_names(self, name, message):
        with pytest.raises(ValidationError, match=message):
            validate_filename(name)
        assert not is_valid_filename(name)

    def test_rejects_non_string(self):
        with pytest.raises(ValidationError):
            FileValidator.validate(b"file.txt")
        assert not FileValidator.is_valid(None)

    def test_no_case_folding(self):
        """Upper and lower case are distinct, both accepted."""
        assert is_valid_filename("FILE.TXT")
        assert is_valid_filename("file.txt")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
