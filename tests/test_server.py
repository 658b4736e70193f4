"""
test_server.py - HTTP Interface Tests

Exercises the Flask app end to end with the test client.
"""

import io
import shutil
import tempfile
from pathlib import Path
import sys

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from secure_storage.audit_logger import AuditLogger
from secure_storage.integrity import calculate_checksum
from secure_storage.rate_limiter import RateLimiter
from secure_storage.server import GENERIC_DOWNLOAD_ERROR, create_app
from secure_storage.storage import StorageService


TEST_KEY = "12345678901234567890123456789012"


class TestServer:
    """Test cases for the HTTP endpoints."""

    def setup_method(self):
        """Setup test environment."""
        self.temp_dir = Path(tempfile.mkdtemp())
        self.data_dir = self.temp_dir / "data"
        self.storage = StorageService(TEST_KEY, self.data_dir)
        self.audit = AuditLogger(self.temp_dir / "logs")
        self.limiter = RateLimiter(capacity=1000, refill_rate=100.0)
        self.app = create_app(self.storage, self.limiter, self.audit, max_upload_bytes=64 * 1024)
        self.client = self.app.test_client()

    def teardown_method(self):
        """Cleanup test environment."""
        self.audit.shutdown()
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _upload(self, name, data):
        return self.client.post(
            "/upload",
            data={"file": (io.BytesIO(data), name)},
            content_type="multipart/form-data"
        )

    def test_health(self):
        response = self.client.get("/health")
        assert response.status_code == 200
        assert response.get_json() == {"success": True, "message": "healthy"}

    def test_upload_and_download(self):
        plaintext = b"Hello, this is secret data that should be encrypted!"
        response = self._upload("hello.txt", plaintext)
        assert response.status_code == 200
        assert response.get_json()["success"] is True

        assert (self.data_dir / "hello.txt.enc").exists()
        assert (self.data_dir / "hello.txt.sha256").exists()

        response = self.client.get("/download/hello.txt")
        assert response.status_code == 200
        assert response.data == plaintext
        assert response.mimetype == "application/octet-stream"
        assert response.headers["Content-Disposition"] == 'attachment; filename="hello.txt"'

    def test_upload_without_file_field(self):
        response = self.client.post("/upload", data={"note": "no file"}, content_type="multipart/form-data")
        assert response.status_code == 400
        assert "no file provided" in response.get_json()["error"]

    def test_upload_invalid_filename(self):
        response = self._upload("bad name!.txt", b"data")
        assert response.status_code == 400
        assert response.get_json()["success"] is False
        assert list(self.data_dir.iterdir()) == []

    def test_upload_path_in_filename_rejected(self):
        response = self._upload("sub/hello.txt", b"data")
        assert response.status_code == 400
        assert list(self.data_dir.iterdir()) == []

    def test_upload_overlong_filename(self):
        response = self._upload("a" * 300, b"data")
        assert response.status_code == 400
        assert "too long" in response.get_json()["error"]
        assert list(self.data_dir.iterdir()) == []

    def test_download_overlong_filename(self):
        response = self.client.get("/download/" + "a" * 300)
        assert response.status_code == 404
        assert response.get_json() == {"success": False, "error": "file not found"}

    def test_upload_too_large(self):
        response = self._upload("big.bin", b"x" * (128 * 1024))
        assert response.status_code == 413
        assert response.get_json()["success"] is False

    def test_download_missing(self):
        response = self.client.get("/download/ghost.txt")
        assert response.status_code == 404
        assert response.get_json() == {"success": False, "error": "file not found"}

    def test_download_without_name(self):
        response = self.client.get("/download/")
        assert response.status_code == 400

    def test_download_invalid_name(self):
        response = self.client.get("/download/bad%20name.txt")
        assert response.status_code == 400
        assert response.get_json()["error"] == GENERIC_DOWNLOAD_ERROR

    def test_tamper_responses_are_generic(self):
        """Decryption and integrity failures share one response."""
        self._upload("a.txt", b"X")
        enc_path = self.data_dir / "a.txt.enc"
        blob = bytearray(enc_path.read_bytes())
        blob[-1] ^= 0x01
        enc_path.write_bytes(bytes(blob))

        self._upload("b.txt", b"data")
        (self.data_dir / "b.txt.sha256").write_text(calculate_checksum(b"nope"))

        decrypt_failure = self.client.get("/download/a.txt")
        integrity_failure = self.client.get("/download/b.txt")

        assert decrypt_failure.status_code == integrity_failure.status_code == 400
        assert decrypt_failure.get_json() == integrity_failure.get_json()

        self.audit.flush()
        security_types = {e["event_type"] for e in self.audit.get_security_events()}
        assert security_types == {"DECRYPTION_FAILURE", "INTEGRITY_FAILURE"}

    def test_method_not_allowed(self):
        response = self.client.get("/upload")
        assert response.status_code == 405
        assert response.get_json()["success"] is False

        response = self.client.post("/health")
        assert response.status_code == 405


class TestServerRateLimiting:
    """Rate limiting applied in front of every route."""

    def setup_method(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.storage = StorageService(TEST_KEY, self.temp_dir / "data")
        self.limiter = RateLimiter(capacity=3, refill_rate=1.0)
        self.app = create_app(self.storage, self.limiter)
        self.client = self.app.test_client()

    def teardown_method(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_fourth_request_rejected(self):
        statuses = [self.client.get("/health").status_code for _ in range(4)]
        assert statuses == [200, 200, 200, 429]

    def test_clients_limited_separately(self):
        for _ in range(3):
            self.client.get("/health", environ_base={"REMOTE_ADDR": "10.0.0.1"})

        blocked = self.client.get("/health", environ_base={"REMOTE_ADDR": "10.0.0.1"})
        other = self.client.get("/health", environ_base={"REMOTE_ADDR": "10.0.0.2"})

        assert blocked.status_code == 429
        assert blocked.get_json()["success"] is False
        assert other.status_code == 200


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
