"""
Tests for Secure Storage

Test suite for all storage features including:
- File encryption at rest
- Checksum sidecars and fail-closed verification
- Filename safety gate
- Per-client rate limiting
- Audit logging
- HTTP interface
"""

__version__ = "1.0.0"
