"""
src/secure_storage/audit_logger.py - Access Auditing & Logging

Provides audit logging for the storage service with:
- Structured JSON events with per-event tamper-detection checksums
- Rotating audit and security log files
- Asynchronous writes from a background worker thread
- Log integrity verification
"""

import hashlib
import json
import logging
import logging.handlers
import queue
import threading
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional


logger = logging.getLogger(__name__)


class EventType(Enum):
    """Types of events to log."""
    FILE_UPLOAD = "FILE_UPLOAD"
    FILE_DOWNLOAD = "FILE_DOWNLOAD"
    VALIDATION_FAILURE = "VALIDATION_FAILURE"
    DECRYPTION_FAILURE = "DECRYPTION_FAILURE"
    INTEGRITY_FAILURE = "INTEGRITY_FAILURE"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    SYSTEM_START = "SYSTEM_START"
    SYSTEM_STOP = "SYSTEM_STOP"


class Severity(Enum):
    """Event severity levels."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


@dataclass
class AuditEvent:
    """Structured audit event."""
    event_id: str
    timestamp: str
    event_type: str
    severity: str
    client: str
    resource: Optional[str]
    action: str
    status: str
    details: Dict[str, Any]
    checksum: Optional[str] = None


def _event_checksum(event_dict: Dict[str, Any]) -> str:
    payload = {k: v for k, v in event_dict.items() if k != 'checksum'}
    return hashlib.sha256(json.dumps(payload, sort_keys=True).encode()).hexdigest()


class AuditLogger:
    """
    Audit logger for the secure storage service.

    Every event goes to ``audit.log``; HIGH and CRITICAL events are also
    written to ``security.log``.
    """

    def __init__(self, log_dir: Path = Path("logs"),
                 max_log_size: int = 10 * 1024 * 1024,  # 10MB
                 backup_count: int = 5):
        """
        Initialize audit logger.

        Args:
            log_dir: Directory for log files
            max_log_size: Maximum size per log file
            backup_count: Number of backup files to keep
        """
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)

        self.max_log_size = max_log_size
        self.backup_count = backup_count

        self._setup_loggers()

        # Async logging queue
        self._log_queue: "queue.Queue[Optional[AuditEvent]]" = queue.Queue()
        self._log_thread = threading.Thread(target=self._log_worker, name="audit-logger", daemon=True)
        self._log_thread.start()
        self._closed = False

        self.log_system_event(EventType.SYSTEM_START, "Audit logging started")

    def _make_logger(self, name: str, filename: str, level: int) -> logging.Logger:
        # One logger per directory so several instances never share handlers
        file_logger = logging.getLogger(f"secure_storage.audit.{name}.{self.log_dir.resolve()}")
        file_logger.setLevel(level)
        file_logger.propagate = False

        handler = logging.handlers.RotatingFileHandler(
            self.log_dir / filename,
            maxBytes=self.max_log_size,
            backupCount=self.backup_count
        )
        handler.setFormatter(logging.Formatter('%(message)s'))
        file_logger.addHandler(handler)
        return file_logger

    def _setup_loggers(self):
        """Setup rotating file loggers."""
        self.audit_logger = self._make_logger('audit', 'audit.log', logging.INFO)
        self.security_logger = self._make_logger('security', 'security.log', logging.WARNING)

    def _log_worker(self):
        """Background worker for async logging."""
        while True:
            event = self._log_queue.get()
            try:
                if event is None:  # Shutdown signal
                    break
                self._write_log_entry(event)
            except Exception:
                logger.exception("Audit logging error")
            finally:
                self._log_queue.task_done()

    def _create_event(self, event_type: EventType, client: str, action: str,
                      status: str, severity: Severity = Severity.LOW,
                      resource: Optional[str] = None,
                      details: Optional[Dict[str, Any]] = None) -> AuditEvent:
        """Create structured audit event."""
        event = AuditEvent(
            event_id=str(uuid.uuid4()),
            timestamp=datetime.now(timezone.utc).isoformat(),
            event_type=event_type.value,
            severity=severity.value,
            client=client,
            resource=resource,
            action=action,
            status=status,
            details=details or {}
        )
        event.checksum = _event_checksum(asdict(event))
        return event

    def _write_log_entry(self, event: AuditEvent):
        """Write log entry to appropriate logger."""
        event_json = json.dumps(asdict(event), sort_keys=True)

        self.audit_logger.info(event_json)

        if event.severity in (Severity.HIGH.value, Severity.CRITICAL.value):
            self.security_logger.warning(event_json)

    def _enqueue(self, event: AuditEvent):
        if self._closed:
            logger.warning("Audit event dropped after shutdown: %s", event.event_type)
            return
        self._log_queue.put(event)

    def log_upload(self, client: str, filename: str, status: str,
                   details: Optional[Dict[str, Any]] = None):
        """
        Log a file upload.

        Args:
            client: Client identifier (remote address)
            filename: Target filename
            status: Operation status (SUCCESS, FAILURE, DENIED)
            details: Optional additional details
        """
        self._enqueue(self._create_event(
            event_type=EventType.FILE_UPLOAD,
            client=client,
            action="UPLOAD",
            status=status,
            resource=filename,
            details=details
        ))

    def log_download(self, client: str, filename: str, status: str,
                     details: Optional[Dict[str, Any]] = None):
        """
        Log a file download.

        Args:
            client: Client identifier (remote address)
            filename: Requested filename
            status: Operation status (SUCCESS, FAILURE, NOT_FOUND)
            details: Optional additional details
        """
        self._enqueue(self._create_event(
            event_type=EventType.FILE_DOWNLOAD,
            client=client,
            action="DOWNLOAD",
            status=status,
            resource=filename,
            details=details
        ))

    def log_security_event(self, event_type: EventType, severity: Severity,
                           description: str, client: str = "SYSTEM",
                           resource: Optional[str] = None,
                           details: Optional[Dict[str, Any]] = None):
        """
        Log security event.

        Args:
            event_type: Type of security event
            severity: Event severity
            description: Event description
            client: Client associated with the event
            resource: Filename involved, if any
            details: Optional additional details
        """
        event_details = dict(details or {})
        event_details['description'] = description

        self._enqueue(self._create_event(
            event_type=event_type,
            client=client,
            action=event_type.value,
            status="DETECTED",
            severity=severity,
            resource=resource,
            details=event_details
        ))

    def log_system_event(self, event_type: EventType, description: str,
                         details: Optional[Dict[str, Any]] = None):
        """Log system start/stop."""
        event_details = dict(details or {})
        event_details['description'] = description

        self._enqueue(self._create_event(
            event_type=event_type,
            client="SYSTEM",
            action=event_type.value,
            status="COMPLETED",
            details=event_details
        ))

    def flush(self):
        """Block until every queued event has been written."""
        self._log_queue.join()
        for file_logger in (self.audit_logger, self.security_logger):
            for handler in file_logger.handlers:
                handler.flush()

    def get_security_events(self, severity: Optional[str] = None,
                            limit: int = 100) -> List[Dict]:
        """
        Get security events, optionally filtered by severity.

        Args:
            severity: Optional severity filter (HIGH, CRITICAL)
            limit: Maximum number of events to return

        Returns:
            Most recent matching events
        """
        events = []

        try:
            with open(self.log_dir / 'security.log', 'r') as f:
                for line in f:
                    try:
                        event = json.loads(line.strip())
                    except json.JSONDecodeError:
                        continue
                    if severity is None or event.get('severity') == severity:
                        events.append(event)
        except FileNotFoundError:
            pass

        return events[-limit:]

    def verify_log_integrity(self) -> Dict:
        """
        Verify integrity of the audit log.

        Returns:
            Dictionary with integrity verification results
        """
        results = {
            'verified': True,
            'total_events': 0,
            'corrupted_events': 0,
            'missing_checksums': 0
        }

        try:
            with open(self.log_dir / 'audit.log', 'r') as f:
                for line in f:
                    if not line.strip():
                        continue
                    results['total_events'] += 1
                    try:
                        event = json.loads(line)
                    except json.JSONDecodeError:
                        results['corrupted_events'] += 1
                        results['verified'] = False
                        continue

                    stored_checksum = event.get('checksum')
                    if not stored_checksum:
                        results['missing_checksums'] += 1
                    elif stored_checksum != _event_checksum(event):
                        results['corrupted_events'] += 1
                        results['verified'] = False
        except FileNotFoundError:
            pass

        return results

    def shutdown(self):
        """Shutdown audit logger gracefully."""
        if self._closed:
            return
        self.log_system_event(EventType.SYSTEM_STOP, "Audit logging stopping")
        self._closed = True

        # Wait for queue to empty, then stop the worker
        self._log_queue.join()
        self._log_queue.put(None)
        self._log_thread.join(timeout=5)

        for file_logger in (self.audit_logger, self.security_logger):
            for handler in list(file_logger.handlers):
                handler.close()
                file_logger.removeHandler(handler)
