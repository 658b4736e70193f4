"""
src/secure_storage/cli.py - Service Entry Point

Loads settings, builds the storage components and serves the HTTP API until
interrupted.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .audit_logger import AuditLogger
from .config import load_settings
from .exceptions import CipherInitError, ConfigurationError, StorageIOError
from .rate_limiter import RateLimiter
from .server import create_app
from .storage import StorageService


logger = logging.getLogger("secure_storage")


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="secure-storage",
        description="Encrypted file storage service with per-client rate limiting."
    )
    parser.add_argument("--config", type=Path, default=None,
                        help="JSON config file (environment variables take precedence)")
    parser.add_argument("--host", default=None, help="Override HOST")
    parser.add_argument("--port", type=int, default=None, help="Override PORT")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    try:
        settings = load_settings(config_path=args.config)
        storage = StorageService(settings.storage_key, settings.data_dir)
    except (ConfigurationError, CipherInitError, StorageIOError) as e:
        logger.error("Startup failed: %s", e)
        return 1

    host = args.host or settings.host
    port = args.port or settings.port

    try:
        audit_logger = AuditLogger(settings.log_dir)
    except OSError as e:
        logger.error("Startup failed: cannot open audit log in %s: %s", settings.log_dir, e)
        return 1

    rate_limiter = RateLimiter(
        capacity=settings.rate_limit_capacity,
        refill_rate=settings.rate_limit_rate,
        sweep_interval=settings.rate_limit_sweep_interval,
        idle_ttl=settings.rate_limit_idle_ttl
    )
    app = create_app(storage, rate_limiter, audit_logger, settings.max_upload_bytes)

    logger.info("Starting SecureStorage server on %s:%d", host, port)
    logger.info("Endpoints: POST /upload, GET /download/{filename}, GET /health")

    rate_limiter.start()
    try:
        app.run(host=host, port=port, threaded=True)
    except KeyboardInterrupt:
        logger.info("Received interrupt signal")
    except OSError as e:
        logger.error("Server failed: %s", e)
        return 1
    finally:
        rate_limiter.stop()
        audit_logger.shutdown()

    return 0


if __name__ == "__main__":
    sys.exit(main())
