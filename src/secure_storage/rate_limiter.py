"""
src/secure_storage/rate_limiter.py - Per-Client Admission Control

Provides token-bucket rate limiting with:
- Lazily created buckets, one per client key
- Continuous refill at a fixed rate, capped at capacity
- Background sweep evicting buckets idle past a TTL
- Cancellable sweeper thread
- Global allow/deny statistics
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from .exceptions import RateLimitExceeded


logger = logging.getLogger(__name__)


DEFAULT_CAPACITY = 3
DEFAULT_REFILL_RATE = 1.0  # tokens per second
DEFAULT_SWEEP_INTERVAL = 60.0
DEFAULT_IDLE_TTL = 60.0


@dataclass
class TokenBucket:
    """Token bucket state for one client."""
    capacity: float
    refill_rate: float
    tokens: float
    last_refill: float
    last_seen: float

    def refill(self, now: float):
        elapsed = max(0.0, now - self.last_refill)
        self.tokens = min(self.capacity, self.tokens + elapsed * self.refill_rate)
        self.last_refill = now

    def consume(self, now: float) -> bool:
        """Refill, then take one token if available."""
        self.refill(now)
        self.last_seen = now
        if self.tokens >= 1.0:
            self.tokens -= 1.0
            return True
        return False


class RateLimiter:
    """
    Token-bucket rate limiter keyed by client.

    All access to the bucket table, including the sweep, is serialized
    through one lock.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY,
                 refill_rate: float = DEFAULT_REFILL_RATE,
                 sweep_interval: float = DEFAULT_SWEEP_INTERVAL,
                 idle_ttl: float = DEFAULT_IDLE_TTL,
                 clock: Callable[[], float] = time.monotonic):
        """
        Initialize rate limiter.

        Args:
            capacity: Maximum burst size per client
            refill_rate: Tokens added per second
            sweep_interval: Seconds between idle sweeps
            idle_ttl: Seconds of inactivity after which a bucket is evicted
            clock: Monotonic time source
        """
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        if refill_rate <= 0:
            raise ValueError("refill_rate must be positive")
        if sweep_interval <= 0 or idle_ttl <= 0:
            raise ValueError("sweep_interval and idle_ttl must be positive")

        self.capacity = capacity
        self.refill_rate = refill_rate
        self.sweep_interval = sweep_interval
        self.idle_ttl = idle_ttl
        self._clock = clock

        # Thread safety
        self._lock = threading.Lock()
        self._buckets: Dict[str, TokenBucket] = {}

        # Sweeper lifecycle
        self._stop_event = threading.Event()
        self._sweeper: Optional[threading.Thread] = None

        # Global statistics
        self._stats = {
            'allowed': 0,
            'denied': 0,
            'evicted': 0
        }

    def allow(self, client: str) -> bool:
        """
        Admit or deny one request from ``client``.

        Args:
            client: Rate-limit key (e.g. remote address)

        Returns:
            True if a token was consumed, False if the bucket is empty
        """
        with self._lock:
            now = self._clock()
            bucket = self._buckets.get(client)
            if bucket is None:
                bucket = TokenBucket(
                    capacity=float(self.capacity),
                    refill_rate=self.refill_rate,
                    tokens=float(self.capacity),
                    last_refill=now,
                    last_seen=now
                )
                self._buckets[client] = bucket

            allowed = bucket.consume(now)
            if allowed:
                self._stats['allowed'] += 1
            else:
                self._stats['denied'] += 1
            return allowed

    def check(self, client: str):
        """
        Like ``allow`` but raises on denial.

        Raises:
            RateLimitExceeded: If the client has no tokens left
        """
        if not self.allow(client):
            raise RateLimitExceeded(client)

    def sweep(self) -> int:
        """
        Evict buckets idle longer than the TTL.

        Returns:
            Number of evicted buckets
        """
        with self._lock:
            cutoff = self._clock() - self.idle_ttl
            idle = [key for key, bucket in self._buckets.items() if bucket.last_seen < cutoff]
            for key in idle:
                del self._buckets[key]
            self._stats['evicted'] += len(idle)

        if idle:
            logger.debug("Rate limiter evicted %d idle clients", len(idle))
        return len(idle)

    def _sweep_loop(self):
        while not self._stop_event.wait(self.sweep_interval):
            self.sweep()

    def start(self):
        """Start the background sweeper thread."""
        if self._sweeper is not None and self._sweeper.is_alive():
            return
        self._stop_event.clear()
        self._sweeper = threading.Thread(
            target=self._sweep_loop, name="rate-limiter-sweep", daemon=True
        )
        self._sweeper.start()

    def stop(self, timeout: float = 5.0):
        """Signal the sweeper to exit and wait for it."""
        self._stop_event.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout=timeout)
            self._sweeper = None

    @property
    def running(self) -> bool:
        return self._sweeper is not None and self._sweeper.is_alive()

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()

    def tracked_clients(self) -> int:
        with self._lock:
            return len(self._buckets)

    def stats(self) -> Dict:
        """
        Get rate limiter statistics.

        Returns:
            Dictionary with global statistics
        """
        with self._lock:
            total = self._stats['allowed'] + self._stats['denied']
            return {
                'tracked_clients': len(self._buckets),
                'allowed_requests': self._stats['allowed'],
                'denied_requests': self._stats['denied'],
                'evicted_clients': self._stats['evicted'],
                'deny_rate': self._stats['denied'] / max(1, total)
            }
