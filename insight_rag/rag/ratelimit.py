from __future__ import annotations

"""Fixed-window, per-identity rate limiting for the ask endpoint."""

import math
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable


@dataclass
class RateRecord:
    """Request count for one identity inside its current window."""
    count: int
    reset_at: float


@dataclass
class FixedWindowRateLimiter:
    """Allow up to ``max_requests`` per identity every ``window_seconds``.

    Records are replaced, not incremented, once their window has elapsed.
    The map is bounded by ``max_identities``: expired records are swept every
    ``sweep_interval`` seconds and whenever the map is full, and if it is still
    full the oldest record is evicted.
    """
    max_requests: int = 20
    window_seconds: float = 3600.0
    max_identities: int = 10_000
    sweep_interval: float = 60.0
    clock: Callable[[], float] = time.monotonic
    _records: OrderedDict[str, RateRecord] = field(
        default_factory=OrderedDict, init=False, repr=False
    )
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)
    _next_sweep: float = field(default=0.0, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.max_requests <= 0:
            raise ValueError("max_requests must be greater than zero")
        if self.window_seconds <= 0:
            raise ValueError("window_seconds must be greater than zero")
        if self.max_identities <= 0:
            raise ValueError("max_identities must be greater than zero")
        self._next_sweep = self.clock() + self.sweep_interval

    def allow(self, identity: str) -> bool:
        """Record a call for ``identity`` and return whether it may proceed."""
        with self._lock:
            now = self.clock()
            if now >= self._next_sweep:
                self._sweep(now)
            record = self._records.get(identity)
            if record is None or now > record.reset_at:
                self._start_window(identity, now)
                return True
            if record.count >= self.max_requests:
                return False
            record.count += 1
            return True

    def retry_after(self, identity: str) -> int:
        """Return whole seconds until ``identity`` gets a fresh window."""
        with self._lock:
            record = self._records.get(identity)
            if record is None:
                return 0
            return max(0, math.ceil(record.reset_at - self.clock()))

    def get(self, identity: str) -> RateRecord | None:
        """Return a copy of the current record for ``identity``."""
        with self._lock:
            record = self._records.get(identity)
            if record is None:
                return None
            return RateRecord(count=record.count, reset_at=record.reset_at)

    def __len__(self) -> int:
        return len(self._records)

    def _start_window(self, identity: str, now: float) -> None:
        self._records.pop(identity, None)
        if len(self._records) >= self.max_identities:
            self._sweep(now)
            while len(self._records) >= self.max_identities:
                self._records.popitem(last=False)
        self._records[identity] = RateRecord(count=1, reset_at=now + self.window_seconds)

    def _sweep(self, now: float) -> None:
        expired = [key for key, record in self._records.items() if now > record.reset_at]
        for key in expired:
            del self._records[key]
        self._next_sweep = now + self.sweep_interval
