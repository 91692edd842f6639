"""Per-client submission throttling.

Callers only see `RateLimiter.try_consume`; the in-process store can be
swapped for the shared database store without touching them.
"""
from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable

from sqlalchemy import insert, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from config import settings
from db import SessionLocal
from models import RateLimitRecord

logger = logging.getLogger(__name__)


class RateLimiter(ABC):
    """Bounded-window counter keyed by client identity."""

    def __init__(self, max_per_window: int, window_seconds: float, clock: Callable[[], float]):
        self.max_per_window = max_per_window
        self.window_seconds = window_seconds
        self.clock = clock

    @abstractmethod
    def try_consume(self, client_key: str) -> bool:
        """Record one submission for `client_key`; False when its window is full."""


@dataclass
class _Window:
    count: int
    reset_at: float


class InMemoryRateLimiter(RateLimiter):
    """Process-local limiter.

    Counters live only as long as the process and are not shared between
    instances; use `DatabaseRateLimiter` when the service runs replicated.
    Elapsed windows are swept every `purge_every` calls, so the map holds
    roughly the clients seen within one window.
    """

    def __init__(self, max_per_window: int = 5, window_seconds: float = 3600.0,
                 clock: Callable[[], float] = time.monotonic, purge_every: int = 1000):
        super().__init__(max_per_window, window_seconds, clock)
        self.purge_every = purge_every
        self._windows: dict[str, _Window] = {}
        self._calls = 0
        self._lock = threading.Lock()

    def try_consume(self, client_key: str) -> bool:
        now = self.clock()
        with self._lock:
            self._calls += 1
            if self._calls >= self.purge_every:
                self._calls = 0
                self._purge_locked(now)
            window = self._windows.get(client_key)
            if window is None or now > window.reset_at:
                self._windows[client_key] = _Window(count=1, reset_at=now + self.window_seconds)
                return True
            if window.count >= self.max_per_window:
                return False
            window.count += 1
            return True

    def __len__(self) -> int:
        return len(self._windows)

    def _purge_locked(self, now: float) -> int:
        stale = [k for k, w in self._windows.items() if now > w.reset_at]
        for k in stale:
            del self._windows[k]
        return len(stale)

    def purge_expired(self) -> int:
        """Drop windows that have already elapsed; returns how many were removed."""
        with self._lock:
            return self._purge_locked(self.clock())


class DatabaseRateLimiter(RateLimiter):
    """Limiter backed by the `rate_limits` table, shared by every instance.

    Each transition is one conditional statement so two requests for the same
    key cannot both pass a full window.
    """

    def __init__(self, session_factory: sessionmaker, max_per_window: int = 5,
                 window_seconds: float = 3600.0, clock: Callable[[], float] = time.time):
        super().__init__(max_per_window, window_seconds, clock)
        self.session_factory = session_factory

    def try_consume(self, client_key: str) -> bool:
        now = self.clock()
        db = self.session_factory()
        try:
            for _ in range(2):
                reset = db.execute(
                    update(RateLimitRecord)
                    .where(RateLimitRecord.client_key == client_key, RateLimitRecord.window_reset_at < now)
                    .values(count=1, window_reset_at=now + self.window_seconds)
                    .execution_options(synchronize_session=False)
                )
                if reset.rowcount == 1:
                    db.commit()
                    return True
                bumped = db.execute(
                    update(RateLimitRecord)
                    .where(RateLimitRecord.client_key == client_key, RateLimitRecord.count < self.max_per_window)
                    .values(count=RateLimitRecord.count + 1)
                    .execution_options(synchronize_session=False)
                )
                if bumped.rowcount == 1:
                    db.commit()
                    return True
                if db.get(RateLimitRecord, client_key) is not None:
                    db.commit()
                    return False
                try:
                    db.execute(insert(RateLimitRecord).values(
                        client_key=client_key, count=1, window_reset_at=now + self.window_seconds,
                    ))
                    db.commit()
                    return True
                except IntegrityError:
                    # another instance created the row first; run the updates again
                    db.rollback()
            logger.warning("rate limit row for %s kept changing; denying", client_key)
            return False
        finally:
            db.close()


def build_rate_limiter(session_factory: sessionmaker = SessionLocal) -> RateLimiter:
    if settings.rate_limit_backend == "database":
        return DatabaseRateLimiter(session_factory, settings.rate_limit_max, settings.rate_limit_window_seconds)
    return InMemoryRateLimiter(settings.rate_limit_max, settings.rate_limit_window_seconds)


limiter = build_rate_limiter()


def get_rate_limiter() -> RateLimiter:
    """FastAPI dependency returning the process-wide limiter."""
    return limiter
