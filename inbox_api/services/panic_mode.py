"""Operator kill switch for outbound replies."""

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterator, Optional

from inbox_api.logging_config import get_logger

logger = get_logger("panic_mode")


class ReadWriteLock:
    """Many concurrent readers or one writer; a waiting writer blocks new readers."""

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            while self._writer or self._readers:
                self._cond.wait()
            self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


@dataclass(frozen=True)
class PanicStatus:
    active: bool
    reason: str = ""
    activated_by: str = ""
    activated_at: Optional[datetime] = None


class PanicMode:
    def __init__(self):
        self._lock = ReadWriteLock()
        self._active = False
        self._reason = ""
        self._activated_by = ""
        self._activated_at: Optional[datetime] = None

    def is_active(self) -> bool:
        with self._lock.read():
            return self._active

    def enable(self, reason: str, actor: str) -> None:
        with self._lock.write():
            self._active = True
            self._reason = reason
            self._activated_by = actor
            self._activated_at = datetime.now(timezone.utc)
        logger.warning("Panic mode activated", extra={"context": {"reason": reason, "activated_by": actor}})

    def disable(self, actor: str) -> None:
        with self._lock.write():
            was_active = self._active
            activated_at = self._activated_at
            self._active = False
        duration = None
        if was_active and activated_at is not None:
            duration = (datetime.now(timezone.utc) - activated_at).total_seconds()
        logger.info(
            "Panic mode deactivated",
            extra={"context": {"deactivated_by": actor, "was_active": was_active, "duration_seconds": duration}},
        )

    def status(self) -> PanicStatus:
        with self._lock.read():
            return PanicStatus(
                active=self._active,
                reason=self._reason,
                activated_by=self._activated_by,
                activated_at=self._activated_at,
            )
