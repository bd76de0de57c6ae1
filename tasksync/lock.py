"""Cooperative lock file guarding dashboard regeneration.

The lock is advisory: a process holds it while a file exists at the lock
path containing its PID. Nothing stops a process that ignores the file.
"""

from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from typing import Callable, Optional

from .errors import LockTimeoutError

logger = logging.getLogger("tasksync.lock")


class CooperativeLock:
    """Lock file acquired by exclusive creation, polled while held elsewhere."""

    def __init__(
        self,
        path: Path | str,
        *,
        attempts: int = 30,
        poll_interval: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if attempts < 1:
            raise ValueError("attempts must be at least 1")
        self.path = Path(path)
        self.attempts = attempts
        self.poll_interval = poll_interval
        self._sleep = sleep
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def holder_pid(self) -> Optional[int]:
        try:
            return int(self.path.read_text(encoding="utf-8").strip())
        except (OSError, ValueError):
            return None

    def acquire(self) -> None:
        """Create the lock file, waiting up to ``attempts`` polls for a holder to release it."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        waited = 0
        while True:
            try:
                fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
            except FileExistsError:
                if waited >= self.attempts:
                    raise LockTimeoutError(self.path, self.attempts) from None
                logger.info(
                    f"Another process is updating (lock {self.path}); waiting... ({waited}/{self.attempts})"
                )
                self._sleep(self.poll_interval)
                waited += 1
                continue

            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(f"{os.getpid()}\n")
            self._held = True
            logger.debug(f"Acquired lock {self.path}")
            return

    def release(self) -> None:
        if not self._held:
            return
        try:
            self.path.unlink()
        except FileNotFoundError:
            logger.warning(f"Lock file {self.path} was removed by someone else")
        self._held = False
        logger.debug(f"Released lock {self.path}")

    def __enter__(self) -> "CooperativeLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
