"""Cross-process lock for the history store.

The lock is a file created with O_CREAT | O_EXCL next to the store, so
two CI jobs writing to the same store serialize their appends. A lock
left behind by a crashed job is removed once it is older than the
stale threshold. Takeovers of a stale lock are serialized through a
second exclusive file, so two waiters never both take it over.
"""

from __future__ import annotations

import asyncio
import logging
import os
import socket
import time
from pathlib import Path
from types import TracebackType

from benchkeeper.core.exceptions import ConcurrentWriteError, StoreIOError

logger = logging.getLogger(__name__)


class StoreLock:
    """Exclusive lock file with bounded retry and exponential backoff.

    Attributes:
        path: Path of the lock file.
        max_retries: Retries after the first failed attempt.
        retry_delay: Delay before the first retry, in seconds.
        backoff: Multiplier applied to the delay after each retry.
        stale_after: Age in seconds after which a lock is considered abandoned
            (None = never).

    Example:
        >>> async with StoreLock(Path("data.json.lock")):
        ...     ...  # read-modify-write the store
    """

    def __init__(
        self,
        path: Path,
        *,
        max_retries: int = 8,
        retry_delay: float = 0.2,
        backoff: float = 2.0,
        stale_after: float | None = 600.0,
    ) -> None:
        self.path = path
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.backoff = backoff
        self.stale_after = stale_after
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    @property
    def breaker_path(self) -> Path:
        """Lock file that serializes stale-lock takeovers."""
        return self.path.with_name(self.path.name + ".break")

    def _create_exclusive(self, path: Path) -> bool:
        try:
            fd = os.open(path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return False
        except OSError as e:
            raise StoreIOError(f"Cannot create lock file {path}: {e}") from e
        with os.fdopen(fd, "w") as f:
            f.write(f"{socket.gethostname()}:{os.getpid()}\n")
        return True

    def _try_create(self) -> bool:
        return self._create_exclusive(self.path)

    def _is_stale(self, path: Path) -> bool:
        if self.stale_after is None:
            return False
        try:
            age = time.time() - path.stat().st_mtime
        except FileNotFoundError:
            return False
        return age > self.stale_after

    def _remove_if_stale(self) -> None:
        """Remove an abandoned lock.

        Waiters that all see the same stale lock must not each delete
        whatever sits at the path afterwards: the first one may already
        have replaced it with its own fresh lock. Takeovers therefore run
        one at a time under the breaker file, and staleness is checked
        again while it is held.
        """
        if not self._is_stale(self.path):
            return

        breaker = self.breaker_path
        if self._is_stale(breaker):
            # Left behind by a job that crashed during a takeover
            breaker.unlink(missing_ok=True)
        if not self._create_exclusive(breaker):
            return
        try:
            if self._is_stale(self.path):
                logger.warning(f"Removing stale store lock {self.path}")
                self.path.unlink(missing_ok=True)
        finally:
            breaker.unlink(missing_ok=True)

    async def acquire(self) -> None:
        """Acquire the lock.

        Raises:
            ConcurrentWriteError: If the lock is still held after all retries.
            StoreIOError: If the lock file cannot be created for another reason.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        delay = self.retry_delay
        attempts = self.max_retries + 1

        for attempt in range(attempts):
            if self._try_create():
                self._held = True
                return

            self._remove_if_stale()
            if attempt < attempts - 1:
                logger.debug(f"Store lock {self.path} busy, retry {attempt + 1}/{self.max_retries} in {delay:.2f}s")
                await asyncio.sleep(delay)
                delay *= self.backoff

        raise ConcurrentWriteError(f"Store lock {self.path} still held after {self.max_retries} retries")

    def release(self) -> None:
        if self._held:
            self.path.unlink(missing_ok=True)
            self._held = False

    async def __aenter__(self) -> StoreLock:
        await self.acquire()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()
