"""JSON file storage for benchmark histories.

This module provides the JSON file backend. The whole document is
rewritten on every change using an atomic write (temp file + rename),
so a crash mid-write leaves the previous document intact.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, TypeVar

from benchkeeper.core.exceptions import (
    DuplicateCommitError,
    RecordValidationError,
    StoreCorruptedError,
    StoreIOError,
    StoreTimeoutError,
)
from benchkeeper.history.models import Record, RejectedEntry, SuiteHistory, raw_commit_hash, to_epoch_ms
from benchkeeper.history.retention import RetentionPolicy
from benchkeeper.history.storage.lock import StoreLock

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Prefix used by chart pages that load the history as a script
DATA_JS_PREFIX = "window.BENCHMARK_DATA = "


def _empty_document() -> dict[str, Any]:
    return {"lastUpdate": None, "repoUrl": None, "entries": {}}


def decode_document(content: str | bytes, source: Path | str = "<memory>") -> dict[str, Any]:
    """Decode a store document.

    Accepts plain JSON or a ``window.BENCHMARK_DATA = {...}`` script.

    Raises:
        StoreCorruptedError: If the content is not a valid store document.
    """
    if isinstance(content, bytes):
        try:
            content = content.decode("utf-8")
        except UnicodeDecodeError as e:
            raise StoreCorruptedError(f"History store {source} is not UTF-8 text: {e}") from e

    text = content.strip()
    if not text:
        return _empty_document()
    if text.startswith("window.BENCHMARK_DATA"):
        text = text.partition("=")[2].strip().rstrip(";")

    try:
        data = json.loads(text)
    except (ValueError, RecursionError) as e:
        # ValueError also covers integers past the interpreter's digit limit
        raise StoreCorruptedError(f"History store {source} is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise StoreCorruptedError(f"History store {source} must contain an object")
    entries = data.setdefault("entries", {})
    if not isinstance(entries, dict):
        raise StoreCorruptedError(f"History store {source}: 'entries' must be an object")
    for suite_id, suite_entries in entries.items():
        if not isinstance(suite_entries, list):
            raise StoreCorruptedError(f"History store {source}: suite '{suite_id}' must be a list")
    return data


def encode_document(document: dict[str, Any], path: Path) -> str:
    content = json.dumps(document, indent=2)
    if path.suffix == ".js":
        return f"{DATA_JS_PREFIX}{content}\n"
    return content + "\n"


def build_history(suite_id: str, raw_entries: list[Any]) -> SuiteHistory:
    """Parse raw stored entries into a SuiteHistory.

    Entries that fail validation are kept as RejectedEntry objects at
    their original position.
    """
    entries: list[Record | RejectedEntry] = []
    for position, raw in enumerate(raw_entries):
        try:
            entries.append(Record.from_dict(raw))
        except RecordValidationError as e:
            logger.debug(f"Suite '{suite_id}' entry {position} failed validation: {e}")
            entries.append(RejectedEntry(position=position, raw=raw, error=e))
    return SuiteHistory(suite_id=suite_id, entries=entries)


class JSONHistoryStore:
    """JSON file storage for benchmark histories.

    Appends are serialized across processes with a lock file and written
    atomically. Every read and write has an explicit timeout.

    Example:
        >>> store = JSONHistoryStore(".benchkeeper/data.json")
        >>> await store.append("soci-perf", record)
        >>> history = await store.load("soci-perf")
    """

    def __init__(
        self,
        path: str | Path = ".benchkeeper/data.json",
        *,
        repo_url: str | None = None,
        io_timeout: float = 30.0,
        lock_max_retries: int = 8,
        lock_retry_delay: float = 0.2,
        lock_backoff: float = 2.0,
        stale_lock_seconds: float | None = 600.0,
    ) -> None:
        """Initialize the JSON history store.

        Args:
            path: Path to the store file. A ``.js`` suffix writes a chart data script.
            repo_url: Repository URL recorded in the document.
            io_timeout: Timeout in seconds for each read or write.
            lock_max_retries: Lock retries before giving up.
            lock_retry_delay: Delay before the first lock retry, in seconds.
            lock_backoff: Backoff multiplier between lock retries.
            stale_lock_seconds: Age after which a leftover lock is removed.
        """
        self._path = Path(path)
        self._repo_url = repo_url
        self._io_timeout = io_timeout
        self._lock_max_retries = lock_max_retries
        self._lock_retry_delay = lock_retry_delay
        self._lock_backoff = lock_backoff
        self._stale_lock_seconds = stale_lock_seconds

    @property
    def path(self) -> Path:
        return self._path

    def _lock(self) -> StoreLock:
        return StoreLock(
            self._path.with_name(self._path.name + ".lock"),
            max_retries=self._lock_max_retries,
            retry_delay=self._lock_retry_delay,
            backoff=self._lock_backoff,
            stale_after=self._stale_lock_seconds,
        )

    async def _run_io(self, action: str, func: Callable[..., T], *args: Any) -> T:
        """Run a blocking file read in a worker thread under the I/O timeout."""
        try:
            return await asyncio.wait_for(asyncio.to_thread(func, *args), timeout=self._io_timeout)
        except asyncio.TimeoutError as e:
            raise StoreTimeoutError(f"Timed out after {self._io_timeout}s {action} {self._path}") from e
        except OSError as e:
            raise StoreIOError(f"Failed {action} {self._path}: {e}") from e

    async def _write(self, document: dict[str, Any], path: Path) -> None:
        """Write a document in a worker thread under the I/O timeout.

        A worker thread cannot be cancelled. On timeout the write is told
        to abort before its rename, and this coroutine still waits for the
        thread to finish, so a caller holding the store lock keeps it until
        the thread can no longer touch the file. The timeout is raised
        only if the document was not replaced.

        Raises:
            StoreTimeoutError: If the write timed out and was abandoned.
            StoreIOError: If the write fails.
        """
        abort = threading.Event()
        task = asyncio.ensure_future(asyncio.to_thread(self._write_document, document, path, abort))
        try:
            await asyncio.wait_for(asyncio.shield(task), timeout=self._io_timeout)
            return
        except asyncio.TimeoutError:
            abort.set()
        except OSError as e:
            raise StoreIOError(f"Failed writing {path}: {e}") from e

        try:
            committed = await task
        except OSError as e:
            raise StoreIOError(f"Failed writing {path}: {e}") from e
        if committed:
            logger.warning(f"Write to {path} completed after the {self._io_timeout}s timeout")
            return
        raise StoreTimeoutError(f"Timed out after {self._io_timeout}s writing {path}; nothing was written")

    def _read_document(self) -> dict[str, Any]:
        if not self._path.exists():
            return _empty_document()
        return decode_document(self._path.read_bytes(), self._path)

    def _write_document(self, document: dict[str, Any], path: Path, abort: threading.Event | None = None) -> bool:
        """Atomically replace path with the document.

        Returns:
            True if the file was replaced, False if abort was set first.
        """
        path.parent.mkdir(parents=True, exist_ok=True)
        content = encode_document(document, path)

        temp_fd, temp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}_", suffix=".tmp")
        try:
            with os.fdopen(temp_fd, "w", encoding="utf-8") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            if abort is not None and abort.is_set():
                Path(temp_path).unlink(missing_ok=True)
                return False
            Path(temp_path).replace(path)
        except BaseException:
            Path(temp_path).unlink(missing_ok=True)
            raise
        return True

    def _touch(self, document: dict[str, Any]) -> None:
        document["lastUpdate"] = to_epoch_ms(datetime.now(timezone.utc))
        if self._repo_url and not document.get("repoUrl"):
            document["repoUrl"] = self._repo_url

    async def load(self, suite_id: str) -> SuiteHistory:
        """Load the history of a suite.

        Args:
            suite_id: The benchmark suite identifier.

        Returns:
            The suite history in append order (empty for a first-ever run).

        Raises:
            StoreIOError: If the file cannot be read or is corrupted.
            StoreTimeoutError: If the read exceeds the I/O timeout.
        """
        document = await self._run_io("reading", self._read_document)
        return build_history(suite_id, document["entries"].get(suite_id, []))

    async def append(self, suite_id: str, record: Record, *, replace: bool = False) -> int:
        """Append a record to the tail of a suite's history.

        Args:
            suite_id: The benchmark suite identifier.
            record: The validated record to append.
            replace: Replace an existing entry for the same commit in place.

        Returns:
            The new length of the suite's history.

        Raises:
            RecordValidationError: If record is not a Record.
            DuplicateCommitError: If the commit is already recorded and replace is False.
            ConcurrentWriteError: If the store lock cannot be acquired.
            StoreIOError: If reading or writing fails.
        """
        if not isinstance(record, Record):
            raise RecordValidationError("record", f"expected a Record, got {type(record).__name__}")

        async with self._lock():
            document = await self._run_io("reading", self._read_document)
            entries: list[Any] = document["entries"].setdefault(suite_id, [])

            existing = next(
                (i for i, raw in enumerate(entries) if raw_commit_hash(raw) == record.commit_hash),
                None,
            )
            if existing is not None:
                if not replace:
                    raise DuplicateCommitError(suite_id, record.commit_hash)
                logger.warning(f"Replacing recorded commit {record.commit_hash} in suite '{suite_id}' at position {existing}")
                entries[existing] = record.to_dict()
            else:
                entries.append(record.to_dict())

            self._touch(document)
            await self._write(document, self._path)

        logger.info(f"Recorded commit {record.commit_hash} for suite '{suite_id}' ({len(entries)} entries)")
        return len(entries)

    async def prune(self, suite_id: str, policy: RetentionPolicy, now: datetime | None = None) -> int:
        """Destructively apply a retention policy to a suite.

        Args:
            suite_id: The benchmark suite identifier.
            policy: The retention policy to apply.
            now: Reference time for the age bound.

        Returns:
            The new length of the suite's history.
        """
        async with self._lock():
            document = await self._run_io("reading", self._read_document)
            raw_entries: list[Any] = document["entries"].get(suite_id, [])
            mask = policy.keeps(build_history(suite_id, raw_entries).entries, now=now)
            kept = [raw for raw, keep in zip(raw_entries, mask) if keep]

            removed = len(raw_entries) - len(kept)
            if removed:
                document["entries"][suite_id] = kept
                self._touch(document)
                await self._write(document, self._path)

        logger.info(f"Pruned {removed} entries from suite '{suite_id}' (policy v{policy.version}), {len(kept)} remain")
        return len(kept)

    async def suites(self) -> list[str]:
        document = await self._run_io("reading", self._read_document)
        return list(document["entries"])

    async def export(self, destination: str | Path) -> int:
        """Write the whole store to another file for chart rendering.

        Args:
            destination: Output path; a ``.js`` suffix writes a data script.

        Returns:
            Number of entries exported across all suites.
        """
        destination = Path(destination)
        document = await self._run_io("reading", self._read_document)
        await self._write(document, destination)
        return sum(len(entries) for entries in document["entries"].values())
