"""Durable per-profile view counts.

Each profile key is persisted to its own JSON record under
``<data_dir>/counts/``. The file name is the SHA-256 of the key so any
opaque key maps to a safe name, and unrelated keys never share a file or a
lock. A record looks like::

    {"key": "alice", "count": 12, "updated_at": "2024-01-01T00:00:00Z"}

Increments follow write-before-respond: the new count is written to a
temporary file, fsynced and atomically renamed over the record before the
in-memory value is advanced and returned.
"""
from __future__ import annotations

import hashlib
import json
import logging
import os
import pathlib
import tempfile
import threading
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from viewcounter.constants import COUNTS_SUBDIR, MAX_COUNT, MAX_KEY_LENGTH, STORE_TIMEOUT_DEFAULT
from viewcounter.exceptions import InvalidKey, StoreUnavailable

logger = logging.getLogger(__name__)


def validate_key(key: Any) -> str:
    """Return ``key`` if it is a usable profile key, else raise InvalidKey."""
    if not isinstance(key, str):
        raise InvalidKey(f"Profile key must be a string, got {type(key).__name__}", key=key, reason="type")
    if not key:
        raise InvalidKey("Profile key must not be empty", key=key, reason="empty")
    if len(key) > MAX_KEY_LENGTH:
        raise InvalidKey(
            f"Profile key longer than {MAX_KEY_LENGTH} characters", key=key, reason="length"
        )
    for ch in key:
        if ch == "/" or ch.isspace() or not ch.isprintable():
            raise InvalidKey(f"Profile key contains invalid character {ch!r}", key=key, reason="character")
    return key


def record_filename(key: str) -> str:
    return hashlib.sha256(key.encode("utf-8")).hexdigest() + ".json"


def _utcnow() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _fsync_dir(path: str) -> None:
    # Directory fsync makes the rename itself durable; not supported on Windows.
    if os.name == "nt":
        return
    fd = os.open(path, os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


class CounterStore:
    """Concurrency-safe mapping of profile key to an unsigned 64-bit count.

    Create one per process, call :meth:`open` (or use it as a context manager)
    to reload persisted counts, and share it between request handlers.

    Attributes:
        data_dir: Root directory of the store
        timeout: Seconds to wait for a per-key lock before giving up
    """

    def __init__(self, data_dir: str, timeout: float = STORE_TIMEOUT_DEFAULT):
        self.data_dir = os.path.abspath(data_dir)
        self.timeout = timeout
        self._counts_dir = os.path.join(self.data_dir, COUNTS_SUBDIR)
        self._counts: Dict[str, int] = {}
        self._locks: Dict[str, threading.Lock] = {}
        # Guards creation of per-key locks only; never held during I/O.
        self._registry_lock = threading.Lock()
        self._opened = False

    def __enter__(self) -> "CounterStore":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __len__(self) -> int:
        return len(self._counts)

    def __repr__(self) -> str:
        return f"CounterStore({self.data_dir!r}, keys={len(self._counts)})"

    def open(self) -> "CounterStore":
        """Create the store directory and reload every persisted record.

        Raises:
            StoreUnavailable: the directory cannot be created or listed
        """
        try:
            pathlib.Path(self._counts_dir).mkdir(parents=True, exist_ok=True)
            names = sorted(os.listdir(self._counts_dir))
        except OSError as e:
            raise StoreUnavailable(
                f"Cannot open counter store at {self._counts_dir}: {e}", operation="open", original_error=e
            ) from e

        loaded: Dict[str, int] = {}
        for fname in names:
            if not fname.endswith(".json"):
                continue
            path = os.path.join(self._counts_dir, fname)
            try:
                with open(path, "r", encoding="utf-8") as fh:
                    record = json.load(fh)
                key = validate_key(record["key"])
                count = int(record["count"])
                if not 0 <= count <= MAX_COUNT or record_filename(key) != fname:
                    raise ValueError(f"inconsistent record for {key!r}")
            except (OSError, ValueError, KeyError, TypeError, InvalidKey) as e:
                logger.warning(f"Skipping unreadable counter record {path}: {e}")
                continue
            loaded[key] = count

        self._counts = loaded
        self._opened = True
        logger.info(f"Counter store opened at {self.data_dir} with {len(loaded)} keys")
        return self

    def close(self) -> None:
        """Mark the store closed. Every acknowledged count is already on disk."""
        if self._opened:
            logger.info(f"Counter store at {self.data_dir} closed ({len(self._counts)} keys)")
        self._opened = False

    def _lock_for(self, key: str) -> threading.Lock:
        lock = self._locks.get(key)
        if lock is None:
            with self._registry_lock:
                lock = self._locks.setdefault(key, threading.Lock())
        return lock

    def _persist(self, key: str, count: int) -> None:
        path = os.path.join(self._counts_dir, record_filename(key))
        payload = json.dumps({"key": key, "count": count, "updated_at": _utcnow()}, sort_keys=True)
        fd, tmp_path = tempfile.mkstemp(prefix=".tmp-", suffix=".json", dir=self._counts_dir)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_path, path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
        _fsync_dir(self._counts_dir)

    def get(self, key: str) -> int:
        """Current count for ``key`` without incrementing it (0 if never seen)."""
        validate_key(key)
        return self._counts.get(key, 0)

    def snapshot(self) -> Dict[str, int]:
        return dict(self._counts)

    def increment_and_get(self, key: str) -> int:
        """Atomically add one to ``key`` and return the new, durably stored count.

        Raises:
            InvalidKey: ``key`` is empty or malformed (storage is not touched)
            StoreUnavailable: the lock wait timed out, the count would overflow,
                or the record could not be written; the count is unchanged
        """
        validate_key(key)
        if not self._opened:
            raise StoreUnavailable("Counter store is not open", key=key, operation="open")

        lock = self._lock_for(key)
        if not lock.acquire(timeout=self.timeout):
            raise StoreUnavailable(
                f"Timed out after {self.timeout}s waiting for counter {key!r}", key=key, operation="lock"
            )
        try:
            current = self._counts.get(key, 0)
            if current >= MAX_COUNT:
                raise StoreUnavailable(f"Counter {key!r} is at its maximum value", key=key, operation="overflow")
            new_count = current + 1
            try:
                self._persist(key, new_count)
            except OSError as e:
                logger.error(f"Failed to persist counter {key!r}: {e}", exc_info=True)
                raise StoreUnavailable(
                    f"Failed to persist counter {key!r}: {e}", key=key, operation="persist", original_error=e
                ) from e
            self._counts[key] = new_count
            return new_count
        finally:
            lock.release()
