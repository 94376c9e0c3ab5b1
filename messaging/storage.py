"""JSON document persistence.

One document per logical key, stored as ``<data_dir>/<key>.data.json``.
Writes are funnelled through a single-slot ``PersistenceWriter`` so callers
never wait on disk I/O.
"""

import asyncio
import hashlib
import json
import os
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Any

from loguru import logger

_EMPTY = object()


def hash_string(value: str) -> str:
    """SHA-256 hex digest, used to build per-account data keys."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


class DataStore:
    """Reads and writes JSON documents under a data directory."""

    def __init__(self, data_dir: str | Path):
        self.data_dir = Path(data_dir)

    def path_for(self, key: str) -> Path:
        return self.data_dir / f"{key}.data.json"

    def exists(self, key: str) -> bool:
        return self.path_for(key).exists()

    def read(self, key: str, default: Any = None) -> Any:
        path = self.path_for(key)
        if not path.exists():
            return default
        with open(path, encoding="utf-8") as f:
            return json.load(f)

    def write(self, key: str, data: Any) -> None:
        """Write atomically: temp file in the same directory, then replace."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=self.data_dir, prefix=f".{key}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(tmp_path, self.path_for(key))
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise


class PersistenceWriter:
    """
    Fire-and-forget writer for one document key.

    At most one write is in flight and at most one snapshot is pending.
    Scheduling while a write is in flight replaces the pending snapshot
    (last writer wins). The pending slot is drained by a background task.
    """

    def __init__(
        self,
        store: DataStore,
        key: str,
        on_error: Callable[[Exception], None] | None = None,
    ):
        self._store = store
        self._key = key
        self._pending: Any = _EMPTY
        self._task: asyncio.Task | None = None
        self._on_error = on_error
        self.writes_completed = 0

    @property
    def has_pending(self) -> bool:
        return self._pending is not _EMPTY

    @property
    def is_writing(self) -> bool:
        return self._task is not None and not self._task.done()

    def schedule(self, snapshot: Any) -> None:
        """Queue a snapshot for writing without blocking the caller."""
        self._pending = snapshot
        if self.is_writing:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop (synchronous bootstrap or tooling): write inline
            self._write_now()
            return
        self._task = loop.create_task(self._drain())

    async def _drain(self) -> None:
        while self._pending is not _EMPTY:
            data, self._pending = self._pending, _EMPTY
            try:
                await asyncio.to_thread(self._store.write, self._key, data)
                self.writes_completed += 1
            except Exception as e:
                logger.error(f"STORAGE: failed to write {self._key}: {e}")
                if self._on_error:
                    self._on_error(e)

    def _write_now(self) -> None:
        data, self._pending = self._pending, _EMPTY
        self._store.write(self._key, data)
        self.writes_completed += 1

    async def flush(self) -> None:
        """Wait until the in-flight and pending writes have completed."""
        while self._task is not None and not self._task.done():
            await asyncio.shield(self._task)
