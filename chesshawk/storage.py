"""Key-value persistence for user statistics and settings.

Storage backends expose two coroutines, ``get`` and ``set``, over JSON
blobs. ``WriteBehindPersister`` sits in front of a backend so the session
engine can hand off writes without waiting for them.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import re
import shutil
from pathlib import Path
from typing import Any, Protocol

logger = logging.getLogger(__name__)

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class Storage(Protocol):
    async def get(self, key: str) -> Any | None:
        """Return the blob stored under ``key``, or None."""

    async def set(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key``, replacing any previous blob."""


class MemoryStorage:
    """In-process storage. Values are copied through JSON like a real store."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    async def get(self, key: str) -> Any | None:
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value)

    def keys(self) -> list[str]:
        return sorted(self._data)


class JsonFileStorage:
    """One JSON file per key under a data directory.

    Writes are atomic (temp file + ``os.replace``). A corrupt file is backed
    up as ``.bak`` and treated as missing.
    """

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    def path_for(self, key: str) -> Path:
        return self._root / f"{_UNSAFE_KEY_CHARS.sub('_', key)}.json"

    async def get(self, key: str) -> Any | None:
        return await asyncio.to_thread(self._read, self.path_for(key))

    async def set(self, key: str, value: Any) -> None:
        await asyncio.to_thread(self._write, self.path_for(key), value)

    @staticmethod
    def _read(path: Path) -> Any | None:
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            backup_path = path.with_suffix(".bak")
            shutil.copy2(path, backup_path)
            logger.warning("Corrupt blob %s backed up to %s", path.name, backup_path.name)
            return None

    @staticmethod
    def _write(path: Path, value: Any) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_text(
            json.dumps(value, indent=2, ensure_ascii=False),
            encoding="utf-8",
        )
        os.replace(tmp_path, path)


class WriteBehindPersister:
    """Hands writes to a storage backend without blocking the caller.

    At most one blob per key is pending (the latest one wins) and at most
    one write per key is in flight. A failed write is logged and remembered;
    the caller's in-memory state stays authoritative and the next submit for
    that key retries naturally.
    """

    def __init__(self, storage: Storage) -> None:
        self._storage = storage
        self._pending: dict[str, Any] = {}
        self._inflight: set[str] = set()
        self._tasks: set[asyncio.Task] = set()
        self.failed_keys: set[str] = set()
        self.last_error: Exception | None = None

    @property
    def storage(self) -> Storage:
        return self._storage

    @property
    def pending_keys(self) -> list[str]:
        return sorted(self._pending)

    def submit(self, key: str, value: Any) -> None:
        """Queue ``value`` for ``key``.

        When called inside a running event loop the write starts in the
        background; otherwise it waits for ``flush()``.
        """
        self._pending[key] = value
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        if key in self._inflight:
            return
        task = loop.create_task(self._drain(key))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def flush(self) -> bool:
        """Wait for every queued write to finish.

        Returns:
            True when the last write of every key succeeded.
        """
        while self._tasks or self._pending:
            if self._tasks:
                await asyncio.gather(*list(self._tasks))
                continue
            for key in list(self._pending):
                if key not in self._inflight:
                    await self._drain(key)
        return not self.failed_keys

    async def _drain(self, key: str) -> None:
        self._inflight.add(key)
        try:
            while key in self._pending:
                value = self._pending.pop(key)
                try:
                    await self._storage.set(key, value)
                except Exception as exc:
                    self.last_error = exc
                    self.failed_keys.add(key)
                    logger.warning("Write of %s failed: %s", key, exc)
                else:
                    self.failed_keys.discard(key)
        finally:
            self._inflight.discard(key)
