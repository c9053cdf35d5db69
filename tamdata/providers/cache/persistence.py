"""Disk persistence for the in-process cache backend.

One JSON file per cache key under a root directory.  The filename is the
key with every character outside ``[A-Za-z0-9_-]`` replaced by ``_``, so
``fred:market_size:region=US`` becomes ``fred_market_size_region_US.json``.

Each file records the key it was written for next to the entry fields
(``key``, ``data``, ``timestamp``, ``ttl``).  Distinct keys can sanitise to
the same filename; a file whose recorded key differs from the requested
one reads as absent.

Durability is best-effort: write failures are logged and swallowed, and
any read failure (missing file, unreadable file, corrupt JSON) degrades to
"absent".  TTL filtering is the caller's job; :meth:`load` returns expired
entries unchanged so that inspection tools can see them.
"""

from __future__ import annotations

import asyncio
import json
import re
from pathlib import Path

import structlog
from pydantic import ValidationError

from tamdata.models.cache import CacheEntry

logger = structlog.get_logger(logger_name=__name__)

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9_-]")
_SUFFIX = ".json"


def sanitize_key(key: str) -> str:
    """Return the filesystem-safe stem used to store *key*."""
    return _UNSAFE_CHARS.sub("_", key)


class DiskPersistenceStore:
    """Key → :class:`CacheEntry` storage, one file per key.

    Keys that differ only in characters outside ``[A-Za-z0-9_-]`` share a
    file; the last write wins and the other key reads as absent.  No file
    locking is performed.
    """

    def __init__(self, root_dir: str | Path = ".cache_data") -> None:
        self._root = Path(root_dir)
        try:
            self._root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.error("persistence_dir_create_failed", path=str(self._root), error=str(exc))

    @property
    def root_dir(self) -> Path:
        return self._root

    def path_for(self, key: str) -> Path:
        return self._root / f"{sanitize_key(key)}{_SUFFIX}"

    # ------------------------------------------------------------------
    # Blocking helpers (run in a worker thread)
    # ------------------------------------------------------------------

    def _write(self, path: Path, payload: str) -> None:
        self._root.mkdir(parents=True, exist_ok=True)
        path.write_text(payload, encoding="utf-8")

    def _read(self, path: Path) -> str:
        return path.read_text(encoding="utf-8")

    def _remove_all(self) -> int:
        removed = 0
        if not self._root.is_dir():
            return removed
        for path in self._root.glob(f"*{_SUFFIX}"):
            path.unlink(missing_ok=True)
            removed += 1
        return removed

    def _stored_keys(self) -> list[str]:
        keys: list[str] = []
        if not self._root.is_dir():
            return keys
        for path in self._root.glob(f"*{_SUFFIX}"):
            try:
                stored = json.loads(path.read_text(encoding="utf-8")).get("key")
            except (OSError, ValueError, AttributeError):
                continue
            if isinstance(stored, str):
                keys.append(stored)
        return keys

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def save(self, key: str, entry: CacheEntry) -> None:
        """Write *entry* to disk.  Failures are logged, never raised."""
        path = self.path_for(key)
        try:
            payload = json.dumps({"key": key, **entry.model_dump(mode="json")})
            await asyncio.to_thread(self._write, path, payload)
        except (OSError, TypeError, ValueError) as exc:
            logger.warning("persistence_save_failed", key=key, path=str(path), error=str(exc))

    async def load(self, key: str) -> CacheEntry | None:
        """Read the entry stored for *key*, or ``None``.

        Expired entries are returned as-is.
        """
        path = self.path_for(key)
        try:
            raw = await asyncio.to_thread(self._read, path)
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.warning("persistence_load_failed", key=key, path=str(path), error=str(exc))
            return None

        try:
            document = json.loads(raw)
            stored_key = document.pop("key", key)
            entry = CacheEntry.model_validate(document)
        except (ValueError, ValidationError, AttributeError, TypeError) as exc:
            logger.warning("persistence_entry_corrupt", key=key, path=str(path), error=str(exc))
            return None

        if stored_key != key:
            logger.debug("persistence_key_collision", key=key, stored_key=stored_key)
            return None
        return entry

    async def remove(self, key: str) -> None:
        """Delete the file for *key*.  A missing file is not an error."""
        path = self.path_for(key)
        try:
            await asyncio.to_thread(path.unlink, True)
        except OSError as exc:
            logger.warning("persistence_remove_failed", key=key, path=str(path), error=str(exc))

    async def keys(self) -> list[str]:
        """Keys recorded in the persisted files.  Unreadable files are skipped."""
        try:
            return await asyncio.to_thread(self._stored_keys)
        except OSError as exc:
            logger.warning("persistence_list_failed", path=str(self._root), error=str(exc))
            return []

    async def clear_all(self) -> None:
        """Delete every persisted entry under the root directory."""
        try:
            removed = await asyncio.to_thread(self._remove_all)
        except OSError as exc:
            logger.warning("persistence_clear_failed", path=str(self._root), error=str(exc))
            return
        logger.debug("persistence_cleared", path=str(self._root), removed=removed)
