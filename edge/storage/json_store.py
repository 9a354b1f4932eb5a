"""
Whole-file JSON collections with atomic rewrites.

Each collection is one self-describing document:

    {"kind": "ledger", "version": 1, "items": [...]}

Writes go to a temporary file in the same directory and are swapped in with
os.replace, so a crash never leaves a half-written file. Read-modify-write
cycles are serialised by a per-collection lock acquired with a timeout.
"""

from __future__ import annotations

import json
import os
import shutil
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from loguru import logger

from edge.core.errors import PersistenceError

FORMAT_VERSION = 1


class JsonCollection:
    """An ordered list of JSON objects stored in a single file."""

    def __init__(self, path: Path, kind: str, lock_timeout: float = 10.0):
        self.path = Path(path)
        self.kind = kind
        self.lock_timeout = lock_timeout
        self._lock = threading.RLock()

    @contextmanager
    def locked(self) -> Iterator[None]:
        """Hold the writer lock, or fail with PersistenceError after the timeout."""
        if not self._lock.acquire(timeout=self.lock_timeout):
            raise PersistenceError(f"Timed out waiting for the {self.kind} lock")
        try:
            yield
        finally:
            self._lock.release()

    def read(self) -> list[dict[str, Any]]:
        """
        Load every item.

        Absence means "no data yet". A corrupted or unreadable file is logged,
        copied aside, and treated as empty.
        """
        if not self.path.exists():
            return []

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.error(f"Could not read {self.kind} at {self.path}: {e}; treating as empty")
            self._preserve_corrupt()
            return []

        # Older files were a bare list.
        if isinstance(data, list):
            items = data
        elif isinstance(data, dict) and isinstance(data.get("items"), list):
            if data.get("kind") not in (None, self.kind):
                logger.warning(f"{self.path} declares kind={data.get('kind')!r}, expected {self.kind!r}")
            items = data["items"]
        else:
            logger.error(f"Unexpected {self.kind} document shape in {self.path}; treating as empty")
            self._preserve_corrupt()
            return []

        return [item for item in items if isinstance(item, dict)]

    def write(self, items: list[dict[str, Any]]) -> None:
        """Atomically replace the file contents."""
        document = {"kind": self.kind, "version": FORMAT_VERSION, "items": items}
        tmp_name: str | None = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
            tmp_name = None
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(f"Failed to write {self.kind} to {self.path}: {e}") from e
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)

    @contextmanager
    def transaction(self) -> Iterator[list[dict[str, Any]]]:
        """
        Read, let the caller mutate the list in place, then write it back.

        Nothing is written if the body raises.
        """
        with self.locked():
            items = self.read()
            yield items
            self.write(items)

    def _preserve_corrupt(self) -> None:
        backup = self.path.with_name(self.path.name + ".corrupt")
        try:
            shutil.copyfile(self.path, backup)
            logger.warning(f"Copied unreadable {self.kind} file to {backup}")
        except OSError as e:
            logger.warning(f"Could not preserve unreadable {self.kind} file: {e}")
