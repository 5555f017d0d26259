"""Key/value stores backing the history ledger.

A store holds one serialized document per key and reads/writes it whole.
Any failure is raised as PersistenceUnavailable; the ledger decides how to
degrade.
"""

import asyncio
import logging
import re
from pathlib import Path
from typing import Optional, Protocol

from probableplay.errors import PersistenceUnavailable

logger = logging.getLogger(__name__)

_SAFE_KEY = re.compile(r"[^A-Za-z0-9_.-]")


class HistoryStore(Protocol):
    async def load(self, key: str) -> Optional[str]:
        ...

    async def save(self, key: str, value: str) -> None:
        ...


class InMemoryHistoryStore:
    """Process-local store (tests, demo mode)."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})

    async def load(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def save(self, key: str, value: str) -> None:
        self._data[key] = value


class JsonFileHistoryStore:
    """One UTF-8 file per key under a directory. Blocking I/O runs in a worker thread."""

    def __init__(self, directory: str):
        self.directory = Path(directory)

    def path_for(self, key: str) -> Path:
        return self.directory / f"{_SAFE_KEY.sub('_', key)}.json"

    def _read(self, key: str) -> Optional[str]:
        path = self.path_for(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def _write(self, key: str, value: str) -> None:
        path = self.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        # Write-then-rename so a crash never leaves a half-written document
        tmp_path = path.with_suffix(".json.tmp")
        tmp_path.write_text(value, encoding="utf-8")
        tmp_path.replace(path)

    async def load(self, key: str) -> Optional[str]:
        try:
            return await asyncio.to_thread(self._read, key)
        except (OSError, UnicodeDecodeError) as e:
            raise PersistenceUnavailable(f"Failed to read {key}: {e}") from e

    async def save(self, key: str, value: str) -> None:
        try:
            await asyncio.to_thread(self._write, key, value)
        except OSError as e:
            raise PersistenceUnavailable(f"Failed to write {key}: {e}") from e
