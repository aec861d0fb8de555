"""Key-value stores backing the conditional HTTP cache.

Entries are keyed by the SHA-1 of the request URL and never evicted; the
crawl target is small enough that the cache is allowed to grow.
"""

import hashlib
import json
import logging
from pathlib import Path
from typing import Dict, Optional, Protocol

from pydantic import ValidationError

from divicatalog.models.cache_entry import CacheEntry

logger = logging.getLogger(__name__)


def cache_key(url: str) -> str:
    """Return the hex SHA-1 digest of *url*."""
    return hashlib.sha1(url.encode("utf-8")).hexdigest()


class CacheStore(Protocol):
    def get(self, key: str) -> Optional[CacheEntry]: ...

    def put(self, key: str, entry: CacheEntry) -> None: ...


class MemoryCacheStore:
    """Process-local store, used by tests and one-off runs."""

    def __init__(self) -> None:
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[CacheEntry]:
        return self._entries.get(key)

    def put(self, key: str, entry: CacheEntry) -> None:
        self._entries[key] = entry

    def __len__(self) -> int:
        return len(self._entries)


class FileCacheStore:
    """One JSON file per key under *directory*.

    Writes replace the whole file, so concurrent writers to different keys
    never conflict and a race on the same key is last-write-wins.
    """

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Optional[CacheEntry]:
        path = self._path(key)
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
            return CacheEntry.model_validate(raw)
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError, ValidationError) as exc:
            logger.warning("Ignoring unreadable cache entry %s: %s", path, exc)
            return None

    def put(self, key: str, entry: CacheEntry) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        payload = entry.model_dump(by_alias=True, exclude_none=True)
        self._path(key).write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
