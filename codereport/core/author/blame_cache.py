from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError

log = logging.getLogger("codereport.blame_cache")

BLAME_CACHE_FILENAME = ".blame-cache"


def blame_cache_path(repo_root: Path) -> Path:
    return repo_root / ".codereports" / BLAME_CACHE_FILENAME


@dataclass(frozen=True)
class BlameCacheKey:
    path: str
    start: int
    end: int
    oid: str


class BlameCacheEntry(BaseModel):
    path: str
    start: int
    end: int
    oid: str
    email: str

    @property
    def key(self) -> BlameCacheKey:
        return BlameCacheKey(path=self.path, start=self.start, end=self.end, oid=self.oid)


class BlameCacheStore(BaseModel):
    """
    In-memory view of the persisted blame cache.

    Entries are keyed by (path, start, end, oid). Entries for other blob ids
    of the same range are kept; nothing is ever pruned here.
    """

    entries: List[BlameCacheEntry] = Field(default_factory=list)

    def lookup(self, key: BlameCacheKey) -> Optional[str]:
        for e in self.entries:
            if e.key == key:
                return e.email
        return None

    def upsert(self, key: BlameCacheKey, email: str) -> None:
        self.entries = [e for e in self.entries if e.key != key]
        self.entries.append(
            BlameCacheEntry(path=key.path, start=key.start, end=key.end, oid=key.oid, email=email)
        )


def load_blame_cache(path: Path) -> BlameCacheStore:
    """
    Read the cache file. A missing, unreadable or corrupt file yields an
    empty store; nothing is raised.
    """
    if not path.exists():
        return BlameCacheStore()
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
        return BlameCacheStore.model_validate(raw)
    except (OSError, ValueError, ValidationError) as e:
        log.warning("Ignoring unreadable blame cache %s: %s", path, e)
        return BlameCacheStore()


def persist_blame_cache(path: Path, store: BlameCacheStore) -> bool:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(store.model_dump(), indent=2), encoding="utf-8")
    except OSError as e:
        log.warning("Failed to write blame cache %s: %s", path, e)
        return False
    return True
