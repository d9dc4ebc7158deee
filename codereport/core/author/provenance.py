from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from codereport.core.author.blame_cache import (
    BlameCacheKey,
    load_blame_cache,
    persist_blame_cache,
)
from codereport.core.git_ops.repo_manager import GitRepository, worktree_has

log = logging.getLogger("codereport.author")


class ProvenanceResolver:
    """Blame lookup for a line range, fronted by the content-addressed cache.

    The cache key includes the blob id of the file at HEAD, so a hit is valid
    for exactly that content and is returned without running blame. Files
    with no blob id at HEAD (new, uncommitted) are blamed on every call and
    never cached.
    """

    def __init__(self, cache_path: Path):
        self.cache_path = cache_path

    def resolve(self, repo: GitRepository, path: str, start: int, end: int) -> Optional[str]:
        oid = repo.blob_oid_at_head(path)

        if not worktree_has(repo.root, path):
            return None

        key = None
        if oid:
            key = BlameCacheKey(path=path, start=start, end=end, oid=oid)
            cached = load_blame_cache(self.cache_path).lookup(key)
            if cached is not None:
                log.debug("blame cache hit %s:%d-%d@%s", path, start, end, oid)
                return cached or None

        email = repo.blame_line(path, start, max(end, start))
        if email is None:
            return None

        if key is not None:
            # Reload so entries written since the lookup are kept.
            store = load_blame_cache(self.cache_path)
            store.upsert(key, email)
            persist_blame_cache(self.cache_path, store)
        return email
