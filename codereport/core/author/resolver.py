from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from codereport.core.author.blame_cache import blame_cache_path
from codereport.core.author.codeowners import codeowner_for_path
from codereport.core.author.provenance import ProvenanceResolver
from codereport.core.git_ops.repo_manager import (
    GitRepository,
    GitRepositoryError,
    worktree_has,
)

log = logging.getLogger("codereport.author")


@dataclass
class ResolvedAuthor:
    git: Optional[str] = None
    codeowner: Optional[str] = None


def resolve_author(
    repo_root: Path,
    path: str,
    start: int,
    end: int,
    *,
    cache_path: Optional[Path] = None,
) -> ResolvedAuthor:
    """
    CODEOWNERS owner of path plus the git author of the range's first line.

    Never raises for a missing repository, missing file, failing blame or a
    broken cache; the corresponding field is simply left as None.
    """
    author = ResolvedAuthor(codeowner=codeowner_for_path(repo_root, path))

    try:
        repo = GitRepository.open(repo_root)
    except GitRepositoryError as e:
        log.debug("git unavailable for %s: %s", repo_root, e)
        return author

    if not worktree_has(repo.root, path):
        return author

    resolver = ProvenanceResolver(cache_path or blame_cache_path(repo_root))
    author.git = resolver.resolve(repo, path, start, end)
    return author
