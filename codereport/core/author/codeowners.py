"""CODEOWNERS lookup.

Supports a deliberately small subset of the ownership-file syntax. Each rule is
tested with a fixed sequence of named strategies:

    wildcard-all         "*" owns every path
    exact                pattern == path
    directory-prefix     "dir/" owns everything below dir; unanchored directory
                         patterns also match "dir" as a segment anywhere
    segment-containment  prefix, suffix, or "/pattern" anywhere in the path

Recursive "**" globs and character classes are not supported. Among matching
rules the one appearing last in the file wins.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional

log = logging.getLogger("codereport.codeowners")

# Checked in order, first existing file wins.
CODEOWNERS_CANDIDATES = (
    Path(".git") / "CODEOWNERS",
    Path("CODEOWNERS"),
)


@dataclass(frozen=True)
class OwnershipRule:
    pattern: str
    owner: str


def parse_codeowners(content: str) -> List[OwnershipRule]:
    rules: List[OwnershipRule] = []
    for raw in content.splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        tokens = line.split()
        if len(tokens) < 2:
            continue
        rules.append(OwnershipRule(pattern=tokens[0], owner=tokens[1]))
    return rules


def read_codeowners(repo_root: Path) -> Optional[str]:
    for rel in CODEOWNERS_CANDIDATES:
        p = repo_root / rel
        if not p.exists():
            continue
        try:
            return p.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            log.warning("Cannot read %s: %s", p, e)
            return None
    return None


# ---------------------------------------------------------------------
# Matching strategies
# ---------------------------------------------------------------------

def _wildcard_all(pattern: str, path: str) -> bool:
    return pattern == "*"


def _exact(pattern: str, path: str) -> bool:
    return path == pattern


def _directory_prefix(pattern: str, path: str, anchored: bool) -> bool:
    directory = pattern.rstrip("/")
    if path.startswith(pattern) or path.startswith(directory):
        return True
    if anchored:
        return False
    while directory.startswith("*/"):
        directory = directory[2:]
    if not directory:
        return False
    return path.startswith(f"{directory}/") or f"/{directory}/" in f"/{path}"


def _segment_containment(pattern: str, path: str) -> bool:
    return (
        path.startswith(pattern)
        or path.endswith(pattern)
        or f"/{pattern}" in path
    )


def pattern_matches(pattern: str, path: str) -> bool:
    anchored = pattern.startswith("/")
    pattern = pattern.lstrip("/")
    path = path.replace("\\", "/").lstrip("/")
    if not pattern:
        return False
    if _wildcard_all(pattern, path) or _exact(pattern, path):
        return True
    if pattern.endswith("/"):
        return _directory_prefix(pattern, path, anchored)
    return _segment_containment(pattern, path)


def _matching_owners(rules: List[OwnershipRule], path: str) -> Iterator[str]:
    for rule in rules:
        if pattern_matches(rule.pattern, path):
            yield rule.owner


def owner_for_path(rules: List[OwnershipRule], path: str) -> Optional[str]:
    last: Optional[str] = None
    for owner in _matching_owners(rules, path):
        last = owner
    return last


def codeowner_for_path(repo_root: Path, path: str) -> Optional[str]:
    content = read_codeowners(repo_root)
    if content is None:
        return None
    return owner_for_path(parse_codeowners(content), path)
