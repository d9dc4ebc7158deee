# codereport/core/git_ops/repo_manager.py

from __future__ import annotations

import logging
import os
import re
import subprocess
from pathlib import Path
from typing import Dict, Optional, Tuple

log = logging.getLogger("codereport.git")


class GitRepositoryError(Exception):
    pass


# ---------------------------------------------------------------------
# Core git runner (deterministic, no debug prints, strict semantics)
# ---------------------------------------------------------------------

def _run_git(repo_path: Path, args: list[str]) -> Tuple[int, str, str]:
    p = subprocess.run(
        ["git", "--no-pager", *args],
        cwd=str(repo_path),
        capture_output=True,
        text=True,
        encoding="utf-8",
        errors="replace",
        env={**os.environ, "GIT_PAGER": "cat", "PAGER": "cat"},
    )
    return p.returncode, (p.stdout or "").strip(), (p.stderr or "").strip()


def to_git_path(path: str) -> str:
    return path.replace("\\", "/").lstrip("/")


def worktree_has(root: Path, path: str) -> bool:
    """True when path exists under root; unreadable or invalid paths count as absent."""
    try:
        return (Path(root) / path).exists()
    except OSError as e:
        log.debug("cannot stat %s under %s: %s", path, root, e)
        return False


def find_repo_root(cwd: Path) -> Optional[Path]:
    """
    Walk up from cwd until a directory containing .git is found.
    Returns None when cwd is not inside a git work tree.
    """
    try:
        current = cwd.resolve(strict=True)
    except OSError:
        return None
    for candidate in (current, *current.parents):
        if (candidate / ".git").exists():
            return candidate
    return None


# ---------------------------------------------------------------------
# Blame porcelain parsing
# ---------------------------------------------------------------------

_BLAME_HEADER = re.compile(r"^([0-9a-f]{40}|[0-9a-f]{64}) (\d+) (\d+)(?: (\d+))?$")


def parse_line_porcelain(output: str) -> Dict[int, str]:
    """
    Map final line number -> author e-mail from `git blame --line-porcelain`.

    Angle brackets around the address are stripped; lines without an
    author-mail header are left out.
    """
    emails: Dict[int, str] = {}
    current: Optional[int] = None
    for line in output.splitlines():
        if line.startswith("\t"):
            current = None
            continue
        m = _BLAME_HEADER.match(line)
        if m:
            current = int(m.group(3))
            continue
        if current is not None and line.startswith("author-mail "):
            mail = line[len("author-mail "):].strip()
            if mail.startswith("<") and mail.endswith(">"):
                mail = mail[1:-1]
            if mail:
                emails[current] = mail
    return emails


# ---------------------------------------------------------------------
# Repository handle
# ---------------------------------------------------------------------

class GitRepository:
    """
    Local work tree driven through the git executable.

    Only the two capabilities author resolution needs are exposed:
    the blob id of a path at HEAD and a line-windowed blame.
    """

    def __init__(self, root: Path):
        self.root = root

    @classmethod
    def open(cls, repo_root: Path) -> "GitRepository":
        """Open repo_root, which must be the top level of a work tree."""
        try:
            rc, out, err = _run_git(repo_root, ["rev-parse", "--show-toplevel"])
        except OSError as e:
            raise GitRepositoryError(f"cannot run git in {repo_root}: {e}") from e
        if rc != 0 or not out:
            raise GitRepositoryError(f"not a git repository: {repo_root} ({err})")
        top = Path(out).resolve()
        if top != Path(repo_root).resolve():
            raise GitRepositoryError(f"{repo_root} is not the top level of {top}")
        return cls(top)

    def blob_oid_at_head(self, path: str) -> Optional[str]:
        """
        Blob id of path in the HEAD tree.

        None for new/untracked files, an unborn HEAD, or any git failure.
        """
        try:
            rc, out, _ = _run_git(
                self.root,
                ["rev-parse", "--verify", "--quiet", f"HEAD:{to_git_path(path)}"],
            )
        except OSError as e:
            log.debug("rev-parse failed for %s: %s", path, e)
            return None
        if rc != 0:
            return None
        return out or None

    def blame_line(self, path: str, start: int, end: int) -> Optional[str]:
        """
        Author e-mail of the first line of the window [start, max(end, start)].
        """
        line_no = max(start, 1)
        window = f"{line_no},{max(end, line_no)}"
        try:
            rc, out, err = _run_git(
                self.root,
                ["blame", "--line-porcelain", "-L", window, "--", to_git_path(path)],
            )
        except OSError as e:
            log.debug("blame failed for %s: %s", path, e)
            return None
        if rc != 0:
            log.debug("blame failed for %s:%s: %s", path, window, err)
            return None
        return parse_line_porcelain(out).get(line_no)
