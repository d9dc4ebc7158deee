import subprocess
from pathlib import Path

import pytest

from codereport.core.observability.audit import close_audit_handlers


def git(repo: Path, *args: str) -> str:
    p = subprocess.run(
        ["git", *args],
        cwd=str(repo),
        check=True,
        capture_output=True,
        text=True,
    )
    return p.stdout.strip()


@pytest.fixture(autouse=True)
def _release_audit_handlers():
    yield
    close_audit_handlers()


@pytest.fixture()
def tmp_repo(tmp_path: Path):
    """
    Temporary git repo with one commit by alice@example.com:
      README.md
      src/app.py (5 lines)
    """
    repo = tmp_path / "repo"
    repo.mkdir(parents=True, exist_ok=True)
    git(repo, "init", "-q")
    git(repo, "config", "user.name", "Alice")
    git(repo, "config", "user.email", "alice@example.com")
    git(repo, "config", "commit.gpgsign", "false")
    (repo / "README.md").write_text("x\n", encoding="utf-8")
    (repo / "src").mkdir()
    (repo / "src" / "app.py").write_text(
        "".join(f"line {i}\n" for i in range(1, 6)), encoding="utf-8"
    )
    git(repo, "add", ".")
    git(repo, "commit", "-q", "-m", "init")
    return repo


@pytest.fixture()
def git_cmd():
    return git


@pytest.fixture()
def commit_as():
    """Commit everything in the work tree as the given author e-mail."""

    def _commit(repo: Path, email: str, message: str = "change") -> None:
        git(repo, "add", "-A")
        git(
            repo,
            "-c", f"user.email={email}",
            "-c", "user.name=Someone",
            "commit", "-q", "-m", message,
        )

    return _commit
