import datetime as dt
import json

import pytest

from codereport import cli
from codereport.cli import main, parse_location
from codereport.core.errors import CodeReportError
from codereport.core.reports import load_reports

TODAY = dt.date(2026, 3, 1)


@pytest.fixture()
def repo(tmp_repo, monkeypatch):
    monkeypatch.chdir(tmp_repo)
    monkeypatch.setattr(cli, "_today", lambda: TODAY)
    assert main(["init"]) == 0
    return tmp_repo


@pytest.mark.parametrize(
    "location,expected",
    [
        ("src/foo.py:42-88", ("src/foo.py", 42, 88)),
        ("src\\foo.py:1-1", ("src/foo.py", 1, 1)),
        ("weird:name.py:3-4", ("weird:name.py", 3, 4)),
        ("a.py:5--7", ("a.py", 5, 7)),
        ("a.py: 2 - 9", ("a.py", 2, 9)),
    ],
)
def test_parse_location(location, expected):
    assert parse_location(location) == expected


@pytest.mark.parametrize(
    "location,message",
    [
        ("src/foo.py", "expected path:start-end"),
        (":1-2", "path is empty"),
        ("a.py:12", "expected start-end range"),
        ("a.py:x-2", "invalid start line"),
        ("a.py:1-y", "invalid end line"),
        ("a.py:1_0-12", "invalid start line"),
        ("a.py:1-+3", "invalid end line"),
        ("a.py:0-2", "invalid range"),
        ("a.py:5-2", "invalid range"),
    ],
)
def test_parse_location_errors(location, message):
    with pytest.raises(CodeReportError, match=message):
        parse_location(location)


def test_outside_repository(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(cli, "find_repo_root", lambda cwd: None)
    assert main(["list"]) == 1
    assert "not inside a git repository" in capsys.readouterr().err


def test_init_is_idempotent(repo, capsys):
    assert (repo / ".codereports" / "config.yaml").exists()
    assert json.loads((repo / ".codereports" / "schema.json").read_text(encoding="utf-8"))

    assert main(["init"]) == 0
    gitignore = (repo / ".gitignore").read_text(encoding="utf-8")
    assert gitignore.count("# codereport") == 1
    assert ".codereports/.blame-cache" in gitignore
    assert "Initialized .codereports/" in capsys.readouterr().out


def test_init_appends_to_existing_gitignore(tmp_repo, monkeypatch):
    (tmp_repo / ".gitignore").write_text("*.pyc\n", encoding="utf-8")
    monkeypatch.chdir(tmp_repo)
    assert main(["init"]) == 0
    content = (tmp_repo / ".gitignore").read_text(encoding="utf-8")
    assert content.startswith("*.pyc\n")
    assert ".codereports/html/" in content


def test_add_records_author_and_expiry(repo, capsys):
    (repo / "CODEOWNERS").write_text("src/ @core\n", encoding="utf-8")

    assert main(["add", "src/app.py:2-3", "--tag", "Buggy", "--message", "off by one"]) == 0
    assert "Added CR-000001 src/app.py" in capsys.readouterr().out

    e = load_reports(repo).by_id("CR-000001")
    assert e.tag == "buggy"
    assert e.range.start == 2 and e.range.end == 3
    assert e.author.git == "alice@example.com"
    assert e.author.codeowner == "@core"
    assert e.created_at == "2026-03-01"
    assert e.expires_at == "2026-05-30"
    assert e.status == "open"

    audit = (repo / ".codereports" / "audit.log").read_text(encoding="utf-8").splitlines()
    assert json.loads(audit[-1])["type"] == "add"


def test_add_without_init(tmp_repo, monkeypatch, capsys):
    monkeypatch.chdir(tmp_repo)
    assert main(["add", "src/app.py:1-1", "--tag", "todo", "--message", "m"]) == 1
    assert "config not found" in capsys.readouterr().err


def test_add_rejects_unknown_tag(repo, capsys):
    assert main(["add", "src/app.py:1-1", "--tag", "nit", "--message", "m"]) == 1
    assert "error: unknown tag: nit" in capsys.readouterr().err


def test_list_filters(repo, capsys):
    main(["add", "src/app.py:1-1", "--tag", "todo", "--message", "first"])
    main(["add", "README.md:1-1", "--tag", "refactor", "--message", "second"])
    main(["resolve", "CR-000002"])
    capsys.readouterr()

    assert main(["list", "--tag", "TODO"]) == 0
    out = capsys.readouterr().out.splitlines()
    assert out == ["CR-000001  src/app.py  1-1  todo  open  first"]

    main(["list", "--status", "resolved"])
    out = capsys.readouterr().out.splitlines()
    assert out == ["CR-000002  README.md  1-1  refactor  resolved  second"]


def test_delete_and_resolve_unknown_ids(repo, capsys):
    assert main(["delete", "CR-000404"]) == 1
    assert "report not found: CR-000404" in capsys.readouterr().err
    assert main(["resolve", "CR-000404"]) == 1

    main(["add", "src/app.py:1-1", "--tag", "todo", "--message", "m"])
    assert main(["delete", "CR-000001"]) == 0
    assert load_reports(repo).entries == []


def test_check_flags_blocking_and_expired(repo, monkeypatch, capsys):
    main(["add", "src/app.py:1-1", "--tag", "todo", "--message", "fine"])
    assert main(["check"]) == 0

    main(["add", "src/app.py:2-2", "--tag", "critical", "--message", "ship blocker"])
    capsys.readouterr()
    assert main(["check"]) == 1
    err = capsys.readouterr().err
    assert "CR-000002  src/app.py  critical  ship blocker" in err
    assert "CR-000001" not in err

    main(["resolve", "CR-000002"])
    main(["add", "src/app.py:3-3", "--tag", "buggy", "--message", "stale"])
    assert main(["check"]) == 0

    monkeypatch.setattr(cli, "_today", lambda: TODAY + dt.timedelta(days=91))
    capsys.readouterr()
    assert main(["check"]) == 1
    assert "CR-000003" in capsys.readouterr().err


def test_html_no_open(repo, monkeypatch, capsys):
    opened = []
    monkeypatch.setattr(cli.webbrowser, "open", lambda url: opened.append(url) or True)
    main(["add", "src/app.py:1-1", "--tag", "todo", "--message", "<b>escape me</b>"])
    capsys.readouterr()

    assert main(["html", "--no-open"]) == 0
    index = repo.resolve() / ".codereports" / "html" / "index.html"
    assert f"Generated {index}" in capsys.readouterr().out
    assert "&lt;b&gt;escape me&lt;/b&gt;" in index.read_text(encoding="utf-8")
    assert opened == []

    assert main(["html"]) == 0
    assert opened == [index.resolve().as_uri()]
