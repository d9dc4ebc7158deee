from __future__ import annotations

import argparse
import datetime as dt
import logging
import os
import re
import sys
import webbrowser
from pathlib import Path
from typing import List, Optional, Tuple

from codereport import __version__
from codereport.core.author import resolve_author
from codereport.core.config import (
    SCHEMA_FILENAME,
    Severity,
    Tag,
    codereports_dir,
    config_path,
    default_schema_json,
    expires_days,
    load_config,
    severity,
    validate_tag_for_add,
    write_default_config,
)
from codereport.core.errors import CodeReportError
from codereport.core.generators.dashboard_gen import generate_html
from codereport.core.git_ops.repo_manager import find_repo_root
from codereport.core.observability.audit import audit_event
from codereport.core.reports import (
    STATUS_OPEN,
    Author,
    LineRange,
    ReportEntry,
    load_reports,
    save_reports,
)

log = logging.getLogger("codereport.cli")

LINE_NUMBER_RE = re.compile(r"[0-9]+")

GITIGNORE_BLOCK = (
    "# codereport (generated dashboard, local blame cache and audit log)\n"
    ".codereports/html/\n"
    ".codereports/.blame-cache\n"
    ".codereports/audit.log*\n"
)


def configure_logging() -> None:
    name = (os.getenv("CODEREPORT_LOG_LEVEL") or "WARNING").strip().upper()
    level = getattr(logging, name, None)
    logging.basicConfig(
        level=level if isinstance(level, int) else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _today() -> dt.date:
    return dt.date.today()


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------

def ensure_root_gitignore(repo_root: Path) -> None:
    gitignore = repo_root / ".gitignore"
    content = gitignore.read_text(encoding="utf-8") if gitignore.exists() else ""
    if ".codereports/html/" in content or "# codereport" in content:
        return
    if content.strip():
        new_content = content.rstrip("\n") + "\n\n" + GITIGNORE_BLOCK
    else:
        new_content = GITIGNORE_BLOCK
    gitignore.write_text(new_content, encoding="utf-8")


def parse_location(location: str) -> Tuple[str, int, int]:
    """Parse "path:start-end" (e.g. src/foo.py:42-88)."""
    path_part, sep, range_part = location.rpartition(":")
    if not sep:
        raise CodeReportError("expected path:start-end")
    path = path_part.strip()
    if not path:
        raise CodeReportError("path is empty")
    path = path.replace("\\", "/")

    start_s, dash, end_s = range_part.partition("-")
    if not dash:
        raise CodeReportError("expected start-end range")
    start_s = start_s.strip()
    end_s = end_s.lstrip("-").strip()
    if not LINE_NUMBER_RE.fullmatch(start_s):
        raise CodeReportError("invalid start line")
    if not LINE_NUMBER_RE.fullmatch(end_s):
        raise CodeReportError("invalid end line")
    start, end = int(start_s), int(end_s)
    if start < 1 or end < start:
        raise CodeReportError("invalid range (start >= 1, end >= start)")
    return path, start, end


# ---------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------

def cmd_init(repo_root: Path, args: argparse.Namespace) -> int:
    d = codereports_dir(repo_root)
    try:
        d.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise CodeReportError(f"failed to create .codereports: {e}") from e
    try:
        ensure_root_gitignore(repo_root)
    except OSError as e:
        raise CodeReportError(f"failed to update repo root .gitignore: {e}") from e

    if not config_path(repo_root).exists():
        write_default_config(repo_root)
    schema = d / SCHEMA_FILENAME
    if not schema.exists():
        try:
            schema.write_text(default_schema_json(), encoding="utf-8")
        except OSError as e:
            raise CodeReportError(f"failed to write schema.json: {e}") from e

    print(f"Initialized .codereports/ in {repo_root}")
    return 0


def cmd_add(repo_root: Path, args: argparse.Namespace) -> int:
    path, start, end = parse_location(args.location)
    cfg = load_config(repo_root)
    tag = validate_tag_for_add(cfg, args.tag)
    reports = load_reports(repo_root)

    resolved = resolve_author(repo_root, path, start, end)
    today = _today()
    days = expires_days(cfg, tag)
    expires_at = (today + dt.timedelta(days=days)).isoformat() if days is not None else None

    report_id = reports.next_id()
    reports.add_entry(
        ReportEntry(
            id=report_id,
            path=path,
            range=LineRange(start=start, end=end),
            tag=tag.value,
            message=args.message,
            author=Author(git=resolved.git, codeowner=resolved.codeowner),
            created_at=today.isoformat(),
            expires_at=expires_at,
            status=STATUS_OPEN,
        )
    )
    save_reports(repo_root, reports)
    audit_event(repo_root, "add", report_id, path, {"tag": tag.value, "range": [start, end]})
    print(f"Added {report_id} {path}")
    return 0


def cmd_list(repo_root: Path, args: argparse.Namespace) -> int:
    reports = load_reports(repo_root)
    tag_filter = args.tag.lower() if args.tag else None
    status_filter = args.status.lower() if args.status else None
    for e in reports.entries:
        if tag_filter and e.tag.lower() != tag_filter:
            continue
        if status_filter and e.status.lower() != status_filter:
            continue
        print(f"{e.id}  {e.path}  {e.range.start}-{e.range.end}  {e.tag}  {e.status}  {e.message}")
    return 0


def cmd_delete(repo_root: Path, args: argparse.Namespace) -> int:
    reports = load_reports(repo_root)
    entry = reports.by_id(args.id)
    if not reports.delete_by_id(args.id):
        raise CodeReportError(f"report not found: {args.id}")
    save_reports(repo_root, reports)
    audit_event(repo_root, "delete", args.id, entry.path if entry else None)
    print(f"Deleted {args.id}")
    return 0


def cmd_resolve(repo_root: Path, args: argparse.Namespace) -> int:
    reports = load_reports(repo_root)
    if not reports.resolve_by_id(args.id):
        raise CodeReportError(f"report not found: {args.id}")
    save_reports(repo_root, reports)
    audit_event(repo_root, "resolve", args.id, reports.by_id(args.id).path)
    print(f"Resolved {args.id}")
    return 0


def find_violations(repo_root: Path, today: dt.date) -> List[ReportEntry]:
    """Open reports that are blocking by severity or past their expiry date."""
    cfg = load_config(repo_root)
    reports = load_reports(repo_root)
    today_s = today.isoformat()
    violations: List[ReportEntry] = []
    for e in reports.entries:
        if e.status != STATUS_OPEN:
            continue
        try:
            sev = severity(cfg, Tag.parse(e.tag))
        except CodeReportError:
            continue
        blocking = sev == Severity.BLOCKING
        expired = bool(e.expires_at) and e.expires_at < today_s
        if blocking or expired:
            violations.append(e)
    return violations


def cmd_check(repo_root: Path, args: argparse.Namespace) -> int:
    violations = find_violations(repo_root, _today())
    for e in violations:
        print(f"{e.id}  {e.path}  {e.tag}  {e.message}", file=sys.stderr)
    return 1 if violations else 0


def cmd_html(repo_root: Path, args: argparse.Namespace) -> int:
    reports = load_reports(repo_root)
    index = generate_html(repo_root, reports, _today())
    print(f"Generated {index}")
    if not args.no_open:
        try:
            if not webbrowser.open(index.resolve().as_uri()):
                print("warning: could not open browser", file=sys.stderr)
        except webbrowser.Error as e:
            print(f"warning: could not open browser: {e}", file=sys.stderr)
    return 0


# ---------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="codereport",
        description="Annotate source ranges with review reports and track their lifecycle.",
    )
    ap.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = ap.add_subparsers(dest="command", required=True)

    p = sub.add_parser("init", help="Initialize .codereports/ with config and schema")
    p.set_defaults(func=cmd_init)

    p = sub.add_parser("add", help="Add a new report")
    p.add_argument("location", help="Location as path:start-end (e.g. src/foo.py:42-88)")
    p.add_argument("--tag", required=True)
    p.add_argument("--message", required=True)
    p.set_defaults(func=cmd_add)

    p = sub.add_parser("list", help="List reports with optional filters")
    p.add_argument("--tag")
    p.add_argument("--status")
    p.set_defaults(func=cmd_list)

    p = sub.add_parser("delete", help="Delete a report by ID")
    p.add_argument("id")
    p.set_defaults(func=cmd_delete)

    p = sub.add_parser("resolve", help="Mark a report as resolved")
    p.add_argument("id")
    p.set_defaults(func=cmd_resolve)

    p = sub.add_parser("check", help="CI check: fail if blocking or expired open reports")
    p.set_defaults(func=cmd_check)

    p = sub.add_parser("html", help="Generate HTML dashboard")
    p.add_argument("--no-open", action="store_true", help="Do not open the dashboard in a browser")
    p.set_defaults(func=cmd_html)
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    configure_logging()
    args = build_parser().parse_args(argv)

    repo_root = find_repo_root(Path.cwd())
    if repo_root is None:
        print("error: not inside a git repository (no .git found)", file=sys.stderr)
        return 1

    try:
        return args.func(repo_root, args)
    except CodeReportError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
