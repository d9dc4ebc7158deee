from __future__ import annotations

import datetime as dt
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from codereport.core.config import codereports_dir
from codereport.core.errors import ReportsError

REPORTS_VERSION = 1
REPORTS_FILENAME = "reports.yaml"

STATUS_OPEN = "open"
STATUS_RESOLVED = "resolved"


class LineRange(BaseModel):
    start: int
    end: int


class Author(BaseModel):
    git: Optional[str] = None
    codeowner: Optional[str] = None


class ReportEntry(BaseModel):
    id: str
    path: str
    range: LineRange
    tag: str
    message: str
    author: Author = Field(default_factory=Author)
    created_at: str
    expires_at: Optional[str] = None
    status: str = STATUS_OPEN

    @field_validator("created_at", "expires_at", mode="before")
    @classmethod
    def _date_to_str(cls, v):
        # hand-edited YAML turns bare 2026-01-01 into a date
        if isinstance(v, dt.date):
            return v.isoformat()
        return v


def parse_report_id(report_id: str) -> Optional[int]:
    if not report_id.startswith("CR-"):
        return None
    try:
        return int(report_id[3:])
    except ValueError:
        return None


class Reports(BaseModel):
    version: int = REPORTS_VERSION
    entries: List[ReportEntry] = Field(default_factory=list)

    def max_id(self) -> int:
        ids = [n for n in (parse_report_id(e.id) for e in self.entries) if n is not None]
        return max(ids, default=0)

    def next_id(self) -> str:
        return f"CR-{self.max_id() + 1:06d}"

    def add_entry(self, entry: ReportEntry) -> None:
        self.entries.append(entry)

    def by_id(self, report_id: str) -> Optional[ReportEntry]:
        for e in self.entries:
            if e.id == report_id:
                return e
        return None

    def delete_by_id(self, report_id: str) -> bool:
        for i, e in enumerate(self.entries):
            if e.id == report_id:
                del self.entries[i]
                return True
        return False

    def resolve_by_id(self, report_id: str) -> bool:
        e = self.by_id(report_id)
        if e is None:
            return False
        e.status = STATUS_RESOLVED
        return True


def reports_path(repo_root: Path) -> Path:
    return codereports_dir(repo_root) / REPORTS_FILENAME


def load_reports(repo_root: Path) -> Reports:
    path = reports_path(repo_root)
    if not path.exists():
        return Reports()
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ReportsError(f"read reports: {e}") from e
    try:
        reports = Reports.model_validate(yaml.safe_load(content))
    except (yaml.YAMLError, ValidationError) as e:
        raise ReportsError(f"invalid reports.yaml: {e}") from e
    if reports.version != REPORTS_VERSION:
        raise ReportsError(
            f"unsupported reports version: {reports.version} (expected {REPORTS_VERSION})"
        )
    return reports


def save_reports(repo_root: Path, reports: Reports) -> None:
    """Write reports.yaml atomically (temp file in the same directory, then rename)."""
    dest = reports_path(repo_root)
    temp = dest.with_name(REPORTS_FILENAME + ".tmp")
    text = yaml.safe_dump(reports.model_dump(), sort_keys=False, allow_unicode=True)
    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
        temp.write_text(text, encoding="utf-8")
        temp.replace(dest)
    except OSError as e:
        raise ReportsError(f"write reports: {e}") from e
