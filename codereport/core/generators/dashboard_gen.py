from __future__ import annotations

import datetime as dt
from collections import Counter, defaultdict
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from jinja2 import Environment, FileSystemLoader, select_autoescape

from codereport.core.config import Tag, codereports_dir
from codereport.core.errors import CodeReportError
from codereport.core.reports import STATUS_OPEN, Reports

TEMPLATES_DIR = Path(__file__).resolve().parents[2] / "templates"

EXPIRING_SOON_DAYS = 7
HEATMAP_MAX_FILES = 30


@dataclass
class DashboardStats:
    total: int = 0
    open: int = 0
    resolved: int = 0
    critical: int = 0
    expired: int = 0
    expiring_soon: int = 0


def _days_until(today: dt.date, date_s: str) -> Optional[int]:
    try:
        return (dt.date.fromisoformat(date_s) - today).days
    except ValueError:
        return None


def compute_stats(reports: Reports, today: dt.date) -> DashboardStats:
    """Counts over every entry; expiry figures ignore status."""
    today_s = today.isoformat()
    stats = DashboardStats(total=len(reports.entries))
    for e in reports.entries:
        if e.status.lower() == STATUS_OPEN:
            stats.open += 1
        else:
            stats.resolved += 1
        if e.tag.lower() == Tag.CRITICAL.value:
            stats.critical += 1
        expires_at = (e.expires_at or "").strip()
        if not expires_at:
            continue
        if expires_at < today_s:
            stats.expired += 1
        else:
            days = _days_until(today, expires_at)
            if days is not None and days <= EXPIRING_SOON_DAYS:
                stats.expiring_soon += 1
    return stats


def compute_chart_data(
    reports: Reports,
) -> Tuple[List[Tuple[str, int]], List[Tuple[str, int]], Dict[str, Dict[str, int]]]:
    """Tag counts, per-file counts (busiest first) and the file x tag heatmap."""
    tag_counts = Counter(e.tag for e in reports.entries)
    file_counts = Counter(e.path for e in reports.entries)
    heatmap: Dict[str, Dict[str, int]] = defaultdict(dict)
    for e in reports.entries:
        row = heatmap[e.path]
        row[e.tag] = row.get(e.tag, 0) + 1

    tags = sorted(tag_counts.items(), key=lambda kv: (-kv[1], kv[0]))
    files = sorted(file_counts.items(), key=lambda kv: (-kv[1], kv[0]))
    return tags, files, dict(heatmap)


def heat_level(count: int) -> str:
    if count >= 3:
        return "hi"
    if count >= 2:
        return "mid"
    return "lo"


def tag_slug(tag: str) -> str:
    """CSS class for a tag; unknown tags are styled like todo."""
    t = tag.lower()
    known = {m.value for m in Tag}
    return t if t in known else Tag.TODO.value


def render_dashboard(reports: Reports, today: dt.date) -> str:
    env = Environment(
        loader=FileSystemLoader(str(TEMPLATES_DIR)),
        autoescape=select_autoescape(enabled_extensions=("html", "j2")),
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["heat_level"] = heat_level
    env.filters["tag_slug"] = tag_slug

    tags, files, heatmap = compute_chart_data(reports)
    max_tag_count = max((c for _, c in tags), default=1)

    template = env.get_template("dashboard.html.j2")
    return template.render(
        today=today.isoformat(),
        stats=compute_stats(reports, today),
        tag_bars=[(t, c, min(100.0, c / max_tag_count * 100.0)) for t, c in tags],
        heatmap_tags=[t for t, _ in tags],
        heatmap_files=[p for p, _ in files[:HEATMAP_MAX_FILES]],
        heatmap=heatmap,
        entries=sorted(reports.entries, key=lambda e: e.id),
    )


def generate_html(repo_root: Path, reports: Reports, today: Optional[dt.date] = None) -> Path:
    out_dir = codereports_dir(repo_root) / "html"
    index = out_dir / "index.html"
    html = render_dashboard(reports, today or dt.date.today())
    try:
        out_dir.mkdir(parents=True, exist_ok=True)
        index.write_text(html, encoding="utf-8")
    except OSError as e:
        raise CodeReportError(f"write dashboard: {e}") from e
    return index
