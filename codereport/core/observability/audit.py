import getpass
import json
import logging
import logging.handlers
import time
from pathlib import Path
from typing import Any, Dict, Optional

AUDIT_FILENAME = "audit.log"

# RotatingFileHandler: 1MB max per file, 3 backups
_MAX_BYTES = 1024 * 1024
_BACKUP_COUNT = 3

_handler_cache: Dict[str, logging.Handler] = {}

log = logging.getLogger("codereport.audit")


def _now_ms() -> int:
    return int(time.time() * 1000)


def _actor() -> Optional[str]:
    try:
        return getpass.getuser()
    except (OSError, KeyError, ImportError):
        return None


def audit_log_path(repo_root: Path) -> Path:
    return repo_root / ".codereports" / AUDIT_FILENAME


def _get_rotating_handler(audit_path: Path) -> logging.Handler:
    key = str(audit_path.resolve())
    if key not in _handler_cache:
        audit_path.parent.mkdir(parents=True, exist_ok=True)
        h = logging.handlers.RotatingFileHandler(
            str(audit_path),
            maxBytes=_MAX_BYTES,
            backupCount=_BACKUP_COUNT,
            encoding="utf-8",
            delay=True,
        )
        h.setFormatter(logging.Formatter("%(message)s"))
        _handler_cache[key] = h
    return _handler_cache[key]


def close_audit_handlers() -> None:
    for h in _handler_cache.values():
        h.close()
    _handler_cache.clear()


def audit_event(
    repo_root: Path,
    event_type: str,
    report_id: Optional[str],
    path: Optional[str] = None,
    extra: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Append one JSON line describing a report mutation to .codereports/audit.log.

    Best-effort: the mutation is already saved, so an unwritable log only warns.
    """
    record: Dict[str, Any] = {
        "ts_ms": _now_ms(),
        "type": event_type,
        "actor": _actor(),
        "report_id": report_id,
        "path": path,
    }
    if extra:
        record["extra"] = extra

    line = json.dumps(record, separators=(",", ":"), ensure_ascii=False)

    try:
        handler = _get_rotating_handler(audit_log_path(repo_root))
    except OSError as e:
        log.warning("audit log unavailable under %s: %s", repo_root, e)
        return
    log_record = logging.LogRecord(
        name="codereport.audit",
        level=logging.INFO,
        pathname="",
        lineno=0,
        msg=line,
        args=(),
        exc_info=None,
    )
    handler.handle(log_record)
