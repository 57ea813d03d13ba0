"""Audit logging for view changes.

Provides change tracking with:
- Timestamped entries for every mutating CLI call (and dry-run previews)
- Structured JSON log format, one record per line
- Separate rotating audit log file
"""
import json
import logging
import os
from dataclasses import dataclass, asdict
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from ..config_engine.schema import ConvergeEvent, EventType

# Dedicated audit logger
audit_logger = logging.getLogger("viewcraft.audit")

DEFAULT_AUDIT_DIR = "~/.viewcraft"

# Events worth an audit record; skips are only logged
_AUDITED = {
    EventType.WOULD_CHANGE,
    EventType.CHANGED,
    EventType.FAILED,
}


def default_audit_file() -> str:
    return os.path.join(os.path.expanduser(DEFAULT_AUDIT_DIR), "audit.log")


def setup_audit_logging(log_dir: Optional[str] = None) -> str:
    """Configure audit logging to file.

    Args:
        log_dir: Directory for audit logs. Defaults to ~/.viewcraft/

    Returns:
        Path of the audit log file
    """
    if log_dir is None:
        log_dir = os.path.expanduser(DEFAULT_AUDIT_DIR)

    Path(log_dir).mkdir(parents=True, exist_ok=True)
    audit_file = os.path.join(log_dir, "audit.log")

    audit_logger.setLevel(logging.INFO)
    audit_logger.handlers.clear()

    handler = RotatingFileHandler(
        audit_file,
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=10,
        encoding="utf-8",
    )
    # Records are already JSON
    handler.setFormatter(logging.Formatter("%(message)s"))
    audit_logger.addHandler(handler)

    # Keep JSON lines out of the console
    audit_logger.propagate = False
    return audit_file


@dataclass
class ChangeRecord:
    """Record of a view change."""
    timestamp: str
    master_id: str
    view: str
    action: str
    event: str
    user: str
    dry_run: bool
    success: bool
    detail: str
    command: Optional[str] = None
    error: Optional[str] = None

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(asdict(self), indent=None)

    @classmethod
    def from_json(cls, json_str: str) -> "ChangeRecord":
        """Parse from JSON string."""
        data = json.loads(json_str)
        return cls(**data)


class ChangeTracker:
    """Event sink turning convergence events into audit records.

    Usage:
        tracker = ChangeTracker("ci-main", user="deploy-bot")
        engine = ConvergenceEngine(executor, sink=fan_out(LoggingSink(), tracker))
    """

    def __init__(self, master_id: str, user: Optional[str] = None):
        self.master_id = master_id
        self.user = user or os.environ.get("USER", "system")
        self.records: list[ChangeRecord] = []

    def __call__(self, event: ConvergeEvent) -> None:
        if event.event not in _AUDITED:
            return
        failed = event.event == EventType.FAILED
        self.log_change(
            view=event.resource,
            action=event.action.value,
            event=event.event.value,
            detail=event.detail,
            command=event.command,
            success=not failed,
            dry_run=event.event == EventType.WOULD_CHANGE,
            error=event.detail if failed else None,
            timestamp=event.timestamp.isoformat(),
        )

    def log_change(
        self,
        view: str,
        action: str,
        event: str,
        detail: str,
        success: bool,
        timestamp: str,
        command: Optional[str] = None,
        dry_run: bool = False,
        error: Optional[str] = None,
    ) -> ChangeRecord:
        """Write one audit record.

        Returns:
            The ChangeRecord that was logged
        """
        record = ChangeRecord(
            timestamp=timestamp,
            master_id=self.master_id,
            view=view,
            action=action,
            event=event,
            user=self.user,
            dry_run=dry_run,
            success=success,
            detail=detail[:1000],  # Truncate long CLI errors
            command=command,
            error=error[:1000] if error else None,
        )
        audit_logger.info(record.to_json())
        self.records.append(record)
        return record


def get_recent_changes(
    log_file: Optional[str] = None,
    master_id: Optional[str] = None,
    view: Optional[str] = None,
    limit: int = 100,
) -> list[ChangeRecord]:
    """Read recent changes from the audit log.

    Args:
        log_file: Path to audit log. Defaults to ~/.viewcraft/audit.log
        master_id: Filter by master
        view: Filter by view name
        limit: Maximum number of records to return

    Returns:
        List of ChangeRecords, most recent first
    """
    if log_file is None:
        log_file = default_audit_file()

    if not os.path.exists(log_file):
        return []

    records = []
    with open(log_file, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                record = ChangeRecord.from_json(line)
            except (json.JSONDecodeError, TypeError):
                continue  # Skip malformed lines

            if master_id and record.master_id != master_id:
                continue
            if view and record.view not in (view, f"jenkins_view[{view}]"):
                continue
            records.append(record)

    return list(reversed(records[-limit:]))
