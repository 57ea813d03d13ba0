"""Schema definitions for the convergence engine.

Defines the declared view, the observed state, plans and results.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from functools import cached_property
from typing import Any, Optional

from .document import normalize_document


class Action(str, Enum):
    """Action requested for a view."""
    CREATE = "create"   # Create if missing, correct config if different
    UPDATE = "update"   # Correct config of an existing view
    DELETE = "delete"   # Delete if exists
    APPEND = "append"   # Add a job to the view


DEFAULT_ACTION = Action.CREATE


class EventType(str, Enum):
    """Kind of record emitted during a convergence pass."""
    SKIPPED = "skipped"
    WOULD_CHANGE = "would_change"
    CHANGING = "changing"
    CHANGED = "changed"
    FAILED = "failed"


@dataclass(frozen=True)
class ViewResource:
    """Declared state for a single Jenkins view."""
    name: str
    job: Optional[str] = None
    action: Action = DEFAULT_ACTION
    master: Optional[str] = None

    def __str__(self) -> str:
        return f"jenkins_view[{self.name}]"


@dataclass(frozen=True)
class ObservedView:
    """Current state of a view as reported by ``get-view``.

    Built once per pass by the state loader and never mutated.
    """
    exists: bool
    raw: Optional[str] = None
    document: Any = None  # lxml root element when present

    @classmethod
    def absent(cls) -> "ObservedView":
        return cls(exists=False)

    @classmethod
    def present(cls, raw: str, document: Any) -> "ObservedView":
        return cls(exists=True, raw=raw, document=document)

    @cached_property
    def normalized(self) -> Optional[str]:
        """Canonical text of the observed document (None when absent)."""
        if self.document is None:
            return None
        return normalize_document(self.document)


# --- Plan ---

@dataclass
class PlannedChange:
    """A single mutating CLI call."""
    subcommand: str
    args: list[str] = field(default_factory=list)
    input: Optional[bytes] = None
    description: str = ""

    @property
    def command_line(self) -> str:
        return " ".join([self.subcommand, *self.args])


@dataclass
class ViewPlan:
    """Outcome of comparing declared and observed state."""
    resource: ViewResource
    action: Action
    changes: list[PlannedChange] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def no_change(self) -> bool:
        return len(self.changes) == 0


# --- Events and results ---

@dataclass
class ConvergeEvent:
    """Auditable record of a decision taken during a pass."""
    event: EventType
    resource: str
    action: Action
    detail: str
    command: Optional[str] = None
    timestamp: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    def to_dict(self) -> dict:
        return {
            "event": self.event.value,
            "resource": self.resource,
            "action": self.action.value,
            "detail": self.detail,
            "command": self.command,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class ConvergeResult:
    """Result of one convergence pass."""
    resource: ViewResource
    action: Action
    dry_run: bool = False
    updated: bool = False
    changes_made: list[str] = field(default_factory=list)
    commands_executed: list[str] = field(default_factory=list)
    events: list[ConvergeEvent] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "view": self.resource.name,
            "master": self.resource.master,
            "action": self.action.value,
            "dry_run": self.dry_run,
            "updated": self.updated,
            "changes_made": self.changes_made,
            "commands_executed": self.commands_executed,
            "events": [e.to_dict() for e in self.events],
        }


@dataclass
class ExecuteOptions:
    """Options for running a plan."""
    dry_run: bool = False
