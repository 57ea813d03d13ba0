"""Config Engine - declarative convergence of Jenkins views.

The engine compares a declared view with what the master reports through
``get-view`` and issues only the CLI calls needed to close the gap:
- create / update-view when the view is missing or its config drifted
- delete-view when a view declared for deletion still exists
- add-job-to-view on every append

Usage:
    from viewcraft.config_engine import ConvergenceEngine, ViewResource

    engine = ConvergenceEngine(executor, dry_run=True)
    result = engine.converge(ViewResource(name="release-1.0"))
"""

from .engine import ConvergenceEngine
from .schema import (
    Action,
    ViewResource,
    ObservedView,
    PlannedChange,
    ViewPlan,
    EventType,
    ConvergeEvent,
    ConvergeResult,
    ExecuteOptions,
)
from .parser import ViewParser
from .loader import StateLoader, is_not_found
from .document import (
    render_view_xml,
    parse_document,
    normalize_document,
    documents_match,
)
from .diff import ViewDiffEngine, summarize_plan
from .events import EventSink, LoggingSink, CollectingSink, fan_out, discard
from .executor import ChangeExecutor

__all__ = [
    # Main engine
    "ConvergenceEngine",
    # Schema classes
    "Action",
    "ViewResource",
    "ObservedView",
    "PlannedChange",
    "ViewPlan",
    "EventType",
    "ConvergeEvent",
    "ConvergeResult",
    "ExecuteOptions",
    # Parser
    "ViewParser",
    # Components (for advanced use)
    "StateLoader",
    "is_not_found",
    "render_view_xml",
    "parse_document",
    "normalize_document",
    "documents_match",
    "ViewDiffEngine",
    "summarize_plan",
    "EventSink",
    "LoggingSink",
    "CollectingSink",
    "fan_out",
    "discard",
    "ChangeExecutor",
]
