"""Main convergence engine - runs one pass for one view.

A pass:
1. Validates the declared view (no transport call on a bad declaration)
2. Loads the current state of the view, exactly once
3. Plans the mutating calls for the requested action
4. Executes them, or reports them in dry-run mode
"""
import logging
from typing import Any, Optional

from ..transport.base import CommandExecutor
from ..utils.logging_config import timed_section_sync
from .diff import ViewDiffEngine, summarize_plan
from .events import CollectingSink, EventSink, LoggingSink, fan_out
from .executor import ChangeExecutor
from .loader import StateLoader
from .parser import ViewParser
from .schema import (
    Action,
    ConvergeResult,
    ExecuteOptions,
    ObservedView,
    ViewPlan,
    ViewResource,
)

logger = logging.getLogger(__name__)


class ConvergenceEngine:
    """
    Converges Jenkins views on one master.

    The engine holds no state between passes; each call to ``converge``
    builds its own loader. Passes for the same view must not overlap.

    Usage:
        with create_executor("ci-main", config) as executor:
            engine = ConvergenceEngine(executor, dry_run=True)
            result = engine.converge(ViewResource(name="release-1.0"))
    """

    def __init__(
        self,
        executor: CommandExecutor,
        sink: Optional[EventSink] = None,
        dry_run: bool = False,
    ):
        """
        Initialize the engine.

        Args:
            executor: Transport for the target master
            sink: Receives convergence events (defaults to logging them)
            dry_run: Report planned calls without running them
        """
        self.executor = executor
        self.sink = sink or LoggingSink()
        self.dry_run = dry_run
        self.parser = ViewParser()
        self.diff_engine = ViewDiffEngine(executor.escape)
        self.change_executor = ChangeExecutor()

    def converge(
        self,
        resource: ViewResource,
        action: Optional[Action] = None,
    ) -> ConvergeResult:
        """
        Run one convergence pass.

        Args:
            resource: Declared view
            action: Overrides ``resource.action`` when given

        Returns:
            ConvergeResult with the changes made (or previewed)

        Raises:
            ConfigurationError: Invalid declaration
            TransportError: A CLI call failed
            MalformedStateError: The master returned an unparseable view
            ViewDoesNotExist: Update of an absent view
        """
        action = self.parser.parse_action(action or resource.action)
        resource = self.parser.build(
            name=resource.name,
            action=action,
            job=resource.job,
            master=resource.master or self.executor.master_id,
        )

        with timed_section_sync(
            "converge",
            master_id=self.executor.master_id,
            view=resource.name,
            action=action.value,
        ):
            plan = self.plan(resource, action)
            collected = CollectingSink()
            result = self.change_executor.execute(
                self.executor,
                plan,
                ExecuteOptions(dry_run=self.dry_run),
                fan_out(self.sink, collected),
            )
            result.events = collected.events

        if result.updated:
            logger.info(f"{resource} converged: {'; '.join(result.changes_made)}")
        elif not self.dry_run:
            logger.debug(f"{resource} already in desired state")
        return result

    def converge_config(self, config: dict[str, Any]) -> ConvergeResult:
        """Parse a view declaration dict and converge it."""
        return self.converge(self.parser.parse(config, master=self.executor.master_id))

    def plan(self, resource: ViewResource, action: Optional[Action] = None) -> ViewPlan:
        """Load the current state once and plan the calls for ``action``."""
        observed = self.observe(resource.name)
        return self.diff_engine.plan(resource, observed, action)

    def observe(self, name: str) -> ObservedView:
        """Query the master for the current state of a view."""
        name = self.parser.build(name=name).name
        return StateLoader(self.executor, name).load()

    def preview(self, resource: ViewResource) -> str:
        """Human-readable summary of what a pass would do."""
        resource = self.parser.build(
            name=resource.name,
            action=self.parser.parse_action(resource.action),
            job=resource.job,
            master=resource.master,
        )
        return summarize_plan(self.plan(resource))
