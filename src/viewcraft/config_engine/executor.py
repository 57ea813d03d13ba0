"""Executor for applying view plans to a master.

Every mutating call is announced to the event sink before it runs, so a dry
run reports exactly what a real run would do.
"""
import logging

from ..errors import TransportError
from ..transport.base import CommandExecutor
from .events import EventSink
from .schema import (
    ConvergeEvent,
    ConvergeResult,
    EventType,
    ExecuteOptions,
    ViewPlan,
)

logger = logging.getLogger(__name__)


class ChangeExecutor:
    """Execute view plans through a command executor."""

    def execute(
        self,
        executor: CommandExecutor,
        plan: ViewPlan,
        options: ExecuteOptions,
        sink: EventSink,
    ) -> ConvergeResult:
        """
        Run the changes of a plan.

        Args:
            executor: Transport for the target master
            plan: Plan to run
            options: Execution options (dry_run, etc.)
            sink: Receives one record per decision

        Returns:
            ConvergeResult describing what was (or would be) done

        Raises:
            TransportError: On the first failed call; later changes are
                not attempted
        """
        result = ConvergeResult(
            resource=plan.resource,
            action=plan.action,
            dry_run=options.dry_run,
        )

        for reason in plan.skipped:
            sink(self._event(plan, EventType.SKIPPED, reason))

        if options.dry_run:
            return self._dry_run(plan, result, sink)

        for change in plan.changes:
            sink(self._event(plan, EventType.CHANGING, change.description, change.command_line))
            try:
                executor.execute_checked(change.subcommand, *change.args, input=change.input)
            except TransportError as e:
                sink(self._event(plan, EventType.FAILED, f"{change.description}: {e}", change.command_line))
                raise
            result.commands_executed.append(change.command_line)
            result.changes_made.append(change.description)
            result.updated = True
            sink(self._event(plan, EventType.CHANGED, change.description, change.command_line))

        return result

    def _dry_run(
        self,
        plan: ViewPlan,
        result: ConvergeResult,
        sink: EventSink,
    ) -> ConvergeResult:
        """Handle dry-run mode - report without executing."""
        for change in plan.changes:
            sink(self._event(plan, EventType.WOULD_CHANGE, change.description, change.command_line))
            result.commands_executed.append(f"[DRY-RUN] {change.command_line}")
            result.changes_made.append(f"[PREVIEW] {change.description}")
        return result

    def _event(
        self,
        plan: ViewPlan,
        event_type: EventType,
        detail: str,
        command: str = None,
    ) -> ConvergeEvent:
        return ConvergeEvent(
            event=event_type,
            resource=str(plan.resource),
            action=plan.action,
            detail=detail,
            command=command,
        )
