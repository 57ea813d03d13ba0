"""Decide which CLI calls bring a view to its declared state.

Planning is pure: it looks at the declared resource and the state observed
at the start of the pass and never talks to the master.
"""
from typing import Callable, Optional

from ..errors import ConfigurationError, ViewDoesNotExist
from .document import documents_match, parse_document, render_view_xml
from .schema import (
    Action,
    ObservedView,
    PlannedChange,
    ViewPlan,
    ViewResource,
)


def _no_escape(value: str) -> str:
    return value


class ViewDiffEngine:
    """Calculate the mutating calls needed for one view and one action."""

    def __init__(self, escape: Optional[Callable[[str], str]] = None):
        self.escape = escape or _no_escape

    def plan(
        self,
        resource: ViewResource,
        observed: ObservedView,
        action: Optional[Action] = None,
    ) -> ViewPlan:
        """
        Plan the calls for ``action`` (defaults to the resource's own).

        Raises:
            ViewDoesNotExist: For update on an absent view
            ConfigurationError: For append without a job
        """
        action = action or resource.action
        plan = ViewPlan(resource=resource, action=action)

        if action == Action.CREATE:
            self._plan_create(resource, observed, plan)
        elif action == Action.UPDATE:
            if not observed.exists:
                raise ViewDoesNotExist(resource.name, action.value)
            self._plan_config(resource, observed, plan)
        elif action == Action.DELETE:
            self._plan_delete(resource, observed, plan)
        elif action == Action.APPEND:
            self._plan_append(resource, plan)
        else:
            raise ConfigurationError(f"Unsupported action: {action}")

        return plan

    def correct_config(self, resource: ViewResource, observed: ObservedView) -> bool:
        """True when the observed document matches the rendered one.

        An absent view is never in sync.
        """
        if not observed.exists:
            return False
        return documents_match(observed.document, parse_document(render_view_xml(resource.name)))

    def _plan_create(
        self,
        resource: ViewResource,
        observed: ObservedView,
        plan: ViewPlan,
    ) -> None:
        if observed.exists:
            plan.skipped.append(f"{resource} exists - skipping")
        else:
            plan.changes.append(PlannedChange(
                subcommand="create-view",
                args=[self.escape(resource.name)],
                input=render_view_xml(resource.name),
                description=f"Create {resource}",
            ))

        # Existence and configuration are checked independently
        self._plan_config(resource, observed, plan)

    def _plan_config(
        self,
        resource: ViewResource,
        observed: ObservedView,
        plan: ViewPlan,
    ) -> None:
        if self.correct_config(resource, observed):
            plan.skipped.append(f"{resource} config up to date - skipping")
        else:
            plan.changes.append(PlannedChange(
                subcommand="update-view",
                args=[self.escape(resource.name)],
                input=render_view_xml(resource.name),
                description=f"Update {resource} config",
            ))

    def _plan_delete(
        self,
        resource: ViewResource,
        observed: ObservedView,
        plan: ViewPlan,
    ) -> None:
        if observed.exists:
            plan.changes.append(PlannedChange(
                subcommand="delete-view",
                args=[self.escape(resource.name)],
                description=f"Delete {resource}",
            ))
        else:
            plan.skipped.append(f"{resource} does not exist - skipping")

    def _plan_append(self, resource: ViewResource, plan: ViewPlan) -> None:
        # Membership is not diffed; the master ignores a job already in the view
        if not resource.job:
            raise ConfigurationError(f"Missing required field to append to view '{resource.name}': job")
        plan.changes.append(PlannedChange(
            subcommand="add-job-to-view",
            args=[self.escape(resource.name), self.escape(resource.job)],
            description=f"Append {resource.job} to {resource.name}",
        ))


def summarize_plan(plan: ViewPlan) -> str:
    """
    Create a human-readable summary of a plan.

    Useful for dry-run output and logging.
    """
    if plan.no_change:
        return f"No changes needed - {plan.resource} already matches ({plan.action.value})"

    lines = [f"Changes to apply to {plan.resource} ({len(plan.changes)} total):"]
    for change in plan.changes:
        lines.append(f"  [~] {change.description}")
        lines.append(f"      {change.command_line}")
    for reason in plan.skipped:
        lines.append(f"  [=] {reason}")
    return "\n".join(lines)
