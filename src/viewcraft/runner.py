"""Runs convergence passes for views declared against an inventory.

Shared by the command line and the MCP server: opens the transport for the
view's master, wires the logging and audit sinks, and runs one pass.
"""
import logging
from typing import Optional

from .config.inventory import MasterInventory
from .config_engine import (
    ConvergenceEngine,
    ConvergeResult,
    LoggingSink,
    ObservedView,
    ViewResource,
    fan_out,
)
from .utils.audit_log import ChangeTracker

logger = logging.getLogger(__name__)


class ViewRunner:
    """Converge views on the masters of an inventory, one pass at a time."""

    def __init__(
        self,
        inventory: MasterInventory,
        dry_run: bool = False,
        user: Optional[str] = None,
    ):
        self.inventory = inventory
        self.dry_run = dry_run
        self.user = user

    def converge(self, resource: ViewResource) -> ConvergeResult:
        """Run one pass for a declared view."""
        master_id = resource.master or self.inventory.default_master()
        tracker = ChangeTracker(master_id, user=self.user)

        with self.inventory.get_executor(master_id) as executor:
            engine = ConvergenceEngine(
                executor,
                sink=fan_out(LoggingSink(), tracker),
                dry_run=self.dry_run,
            )
            return engine.converge(resource)

    def apply_all(self, master_id: Optional[str] = None) -> list[ConvergeResult]:
        """Converge every declared view in file order.

        Stops at the first failing pass; its exception propagates.
        """
        views = self.inventory.get_views(master_id)
        logger.info(f"{'DRY RUN: ' if self.dry_run else ''}Converging {len(views)} declared views")
        return [self.converge(view) for view in views]

    def observe(self, master_id: Optional[str], name: str) -> ObservedView:
        """Current state of a view, without changing anything."""
        master_id = master_id or self.inventory.default_master()
        with self.inventory.get_executor(master_id) as executor:
            return ConvergenceEngine(executor).observe(name)

    def preview(self, resource: ViewResource) -> str:
        """Human-readable summary of the calls a pass would make."""
        master_id = resource.master or self.inventory.default_master()
        with self.inventory.get_executor(master_id) as executor:
            return ConvergenceEngine(executor).preview(resource)
