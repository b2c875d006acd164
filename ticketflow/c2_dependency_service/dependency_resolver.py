"""Service for dependency checks and the auto-unblock cascade."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from ticketflow.c1_ticket_enums.ticket_enums import RESOLVED_STATUSES, TicketStatus
from ticketflow.c1_ticket_models.ticket import Ticket, utc_now
from ticketflow.c2_ticket_store.ticket_store import TicketStore
from ticketflow.c2_workflow_service.errors import TicketNotFoundError

logger = logging.getLogger(__name__)


@dataclass
class UnblockReport:
    """Outcome of one auto-unblock scan."""

    resolved_ticket_id: str
    unblocked: List[Ticket] = field(default_factory=list)
    failures: Dict[str, str] = field(default_factory=dict)

    @property
    def warnings(self) -> List[str]:
        return [f"could not unblock {tid}: {err}" for tid, err in self.failures.items()]


class DependencyResolver:
    """Resolves ticket dependencies against a store.

    A BLOCKED ticket with a prior status was blocked by its dependencies and
    is released here once they resolve. A BLOCKED ticket without one is a
    human hold and is never touched.
    """

    def __init__(self, store: TicketStore, system_actor: str = "st"):
        self.store = store
        self.system_actor = system_actor

    def check_dependencies(self, ticket: Ticket) -> List[str]:
        """
        Return the unresolved dependency IDs of a ticket, in the order listed.

        A dependency is resolved only if it exists and is DONE or CANCELLED.
        """
        unresolved = []
        for dep_id in ticket.depends_on:
            try:
                dep = self.store.get(dep_id)
            except TicketNotFoundError:
                unresolved.append(dep_id)
                continue
            if dep.status not in RESOLVED_STATUSES:
                unresolved.append(dep_id)
        return unresolved

    def find_dependents(self, ticket_id: str) -> List[Ticket]:
        """Every ticket, in any project, whose dependency list contains ticket_id."""
        return [t for t in self.store.list() if ticket_id in t.depends_on]

    def auto_block(self, ticket: Ticket, now: Optional[datetime] = None) -> List[str]:
        """
        Block a ticket on its unresolved dependencies.

        The current status becomes the prior status so auto-unblock can
        restore it. Mutates ``ticket`` in place; the caller persists it.

        Returns:
            The unresolved dependency IDs (empty if nothing was blocked)
        """
        if ticket.status == TicketStatus.BLOCKED or ticket.is_resolved:
            return []
        unresolved = self.check_dependencies(ticket)
        if not unresolved:
            return []

        now = now or utc_now()
        ticket.prior_status = ticket.status
        ticket.status = TicketStatus.BLOCKED
        ticket.updated_at = now
        ticket.append_section(
            "Blocked (Dependencies)",
            actor=self.system_actor,
            content=f"Unresolved dependencies: {', '.join(unresolved)}",
            at=now,
        )
        logger.info(f"Auto-blocked {ticket.id}: waiting on {', '.join(unresolved)}")
        return unresolved

    def auto_unblock_report(self, ticket_id: str, now: Optional[datetime] = None) -> UnblockReport:
        """
        Release direct dependents of a resolved ticket whose dependencies are all met.

        The scan is single-hop and best effort: a failure on one dependent is
        recorded and the scan moves on.
        """
        now = now or utc_now()
        report = UnblockReport(resolved_ticket_id=ticket_id)

        for dependent in self.find_dependents(ticket_id):
            if dependent.status != TicketStatus.BLOCKED or dependent.prior_status is None:
                continue

            try:
                unresolved = self.check_dependencies(dependent)
            except Exception as e:
                logger.warning(f"Dependency check failed for {dependent.id}: {e}")
                report.failures[dependent.id] = str(e)
                continue
            if unresolved:
                logger.info(
                    f"Ticket {dependent.id} still blocked - {len(unresolved)} "
                    f"unresolved dependency(ies): {unresolved}"
                )
                continue

            dependent.status = dependent.prior_status
            dependent.prior_status = None
            dependent.updated_at = now
            dependent.append_section("Auto-Unblocked", actor=self.system_actor, at=now)

            try:
                self.store.save(dependent)
            except Exception as e:
                logger.warning(f"Failed to save auto-unblocked ticket {dependent.id}: {e}")
                report.failures[dependent.id] = str(e)
                continue

            logger.info(f"Auto-unblocked {dependent.id} -> {dependent.status.value}")
            report.unblocked.append(dependent)

        return report

    def auto_unblock(self, ticket_id: str, now: Optional[datetime] = None) -> List[Ticket]:
        """Unblock dependents of ticket_id; returns the tickets that changed."""
        return self.auto_unblock_report(ticket_id, now=now).unblocked
