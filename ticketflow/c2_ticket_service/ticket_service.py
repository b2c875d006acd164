"""Service layer orchestrating ticket workflow operations."""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from ticketflow.c1_ticket_enums.ticket_enums import (
    DEFAULT_PRIORITY,
    RESOLVED_STATUSES,
    EventKind,
    TicketPriority,
    TicketStatus,
)
from ticketflow.c1_ticket_models.activity import ActivityEvent
from ticketflow.c1_ticket_models.ticket import Ticket, utc_now
from ticketflow.c1_ticket_models.ticket_id import generate_ticket_id
from ticketflow.c2_activity_log.activity_log import ActivityLog
from ticketflow.c2_critical_path_service.critical_path import CriticalPathAnalyzer
from ticketflow.c2_dependency_service.dependency_resolver import DependencyResolver, UnblockReport
from ticketflow.c2_graph_layout_service.layout_engine import DependencyGraph, GraphLayoutEngine
from ticketflow.c2_ticket_store.ticket_store import ListFilter, TicketStore
from ticketflow.c2_workflow_service.errors import (
    HoldError,
    IllegalTransitionError,
    SameStatusError,
    WorkflowError,
)
from ticketflow.c2_workflow_service.workflow_machine import HANDOFF_FROM, resolve_alias, validate_transition
from ticketflow.c2_workflow_service.workflow_rules import can_review, check_preconditions
from ticketflow.core.config import WorkflowConfig

logger = logging.getLogger(__name__)

StatusLike = Union[str, TicketStatus]

# Entering these statuses hands the ticket back to the pool
UNASSIGN_ON = frozenset({TicketStatus.REVIEW, TicketStatus.BACKLOG})

# Listing order: what needs attention first
LIST_STATUS_WEIGHT = {
    TicketStatus.REVIEW: 0,
    TicketStatus.REWORK: 1,
    TicketStatus.IN_PROGRESS: 2,
    TicketStatus.OPEN: 3,
    TicketStatus.BLOCKED: 4,
    TicketStatus.BACKLOG: 5,
    TicketStatus.DONE: 6,
}


class TicketService:
    """Applies workflow operations to tickets and records them.

    Every mutation appends an audit section to the ticket, saves it, and
    appends an event to the activity log. Reaching a resolved status runs
    the auto-unblock cascade over direct dependents.
    """

    def __init__(
        self,
        store: TicketStore,
        activity_log: ActivityLog,
        resolver: Optional[DependencyResolver] = None,
        config: Optional[WorkflowConfig] = None,
    ):
        self.store = store
        self.activity_log = activity_log
        self.config = config or WorkflowConfig()
        self.resolver = resolver or DependencyResolver(store, system_actor=self.config.system_actor)
        self.layout_engine = GraphLayoutEngine(barycenter_sweeps=self.config.barycenter_sweeps)
        self.path_analyzer = CriticalPathAnalyzer(default_limit=self.config.critical_path_limit)

    # ------------------------------------------------------------------
    # Creation and lookup
    # ------------------------------------------------------------------

    def create_ticket(
        self,
        title: str,
        project: str = "",
        priority: Optional[str] = None,
        depends_on: Optional[List[str]] = None,
        tags: Optional[List[str]] = None,
        actor: str = "",
        run_id: str = "",
    ) -> Dict[str, Any]:
        """
        Create a ticket, auto-blocking it when any dependency is unresolved.

        Args:
            title: Ticket title (required)
            project: Project the ticket belongs to
            priority: P0..P5, defaults to P3
            depends_on: IDs this ticket depends on; missing IDs count as unresolved
            tags: Free-form labels
            actor: Who is creating the ticket
            run_id: Run creating the ticket

        Returns:
            Dictionary with the new ticket and any unresolved dependencies

        Raises:
            ValueError: If the title is empty or the priority is unknown
        """
        if not title or not title.strip():
            raise ValueError("ticket title is required")

        deps = []
        for dep_id in depends_on or []:
            dep_id = dep_id.strip()
            if dep_id and dep_id not in deps:
                deps.append(dep_id)

        now = utc_now()
        ticket = Ticket(
            id=generate_ticket_id(self.store.ids()),
            title=title.strip(),
            project=project,
            priority=TicketPriority(priority) if priority else DEFAULT_PRIORITY,
            depends_on=deps,
            tags=list(tags or []),
            created_at=now,
            updated_at=now,
        )
        ticket.append_section("Created", actor=actor, run_id=run_id, at=now)
        unresolved = self.resolver.auto_block(ticket, now=now)
        self.store.create(ticket)

        self._record(ticket, EventKind.TICKET_CREATED, actor, run_id, {"title": ticket.title}, now)
        if unresolved:
            self._record(
                ticket,
                EventKind.STATUS_BLOCKED,
                self.config.system_actor,
                run_id,
                {"from": TicketStatus.OPEN.value, "reason": "dependencies", "unresolved": unresolved},
                now,
            )

        logger.info(f"Created ticket {ticket.id} ({ticket.status.value}): {ticket.title}")
        return {
            "success": True,
            "ticket_id": ticket.id,
            "status": ticket.status.value,
            "unresolved_dependencies": unresolved,
            "ticket": ticket,
            "message": f"Created {ticket.id}",
        }

    def get_ticket(self, ticket_id: str) -> Ticket:
        return self.store.get(ticket_id)

    def list_tickets(
        self,
        project: Optional[str] = None,
        status: Optional[StatusLike] = None,
        excludes: Optional[List[StatusLike]] = None,
        include_all: bool = False,
    ) -> Dict[str, Any]:
        """
        List tickets, the ones needing attention first.

        Ordering is REVIEW, REWORK, IN-PROGRESS, OPEN, BLOCKED, BACKLOG,
        DONE, then CANCELLED; within a status by priority (P0 first), then
        most recently updated.

        Args:
            project: Only tickets of this project
            status: Only tickets in this status (alias accepted)
            excludes: Statuses to leave out
            include_all: Keep resolved tickets when no status is given

        Returns:
            Dictionary with the matching tickets and their count

        Raises:
            UnknownStatusError: If a status name is not recognised
        """
        to_status = resolve_alias(status) if status else None
        excluded = [resolve_alias(s) for s in excludes or []]
        if to_status is None and not include_all:
            excluded.extend(s for s in sorted(RESOLVED_STATUSES) if s not in excluded)

        tickets = self.store.list(ListFilter(project=project, status=to_status, excludes=excluded))
        tickets.sort(key=lambda t: t.updated_at, reverse=True)
        tickets.sort(key=lambda t: (LIST_STATUS_WEIGHT.get(t.status, len(LIST_STATUS_WEIGHT)), t.priority.value))

        return {
            "tickets": tickets,
            "total_count": len(tickets),
        }

    def get_dependencies(self, ticket_id: str) -> Dict[str, Any]:
        """Dependency view of one ticket: its edges, what blocks it, what waits on it."""
        ticket = self.store.get(ticket_id)
        return {
            "ticket_id": ticket.id,
            "status": ticket.status.value,
            "depends_on": list(ticket.depends_on),
            "unresolved": self.resolver.check_dependencies(ticket),
            "dependents": [t.id for t in self.resolver.find_dependents(ticket.id)],
        }

    # ------------------------------------------------------------------
    # Status changes
    # ------------------------------------------------------------------

    def change_status(
        self,
        ticket_id: str,
        target: StatusLike,
        actor: str = "",
        run_id: str = "",
    ) -> Dict[str, Any]:
        """
        Move a ticket along the workflow.

        ``target`` may be a canonical status or an alias such as ``start``,
        ``submit`` or ``complete``. A BLOCKED ticket may move anywhere.

        Raises:
            TicketNotFoundError: If the ticket does not exist
            WorkflowError: If the transition or a precondition is rejected
        """
        ticket = self.store.get(ticket_id)
        to_status = resolve_alias(target)

        validate_transition(ticket.status, to_status)
        check_preconditions(ticket, to_status, self.activity_log, run_id=run_id)

        return self._apply_status(ticket, to_status, actor, run_id)

    def pick(self, ticket_id: str, assignee: str, run_id: str = "") -> Dict[str, Any]:
        """Take a ticket: assign it and move it to IN-PROGRESS."""
        if not assignee:
            raise ValueError("assignee is required to pick a ticket")
        ticket = self.store.get(ticket_id)
        validate_transition(ticket.status, TicketStatus.IN_PROGRESS)

        ticket.assignee = assignee
        check_preconditions(ticket, TicketStatus.IN_PROGRESS, self.activity_log, run_id=run_id)
        return self._apply_status(ticket, TicketStatus.IN_PROGRESS, assignee, run_id)

    def hold(self, ticket_id: str, reason: str = "", actor: str = "", run_id: str = "") -> Dict[str, Any]:
        """Put a ticket on hold. ``unhold`` restores the status it had."""
        ticket = self.store.get(ticket_id)
        if ticket.status == TicketStatus.BLOCKED:
            raise HoldError(f"ticket {ticket.id} is already BLOCKED")

        now = utc_now()
        old_status = ticket.status
        ticket.prior_status = old_status
        ticket.status = TicketStatus.BLOCKED
        ticket.updated_at = now
        ticket.append_section(
            "Hold", actor=actor, run_id=run_id, content=reason, fields={"from": old_status.value}, at=now
        )
        self.store.save(ticket)
        self._record(ticket, EventKind.STATUS_BLOCKED, actor, run_id,
                     {"from": old_status.value, "reason": reason or "hold"}, now)

        logger.info(f"Ticket {ticket.id} held ({old_status.value} -> BLOCKED)")
        return self._status_result(ticket, old_status, f"Held {ticket.id}")

    def unhold(self, ticket_id: str, actor: str = "", run_id: str = "") -> Dict[str, Any]:
        """Release a hold, restoring the prior status."""
        ticket = self.store.get(ticket_id)
        if ticket.status != TicketStatus.BLOCKED:
            raise HoldError(f"ticket {ticket.id} is {ticket.status.value}, not BLOCKED")
        if ticket.prior_status is None:
            raise HoldError(
                f"ticket {ticket.id} has no prior status to restore - "
                f"use override to set a status explicitly"
            )

        now = utc_now()
        restored = ticket.prior_status
        ticket.prior_status = None
        ticket.status = restored
        ticket.updated_at = now
        ticket.append_section("Unhold", actor=actor, run_id=run_id, fields={"to": restored.value}, at=now)
        self.store.save(ticket)
        self._record(ticket, EventKind.for_status(restored), actor, run_id,
                     {"from": TicketStatus.BLOCKED.value, "reason": "unhold"}, now)

        logger.info(f"Ticket {ticket.id} released from hold -> {restored.value}")
        return self._status_result(ticket, TicketStatus.BLOCKED, f"Unheld {ticket.id}")

    def cancel(self, ticket_id: str, reason: str = "", actor: str = "", run_id: str = "") -> Dict[str, Any]:
        """Cancel from any status except CANCELLED; dependents treat it as resolved."""
        ticket = self.store.get(ticket_id)
        if ticket.status == TicketStatus.CANCELLED:
            raise SameStatusError(TicketStatus.CANCELLED)

        now = utc_now()
        old_status = ticket.status
        ticket.prior_status = None
        ticket.status = TicketStatus.CANCELLED
        ticket.assignee = ""
        ticket.updated_at = now
        ticket.append_section(
            "Cancelled", actor=actor, run_id=run_id, content=reason, fields={"from": old_status.value}, at=now
        )
        self.store.save(ticket)
        self._record(ticket, EventKind.STATUS_CANCELLED, actor, run_id,
                     {"from": old_status.value, "reason": reason}, now)

        logger.info(f"Ticket {ticket.id} cancelled (was {old_status.value})")
        report = self._cascade(ticket, run_id, now)
        return self._status_result(ticket, old_status, f"Cancelled {ticket.id}", report)

    def override(
        self,
        ticket_id: str,
        target: StatusLike,
        reason: str = "",
        actor: str = "",
        run_id: str = "",
    ) -> Dict[str, Any]:
        """Force a status without consulting the transition table or policies."""
        ticket = self.store.get(ticket_id)
        to_status = resolve_alias(target)
        if ticket.status == to_status:
            raise SameStatusError(to_status)

        now = utc_now()
        old_status = ticket.status
        ticket.prior_status = None
        ticket.status = to_status
        ticket.updated_at = now
        ticket.append_section(
            "Status Override",
            actor=actor,
            run_id=run_id,
            content=reason,
            fields={"from": old_status.value, "to": to_status.value},
            at=now,
        )
        self.store.save(ticket)
        self._record(ticket, EventKind.STATUS_OVERRIDE, actor, run_id,
                     {"from": old_status.value, "to": to_status.value, "reason": reason}, now)

        logger.warning(f"Ticket {ticket.id} overridden {old_status.value} -> {to_status.value}")
        report = self._cascade(ticket, run_id, now) if to_status in RESOLVED_STATUSES else None
        return self._status_result(ticket, old_status, f"Overrode {ticket.id} to {to_status.value}", report)

    # ------------------------------------------------------------------
    # Assignment, notes, review
    # ------------------------------------------------------------------

    def assign(self, ticket_id: str, assignee: str, actor: str = "", run_id: str = "") -> Dict[str, Any]:
        ticket = self.store.get(ticket_id)
        now = utc_now()
        previous = ticket.assignee
        ticket.assignee = assignee
        ticket.updated_at = now
        ticket.append_section(
            "Assigned", actor=actor, run_id=run_id, fields={"assignee": assignee, "previous": previous}, at=now
        )
        self.store.save(ticket)
        self._record(ticket, EventKind.TICKET_ASSIGNED, actor, run_id,
                     {"assignee": assignee, "previous": previous}, now)

        logger.info(f"Ticket {ticket.id} assigned to {assignee or '<nobody>'}")
        return {
            "success": True,
            "ticket_id": ticket.id,
            "assignee": assignee,
            "previous_assignee": previous,
            "message": f"Assigned {ticket.id} to {assignee}" if assignee else f"Unassigned {ticket.id}",
        }

    def handoff(self, ticket_id: str, actor: str = "", run_id: str = "") -> Dict[str, Any]:
        """
        Give up an assigned ticket: back to OPEN with nobody on it.

        Raises:
            SameStatusError: If the ticket is already OPEN
            IllegalTransitionError: If the ticket is not IN-PROGRESS or REWORK
            WorkflowError: If the ticket has no assignee
        """
        ticket = self.store.get(ticket_id)
        if ticket.status == TicketStatus.OPEN:
            raise SameStatusError(TicketStatus.OPEN)
        if ticket.status not in HANDOFF_FROM:
            raise IllegalTransitionError(ticket.status, TicketStatus.OPEN)
        if not ticket.assignee:
            raise WorkflowError(f"cannot hand off {ticket.id} - ticket has no assignee")

        now = utc_now()
        old_status = ticket.status
        previous = ticket.assignee
        ticket.status = TicketStatus.OPEN
        ticket.assignee = ""
        ticket.updated_at = now
        ticket.append_section(
            "Handed Off", actor=actor, run_id=run_id, fields={"previous-assignee": previous}, at=now
        )
        self.store.save(ticket)
        self._record(ticket, EventKind.TICKET_HANDOFF, actor, run_id,
                     {"from": old_status.value, "previous_assignee": previous}, now)

        logger.info(f"Ticket {ticket.id} handed off by {previous} ({old_status.value} -> OPEN)")
        return self._status_result(ticket, old_status, f"Handed off {ticket.id}")

    def add_note(self, ticket_id: str, message: str, actor: str = "", run_id: str = "") -> Dict[str, Any]:
        """
        Attach a note to a ticket.

        Notes do not touch ``updated_at``; the review policy reads the note
        event from the activity log instead.
        """
        if not message or not message.strip():
            raise ValueError("note message is required")
        ticket = self.store.get(ticket_id)
        now = utc_now()
        ticket.append_section("Note", actor=actor, run_id=run_id, content=message.strip(), at=now)
        self.store.save(ticket)
        self._record(ticket, EventKind.TICKET_NOTE, actor, run_id, {"message": message.strip()}, now)

        return {"success": True, "ticket_id": ticket.id, "message": f"Noted on {ticket.id}"}

    def claim_review(self, ticket_id: str, reviewer: str = "", actor: str = "", run_id: str = "") -> Dict[str, Any]:
        """
        Claim a REVIEW ticket for review.

        A run that already touched the ticket is not eligible.

        Raises:
            WorkflowError: If the ticket is not in REVIEW or the run is ineligible
        """
        ticket = self.store.get(ticket_id)
        if ticket.status != TicketStatus.REVIEW:
            raise WorkflowError(f"ticket {ticket.id} is {ticket.status.value}, not REVIEW")
        if run_id and not can_review(self.activity_log, ticket.id, run_id):
            raise WorkflowError(f"review denied - run {run_id!r} has previously touched ticket {ticket.id}")

        now = utc_now()
        ticket.assignee = reviewer or run_id or actor
        ticket.updated_at = now
        ticket.append_section(
            "Review Claimed", actor=actor, run_id=run_id, fields={"reviewer": ticket.assignee}, at=now
        )
        self.store.save(ticket)
        self._record(ticket, EventKind.TICKET_REVIEW_CLAIMED, actor, run_id, {"reviewer": ticket.assignee}, now)

        logger.info(f"Ticket {ticket.id} claimed for review by {ticket.assignee}")
        return {
            "success": True,
            "ticket_id": ticket.id,
            "reviewer": ticket.assignee,
            "message": f"Claimed {ticket.id} for review",
        }

    # ------------------------------------------------------------------
    # Read-only graph views
    # ------------------------------------------------------------------

    def dependency_graph(self, project: Optional[str] = None) -> DependencyGraph:
        return self.layout_engine.build(self.store.list(ListFilter(project=project)))

    def critical_paths(self, project: Optional[str] = None, limit: Optional[int] = None) -> List[List[str]]:
        tickets = self.store.list(ListFilter(project=project))
        return [list(p.ids) for p in self.path_analyzer.compute(tickets, limit or 0)]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _apply_status(self, ticket: Ticket, to_status: TicketStatus, actor: str, run_id: str) -> Dict[str, Any]:
        now = utc_now()
        old_status = ticket.status

        ticket.prior_status = None
        ticket.status = to_status
        if to_status in UNASSIGN_ON:
            ticket.assignee = ""
        ticket.updated_at = now
        ticket.append_section(
            f"Status: {old_status.value} -> {to_status.value}",
            actor=actor,
            run_id=run_id,
            fields={"from": old_status.value, "to": to_status.value},
            at=now,
        )
        self.store.save(ticket)
        self._record(ticket, EventKind.for_status(to_status), actor, run_id, {"from": old_status.value}, now)

        logger.info(f"Ticket {ticket.id}: {old_status.value} -> {to_status.value}")
        report = self._cascade(ticket, run_id, now) if to_status in RESOLVED_STATUSES else None
        return self._status_result(
            ticket, old_status, f"Status changed from {old_status.value} to {to_status.value}", report
        )

    def _cascade(self, ticket: Ticket, run_id: str, now: datetime) -> UnblockReport:
        report = self.resolver.auto_unblock_report(ticket.id, now=now)
        for unblocked in report.unblocked:
            self._record(
                unblocked,
                EventKind.for_status(unblocked.status),
                self.config.system_actor,
                run_id,
                {"from": TicketStatus.BLOCKED.value, "reason": "auto-unblock", "resolved": ticket.id},
                now,
            )
        return report

    def _record(
        self,
        ticket: Ticket,
        kind: EventKind,
        actor: str,
        run_id: str,
        data: Dict[str, Any],
        ts: datetime,
    ) -> None:
        self.activity_log.append(
            ActivityEvent(
                ts=ts,
                event=kind.value,
                ticket=ticket.id,
                project=ticket.project,
                actor=actor,
                run_id=run_id,
                data=data,
            )
        )

    @staticmethod
    def _status_result(
        ticket: Ticket,
        old_status: TicketStatus,
        message: str,
        report: Optional[UnblockReport] = None,
    ) -> Dict[str, Any]:
        return {
            "success": True,
            "ticket_id": ticket.id,
            "old_status": old_status.value,
            "new_status": ticket.status.value,
            "assignee": ticket.assignee,
            "message": message,
            "unblocked": [t.id for t in report.unblocked] if report else [],
            "warnings": report.warnings if report else [],
        }
