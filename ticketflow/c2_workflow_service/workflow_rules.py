"""Transition-dependent policies checked before a status change is applied."""

import logging
from datetime import datetime
from typing import Optional

from ticketflow.c1_ticket_enums.ticket_enums import EventKind, TicketStatus
from ticketflow.c1_ticket_models.ticket import Ticket
from ticketflow.c2_activity_log.activity_log import ActivityLog
from ticketflow.c2_workflow_service.errors import MissingPreconditionError

logger = logging.getLogger(__name__)


def requires_assignee(to_status: TicketStatus) -> bool:
    """Entering IN-PROGRESS needs someone working the ticket."""
    return TicketStatus(to_status) == TicketStatus.IN_PROGRESS


def requires_note(from_status: TicketStatus, to_status: TicketStatus) -> bool:
    """Submitting for review needs a note written during the work."""
    return (
        TicketStatus(from_status) == TicketStatus.IN_PROGRESS
        and TicketStatus(to_status) == TicketStatus.REVIEW
    )


def has_note_since(activity_log: ActivityLog, ticket_id: str, since: Optional[datetime]) -> bool:
    return activity_log.has_event_since(ticket_id, EventKind.TICKET_NOTE, since)


def entered_in_progress_at(activity_log: ActivityLog, ticket: Ticket) -> datetime:
    """When the ticket last entered IN-PROGRESS, falling back to ``updated_at``.

    A forced move counts as well: overrides log ``status.override`` with
    the target in ``data["to"]`` rather than ``status.in-progress``.
    """
    entered = None
    for event in activity_log.query(ticket_id=ticket.id):
        if _enters_in_progress(event) and (entered is None or event.ts >= entered):
            entered = event.ts
    if entered is not None:
        return entered
    return ticket.updated_at


def _enters_in_progress(event) -> bool:
    if event.event == EventKind.STATUS_IN_PROGRESS.value:
        return True
    return (
        event.event == EventKind.STATUS_OVERRIDE.value
        and (event.data or {}).get("to") == TicketStatus.IN_PROGRESS.value
    )


def check_preconditions(
    ticket: Ticket,
    to_status: TicketStatus,
    activity_log: ActivityLog,
    run_id: str = "",
) -> None:
    """
    Enforce the assignee and note policies for a transition.

    Args:
        ticket: Ticket about to move
        to_status: Target status
        activity_log: Log consulted for the note policy
        run_id: Run shown in the suggested note command

    Raises:
        MissingPreconditionError: If a policy is unmet
    """
    to_status = TicketStatus(to_status)

    if requires_assignee(to_status) and not ticket.assignee:
        raise MissingPreconditionError(
            "requires-assignee",
            f"cannot move to {to_status.value} - ticket has no assignee. "
            f"Run `st pick {ticket.id}` first",
        )

    if requires_note(ticket.status, to_status):
        since = entered_in_progress_at(activity_log, ticket)
        if not has_note_since(activity_log, ticket.id, since):
            logger.info(f"Ticket {ticket.id} has no note since {since.isoformat()}")
            note_cmd = f'st note --ticket {ticket.id} --run-id {run_id} "<message>"'
            raise MissingPreconditionError(
                "requires-note",
                f"cannot move to {to_status.value} - a very detailed note is required "
                f"before review. Run `{note_cmd}` first",
            )


def can_review(activity_log: ActivityLog, ticket_id: str, run_id: str) -> bool:
    """A run that already touched the ticket may not review it."""
    return run_id not in activity_log.run_ids_for_ticket(ticket_id)
