"""Ticket Enums for Ticketflow."""

from enum import Enum


class TicketStatus(str, Enum):
    """Workflow status of a ticket."""
    BACKLOG = "BACKLOG"
    OPEN = "OPEN"
    IN_PROGRESS = "IN-PROGRESS"
    REVIEW = "REVIEW"
    REWORK = "REWORK"
    DONE = "DONE"
    BLOCKED = "BLOCKED"
    CANCELLED = "CANCELLED"


# Terminal statuses; dependents treat these as satisfied.
RESOLVED_STATUSES = frozenset({TicketStatus.DONE, TicketStatus.CANCELLED})


class TicketPriority(str, Enum):
    """Ticket priority (P0 = critical, P5 = backlog)."""
    P0 = "P0"
    P1 = "P1"
    P2 = "P2"
    P3 = "P3"
    P4 = "P4"
    P5 = "P5"


DEFAULT_PRIORITY = TicketPriority.P3


class EventKind(str, Enum):
    """Activity log event types."""
    TICKET_CREATED = "ticket.created"
    TICKET_ASSIGNED = "ticket.assigned"
    TICKET_NOTE = "ticket.note"
    TICKET_REVIEW_CLAIMED = "ticket.review-claimed"
    TICKET_HANDOFF = "ticket.handoff"

    STATUS_BACKLOG = "status.backlog"
    STATUS_OPEN = "status.open"
    STATUS_IN_PROGRESS = "status.in-progress"
    STATUS_REVIEW = "status.review"
    STATUS_REWORK = "status.rework"
    STATUS_DONE = "status.done"
    STATUS_BLOCKED = "status.blocked"
    STATUS_CANCELLED = "status.cancelled"
    STATUS_OVERRIDE = "status.override"

    @classmethod
    def for_status(cls, status: TicketStatus) -> "EventKind":
        """Event kind recorded when a ticket enters ``status``."""
        return cls("status." + TicketStatus(status).value.lower())
