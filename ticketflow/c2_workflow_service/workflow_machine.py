"""Status transition table and alias resolution."""

from types import MappingProxyType

from ticketflow.c1_ticket_enums.ticket_enums import TicketStatus
from ticketflow.c2_workflow_service.errors import (
    IllegalTransitionError,
    SameStatusError,
    UnknownStatusError,
)

S = TicketStatus

# DONE and CANCELLED have no outgoing edges; BLOCKED snaps back to its
# prior status and is handled in can_transition.
TRANSITIONS = MappingProxyType({
    S.BACKLOG: frozenset({S.OPEN, S.BLOCKED}),
    S.OPEN: frozenset({S.IN_PROGRESS, S.BLOCKED}),
    S.IN_PROGRESS: frozenset({S.REVIEW, S.BLOCKED}),
    S.REVIEW: frozenset({S.DONE, S.REWORK, S.BLOCKED}),
    S.REWORK: frozenset({S.IN_PROGRESS, S.BLOCKED}),
    S.BLOCKED: frozenset(),
    S.DONE: frozenset(),
    S.CANCELLED: frozenset(),
})

# Handoff returns an assigned ticket to the pool without going through the table.
HANDOFF_FROM = frozenset({S.IN_PROGRESS, S.REWORK})

STATUS_ALIASES = MappingProxyType({
    "backlog": S.BACKLOG,
    "open": S.OPEN,
    "in-progress": S.IN_PROGRESS,
    "in_progress": S.IN_PROGRESS,
    "inprogress": S.IN_PROGRESS,
    "start": S.IN_PROGRESS,
    "begin": S.IN_PROGRESS,
    "review": S.REVIEW,
    "submit": S.REVIEW,
    "done": S.DONE,
    "complete": S.DONE,
    "rework": S.REWORK,
    "reject": S.REWORK,
    "blocked": S.BLOCKED,
    "block": S.BLOCKED,
    "cancelled": S.CANCELLED,
    "canceled": S.CANCELLED,
    "cancel": S.CANCELLED,
})

ACCEPTED_STATUS_NAMES = tuple(s.value.lower() for s in TicketStatus)


class WorkflowMachine:
    """Decides legality of status transitions. Has no side effects."""

    @staticmethod
    def can_transition(from_status: TicketStatus, to_status: TicketStatus) -> bool:
        from_status = TicketStatus(from_status)
        to_status = TicketStatus(to_status)
        if from_status == TicketStatus.BLOCKED:
            return True
        return to_status in TRANSITIONS.get(from_status, frozenset())

    @staticmethod
    def validate_transition(from_status: TicketStatus, to_status: TicketStatus) -> None:
        """
        Check a transition.

        Raises:
            SameStatusError: If from_status == to_status
            IllegalTransitionError: If the edge is not in the table
        """
        from_status = TicketStatus(from_status)
        to_status = TicketStatus(to_status)
        if from_status == to_status:
            raise SameStatusError(from_status)
        if not WorkflowMachine.can_transition(from_status, to_status):
            raise IllegalTransitionError(from_status, to_status)

    @staticmethod
    def resolve_alias(name: str) -> TicketStatus:
        """
        Map a free-form verb or status name to a canonical status.

        Matching is case-insensitive and ignores surrounding whitespace.

        Raises:
            UnknownStatusError: If the name is not recognised
        """
        key = (name or "").strip().lower()
        if key in STATUS_ALIASES:
            return STATUS_ALIASES[key]
        for status in TicketStatus:
            if status.value.lower() == key:
                return status
        raise UnknownStatusError(name, ACCEPTED_STATUS_NAMES)


can_transition = WorkflowMachine.can_transition
validate_transition = WorkflowMachine.validate_transition
resolve_alias = WorkflowMachine.resolve_alias
