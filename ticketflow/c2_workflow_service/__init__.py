"""C2 Workflow Service - status machine, transition policies and errors."""
from ticketflow.c2_workflow_service.errors import (
    WorkflowError,
    SameStatusError,
    IllegalTransitionError,
    UnknownStatusError,
    MissingPreconditionError,
    HoldError,
    TicketNotFoundError,
)
from ticketflow.c2_workflow_service.workflow_machine import (
    WorkflowMachine,
    TRANSITIONS,
    HANDOFF_FROM,
    STATUS_ALIASES,
    can_transition,
    validate_transition,
    resolve_alias,
)
from ticketflow.c2_workflow_service.workflow_rules import (
    requires_assignee,
    requires_note,
    has_note_since,
    check_preconditions,
    can_review,
)
__all__ = [
    "WorkflowError", "SameStatusError", "IllegalTransitionError", "UnknownStatusError",
    "MissingPreconditionError", "HoldError", "TicketNotFoundError",
    "WorkflowMachine", "TRANSITIONS", "HANDOFF_FROM", "STATUS_ALIASES",
    "can_transition", "validate_transition", "resolve_alias",
    "requires_assignee", "requires_note", "has_note_since", "check_preconditions", "can_review",
]
