"""Error taxonomy for ticket workflow operations.

Validation failures subclass ``ValueError`` so callers that already guard
service calls with ``except ValueError`` keep working.
"""

from typing import Iterable


class WorkflowError(ValueError):
    """Base class for workflow validation failures."""


class SameStatusError(WorkflowError):
    def __init__(self, status):
        self.status = status
        super().__init__(f"ticket is already {_name(status)}")


class IllegalTransitionError(WorkflowError):
    def __init__(self, from_status, to_status):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(f"cannot move from {_name(from_status)} to {_name(to_status)}")


class UnknownStatusError(WorkflowError):
    def __init__(self, value: str, accepted: Iterable[str]):
        self.value = value
        self.accepted = list(accepted)
        super().__init__(f"unknown status {value!r} - use one of: {', '.join(self.accepted)}")


class MissingPreconditionError(WorkflowError):
    """An assignee or note policy is unmet for the requested transition."""

    def __init__(self, policy: str, message: str):
        self.policy = policy
        super().__init__(message)


class HoldError(WorkflowError):
    """Hold/unhold/cancel requested against a ticket in the wrong state."""


class TicketNotFoundError(LookupError):
    def __init__(self, ticket_id: str, message: str = ""):
        self.ticket_id = ticket_id
        super().__init__(message or f"ticket not found: {ticket_id}")


def _name(status) -> str:
    return getattr(status, "value", status)
