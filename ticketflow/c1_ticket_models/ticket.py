"""Ticket domain models for Ticketflow."""

from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from ticketflow.c1_ticket_enums.ticket_enums import (
    DEFAULT_PRIORITY,
    RESOLVED_STATUSES,
    TicketPriority,
    TicketStatus,
)


def utc_now() -> datetime:
    """Naive UTC timestamp, matching what SQLite round-trips."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TicketSection(BaseModel):
    """One entry of a ticket's audit trail (status change, note, hold...)."""

    heading: str
    actor: str = ""
    run_id: str = ""
    content: str = ""
    fields: Dict[str, str] = Field(default_factory=dict)
    at: datetime = Field(default_factory=utc_now)


class Ticket(BaseModel):
    """A unit of work tracked through the workflow.

    ``prior_status`` is only meaningful while the ticket is BLOCKED: it holds
    the status the ticket snaps back to once unblocked. A BLOCKED ticket
    without one is under a manual hold that dependency resolution never
    releases.
    """

    id: str = ""
    title: str = ""
    project: str = ""
    status: TicketStatus = TicketStatus.OPEN
    prior_status: Optional[TicketStatus] = None
    assignee: str = ""
    priority: TicketPriority = DEFAULT_PRIORITY
    depends_on: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    sections: List[TicketSection] = Field(default_factory=list)

    @model_validator(mode="after")
    def _prior_status_only_when_blocked(self) -> "Ticket":
        if self.prior_status is not None and self.status != TicketStatus.BLOCKED:
            raise ValueError(
                f"prior_status is only allowed on BLOCKED tickets (status is {self.status.value})"
            )
        return self

    @property
    def is_resolved(self) -> bool:
        """DONE or CANCELLED."""
        return self.status in RESOLVED_STATUSES

    @property
    def is_live(self) -> bool:
        return not self.is_resolved

    @property
    def is_held(self) -> bool:
        """BLOCKED by a human hold rather than by dependencies."""
        return self.status == TicketStatus.BLOCKED and self.prior_status is None

    def append_section(
        self,
        heading: str,
        actor: str = "",
        run_id: str = "",
        content: str = "",
        fields: Optional[Dict[str, str]] = None,
        at: Optional[datetime] = None,
    ) -> TicketSection:
        """Record an audit entry on the ticket."""
        section = TicketSection(
            heading=heading,
            actor=actor,
            run_id=run_id,
            content=content,
            fields=fields or {},
            at=at or utc_now(),
        )
        self.sections.append(section)
        return section

    def copy_for_update(self) -> "Ticket":
        """Deep copy handed to callers so store-held state is never shared."""
        return self.model_copy(deep=True)
