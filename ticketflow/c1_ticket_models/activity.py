"""Activity log event model."""

from datetime import datetime
from typing import Any, Dict

from pydantic import BaseModel, Field

from ticketflow.c1_ticket_models.ticket import utc_now


class ActivityEvent(BaseModel):
    """A single entry in the append-only activity log."""

    ts: datetime = Field(default_factory=utc_now)
    event: str = Field(..., description="Event kind, e.g. status.done or ticket.note")
    ticket: str = ""
    project: str = ""
    actor: str = ""
    run_id: str = ""
    data: Dict[str, Any] = Field(default_factory=dict)
