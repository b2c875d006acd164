"""SQLAlchemy records backing the SQL ticket store and activity log."""

from sqlalchemy import Column, String, Text, Integer, DateTime, JSON

from ticketflow.c1_database_session.base import Base
from ticketflow.c1_ticket_models.ticket import utc_now


class TicketRecord(Base):
    """Persisted ticket row."""

    __tablename__ = "tickets"

    id = Column(String, primary_key=True)  # Format: st_xxxxxx
    title = Column(String(500), nullable=False, default="")
    project = Column(String(200), nullable=False, default="")

    # Workflow
    status = Column(String(20), nullable=False)
    prior_status = Column(String(20))  # Only set while status == BLOCKED
    assignee = Column(String(200), nullable=False, default="")
    priority = Column(String(2), nullable=False)

    # Dependencies & metadata
    depends_on = Column(JSON)  # Ordered list of ticket IDs
    tags = Column(JSON)
    sections = Column(JSON)  # Audit trail, list of section dicts

    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, nullable=False)


class ActivityRecord(Base):
    """One row of the append-only activity log."""

    __tablename__ = "ticket_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ts = Column(DateTime, default=utc_now, nullable=False)
    event = Column(String(50), nullable=False)  # ticket.note, status.done, ...
    ticket_id = Column(String, nullable=False, default="")
    project = Column(String(200), nullable=False, default="")
    actor = Column(String(200), nullable=False, default="")
    run_id = Column(String(200), nullable=False, default="")
    data = Column(JSON)
    message = Column(Text)  # Denormalised note text for quick display
