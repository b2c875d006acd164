"""Ticket store: the keyed collection the workflow engine reads and writes."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ticketflow.c1_database_session.database_manager import DatabaseManager
from ticketflow.c1_ticket_enums.ticket_enums import TicketStatus
from ticketflow.c1_ticket_models.records import TicketRecord
from ticketflow.c1_ticket_models.ticket import Ticket, TicketSection
from ticketflow.c1_ticket_models.ticket_id import generate_ticket_id
from ticketflow.c2_workflow_service.errors import TicketNotFoundError

logger = logging.getLogger(__name__)


@dataclass
class ListFilter:
    """Optional filters for listing tickets."""

    project: Optional[str] = None
    status: Optional[TicketStatus] = None
    excludes: List[TicketStatus] = field(default_factory=list)

    def matches(self, ticket: Ticket) -> bool:
        if self.project and ticket.project != self.project:
            return False
        if self.status is not None and ticket.status != self.status:
            return False
        if ticket.status in self.excludes:
            return False
        return True


class TicketStore(ABC):
    """Synchronous ticket storage keyed by ticket ID.

    Every method hands out copies; mutate the copy and ``save`` it back.
    """

    @abstractmethod
    def get(self, ticket_id: str) -> Ticket:
        """Return the ticket with this ID or unique ID prefix.

        Raises:
            TicketNotFoundError: If nothing (or more than one ticket) matches
        """

    @abstractmethod
    def list(self, list_filter: Optional[ListFilter] = None) -> List[Ticket]:
        """Return tickets matching the filter, ordered by creation time then ID."""

    @abstractmethod
    def save(self, ticket: Ticket) -> None:
        """Persist an existing or new ticket."""

    @abstractmethod
    def ids(self) -> List[str]:
        """All stored ticket IDs."""

    def create(self, ticket: Ticket) -> Ticket:
        """Assign an ID if needed and store a new ticket."""
        if not ticket.id:
            ticket.id = generate_ticket_id(self.ids())
        self.save(ticket)
        return ticket

    @staticmethod
    def _resolve_prefix(ticket_id: str, candidates: List[str]) -> str:
        if ticket_id in candidates:
            return ticket_id
        matches = [c for c in candidates if ticket_id and c.startswith(ticket_id)]
        if len(matches) == 1:
            return matches[0]
        if len(matches) > 1:
            raise TicketNotFoundError(
                ticket_id,
                f"ambiguous ticket ID {ticket_id!r}: matches {', '.join(sorted(matches))}",
            )
        raise TicketNotFoundError(ticket_id)


def _sort_key(ticket: Ticket):
    return (ticket.created_at, ticket.id)


class InMemoryTicketStore(TicketStore):
    """Dictionary-backed store used by tests and embedded callers."""

    def __init__(self, tickets: Optional[List[Ticket]] = None):
        self._tickets: Dict[str, Ticket] = {}
        for ticket in tickets or []:
            self.save(ticket)

    def get(self, ticket_id: str) -> Ticket:
        key = self._resolve_prefix(ticket_id, list(self._tickets))
        return self._tickets[key].copy_for_update()

    def list(self, list_filter: Optional[ListFilter] = None) -> List[Ticket]:
        list_filter = list_filter or ListFilter()
        selected = [t for t in self._tickets.values() if list_filter.matches(t)]
        return [t.copy_for_update() for t in sorted(selected, key=_sort_key)]

    def save(self, ticket: Ticket) -> None:
        if not ticket.id:
            raise ValueError("cannot save a ticket without an ID")
        self._tickets[ticket.id] = ticket.copy_for_update()

    def ids(self) -> List[str]:
        return list(self._tickets)

    def __len__(self):
        return len(self._tickets)


class SqlTicketStore(TicketStore):
    """Store backed by the ``tickets`` table."""

    def __init__(self, db_manager: DatabaseManager):
        self.db_manager = db_manager

    def get(self, ticket_id: str) -> Ticket:
        with self.db_manager.session_scope() as db:
            record = db.query(TicketRecord).filter_by(id=ticket_id).first()
            if record is None:
                candidates = [
                    row.id
                    for row in db.query(TicketRecord.id)
                    .filter(TicketRecord.id.like(f"{ticket_id}%"))
                    .all()
                ]
                key = self._resolve_prefix(ticket_id, candidates)
                record = db.query(TicketRecord).filter_by(id=key).first()
            return _to_ticket(record)

    def list(self, list_filter: Optional[ListFilter] = None) -> List[Ticket]:
        list_filter = list_filter or ListFilter()
        with self.db_manager.session_scope() as db:
            q = db.query(TicketRecord)
            if list_filter.project:
                q = q.filter(TicketRecord.project == list_filter.project)
            if list_filter.status is not None:
                q = q.filter(TicketRecord.status == TicketStatus(list_filter.status).value)
            if list_filter.excludes:
                q = q.filter(
                    TicketRecord.status.notin_([TicketStatus(s).value for s in list_filter.excludes])
                )
            rows = q.order_by(TicketRecord.created_at, TicketRecord.id).all()
            return [_to_ticket(row) for row in rows]

    def save(self, ticket: Ticket) -> None:
        if not ticket.id:
            raise ValueError("cannot save a ticket without an ID")
        with self.db_manager.session_scope() as db:
            record = db.query(TicketRecord).filter_by(id=ticket.id).first()
            if record is None:
                record = TicketRecord(id=ticket.id)
                db.add(record)
            record.title = ticket.title
            record.project = ticket.project
            record.status = ticket.status.value
            record.prior_status = ticket.prior_status.value if ticket.prior_status else None
            record.assignee = ticket.assignee
            record.priority = ticket.priority.value
            # New lists so SQLAlchemy sees the JSON columns change
            record.depends_on = list(ticket.depends_on)
            record.tags = list(ticket.tags)
            record.sections = [s.model_dump(mode="json") for s in ticket.sections]
            record.created_at = ticket.created_at
            record.updated_at = ticket.updated_at

    def ids(self) -> List[str]:
        with self.db_manager.session_scope() as db:
            return [row.id for row in db.query(TicketRecord.id).all()]


def _to_ticket(record: TicketRecord) -> Ticket:
    return Ticket(
        id=record.id,
        title=record.title or "",
        project=record.project or "",
        status=TicketStatus(record.status),
        prior_status=TicketStatus(record.prior_status) if record.prior_status else None,
        assignee=record.assignee or "",
        priority=record.priority,
        depends_on=list(record.depends_on or []),
        tags=list(record.tags or []),
        sections=[TicketSection(**s) for s in (record.sections or [])],
        created_at=record.created_at,
        updated_at=record.updated_at,
    )
