"""Append-only activity log, queryable by ticket and time range."""

import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from ticketflow.c1_database_session.database_manager import DatabaseManager
from ticketflow.c1_ticket_enums.ticket_enums import EventKind
from ticketflow.c1_ticket_models.activity import ActivityEvent
from ticketflow.c1_ticket_models.records import ActivityRecord

logger = logging.getLogger(__name__)


class ActivityLog(ABC):
    """Interface shared by the in-memory and SQL activity logs."""

    @abstractmethod
    def append(self, event: ActivityEvent) -> None:
        """Append a single event."""

    @abstractmethod
    def query(
        self,
        ticket_id: Optional[str] = None,
        project: Optional[str] = None,
        run_id: Optional[str] = None,
        after: Optional[datetime] = None,
        before: Optional[datetime] = None,
    ) -> List[ActivityEvent]:
        """Return matching events in append order.

        ``after`` is an exclusive lower bound, ``before`` an inclusive upper bound.
        """

    def has_event_since(self, ticket_id: str, kind: str, since: Optional[datetime]) -> bool:
        """True if an event of ``kind`` was logged for the ticket at or after ``since``."""
        kind = _kind_value(kind)
        for event in self.query(ticket_id=ticket_id):
            if event.event == kind and (since is None or event.ts >= since):
                return True
        return False

    def last_event(self, ticket_id: str, kind: str) -> Optional[ActivityEvent]:
        kind = _kind_value(kind)
        latest = None
        for event in self.query(ticket_id=ticket_id):
            if event.event == kind and (latest is None or event.ts >= latest.ts):
                latest = event
        return latest

    def run_ids_for_ticket(self, ticket_id: str) -> List[str]:
        """Distinct run IDs that touched a ticket, in first-seen order."""
        seen = []
        for event in self.query(ticket_id=ticket_id):
            if event.run_id and event.run_id not in seen:
                seen.append(event.run_id)
        return seen


def _kind_value(kind) -> str:
    if isinstance(kind, EventKind):
        return kind.value
    return str(kind)


def _matches(
    event: ActivityEvent,
    ticket_id: Optional[str],
    project: Optional[str],
    run_id: Optional[str],
    after: Optional[datetime],
    before: Optional[datetime],
) -> bool:
    if ticket_id and event.ticket != ticket_id:
        return False
    if project and event.project != project:
        return False
    if run_id and event.run_id != run_id:
        return False
    if after is not None and event.ts <= after:
        return False
    if before is not None and event.ts > before:
        return False
    return True


class InMemoryActivityLog(ActivityLog):
    """Process-local log; appends take an exclusive lock."""

    def __init__(self):
        self._events: List[ActivityEvent] = []
        self._lock = threading.Lock()

    def append(self, event: ActivityEvent) -> None:
        with self._lock:
            self._events.append(event.model_copy(deep=True))

    def query(self, ticket_id=None, project=None, run_id=None, after=None, before=None):
        with self._lock:
            snapshot = list(self._events)
        return [
            e.model_copy(deep=True)
            for e in snapshot
            if _matches(e, ticket_id, project, run_id, after, before)
        ]

    def __len__(self):
        with self._lock:
            return len(self._events)


class SqlActivityLog(ActivityLog):
    """Activity log stored in the ``ticket_events`` table."""

    def __init__(self, db_manager: DatabaseManager):
        self.db_manager = db_manager

    def append(self, event: ActivityEvent) -> None:
        with self.db_manager.session_scope() as db:
            db.add(
                ActivityRecord(
                    ts=event.ts,
                    event=event.event,
                    ticket_id=event.ticket,
                    project=event.project,
                    actor=event.actor,
                    run_id=event.run_id,
                    data=event.data,
                    message=event.data.get("message") if event.data else None,
                )
            )

    def query(self, ticket_id=None, project=None, run_id=None, after=None, before=None):
        with self.db_manager.session_scope() as db:
            q = db.query(ActivityRecord)
            if ticket_id:
                q = q.filter(ActivityRecord.ticket_id == ticket_id)
            if project:
                q = q.filter(ActivityRecord.project == project)
            if run_id:
                q = q.filter(ActivityRecord.run_id == run_id)
            if after is not None:
                q = q.filter(ActivityRecord.ts > after)
            if before is not None:
                q = q.filter(ActivityRecord.ts <= before)
            rows = q.order_by(ActivityRecord.id).all()
            return [
                ActivityEvent(
                    ts=row.ts,
                    event=row.event,
                    ticket=row.ticket_id,
                    project=row.project,
                    actor=row.actor,
                    run_id=row.run_id,
                    data=row.data or {},
                )
                for row in rows
            ]
