"""Pytest configuration and shared fixtures for Ticketflow tests."""

from datetime import datetime, timedelta

import pytest

from ticketflow.c1_ticket_enums.ticket_enums import TicketStatus
from ticketflow.c1_ticket_models.ticket import Ticket
from ticketflow.c2_activity_log.activity_log import InMemoryActivityLog
from ticketflow.c2_dependency_service.dependency_resolver import DependencyResolver
from ticketflow.c2_ticket_service.ticket_service import TicketService
from ticketflow.c2_ticket_store.ticket_store import InMemoryTicketStore
from ticketflow.core.config import WorkflowConfig

BASE_TIME = datetime(2024, 1, 1, 12, 0, 0)


@pytest.fixture
def make_ticket():
    """Factory for tickets with predictable timestamps.

    Usage:
        ticket = make_ticket("A", depends_on=["B"], status=TicketStatus.OPEN)
    """
    counter = {"n": 0}

    def _make(ticket_id, depends_on=None, status=TicketStatus.OPEN, **kwargs):
        counter["n"] += 1
        created = BASE_TIME + timedelta(minutes=counter["n"])
        kwargs.setdefault("title", f"Ticket {ticket_id}")
        kwargs.setdefault("created_at", created)
        kwargs.setdefault("updated_at", created)
        return Ticket(id=ticket_id, depends_on=list(depends_on or []), status=status, **kwargs)

    return _make


@pytest.fixture
def store():
    return InMemoryTicketStore()


@pytest.fixture
def activity_log():
    return InMemoryActivityLog()


@pytest.fixture
def resolver(store):
    return DependencyResolver(store)


@pytest.fixture
def workflow_config():
    return WorkflowConfig(critical_path_limit=5, barycenter_sweeps=4, system_actor="st")


@pytest.fixture
def service(store, activity_log, workflow_config):
    """TicketService over in-memory collaborators."""
    return TicketService(store, activity_log, config=workflow_config)
