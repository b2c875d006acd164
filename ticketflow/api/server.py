"""API server for Ticketflow."""

import logging
from typing import Optional

from fastapi import FastAPI

from ticketflow import __version__
from ticketflow.c1_database_session.database_manager import DatabaseManager
from ticketflow.c2_activity_log.activity_log import ActivityLog, SqlActivityLog
from ticketflow.c2_ticket_service.ticket_service import TicketService
from ticketflow.c2_ticket_store.ticket_store import SqlTicketStore, TicketStore
from ticketflow.core.config import Settings, get_settings

# C3 Routes (Application Layer)
from ticketflow.c3_graph_routes.graph_routes import create_graph_router
from ticketflow.c3_health_routes.health_routes import router as health_router
from ticketflow.c3_ticket_routes.ticket_routes import create_ticket_router

logger = logging.getLogger(__name__)


class ServerState:
    """Shared state handed to the route factories."""

    def __init__(
        self,
        settings: Settings,
        store: Optional[TicketStore] = None,
        activity_log: Optional[ActivityLog] = None,
    ):
        self.settings = settings
        self.db_manager = None

        if store is None or activity_log is None:
            self.db_manager = DatabaseManager(settings.database.database_path)
            self.db_manager.create_tables()
            logger.info(f"Using ticket database at {settings.database.database_path}")

        self.store = store if store is not None else SqlTicketStore(self.db_manager)
        self.activity_log = activity_log if activity_log is not None else SqlActivityLog(self.db_manager)
        self.ticket_service = TicketService(
            self.store,
            self.activity_log,
            config=settings.workflow,
        )


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[TicketStore] = None,
    activity_log: Optional[ActivityLog] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Settings to use; loaded from the environment if omitted
        store: Ticket store; defaults to the SQLite store at the configured path
        activity_log: Activity log; defaults to the SQLite log at the same path

    Returns:
        Configured FastAPI app
    """
    settings = settings or get_settings()
    logging.getLogger("ticketflow").setLevel(settings.log_level)

    server_state = ServerState(settings, store=store, activity_log=activity_log)

    app = FastAPI(
        title="Ticketflow",
        description="Dependency-aware ticket workflow engine",
        version=__version__,
        debug=settings.debug,
    )
    app.state.server_state = server_state

    app.include_router(health_router)
    app.include_router(create_ticket_router(server_state))
    app.include_router(create_graph_router(server_state))

    logger.info("Ticketflow API ready")
    return app
