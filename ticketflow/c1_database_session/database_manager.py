"""Database manager and session utilities for Ticketflow."""

import logging
from pathlib import Path
from contextlib import contextmanager
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.sql import text

from ticketflow.c1_database_session.base import Base

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_PATH = "ticketflow.db"


class DatabaseManager:
    """Manager for database operations."""

    def __init__(self, database_path: str = DEFAULT_DATABASE_PATH):
        """Initialize database connection."""
        self.database_path = str(database_path)
        if self.database_path != ":memory:":
            Path(self.database_path).parent.mkdir(parents=True, exist_ok=True)
        self.engine = create_engine(
            f"sqlite:///{self.database_path}",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=False,
        )
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    def create_tables(self):
        """Create all database tables."""
        # Register the record classes on Base.metadata
        import ticketflow.c1_ticket_models.records  # noqa: F401

        Base.metadata.create_all(bind=self.engine)
        self._create_indexes()

    def _create_indexes(self):
        """Create indexes used by activity log queries."""
        try:
            with self.engine.connect() as conn:
                conn.execute(
                    text(
                        "CREATE INDEX IF NOT EXISTS idx_ticket_events_ticket_ts "
                        "ON ticket_events(ticket_id, ts)"
                    )
                )
                conn.execute(
                    text("CREATE INDEX IF NOT EXISTS idx_tickets_project ON tickets(project)")
                )
                conn.commit()
                logger.info("Created indexes for ticket tables")
        except Exception as e:
            logger.debug(f"Index creation (may already exist): {e}")

    def get_session(self):
        """Get a database session."""
        return self.SessionLocal()

    @contextmanager
    def session_scope(self):
        """Provide a transactional scope bound to this manager's engine."""
        db = self.get_session()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def drop_tables(self):
        """Drop all database tables (for testing)."""
        Base.metadata.drop_all(bind=self.engine)
