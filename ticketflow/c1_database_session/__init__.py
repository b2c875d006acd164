"""Database session management for Ticketflow."""

from ticketflow.c1_database_session.base import Base
from ticketflow.c1_database_session.database_manager import DatabaseManager

__all__ = ["Base", "DatabaseManager"]
