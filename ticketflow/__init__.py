"""Ticketflow - dependency-aware ticket workflow engine."""

__version__ = "1.0.0"
