"""Health check routes for the Ticketflow API server."""

from fastapi import APIRouter

from ticketflow import __version__
from ticketflow.c1_ticket_models.ticket import utc_now

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Health check endpoint.

    Returns:
        dict: Health status, timestamp, and version
    """
    return {
        "status": "healthy",
        "timestamp": utc_now().isoformat(),
        "version": __version__,
    }
