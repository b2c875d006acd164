"""Dependency graph routes: layered layout and critical paths as JSON view data."""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

logger = logging.getLogger(__name__)


def create_graph_router(server_state):
    """Create graph router with server_state dependency.

    Args:
        server_state: ServerState instance holding the ticket service

    Returns:
        APIRouter: Configured router with graph endpoints
    """
    router = APIRouter(tags=["graph"])

    @router.get("/api/graph/dependencies")
    async def get_dependency_graph(project: Optional[str] = Query(None)):
        """Layers, positions and edges of the live dependency graph."""
        try:
            graph = server_state.ticket_service.dependency_graph(project=project)
            return graph.to_dict()
        except Exception as e:
            logger.error(f"Failed to build dependency graph: {e}")
            raise HTTPException(status_code=500, detail=str(e))

    @router.get("/api/graph/critical-paths")
    async def get_critical_paths(
        project: Optional[str] = Query(None),
        limit: int = Query(0, description="Maximum number of paths; 0 uses the configured default"),
        include_single: bool = Query(False, description="Keep one-ticket paths"),
    ):
        """Longest dependency chains among live tickets, longest first."""
        try:
            paths = server_state.ticket_service.critical_paths(project=project, limit=limit)
        except Exception as e:
            logger.error(f"Failed to compute critical paths: {e}")
            raise HTTPException(status_code=500, detail=str(e))

        if not include_single:
            # A lone ticket is not a chain worth showing
            paths = [p for p in paths if len(p) > 1]
        return {
            "paths": [{"ids": p, "length": len(p)} for p in paths],
            "count": len(paths),
        }

    return router
