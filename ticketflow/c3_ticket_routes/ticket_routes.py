"""Ticket workflow routes for the Ticketflow API server."""

import logging
from typing import Optional, List, Dict, Any

from fastapi import APIRouter, HTTPException, Header, Query
from pydantic import BaseModel, Field

from ticketflow.c2_workflow_service.errors import TicketNotFoundError

logger = logging.getLogger(__name__)


# Request/Response Models
class CreateTicketRequest(BaseModel):
    title: str = Field(..., description="Ticket title")
    project: str = Field("", description="Project the ticket belongs to")
    priority: Optional[str] = Field(None, description="Priority: P0 (critical) to P5 (backlog)")
    depends_on: Optional[List[str]] = Field(None, description="IDs of tickets this one depends on")
    tags: Optional[List[str]] = Field(None, description="Tags for categorization")


class CreateTicketResponse(BaseModel):
    ticket_id: str
    status: str
    unresolved_dependencies: List[str]
    message: str


class ChangeTicketStatusRequest(BaseModel):
    ticket_id: str = Field(..., description="Ticket ID or unique prefix")
    new_status: str = Field(..., description="Target status or alias (start, submit, complete...)")


class ChangeTicketStatusResponse(BaseModel):
    ticket_id: str
    old_status: str
    new_status: str
    assignee: str
    message: str
    unblocked: List[str] = []
    warnings: List[str] = []


class PickTicketRequest(BaseModel):
    ticket_id: str = Field(..., description="Ticket ID")
    assignee: Optional[str] = Field(None, description="Assignee (defaults to the calling agent)")


class AssignTicketRequest(BaseModel):
    ticket_id: str = Field(..., description="Ticket ID")
    assignee: str = Field("", description="New assignee; empty to unassign")


class AssignTicketResponse(BaseModel):
    ticket_id: str
    assignee: str
    previous_assignee: str
    message: str


class AddNoteRequest(BaseModel):
    ticket_id: str = Field(..., description="Ticket ID")
    message: str = Field(..., description="Note text")


class HoldTicketRequest(BaseModel):
    ticket_id: str = Field(..., description="Ticket ID")
    reason: str = Field("", description="Why the ticket is held or cancelled")


class UnholdTicketRequest(BaseModel):
    ticket_id: str = Field(..., description="Ticket ID")


class OverrideStatusRequest(BaseModel):
    ticket_id: str = Field(..., description="Ticket ID")
    new_status: str = Field(..., description="Status to force")
    reason: str = Field("", description="Why the workflow is being bypassed")


class ClaimReviewRequest(BaseModel):
    ticket_id: str = Field(..., description="Ticket ID")
    reviewer: Optional[str] = Field(None, description="Reviewer (defaults to the run or agent)")


class HandoffTicketRequest(BaseModel):
    ticket_id: str = Field(..., description="Ticket ID")


class GetTicketsResponse(BaseModel):
    tickets: List[Dict[str, Any]]
    total_count: int


class SimpleResponse(BaseModel):
    ticket_id: str
    message: str


def _http_error(action: str, e: Exception) -> HTTPException:
    if isinstance(e, TicketNotFoundError):
        logger.warning(f"{action}: {e}")
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, ValueError):
        logger.warning(f"{action} rejected: {e}")
        return HTTPException(status_code=400, detail=str(e))
    logger.error(f"{action} failed: {e}")
    return HTTPException(status_code=500, detail=str(e))


def create_ticket_router(server_state):
    """Create ticket router with server_state dependency.

    Args:
        server_state: ServerState instance holding the ticket service

    Returns:
        APIRouter: Configured router with ticket endpoints
    """
    router = APIRouter(tags=["tickets"])

    @router.post("/api/tickets/create", response_model=CreateTicketResponse)
    async def create_ticket_endpoint(
        request: CreateTicketRequest,
        agent_id: str = Header(..., alias="X-Agent-ID"),
        run_id: str = Header("", alias="X-Run-ID"),
    ):
        """Create a ticket; it starts BLOCKED if a dependency is unresolved."""
        logger.info(f"[TICKET_CREATE] Agent: {agent_id}, Title: {request.title}")
        try:
            result = server_state.ticket_service.create_ticket(
                title=request.title,
                project=request.project,
                priority=request.priority,
                depends_on=request.depends_on,
                tags=request.tags,
                actor=agent_id,
                run_id=run_id,
            )
            return CreateTicketResponse(
                ticket_id=result["ticket_id"],
                status=result["status"],
                unresolved_dependencies=result["unresolved_dependencies"],
                message=result["message"],
            )
        except Exception as e:
            raise _http_error("Create ticket", e)

    @router.post("/api/tickets/change-status", response_model=ChangeTicketStatusResponse)
    async def change_ticket_status_endpoint(
        request: ChangeTicketStatusRequest,
        agent_id: str = Header(..., alias="X-Agent-ID"),
        run_id: str = Header("", alias="X-Run-ID"),
    ):
        """Move a ticket along the workflow."""
        try:
            result = server_state.ticket_service.change_status(
                ticket_id=request.ticket_id,
                target=request.new_status,
                actor=agent_id,
                run_id=run_id,
            )
            return ChangeTicketStatusResponse(**result)
        except Exception as e:
            raise _http_error(f"Change status of {request.ticket_id}", e)

    @router.post("/api/tickets/pick", response_model=ChangeTicketStatusResponse)
    async def pick_ticket_endpoint(
        request: PickTicketRequest,
        agent_id: str = Header(..., alias="X-Agent-ID"),
        run_id: str = Header("", alias="X-Run-ID"),
    ):
        try:
            result = server_state.ticket_service.pick(
                ticket_id=request.ticket_id,
                assignee=request.assignee or agent_id,
                run_id=run_id,
            )
            return ChangeTicketStatusResponse(**result)
        except Exception as e:
            raise _http_error(f"Pick {request.ticket_id}", e)

    @router.post("/api/tickets/handoff", response_model=ChangeTicketStatusResponse)
    async def handoff_ticket_endpoint(
        request: HandoffTicketRequest,
        agent_id: str = Header(..., alias="X-Agent-ID"),
        run_id: str = Header("", alias="X-Run-ID"),
    ):
        """Return an assigned ticket to OPEN and clear its assignee."""
        try:
            result = server_state.ticket_service.handoff(
                ticket_id=request.ticket_id, actor=agent_id, run_id=run_id
            )
            return ChangeTicketStatusResponse(**result)
        except Exception as e:
            raise _http_error(f"Hand off {request.ticket_id}", e)

    @router.post("/api/tickets/assign", response_model=AssignTicketResponse)
    async def assign_ticket_endpoint(
        request: AssignTicketRequest,
        agent_id: str = Header(..., alias="X-Agent-ID"),
        run_id: str = Header("", alias="X-Run-ID"),
    ):
        try:
            result = server_state.ticket_service.assign(
                ticket_id=request.ticket_id,
                assignee=request.assignee,
                actor=agent_id,
                run_id=run_id,
            )
            return AssignTicketResponse(
                ticket_id=result["ticket_id"],
                assignee=result["assignee"],
                previous_assignee=result["previous_assignee"],
                message=result["message"],
            )
        except Exception as e:
            raise _http_error(f"Assign {request.ticket_id}", e)

    @router.post("/api/tickets/note", response_model=SimpleResponse)
    async def add_note_endpoint(
        request: AddNoteRequest,
        agent_id: str = Header(..., alias="X-Agent-ID"),
        run_id: str = Header("", alias="X-Run-ID"),
    ):
        try:
            result = server_state.ticket_service.add_note(
                ticket_id=request.ticket_id,
                message=request.message,
                actor=agent_id,
                run_id=run_id,
            )
            return SimpleResponse(ticket_id=result["ticket_id"], message=result["message"])
        except Exception as e:
            raise _http_error(f"Note on {request.ticket_id}", e)

    @router.post("/api/tickets/hold", response_model=ChangeTicketStatusResponse)
    async def hold_ticket_endpoint(
        request: HoldTicketRequest,
        agent_id: str = Header(..., alias="X-Agent-ID"),
        run_id: str = Header("", alias="X-Run-ID"),
    ):
        try:
            result = server_state.ticket_service.hold(
                ticket_id=request.ticket_id, reason=request.reason, actor=agent_id, run_id=run_id
            )
            return ChangeTicketStatusResponse(**result)
        except Exception as e:
            raise _http_error(f"Hold {request.ticket_id}", e)

    @router.post("/api/tickets/unhold", response_model=ChangeTicketStatusResponse)
    async def unhold_ticket_endpoint(
        request: UnholdTicketRequest,
        agent_id: str = Header(..., alias="X-Agent-ID"),
        run_id: str = Header("", alias="X-Run-ID"),
    ):
        try:
            result = server_state.ticket_service.unhold(
                ticket_id=request.ticket_id, actor=agent_id, run_id=run_id
            )
            return ChangeTicketStatusResponse(**result)
        except Exception as e:
            raise _http_error(f"Unhold {request.ticket_id}", e)

    @router.post("/api/tickets/cancel", response_model=ChangeTicketStatusResponse)
    async def cancel_ticket_endpoint(
        request: HoldTicketRequest,
        agent_id: str = Header(..., alias="X-Agent-ID"),
        run_id: str = Header("", alias="X-Run-ID"),
    ):
        try:
            result = server_state.ticket_service.cancel(
                ticket_id=request.ticket_id, reason=request.reason, actor=agent_id, run_id=run_id
            )
            return ChangeTicketStatusResponse(**result)
        except Exception as e:
            raise _http_error(f"Cancel {request.ticket_id}", e)

    @router.post("/api/tickets/override", response_model=ChangeTicketStatusResponse)
    async def override_status_endpoint(
        request: OverrideStatusRequest,
        agent_id: str = Header(..., alias="X-Agent-ID"),
        run_id: str = Header("", alias="X-Run-ID"),
    ):
        """Force a status, bypassing the transition table."""
        try:
            result = server_state.ticket_service.override(
                ticket_id=request.ticket_id,
                target=request.new_status,
                reason=request.reason,
                actor=agent_id,
                run_id=run_id,
            )
            return ChangeTicketStatusResponse(**result)
        except Exception as e:
            raise _http_error(f"Override {request.ticket_id}", e)

    @router.post("/api/tickets/review", response_model=SimpleResponse)
    async def claim_review_endpoint(
        request: ClaimReviewRequest,
        agent_id: str = Header(..., alias="X-Agent-ID"),
        run_id: str = Header("", alias="X-Run-ID"),
    ):
        try:
            result = server_state.ticket_service.claim_review(
                ticket_id=request.ticket_id,
                reviewer=request.reviewer or "",
                actor=agent_id,
                run_id=run_id,
            )
            return SimpleResponse(ticket_id=result["ticket_id"], message=result["message"])
        except Exception as e:
            raise _http_error(f"Claim review of {request.ticket_id}", e)

    @router.get("/api/tickets", response_model=GetTicketsResponse)
    async def list_tickets_endpoint(
        project: Optional[str] = Query(None, description="Only tickets of this project"),
        status: Optional[str] = Query(None, description="Only tickets in this status"),
        exclude: Optional[List[str]] = Query(None, description="Statuses to leave out"),
        include_all: bool = Query(False, alias="all", description="Include DONE and CANCELLED"),
    ):
        """List tickets, the ones needing attention first."""
        try:
            result = server_state.ticket_service.list_tickets(
                project=project,
                status=status,
                excludes=exclude,
                include_all=include_all,
            )
            return GetTicketsResponse(
                tickets=[t.model_dump(mode="json") for t in result["tickets"]],
                total_count=result["total_count"],
            )
        except Exception as e:
            raise _http_error("List tickets", e)

    @router.get("/api/tickets/{ticket_id}")
    async def get_ticket_endpoint(ticket_id: str) -> Dict[str, Any]:
        """Get a ticket by ID or unique ID prefix."""
        try:
            ticket = server_state.ticket_service.get_ticket(ticket_id)
            return {"ticket": ticket.model_dump(mode="json")}
        except Exception as e:
            raise _http_error(f"Get ticket {ticket_id}", e)

    @router.get("/api/tickets/{ticket_id}/dependencies")
    async def get_ticket_dependencies_endpoint(ticket_id: str) -> Dict[str, Any]:
        """Dependencies of a ticket, the unresolved subset, and its dependents."""
        try:
            return server_state.ticket_service.get_dependencies(ticket_id)
        except Exception as e:
            raise _http_error(f"Dependencies of {ticket_id}", e)

    return router
