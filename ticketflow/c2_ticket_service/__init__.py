"""C2 Ticket Service - workflow operations over the ticket store."""
from ticketflow.c2_ticket_service.ticket_service import TicketService
__all__ = ["TicketService"]
