"""Ticket lifecycle, conversation and activity journal."""

from .conversation import ConversationService
from .journal import ActivityAction, ActivityJournal, ActivityLogPolicy, JournalPolicies
from .models import (
    ActivityLogEntry,
    ActivityLogFilters,
    Attachment,
    Message,
    NewTicket,
    Ticket,
    TicketDetail,
    TicketFilters,
)
from .service import TicketService
from .state import AuthorType, TicketPriority, TicketStateMachine, TicketStatus

__all__ = [
    "ActivityAction",
    "ActivityJournal",
    "ActivityLogEntry",
    "ActivityLogFilters",
    "ActivityLogPolicy",
    "Attachment",
    "AuthorType",
    "ConversationService",
    "JournalPolicies",
    "Message",
    "NewTicket",
    "Ticket",
    "TicketDetail",
    "TicketFilters",
    "TicketPriority",
    "TicketService",
    "TicketStateMachine",
    "TicketStatus",
]
