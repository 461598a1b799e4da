from __future__ import annotations

from typing import Annotated, Any

from fastapi import Depends, HTTPException, Request

from supportdesk.tickets.conversation import ConversationService
from supportdesk.tickets.journal import ActivityJournal
from supportdesk.tickets.service import TicketService
from supportdesk.users.service import UserDirectory


def _configured(request: Request, attribute: str, label: str) -> Any:
    service = getattr(request.app.state, attribute, None)
    if service is None:
        raise HTTPException(status_code=503, detail=f"{label} is not configured")
    return service


async def get_ticket_service(request: Request) -> TicketService:
    return _configured(request, "ticket_service", "Ticket service")


async def get_conversation_service(request: Request) -> ConversationService:
    return _configured(request, "conversation_service", "Conversation service")


async def get_user_directory(request: Request) -> UserDirectory:
    return _configured(request, "user_directory", "User directory")


async def get_activity_journal(request: Request) -> ActivityJournal:
    return _configured(request, "activity_journal", "Activity journal")


TicketServiceDep = Annotated[TicketService, Depends(get_ticket_service)]
ConversationServiceDep = Annotated[ConversationService, Depends(get_conversation_service)]
UserDirectoryDep = Annotated[UserDirectory, Depends(get_user_directory)]
ActivityJournalDep = Annotated[ActivityJournal, Depends(get_activity_journal)]
