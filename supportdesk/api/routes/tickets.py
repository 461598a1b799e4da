from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field

from supportdesk.api.routes.activity import ActivityEntryResponse, to_activity_response
from supportdesk.dependencies.auth import CurrentIdentity
from supportdesk.dependencies.services import (
    ActivityJournalDep,
    ConversationServiceDep,
    TicketServiceDep,
    UserDirectoryDep,
)
from supportdesk.errors import ConflictError, InvalidTicketTransitionError, TicketNotFoundError, UserNotFoundError
from supportdesk.tickets.models import Attachment, Message, NewTicket, Ticket, TicketFilters
from supportdesk.tickets.state import AuthorType, TicketPriority, TicketStatus
from supportdesk.users.models import Identity
from supportdesk.users.service import UserDirectory

router = APIRouter(prefix="/tickets", tags=["tickets"])


class AttachmentModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)


class TicketCreateRequest(BaseModel):
    subject: str = Field(..., min_length=1)
    customer_name: str = Field(..., min_length=1)
    customer_email: str | None = None
    customer_phone: str | None = None
    priority: TicketPriority = TicketPriority.MEDIUM
    channel: str = Field(default="web", min_length=1)
    assignee_id: str | None = None
    metadata: dict[str, Any] | None = None
    initial_message: str | None = None

    def to_new_ticket(self) -> NewTicket:
        return NewTicket(
            subject=self.subject,
            customer_name=self.customer_name,
            priority=self.priority,
            channel=self.channel,
            customer_email=self.customer_email,
            customer_phone=self.customer_phone,
            assignee_id=self.assignee_id,
            metadata=self.metadata,
        )


class MessageCreateRequest(BaseModel):
    text: str = Field(..., min_length=1)
    author_type: AuthorType
    author_name: str | None = None
    author_id: str | None = None
    attachments: list[AttachmentModel] | None = None


class TicketStatusChangeRequest(BaseModel):
    status: TicketStatus
    actor_name: str = Field(..., min_length=1)
    actor_id: str | None = None


class TicketPriorityChangeRequest(BaseModel):
    priority: TicketPriority
    actor_name: str = Field(..., min_length=1)
    actor_id: str | None = None


class TicketMetadataPatchRequest(BaseModel):
    metadata: dict[str, Any] = Field(..., min_length=1)
    actor_name: str = Field(..., min_length=1)
    actor_id: str | None = None


class TicketResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    ticket_number: str
    subject: str
    status: TicketStatus
    priority: TicketPriority
    channel: str
    customer_name: str
    customer_email: str | None
    customer_phone: str | None
    assignee_id: str | None
    created_at: datetime
    updated_at: datetime
    closed_at: datetime | None
    first_reply_at: datetime | None
    metadata: dict[str, Any] | None


class MessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    ticket_id: str
    text: str
    author_type: AuthorType
    author_name: str | None
    author_id: str | None
    attachments: list[AttachmentModel] | None
    created_at: datetime


class TicketDetailResponse(BaseModel):
    ticket: TicketResponse
    messages: list[MessageResponse]


def _to_response(ticket: Ticket) -> TicketResponse:
    return TicketResponse.model_validate(ticket)


def _to_message_response(message: Message) -> MessageResponse:
    return MessageResponse.model_validate(message)


async def _actor_id(explicit: str | None, identity: Identity | None, directory: UserDirectory) -> str | None:
    """Explicit id first, then the caller when the directory holds an account for them."""

    if explicit:
        return explicit
    if identity is None:
        return None
    user = await directory.find_user(identity.id)
    return user.id if user is not None else None


@router.get("", response_model=list[TicketResponse])
async def list_tickets(
    service: TicketServiceDep,
    status_filter: TicketStatus | None = Query(default=None, alias="status"),
    priority: TicketPriority | None = Query(default=None),
    assignee_id: str | None = Query(default=None),
    channel: str | None = Query(default=None),
) -> list[TicketResponse]:
    tickets = await service.list_tickets(
        TicketFilters(status=status_filter, priority=priority, assignee_id=assignee_id, channel=channel)
    )
    return [_to_response(ticket) for ticket in tickets]


@router.post("", response_model=TicketResponse, status_code=status.HTTP_201_CREATED)
async def create_ticket(payload: TicketCreateRequest, service: TicketServiceDep) -> TicketResponse:
    try:
        ticket = await service.create_ticket(payload.to_new_ticket(), payload.initial_message)
    except UserNotFoundError as exc:
        raise HTTPException(status_code=400, detail=exc.code) from exc
    except ConflictError as exc:
        raise HTTPException(status_code=409, detail=exc.code) from exc
    return _to_response(ticket)


@router.get("/{ticket_id}", response_model=TicketDetailResponse)
async def get_ticket(ticket_id: str, service: TicketServiceDep) -> TicketDetailResponse:
    try:
        detail = await service.get_ticket(ticket_id)
    except TicketNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return TicketDetailResponse(
        ticket=_to_response(detail.ticket),
        messages=[_to_message_response(message) for message in detail.messages],
    )


@router.post("/{ticket_id}/messages", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def add_message(
    ticket_id: str,
    payload: MessageCreateRequest,
    service: ConversationServiceDep,
    identity: CurrentIdentity,
    directory: UserDirectoryDep,
) -> MessageResponse:
    attachments = (
        [Attachment(name=item.name, url=item.url) for item in payload.attachments]
        if payload.attachments is not None
        else None
    )
    try:
        message = await service.add_message(
            ticket_id,
            payload.text,
            payload.author_type,
            author_name=payload.author_name,
            author_id=await _actor_id(payload.author_id, identity, directory),
            attachments=attachments,
        )
    except TicketNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ConflictError as exc:
        raise HTTPException(status_code=409, detail=exc.code) from exc
    return _to_message_response(message)


@router.patch("/{ticket_id}/status", response_model=TicketResponse)
async def change_ticket_status(
    ticket_id: str,
    payload: TicketStatusChangeRequest,
    service: TicketServiceDep,
    identity: CurrentIdentity,
    directory: UserDirectoryDep,
) -> TicketResponse:
    try:
        ticket = await service.update_status(
            ticket_id,
            payload.status,
            payload.actor_name,
            await _actor_id(payload.actor_id, identity, directory),
        )
    except TicketNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ConflictError as exc:
        raise HTTPException(status_code=409, detail=exc.code) from exc
    except InvalidTicketTransitionError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return _to_response(ticket)


@router.patch("/{ticket_id}/priority", response_model=TicketResponse)
async def change_ticket_priority(
    ticket_id: str,
    payload: TicketPriorityChangeRequest,
    service: TicketServiceDep,
    identity: CurrentIdentity,
    directory: UserDirectoryDep,
) -> TicketResponse:
    try:
        ticket = await service.update_priority(
            ticket_id,
            payload.priority,
            payload.actor_name,
            await _actor_id(payload.actor_id, identity, directory),
        )
    except TicketNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ConflictError as exc:
        raise HTTPException(status_code=409, detail=exc.code) from exc
    return _to_response(ticket)


@router.patch("/{ticket_id}/metadata", response_model=TicketResponse)
async def patch_ticket_metadata(
    ticket_id: str,
    payload: TicketMetadataPatchRequest,
    service: TicketServiceDep,
    identity: CurrentIdentity,
    directory: UserDirectoryDep,
) -> TicketResponse:
    try:
        ticket = await service.update_metadata(
            ticket_id,
            payload.metadata,
            payload.actor_name,
            await _actor_id(payload.actor_id, identity, directory),
        )
    except TicketNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ConflictError as exc:
        raise HTTPException(status_code=409, detail=exc.code) from exc
    return _to_response(ticket)


@router.get("/{ticket_id}/activity", response_model=list[ActivityEntryResponse])
async def get_ticket_activity(
    ticket_id: str,
    journal: ActivityJournalDep,
    limit: int | None = Query(default=None, ge=1, le=500),
) -> list[ActivityEntryResponse]:
    entries = await journal.for_ticket(ticket_id, limit=limit)
    return [to_activity_response(entry) for entry in entries]
