from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Sequence

from .state import AuthorType, TicketPriority, TicketStatus


@dataclass(slots=True)
class Ticket:
    """Aggregate representing a support ticket entry."""

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
    closed_at: datetime | None = None
    first_reply_at: datetime | None = None
    metadata: Mapping[str, Any] | None = None

    @property
    def entity(self) -> str:
        """Label used for activity journal entries about this ticket."""

        return f"#{self.ticket_number}"


@dataclass(slots=True)
class NewTicket:
    """Caller supplied fields for a ticket that does not exist yet."""

    subject: str
    customer_name: str
    priority: TicketPriority = TicketPriority.MEDIUM
    channel: str = "web"
    customer_email: str | None = None
    customer_phone: str | None = None
    assignee_id: str | None = None
    metadata: Mapping[str, Any] | None = None


@dataclass(slots=True, frozen=True)
class Attachment:
    name: str
    url: str


@dataclass(slots=True)
class Message:
    """Individual message belonging to a ticket."""

    id: str
    ticket_id: str
    text: str
    author_type: AuthorType
    author_name: str | None
    author_id: str | None
    attachments: Sequence[Attachment] | None
    created_at: datetime


@dataclass(slots=True)
class ActivityLogEntry:
    """Journal entry describing one action taken on a ticket or user."""

    id: str
    ticket_id: str | None
    actor: str
    actor_id: str | None
    action: str
    entity: str
    metadata: Mapping[str, Any] | None
    created_at: datetime


@dataclass(slots=True)
class TicketDetail:
    """Ticket together with its conversation, oldest message first."""

    ticket: Ticket
    messages: Sequence[Message]


@dataclass(slots=True)
class TicketFilters:
    status: TicketStatus | None = None
    priority: TicketPriority | None = None
    assignee_id: str | None = None
    channel: str | None = None


@dataclass(slots=True)
class ActivityLogFilters:
    ticket_id: str | None = None
    actor_id: str | None = None
    action: str | None = None
    limit: int | None = None
