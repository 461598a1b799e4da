"""Storage ports shared by the relational and in-memory adapters."""

from __future__ import annotations

from datetime import datetime
from typing import Any, AsyncContextManager, Mapping, Protocol, Sequence

from supportdesk.tickets.models import (
    ActivityLogEntry,
    ActivityLogFilters,
    Message,
    Ticket,
    TicketFilters,
)
from supportdesk.tickets.state import TicketPriority, TicketStatus
from supportdesk.users.models import User, UserChanges


class TicketRepository(Protocol):
    async def allocate_number(self) -> int:
        """Reserve the next ticket sequence value inside the current transaction."""
        ...

    async def latest_number(self) -> str | None:
        ...

    async def add(self, ticket: Ticket) -> Ticket:
        ...

    async def get(self, ticket_id: str) -> Ticket | None:
        ...

    async def list(self, filters: TicketFilters) -> list[Ticket]:
        ...

    async def update_status(
        self,
        ticket_id: str,
        status: TicketStatus,
        updated_at: datetime,
        *,
        closed_at: datetime | None = None,
    ) -> Ticket | None:
        ...

    async def update_priority(
        self, ticket_id: str, priority: TicketPriority, updated_at: datetime
    ) -> Ticket | None:
        ...

    async def mark_first_reply(self, ticket_id: str, replied_at: datetime) -> Ticket | None:
        """Stamp ``first_reply_at`` unless it is already set."""
        ...

    async def update_metadata(
        self, ticket_id: str, metadata: Mapping[str, Any], updated_at: datetime
    ) -> Ticket | None:
        ...

    async def delete(self, ticket_id: str) -> bool:
        ...


class MessageRepository(Protocol):
    async def add(self, message: Message) -> Message:
        ...

    async def get(self, message_id: str) -> Message | None:
        ...

    async def list_for_ticket(self, ticket_id: str) -> list[Message]:
        ...


class ActivityLogRepository(Protocol):
    async def append(self, entry: ActivityLogEntry) -> ActivityLogEntry:
        ...

    async def list(self, filters: ActivityLogFilters) -> list[ActivityLogEntry]:
        ...


class UserRepository(Protocol):
    async def add(self, user: User) -> User:
        ...

    async def get(self, user_id: str) -> User | None:
        ...

    async def get_by_email(self, email: str) -> User | None:
        ...

    async def list(self) -> list[User]:
        ...

    async def count(self) -> int:
        ...

    async def update(self, user_id: str, changes: UserChanges) -> User | None:
        ...


class StoreSession(Protocol):
    """Repositories bound to a single store transaction."""

    tickets: TicketRepository
    messages: MessageRepository
    activity: ActivityLogRepository
    users: UserRepository

    def savepoint(self) -> AsyncContextManager[None]:
        """Nested scope whose writes are discarded alone when it raises."""
        ...


class Store(Protocol):
    def transaction(self) -> AsyncContextManager[StoreSession]:
        """Open a transaction; it commits on exit and rolls back on error."""
        ...


def sort_newest_first(items: Sequence[Any]) -> list[Any]:
    """Order records by ``created_at`` descending, later insertions first on ties."""

    indexed = list(enumerate(items))
    indexed.sort(key=lambda pair: (pair[1].created_at, pair[0]), reverse=True)
    return [item for _, item in indexed]
