"""Non-durable store used for tests and demos.

Transactions are serialised with an ``asyncio.Lock`` and every table is
snapshotted when a transaction (or savepoint) opens, so a failure restores
the previous contents exactly like a relational rollback would.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, AsyncIterator, Mapping

from supportdesk.errors import (
    ConflictError,
    EmailAlreadyExistsError,
    InvalidReferenceError,
    TicketNumberConflictError,
)
from supportdesk.tickets.models import (
    ActivityLogEntry,
    ActivityLogFilters,
    Message,
    Ticket,
    TicketFilters,
)
from supportdesk.tickets.numbering import next_sequence_value
from supportdesk.tickets.state import TicketPriority, TicketStatus
from supportdesk.users.models import User, UserChanges

from .base import sort_newest_first

TICKET_COUNTER = "ticket_number"


@dataclass(slots=True)
class _Tables:
    tickets: dict[str, Ticket] = field(default_factory=dict)
    messages: dict[str, Message] = field(default_factory=dict)
    activity: list[ActivityLogEntry] = field(default_factory=list)
    users: dict[str, User] = field(default_factory=dict)
    counters: dict[str, int] = field(default_factory=dict)

    def snapshot(self) -> _Tables:
        return _Tables(
            tickets=dict(self.tickets),
            messages=dict(self.messages),
            activity=list(self.activity),
            users=dict(self.users),
            counters=dict(self.counters),
        )

    def restore(self, snapshot: _Tables) -> None:
        self.tickets = snapshot.tickets
        self.messages = snapshot.messages
        self.activity = snapshot.activity
        self.users = snapshot.users
        self.counters = snapshot.counters

    def check_references(self, *, ticket_id: str | None = None, user_id: str | None = None) -> None:
        """Reject writes whose ticket or user reference has no row, like the SQL foreign keys."""

        if ticket_id is not None and ticket_id not in self.tickets:
            raise InvalidReferenceError(f"Unknown ticket {ticket_id}")
        if user_id is not None and user_id not in self.users:
            raise InvalidReferenceError(f"Unknown user {user_id}")


class InMemoryTicketRepository:
    def __init__(self, tables: _Tables) -> None:
        self._tables = tables

    async def allocate_number(self) -> int:
        current = self._tables.counters.get(TICKET_COUNTER)
        if current is None:
            value = next_sequence_value(await self.latest_number())
        else:
            value = current + 1
        self._tables.counters[TICKET_COUNTER] = value
        return value

    async def latest_number(self) -> str | None:
        ordered = sort_newest_first(list(self._tables.tickets.values()))
        return ordered[0].ticket_number if ordered else None

    async def add(self, ticket: Ticket) -> Ticket:
        if any(existing.ticket_number == ticket.ticket_number for existing in self._tables.tickets.values()):
            raise TicketNumberConflictError(f"Ticket number {ticket.ticket_number} already exists")
        if ticket.id in self._tables.tickets:
            raise ConflictError(f"Ticket {ticket.id} already exists")
        self._tables.check_references(user_id=ticket.assignee_id)
        self._tables.tickets[ticket.id] = ticket
        return ticket

    async def get(self, ticket_id: str) -> Ticket | None:
        return self._tables.tickets.get(ticket_id)

    async def list(self, filters: TicketFilters) -> list[Ticket]:
        results = [ticket for ticket in self._tables.tickets.values() if _matches(ticket, filters)]
        return sort_newest_first(results)

    async def update_status(
        self,
        ticket_id: str,
        status: TicketStatus,
        updated_at: datetime,
        *,
        closed_at: datetime | None = None,
    ) -> Ticket | None:
        changes: dict[str, Any] = {"status": status, "updated_at": updated_at}
        if closed_at is not None:
            changes["closed_at"] = closed_at
        return self._replace(ticket_id, **changes)

    async def update_priority(
        self, ticket_id: str, priority: TicketPriority, updated_at: datetime
    ) -> Ticket | None:
        return self._replace(ticket_id, priority=priority, updated_at=updated_at)

    async def mark_first_reply(self, ticket_id: str, replied_at: datetime) -> Ticket | None:
        ticket = self._tables.tickets.get(ticket_id)
        if ticket is None or ticket.first_reply_at is not None:
            return ticket
        return self._replace(ticket_id, first_reply_at=replied_at, updated_at=replied_at)

    async def update_metadata(
        self, ticket_id: str, metadata: Mapping[str, Any], updated_at: datetime
    ) -> Ticket | None:
        return self._replace(ticket_id, metadata=dict(metadata), updated_at=updated_at)

    async def delete(self, ticket_id: str) -> bool:
        if self._tables.tickets.pop(ticket_id, None) is None:
            return False
        self._tables.messages = {
            key: message for key, message in self._tables.messages.items() if message.ticket_id != ticket_id
        }
        self._tables.activity = [entry for entry in self._tables.activity if entry.ticket_id != ticket_id]
        return True

    def _replace(self, ticket_id: str, **changes: Any) -> Ticket | None:
        ticket = self._tables.tickets.get(ticket_id)
        if ticket is None:
            return None
        updated = replace(ticket, **changes)
        self._tables.tickets[ticket_id] = updated
        return updated


def _matches(ticket: Ticket, filters: TicketFilters) -> bool:
    if filters.status is not None and ticket.status != filters.status:
        return False
    if filters.priority is not None and ticket.priority != filters.priority:
        return False
    if filters.assignee_id is not None and ticket.assignee_id != filters.assignee_id:
        return False
    if filters.channel is not None and ticket.channel != filters.channel:
        return False
    return True


class InMemoryMessageRepository:
    def __init__(self, tables: _Tables) -> None:
        self._tables = tables

    async def add(self, message: Message) -> Message:
        self._tables.check_references(ticket_id=message.ticket_id, user_id=message.author_id)
        self._tables.messages[message.id] = message
        return message

    async def get(self, message_id: str) -> Message | None:
        return self._tables.messages.get(message_id)

    async def list_for_ticket(self, ticket_id: str) -> list[Message]:
        messages = [message for message in self._tables.messages.values() if message.ticket_id == ticket_id]
        return list(reversed(sort_newest_first(messages)))


class InMemoryActivityLogRepository:
    def __init__(self, tables: _Tables) -> None:
        self._tables = tables

    async def append(self, entry: ActivityLogEntry) -> ActivityLogEntry:
        self._tables.check_references(ticket_id=entry.ticket_id, user_id=entry.actor_id)
        self._tables.activity.append(entry)
        return entry

    async def list(self, filters: ActivityLogFilters) -> list[ActivityLogEntry]:
        entries = [
            entry
            for entry in self._tables.activity
            if (filters.ticket_id is None or entry.ticket_id == filters.ticket_id)
            and (filters.actor_id is None or entry.actor_id == filters.actor_id)
            and (filters.action is None or entry.action == filters.action)
        ]
        ordered = sort_newest_first(entries)
        if filters.limit is not None:
            ordered = ordered[: filters.limit]
        return ordered


class InMemoryUserRepository:
    def __init__(self, tables: _Tables) -> None:
        self._tables = tables

    async def add(self, user: User) -> User:
        if user.id in self._tables.users:
            raise ConflictError(f"User {user.id} already exists")
        if await self.get_by_email(user.email) is not None:
            raise EmailAlreadyExistsError(f"Email {user.email} already exists")
        self._tables.users[user.id] = user
        return user

    async def get(self, user_id: str) -> User | None:
        return self._tables.users.get(user_id)

    async def get_by_email(self, email: str) -> User | None:
        for user in self._tables.users.values():
            if user.email == email:
                return user
        return None

    async def list(self) -> list[User]:
        return list(self._tables.users.values())

    async def count(self) -> int:
        return len(self._tables.users)

    async def update(self, user_id: str, changes: UserChanges) -> User | None:
        user = self._tables.users.get(user_id)
        if user is None:
            return None
        if changes.email is not None:
            owner = await self.get_by_email(changes.email)
            if owner is not None and owner.id != user_id:
                raise EmailAlreadyExistsError(f"Email {changes.email} already exists")
        updated = replace(
            user,
            email=changes.email if changes.email is not None else user.email,
            name=changes.name if changes.name is not None else user.name,
            role=changes.role if changes.role is not None else user.role,
        )
        self._tables.users[user_id] = updated
        return updated


class InMemoryStoreSession:
    def __init__(self, tables: _Tables) -> None:
        self._tables = tables
        self.tickets = InMemoryTicketRepository(tables)
        self.messages = InMemoryMessageRepository(tables)
        self.activity = InMemoryActivityLogRepository(tables)
        self.users = InMemoryUserRepository(tables)

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[None]:
        snapshot = self._tables.snapshot()
        try:
            yield
        except BaseException:
            self._tables.restore(snapshot)
            raise


class InMemoryStore:
    """Store keeping every table in process memory."""

    def __init__(self) -> None:
        self._tables = _Tables()
        self._lock = asyncio.Lock()

    async def ensure_schema(self) -> None:
        return None

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[InMemoryStoreSession]:
        async with self._lock:
            snapshot = self._tables.snapshot()
            try:
                yield InMemoryStoreSession(self._tables)
            except BaseException:
                self._tables.restore(snapshot)
                raise

    async def close(self) -> None:
        return None
