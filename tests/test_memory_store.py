from datetime import datetime, timedelta, timezone

import pytest

from supportdesk.errors import (
    ConflictError,
    EmailAlreadyExistsError,
    InvalidReferenceError,
    TicketNumberConflictError,
)
from supportdesk.storage.memory import InMemoryStore
from supportdesk.tickets.models import ActivityLogEntry, ActivityLogFilters, Message, Ticket
from supportdesk.tickets.state import AuthorType, TicketPriority, TicketStatus
from supportdesk.users.models import Role, User, UserChanges

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _ticket(ticket_id: str, number: str, *, offset: int = 0) -> Ticket:
    created = NOW + timedelta(minutes=offset)
    return Ticket(
        id=ticket_id,
        ticket_number=number,
        subject="Screen repair",
        status=TicketStatus.OPEN,
        priority=TicketPriority.MEDIUM,
        channel="web",
        customer_name="J. Doe",
        customer_email=None,
        customer_phone=None,
        assignee_id=None,
        created_at=created,
        updated_at=created,
    )


def _user(user_id: str, email: str) -> User:
    return User(id=user_id, email=email, name=email.split("@")[0], role=Role.AGENT, created_at=NOW)


@pytest.mark.asyncio
async def test_transaction_rolls_back_every_table_on_error():
    store = InMemoryStore()

    with pytest.raises(RuntimeError):
        async with store.transaction() as session:
            await session.tickets.allocate_number()
            await session.tickets.add(_ticket("t-1", "TK-001"))
            await session.users.add(_user("u-1", "maria@example.com"))
            raise RuntimeError("abort")

    async with store.transaction() as session:
        assert await session.tickets.get("t-1") is None
        assert await session.users.count() == 0
        assert await session.tickets.allocate_number() == 1


@pytest.mark.asyncio
async def test_savepoint_only_undoes_inner_writes():
    store = InMemoryStore()

    async with store.transaction() as session:
        await session.tickets.add(_ticket("t-1", "TK-001"))
        with pytest.raises(RuntimeError):
            async with session.savepoint():
                await session.activity.append(
                    ActivityLogEntry(
                        id="a-1",
                        ticket_id="t-1",
                        actor="System",
                        actor_id=None,
                        action="created the ticket",
                        entity="#TK-001",
                        metadata=None,
                        created_at=NOW,
                    )
                )
                raise RuntimeError("inner")

    async with store.transaction() as session:
        assert await session.tickets.get("t-1") is not None
        assert await session.activity.list(ActivityLogFilters()) == []


@pytest.mark.asyncio
async def test_counter_seeds_from_latest_ticket_number():
    store = InMemoryStore()
    async with store.transaction() as session:
        await session.tickets.add(_ticket("t-1", "TK-004", offset=0))
        await session.tickets.add(_ticket("t-2", "TK-009", offset=5))

        assert await session.tickets.latest_number() == "TK-009"
        assert await session.tickets.allocate_number() == 10
        assert await session.tickets.allocate_number() == 11


@pytest.mark.asyncio
async def test_duplicate_ticket_number_conflicts():
    store = InMemoryStore()
    async with store.transaction() as session:
        await session.tickets.add(_ticket("t-1", "TK-001"))
        with pytest.raises(TicketNumberConflictError):
            await session.tickets.add(_ticket("t-2", "TK-001"))


@pytest.mark.asyncio
async def test_message_requires_existing_ticket():
    store = InMemoryStore()
    async with store.transaction() as session:
        with pytest.raises(InvalidReferenceError):
            await session.messages.add(
                Message(
                    id="m-1",
                    ticket_id="missing",
                    text="hello",
                    author_type=AuthorType.CUSTOMER,
                    author_name=None,
                    author_id=None,
                    attachments=None,
                    created_at=NOW,
                )
            )


@pytest.mark.asyncio
async def test_delete_ticket_cascades():
    store = InMemoryStore()
    async with store.transaction() as session:
        await session.tickets.add(_ticket("t-1", "TK-001"))
        await session.messages.add(
            Message(
                id="m-1",
                ticket_id="t-1",
                text="hello",
                author_type=AuthorType.CUSTOMER,
                author_name="J. Doe",
                author_id=None,
                attachments=None,
                created_at=NOW,
            )
        )

        assert await session.tickets.delete("t-1") is True
        assert await session.tickets.delete("t-1") is False
        assert await session.messages.list_for_ticket("t-1") == []


@pytest.mark.asyncio
async def test_user_email_uniqueness():
    store = InMemoryStore()
    async with store.transaction() as session:
        await session.users.add(_user("u-1", "maria@example.com"))
        await session.users.add(_user("u-2", "carlos@example.com"))

        with pytest.raises(EmailAlreadyExistsError):
            await session.users.add(_user("u-3", "maria@example.com"))
        with pytest.raises(ConflictError):
            await session.users.add(_user("u-1", "other@example.com"))
        with pytest.raises(EmailAlreadyExistsError):
            await session.users.update("u-2", UserChanges(email="maria@example.com"))

        updated = await session.users.update("u-2", UserChanges(role=Role.ADMIN))
        assert updated.role == Role.ADMIN
        assert updated.email == "carlos@example.com"
