import logging
from unittest.mock import AsyncMock

import pytest

from supportdesk.errors import InvalidReferenceError
from supportdesk.storage.memory import InMemoryActivityLogRepository
from supportdesk.tickets.journal import ActivityAction, ActivityLogPolicy
from supportdesk.tickets.models import ActivityLogFilters
from supportdesk.tickets.state import TicketPriority, TicketStatus
from supportdesk.users.models import NewUser


@pytest.mark.asyncio
async def test_record_fatal_appends_entry(store, directory, journal):
    await directory.create_user(NewUser(email="ana@example.com", name="Ana"), user_id="user-1")
    async with store.transaction() as session:
        entry = await journal.record(
            session,
            ticket_id=None,
            actor="Ana",
            actor_id="user-1",
            action=ActivityAction.ADMIN_BOOTSTRAPPED,
            entity="ana@example.com",
            metadata={"role": "admin"},
        )

    assert entry is not None
    assert await journal.query() == [entry]


@pytest.mark.asyncio
async def test_best_effort_failure_is_logged_and_swallowed(store, journal, monkeypatch, caplog):
    monkeypatch.setattr(InMemoryActivityLogRepository, "append", AsyncMock(side_effect=RuntimeError("boom")))

    with caplog.at_level(logging.ERROR, logger="supportdesk.tickets.journal"):
        async with store.transaction() as session:
            entry = await journal.record(
                session,
                ticket_id="t-1",
                actor="Ana",
                actor_id=None,
                action=ActivityAction.PRIORITY_CHANGED,
                entity="#TK-001",
                policy=ActivityLogPolicy.BEST_EFFORT,
            )

    assert entry is None
    assert "Failed to persist activity log entry" in caplog.text


@pytest.mark.asyncio
async def test_fatal_failure_propagates(store, journal, monkeypatch):
    monkeypatch.setattr(InMemoryActivityLogRepository, "append", AsyncMock(side_effect=RuntimeError("boom")))

    with pytest.raises(RuntimeError):
        async with store.transaction() as session:
            await journal.record(
                session,
                ticket_id="t-1",
                actor="Ana",
                actor_id=None,
                action=ActivityAction.STATUS_CHANGED,
                entity="#TK-001",
            )


@pytest.mark.asyncio
async def test_query_filters_newest_first_with_limit(ticket_service, directory, journal, new_ticket):
    await directory.create_user(NewUser(email="maria@example.com", name="Maria"), user_id="user-maria")
    await directory.create_user(NewUser(email="carlos@example.com", name="Carlos"), user_id="user-carlos")
    first = await ticket_service.create_ticket(new_ticket())
    second = await ticket_service.create_ticket(new_ticket(subject="Battery"))
    await ticket_service.update_status(first.id, TicketStatus.CLOSED, actor_name="Maria", actor_id="user-maria")
    await ticket_service.update_priority(second.id, TicketPriority.LOW, actor_name="Carlos", actor_id="user-carlos")
    await ticket_service.update_status(second.id, TicketStatus.PENDING_CUSTOMER, actor_name="Maria", actor_id="user-maria")

    everything = await journal.query()
    assert [entry.entity for entry in everything] == ["#TK-002", "#TK-002", "#TK-001", "#TK-002", "#TK-001"]

    by_actor = await journal.query(ActivityLogFilters(actor_id="user-maria"))
    assert [entry.entity for entry in by_actor] == ["#TK-002", "#TK-001"]

    by_action = await journal.query(ActivityLogFilters(action=ActivityAction.CREATED.value))
    assert [entry.ticket_id for entry in by_action] == [second.id, first.id]

    limited = await journal.query(ActivityLogFilters(limit=2))
    assert limited == everything[:2]

    for_first = await journal.for_ticket(first.id, limit=1)
    assert len(for_first) == 1
    assert for_first[0].metadata == {"oldStatus": "open", "newStatus": "closed"}


@pytest.mark.asyncio
async def test_record_rejects_unknown_references(store, journal):
    with pytest.raises(InvalidReferenceError):
        async with store.transaction() as session:
            await journal.record(
                session,
                ticket_id=None,
                actor="Ghost",
                actor_id="no-such-user",
                action=ActivityAction.STATUS_CHANGED,
                entity="#TK-001",
            )
    with pytest.raises(InvalidReferenceError):
        async with store.transaction() as session:
            await journal.record(
                session,
                ticket_id="no-such-ticket",
                actor="System",
                actor_id=None,
                action=ActivityAction.CREATED,
                entity="#TK-001",
            )

    assert await journal.query() == []
