from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Mapping

from supportdesk.errors import TicketNotFoundError, TicketNumberConflictError, UserNotFoundError

from .journal import SYSTEM_ACTOR, ActivityAction, ActivityJournal, JournalPolicies
from .models import Message, NewTicket, Ticket, TicketDetail, TicketFilters
from .numbering import DEFAULT_PREFIX, DEFAULT_WIDTH, format_ticket_number
from .state import AuthorType, TicketPriority, TicketStateMachine, TicketStatus

if TYPE_CHECKING:
    from supportdesk.storage.base import Store

logger = logging.getLogger(__name__)


class TicketService:
    """High level orchestration for ticket lifecycle operations.

    Each operation runs in one store transaction, so the ticket row, the
    optional initial message and the journal entry are written together.
    """

    def __init__(
        self,
        store: Store,
        *,
        journal: ActivityJournal | None = None,
        state_machine: TicketStateMachine | None = None,
        policies: JournalPolicies | None = None,
        number_prefix: str = DEFAULT_PREFIX,
        number_width: int = DEFAULT_WIDTH,
        max_number_attempts: int = 3,
    ) -> None:
        self._store = store
        self._journal = journal or ActivityJournal(store)
        self._state_machine = state_machine or TicketStateMachine()
        self._policies = policies or JournalPolicies()
        self._number_prefix = number_prefix
        self._number_width = number_width
        self._max_number_attempts = max(1, max_number_attempts)

    async def create_ticket(self, data: NewTicket, initial_message: str | None = None) -> Ticket:
        attempt = 1
        while True:
            try:
                ticket = await self._create_once(data, initial_message)
            except TicketNumberConflictError:
                if attempt >= self._max_number_attempts:
                    raise
                logger.warning(
                    "Ticket number collision (attempt %d of %d); retrying",
                    attempt,
                    self._max_number_attempts,
                )
                attempt += 1
                continue
            logger.info("Created ticket %s via %s", ticket.ticket_number, ticket.channel)
            return ticket

    async def _create_once(self, data: NewTicket, initial_message: str | None) -> Ticket:
        now = datetime.now(timezone.utc)
        async with self._store.transaction() as session:
            if data.assignee_id is not None and await session.users.get(data.assignee_id) is None:
                raise UserNotFoundError(f"Assignee {data.assignee_id} not found")
            sequence = await session.tickets.allocate_number()
            ticket = Ticket(
                id=str(uuid.uuid4()),
                ticket_number=format_ticket_number(sequence, prefix=self._number_prefix, width=self._number_width),
                subject=data.subject,
                status=self._state_machine.initial_state(),
                priority=data.priority,
                channel=data.channel,
                customer_name=data.customer_name,
                customer_email=data.customer_email,
                customer_phone=data.customer_phone,
                assignee_id=data.assignee_id,
                created_at=now,
                updated_at=now,
                metadata=dict(data.metadata) if data.metadata is not None else None,
            )
            await session.tickets.add(ticket)

            if initial_message:
                await session.messages.add(
                    Message(
                        id=str(uuid.uuid4()),
                        ticket_id=ticket.id,
                        text=initial_message,
                        author_type=AuthorType.CUSTOMER,
                        author_name=data.customer_name,
                        author_id=None,
                        attachments=None,
                        created_at=now,
                    )
                )

            await self._journal.record(
                session,
                ticket_id=ticket.id,
                actor=SYSTEM_ACTOR,
                actor_id=None,
                action=ActivityAction.CREATED,
                entity=ticket.entity,
                metadata={"channel": data.channel},
                policy=self._policies.create,
                created_at=now,
            )
        return ticket

    async def list_tickets(self, filters: TicketFilters | None = None) -> list[Ticket]:
        async with self._store.transaction() as session:
            return await session.tickets.list(filters or TicketFilters())

    async def get_ticket(self, ticket_id: str) -> TicketDetail:
        async with self._store.transaction() as session:
            ticket = await session.tickets.get(ticket_id)
            if ticket is None:
                raise TicketNotFoundError(f"Ticket {ticket_id} not found")
            messages = await session.messages.list_for_ticket(ticket_id)
        return TicketDetail(ticket=ticket, messages=messages)

    async def update_status(
        self,
        ticket_id: str,
        new_status: TicketStatus,
        actor_name: str,
        actor_id: str | None = None,
    ) -> Ticket:
        async with self._store.transaction() as session:
            ticket = await session.tickets.get(ticket_id)
            if ticket is None:
                raise TicketNotFoundError(f"Ticket {ticket_id} not found")
            self._state_machine.assert_transition(ticket.status, new_status)

            now = datetime.now(timezone.utc)
            closed_at = now if self._state_machine.stamps_closed_at(new_status) else None
            updated = await session.tickets.update_status(ticket_id, new_status, now, closed_at=closed_at)
            if updated is None:
                raise TicketNotFoundError(f"Ticket {ticket_id} not found")

            await self._journal.record(
                session,
                ticket_id=ticket.id,
                actor=actor_name,
                actor_id=actor_id,
                action=ActivityAction.STATUS_CHANGED,
                entity=ticket.entity,
                metadata={"oldStatus": ticket.status.value, "newStatus": new_status.value},
                policy=self._policies.status,
                created_at=now,
            )
        logger.info("Ticket %s status %s -> %s by %s", ticket.ticket_number, ticket.status.value, new_status.value, actor_name)
        return updated

    async def update_priority(
        self,
        ticket_id: str,
        new_priority: TicketPriority,
        actor_name: str,
        actor_id: str | None = None,
    ) -> Ticket:
        async with self._store.transaction() as session:
            ticket = await session.tickets.get(ticket_id)
            if ticket is None:
                raise TicketNotFoundError(f"Ticket {ticket_id} not found")

            now = datetime.now(timezone.utc)
            updated = await session.tickets.update_priority(ticket_id, new_priority, now)
            if updated is None:
                raise TicketNotFoundError(f"Ticket {ticket_id} not found")

            await self._journal.record(
                session,
                ticket_id=ticket.id,
                actor=actor_name,
                actor_id=actor_id,
                action=ActivityAction.PRIORITY_CHANGED,
                entity=ticket.entity,
                metadata={"oldPriority": ticket.priority.value, "newPriority": new_priority.value},
                policy=self._policies.priority,
                created_at=now,
            )
        return updated

    async def update_metadata(
        self,
        ticket_id: str,
        patch: Mapping[str, Any],
        actor_name: str,
        actor_id: str | None = None,
    ) -> Ticket:
        """Shallow-merge ``patch`` into the ticket's metadata."""

        async with self._store.transaction() as session:
            ticket = await session.tickets.get(ticket_id)
            if ticket is None:
                raise TicketNotFoundError(f"Ticket {ticket_id} not found")

            now = datetime.now(timezone.utc)
            merged = {**(ticket.metadata or {}), **patch}
            updated = await session.tickets.update_metadata(ticket_id, merged, now)
            if updated is None:
                raise TicketNotFoundError(f"Ticket {ticket_id} not found")

            await self._journal.record(
                session,
                ticket_id=ticket.id,
                actor=actor_name,
                actor_id=actor_id,
                action=ActivityAction.METADATA_UPDATED,
                entity=ticket.entity,
                metadata={"keys": sorted(patch)},
                policy=self._policies.metadata,
                created_at=now,
            )
        return updated
