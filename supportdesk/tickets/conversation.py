from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Sequence

from supportdesk.errors import TicketNotFoundError

from .journal import ActivityAction, ActivityJournal, JournalPolicies
from .models import Attachment, Message
from .state import AuthorType

if TYPE_CHECKING:
    from supportdesk.storage.base import Store

logger = logging.getLogger(__name__)

DEFAULT_REPLY_ACTOR = "User"


class ConversationService:
    """Append messages to a ticket's conversation thread."""

    def __init__(
        self,
        store: Store,
        *,
        journal: ActivityJournal | None = None,
        policies: JournalPolicies | None = None,
    ) -> None:
        self._store = store
        self._journal = journal or ActivityJournal(store)
        self._policies = policies or JournalPolicies()

    async def add_message(
        self,
        ticket_id: str,
        text: str,
        author_type: AuthorType,
        author_name: str | None = None,
        author_id: str | None = None,
        attachments: Sequence[Attachment] | None = None,
    ) -> Message:
        async with self._store.transaction() as session:
            ticket = await session.tickets.get(ticket_id)
            if ticket is None:
                raise TicketNotFoundError(f"Ticket {ticket_id} not found")

            now = datetime.now(timezone.utc)
            message = await session.messages.add(
                Message(
                    id=str(uuid.uuid4()),
                    ticket_id=ticket.id,
                    text=text,
                    author_type=author_type,
                    author_name=author_name,
                    author_id=author_id,
                    attachments=list(attachments) if attachments is not None else None,
                    created_at=now,
                )
            )

            # first_reply_at is written here only, and only once
            if author_type is AuthorType.AGENT and ticket.first_reply_at is None:
                await session.tickets.mark_first_reply(ticket.id, now)
                logger.info("First agent reply recorded on ticket %s", ticket.ticket_number)

            await self._journal.record(
                session,
                ticket_id=ticket.id,
                actor=author_name or DEFAULT_REPLY_ACTOR,
                actor_id=author_id,
                action=ActivityAction.REPLIED,
                entity=ticket.entity,
                metadata={"messageId": message.id},
                policy=self._policies.reply,
                created_at=now,
            )
        return message
