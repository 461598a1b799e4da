"""Append-only activity journal backing the ticket and user managers."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Mapping

from .models import ActivityLogEntry, ActivityLogFilters

if TYPE_CHECKING:
    from supportdesk.storage.base import Store, StoreSession

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "System"


class ActivityAction(str, Enum):
    """Action descriptions written to the journal."""

    CREATED = "created the ticket"
    STATUS_CHANGED = "changed the ticket status"
    PRIORITY_CHANGED = "changed the ticket priority"
    REPLIED = "replied to the ticket"
    METADATA_UPDATED = "updated the ticket metadata"
    ADMIN_BOOTSTRAPPED = "bootstrapped the administrator account"


class ActivityLogPolicy(str, Enum):
    """How a failed journal append affects the surrounding operation."""

    FATAL = "fatal"
    BEST_EFFORT = "best_effort"


class ActivityJournal:
    """Record and query activity entries.

    ``record`` runs inside the caller's transaction. With the fatal policy an
    append failure propagates and the whole operation rolls back; with the
    best-effort policy the append is isolated in a savepoint and a failure is
    only logged.
    """

    def __init__(self, store: Store) -> None:
        self._store = store

    async def record(
        self,
        session: StoreSession,
        *,
        ticket_id: str | None,
        actor: str,
        actor_id: str | None,
        action: ActivityAction,
        entity: str,
        metadata: Mapping[str, Any] | None = None,
        policy: ActivityLogPolicy = ActivityLogPolicy.FATAL,
        created_at: datetime | None = None,
    ) -> ActivityLogEntry | None:
        entry = ActivityLogEntry(
            id=str(uuid.uuid4()),
            ticket_id=ticket_id,
            actor=actor,
            actor_id=actor_id,
            action=action.value,
            entity=entity,
            metadata=dict(metadata) if metadata is not None else None,
            created_at=created_at or datetime.now(timezone.utc),
        )
        if policy is ActivityLogPolicy.FATAL:
            return await session.activity.append(entry)

        try:
            async with session.savepoint():
                return await session.activity.append(entry)
        except Exception:
            logger.exception("Failed to persist activity log entry %r for %s", action.value, entity)
            return None

    async def query(self, filters: ActivityLogFilters | None = None) -> list[ActivityLogEntry]:
        async with self._store.transaction() as session:
            return await session.activity.list(filters or ActivityLogFilters())

    async def for_ticket(self, ticket_id: str, *, limit: int | None = None) -> list[ActivityLogEntry]:
        return await self.query(ActivityLogFilters(ticket_id=ticket_id, limit=limit))


@dataclass(slots=True, frozen=True)
class JournalPolicies:
    """Append failure policy per call site."""

    create: ActivityLogPolicy = ActivityLogPolicy.FATAL
    status: ActivityLogPolicy = ActivityLogPolicy.FATAL
    priority: ActivityLogPolicy = ActivityLogPolicy.BEST_EFFORT
    reply: ActivityLogPolicy = ActivityLogPolicy.FATAL
    metadata: ActivityLogPolicy = ActivityLogPolicy.FATAL
