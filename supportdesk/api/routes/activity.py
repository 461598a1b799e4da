from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Query, Request
from pydantic import BaseModel, ConfigDict

from supportdesk.core.config import get_settings
from supportdesk.dependencies.services import ActivityJournalDep
from supportdesk.tickets.models import ActivityLogEntry, ActivityLogFilters

router = APIRouter(prefix="/activity", tags=["activity"])


class ActivityEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    ticket_id: str | None
    actor: str
    actor_id: str | None
    action: str
    entity: str
    metadata: dict[str, Any] | None
    created_at: datetime


def to_activity_response(entry: ActivityLogEntry) -> ActivityEntryResponse:
    return ActivityEntryResponse.model_validate(entry)


@router.get("", response_model=list[ActivityEntryResponse])
async def list_activity(
    request: Request,
    journal: ActivityJournalDep,
    limit: int | None = Query(default=None, ge=1, le=500),
    ticket_id: str | None = Query(default=None),
    actor_id: str | None = Query(default=None),
    action: str | None = Query(default=None),
) -> list[ActivityEntryResponse]:
    if limit is None:
        settings = getattr(request.app.state, "settings", None) or get_settings()
        limit = settings.activity_page_size
    entries = await journal.query(
        ActivityLogFilters(ticket_id=ticket_id, actor_id=actor_id, action=action, limit=limit)
    )
    return [to_activity_response(entry) for entry in entries]
