from __future__ import annotations

import logging
import secrets

from fastapi import APIRouter, Header, HTTPException, Request, status
from pydantic import BaseModel, Field

from supportdesk.core.config import Settings, get_settings
from supportdesk.dependencies.services import TicketServiceDep
from supportdesk.errors import ConflictError
from supportdesk.tickets.models import NewTicket
from supportdesk.tickets.state import TicketPriority

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhook", tags=["webhooks"])


class InboundMessageRequest(BaseModel):
    subject: str = Field(..., min_length=1)
    customer_name: str = Field(..., min_length=1)
    customer_email: str | None = None
    customer_phone: str | None = None
    message: str = Field(..., min_length=1)
    priority: TicketPriority | None = None
    channel: str = Field(default="whatsapp", min_length=1)


class InboundAcceptedResponse(BaseModel):
    success: bool = True
    ticket_id: str
    ticket_number: str
    message: str | None = None


def _settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or get_settings()


@router.post("/inbound", response_model=InboundAcceptedResponse, status_code=status.HTTP_201_CREATED)
async def receive_inbound(
    payload: InboundMessageRequest,
    request: Request,
    service: TicketServiceDep,
    x_api_key: str | None = Header(default=None),
) -> InboundAcceptedResponse:
    expected = _settings(request).webhook_api_key
    if not x_api_key or not secrets.compare_digest(x_api_key.encode(), expected.encode()):
        raise HTTPException(status_code=401, detail="Unauthorized")

    try:
        ticket = await service.create_ticket(
            NewTicket(
                subject=payload.subject,
                customer_name=payload.customer_name,
                priority=payload.priority or TicketPriority.MEDIUM,
                channel=payload.channel,
                customer_email=payload.customer_email,
                customer_phone=payload.customer_phone,
            ),
            payload.message,
        )
    except ConflictError as exc:
        raise HTTPException(status_code=409, detail=exc.code) from exc
    logger.info("Inbound %s message opened ticket %s", payload.channel, ticket.ticket_number)
    return InboundAcceptedResponse(ticket_id=ticket.id, ticket_number=ticket.ticket_number)


@router.post("/test/inbound", response_model=InboundAcceptedResponse, status_code=status.HTTP_201_CREATED)
async def receive_test_inbound(request: Request, service: TicketServiceDep) -> InboundAcceptedResponse:
    if _settings(request).environment == "production":
        raise HTTPException(status_code=404, detail="Not Found")

    ticket = await service.create_ticket(
        NewTicket(
            subject="Webhook test",
            customer_name="Test Customer",
            priority=TicketPriority.MEDIUM,
            channel="whatsapp",
            customer_email="test@example.com",
            customer_phone="+34 600 000 000",
        ),
        "This is a test message from the webhook",
    )
    return InboundAcceptedResponse(
        ticket_id=ticket.id,
        ticket_number=ticket.ticket_number,
        message="Test ticket created successfully",
    )
