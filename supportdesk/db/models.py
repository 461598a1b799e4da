"""SQLModel table definitions for the supportdesk data layer."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Column, DateTime, ForeignKey, Integer, JSON, String, Text
from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    """Return a timezone aware UTC timestamp."""

    return datetime.now(timezone.utc)


def _uuid_str() -> str:
    """Generate a random UUID string."""

    return str(uuid.uuid4())


class UserTable(SQLModel, table=True):
    """Agent and administrator accounts."""

    __tablename__ = "users"

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    email: str = Field(sa_column=Column(String(255), nullable=False, unique=True))
    name: str = Field(sa_column=Column(String(255), nullable=False))
    role: str = Field(default="agent", sa_column=Column(String(50), nullable=False, default="agent"))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class TicketTable(SQLModel, table=True):
    """Customer support tickets."""

    __tablename__ = "tickets"

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    ticket_number: str = Field(sa_column=Column(String(32), nullable=False, unique=True))
    subject: str = Field(sa_column=Column(Text, nullable=False))
    status: str = Field(sa_column=Column(String(50), nullable=False, index=True))
    priority: str = Field(sa_column=Column(String(50), nullable=False))
    channel: str = Field(sa_column=Column(String(50), nullable=False))
    customer_name: str = Field(sa_column=Column(String(255), nullable=False))
    customer_email: str | None = Field(default=None, sa_column=Column(String(255), nullable=True))
    customer_phone: str | None = Field(default=None, sa_column=Column(String(64), nullable=True))
    assignee_id: str | None = Field(
        default=None, sa_column=Column(String(36), ForeignKey("users.id"), nullable=True)
    )
    created_at: datetime = Field(
        default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False, index=True)
    )
    updated_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    closed_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    first_reply_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    metadata_: dict[str, Any] | None = Field(default=None, sa_column=Column("metadata", JSON, nullable=True))


class TicketMessageTable(SQLModel, table=True):
    """Conversation messages belonging to a ticket."""

    __tablename__ = "messages"

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    ticket_id: str = Field(
        sa_column=Column(String(36), ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    )
    text: str = Field(sa_column=Column(Text, nullable=False))
    author_type: str = Field(sa_column=Column(String(50), nullable=False))
    author_name: str | None = Field(default=None, sa_column=Column(String(255), nullable=True))
    author_id: str | None = Field(
        default=None, sa_column=Column(String(36), ForeignKey("users.id"), nullable=True)
    )
    attachments: list[dict[str, str]] | None = Field(default=None, sa_column=Column(JSON, nullable=True))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class ActivityLogTable(SQLModel, table=True):
    """Append-only journal of actions taken on tickets and users."""

    __tablename__ = "activity_logs"

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    ticket_id: str | None = Field(
        default=None,
        sa_column=Column(String(36), ForeignKey("tickets.id", ondelete="CASCADE"), nullable=True, index=True),
    )
    actor: str = Field(sa_column=Column(String(255), nullable=False))
    actor_id: str | None = Field(
        default=None, sa_column=Column(String(36), ForeignKey("users.id"), nullable=True)
    )
    action: str = Field(sa_column=Column(String(255), nullable=False))
    entity: str = Field(sa_column=Column(String(255), nullable=False))
    metadata_: dict[str, Any] | None = Field(default=None, sa_column=Column("metadata", JSON, nullable=True))
    created_at: datetime = Field(
        default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False, index=True)
    )


class TicketCounterTable(SQLModel, table=True):
    """Named sequence rows; locked for update while a value is allocated."""

    __tablename__ = "ticket_counters"

    name: str = Field(primary_key=True)
    value: int = Field(default=0, sa_column=Column(Integer, nullable=False))
