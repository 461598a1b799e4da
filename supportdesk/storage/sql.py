"""PostgreSQL backed store built on SQLModel and the SQLAlchemy async engine."""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Mapping

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel, select

from supportdesk.db.models import (
    ActivityLogTable,
    TicketCounterTable,
    TicketMessageTable,
    TicketTable,
    UserTable,
)
from supportdesk.errors import (
    ConflictError,
    EmailAlreadyExistsError,
    InvalidReferenceError,
    SupportDeskError,
    TicketNumberConflictError,
)
from supportdesk.tickets.models import (
    ActivityLogEntry,
    ActivityLogFilters,
    Attachment,
    Message,
    Ticket,
    TicketFilters,
)
from supportdesk.tickets.numbering import next_sequence_value
from supportdesk.tickets.state import AuthorType, TicketPriority, TicketStatus
from supportdesk.users.models import Role, User, UserChanges

TICKET_COUNTER = "ticket_number"


def to_asyncpg_dsn(dsn: str) -> str:
    """Ensure the SQLAlchemy DSN uses the asyncpg driver."""

    if dsn.startswith("postgresql+asyncpg://"):
        return dsn
    if dsn.startswith("postgresql://"):
        return "postgresql+asyncpg://" + dsn[len("postgresql://") :]
    return dsn


def _violation_detail(exc: IntegrityError) -> str:
    """Constraint name and driver message of a failed write, lower cased."""

    orig = exc.orig
    cause = getattr(orig, "__cause__", None)
    constraint = getattr(cause, "constraint_name", None) or getattr(orig, "constraint_name", None)
    return f"{constraint or ''} {orig}".lower()


async def _flush(
    session: AsyncSession,
    conflict: SupportDeskError,
    *,
    unique: Mapping[str, SupportDeskError] | None = None,
) -> None:
    """Flush pending writes, translating integrity failures by the violated constraint.

    Foreign key failures become ``InvalidReferenceError``; a unique violation on
    a column named in ``unique`` raises the mapped error; anything else raises
    ``conflict``.
    """

    try:
        await session.flush()
    except IntegrityError as exc:
        detail = _violation_detail(exc)
        if "foreign key" in detail or "_fkey" in detail:
            raise InvalidReferenceError("Write references a ticket or user that does not exist") from exc
        for column, error in (unique or {}).items():
            if column in detail:
                raise error from exc
        raise conflict from exc


class SqlTicketRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def allocate_number(self) -> int:
        counter = await self._session.get(TicketCounterTable, TICKET_COUNTER, with_for_update=True)
        if counter is None:
            value = next_sequence_value(await self.latest_number())
            self._session.add(TicketCounterTable(name=TICKET_COUNTER, value=value))
        else:
            value = counter.value + 1
            counter.value = value
        await _flush(self._session, TicketNumberConflictError("Ticket counter was initialised concurrently"))
        return value

    async def latest_number(self) -> str | None:
        result = await self._session.execute(
            select(TicketTable.ticket_number).order_by(TicketTable.created_at.desc()).limit(1)
        )
        return result.scalars().first()

    async def add(self, ticket: Ticket) -> Ticket:
        self._session.add(
            TicketTable(
                id=ticket.id,
                ticket_number=ticket.ticket_number,
                subject=ticket.subject,
                status=ticket.status.value,
                priority=ticket.priority.value,
                channel=ticket.channel,
                customer_name=ticket.customer_name,
                customer_email=ticket.customer_email,
                customer_phone=ticket.customer_phone,
                assignee_id=ticket.assignee_id,
                created_at=ticket.created_at,
                updated_at=ticket.updated_at,
                closed_at=ticket.closed_at,
                first_reply_at=ticket.first_reply_at,
                metadata_=dict(ticket.metadata) if ticket.metadata is not None else None,
            )
        )
        await _flush(
            self._session,
            ConflictError(f"Ticket {ticket.id} could not be stored"),
            unique={"ticket_number": TicketNumberConflictError(f"Ticket number {ticket.ticket_number} already exists")},
        )
        return ticket

    async def get(self, ticket_id: str) -> Ticket | None:
        row = await self._session.get(TicketTable, ticket_id)
        if row is None:
            return None
        return _table_to_ticket(row)

    async def list(self, filters: TicketFilters) -> list[Ticket]:
        statement = select(TicketTable)
        if filters.status is not None:
            statement = statement.where(TicketTable.status == filters.status.value)
        if filters.priority is not None:
            statement = statement.where(TicketTable.priority == filters.priority.value)
        if filters.assignee_id is not None:
            statement = statement.where(TicketTable.assignee_id == filters.assignee_id)
        if filters.channel is not None:
            statement = statement.where(TicketTable.channel == filters.channel)
        result = await self._session.execute(statement.order_by(TicketTable.created_at.desc()))
        return [_table_to_ticket(row) for row in result.scalars().all()]

    async def update_status(
        self,
        ticket_id: str,
        status: TicketStatus,
        updated_at: datetime,
        *,
        closed_at: datetime | None = None,
    ) -> Ticket | None:
        row = await self._session.get(TicketTable, ticket_id, with_for_update=True)
        if row is None:
            return None
        row.status = status.value
        row.updated_at = updated_at
        if closed_at is not None:
            row.closed_at = closed_at
        await self._session.flush()
        return _table_to_ticket(row)

    async def update_priority(
        self, ticket_id: str, priority: TicketPriority, updated_at: datetime
    ) -> Ticket | None:
        row = await self._session.get(TicketTable, ticket_id, with_for_update=True)
        if row is None:
            return None
        row.priority = priority.value
        row.updated_at = updated_at
        await self._session.flush()
        return _table_to_ticket(row)

    async def mark_first_reply(self, ticket_id: str, replied_at: datetime) -> Ticket | None:
        row = await self._session.get(TicketTable, ticket_id, with_for_update=True)
        if row is None:
            return None
        if row.first_reply_at is None:
            row.first_reply_at = replied_at
            row.updated_at = replied_at
            await self._session.flush()
        return _table_to_ticket(row)

    async def update_metadata(
        self, ticket_id: str, metadata: Mapping[str, Any], updated_at: datetime
    ) -> Ticket | None:
        row = await self._session.get(TicketTable, ticket_id, with_for_update=True)
        if row is None:
            return None
        row.metadata_ = dict(metadata)
        row.updated_at = updated_at
        await self._session.flush()
        return _table_to_ticket(row)

    async def delete(self, ticket_id: str) -> bool:
        row = await self._session.get(TicketTable, ticket_id)
        if row is None:
            return False
        await self._session.delete(row)
        await self._session.flush()
        return True


class SqlMessageRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, message: Message) -> Message:
        self._session.add(
            TicketMessageTable(
                id=message.id,
                ticket_id=message.ticket_id,
                text=message.text,
                author_type=message.author_type.value,
                author_name=message.author_name,
                author_id=message.author_id,
                attachments=(
                    [{"name": item.name, "url": item.url} for item in message.attachments]
                    if message.attachments is not None
                    else None
                ),
                created_at=message.created_at,
            )
        )
        await _flush(self._session, ConflictError(f"Message {message.id} could not be stored"))
        return message

    async def get(self, message_id: str) -> Message | None:
        row = await self._session.get(TicketMessageTable, message_id)
        if row is None:
            return None
        return _table_to_message(row)

    async def list_for_ticket(self, ticket_id: str) -> list[Message]:
        result = await self._session.execute(
            select(TicketMessageTable)
            .where(TicketMessageTable.ticket_id == ticket_id)
            .order_by(TicketMessageTable.created_at.asc())
        )
        return [_table_to_message(row) for row in result.scalars().all()]


class SqlActivityLogRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def append(self, entry: ActivityLogEntry) -> ActivityLogEntry:
        self._session.add(
            ActivityLogTable(
                id=entry.id,
                ticket_id=entry.ticket_id,
                actor=entry.actor,
                actor_id=entry.actor_id,
                action=entry.action,
                entity=entry.entity,
                metadata_=dict(entry.metadata) if entry.metadata is not None else None,
                created_at=entry.created_at,
            )
        )
        await _flush(self._session, ConflictError(f"Activity entry {entry.id} could not be stored"))
        return entry

    async def list(self, filters: ActivityLogFilters) -> list[ActivityLogEntry]:
        statement = select(ActivityLogTable)
        if filters.ticket_id is not None:
            statement = statement.where(ActivityLogTable.ticket_id == filters.ticket_id)
        if filters.actor_id is not None:
            statement = statement.where(ActivityLogTable.actor_id == filters.actor_id)
        if filters.action is not None:
            statement = statement.where(ActivityLogTable.action == filters.action)
        statement = statement.order_by(ActivityLogTable.created_at.desc())
        if filters.limit is not None:
            statement = statement.limit(filters.limit)
        result = await self._session.execute(statement)
        return [_table_to_activity(row) for row in result.scalars().all()]


class SqlUserRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, user: User) -> User:
        self._session.add(
            UserTable(
                id=user.id,
                email=user.email,
                name=user.name,
                role=user.role.value,
                created_at=user.created_at,
            )
        )
        await _flush(
            self._session,
            ConflictError(f"User {user.id} already exists"),
            unique={"email": EmailAlreadyExistsError(f"Email {user.email} already exists")},
        )
        return user

    async def get(self, user_id: str) -> User | None:
        row = await self._session.get(UserTable, user_id)
        if row is None:
            return None
        return _table_to_user(row)

    async def get_by_email(self, email: str) -> User | None:
        result = await self._session.execute(select(UserTable).where(UserTable.email == email))
        row = result.scalars().first()
        if row is None:
            return None
        return _table_to_user(row)

    async def list(self) -> list[User]:
        result = await self._session.execute(select(UserTable).order_by(UserTable.created_at.asc()))
        return [_table_to_user(row) for row in result.scalars().all()]

    async def count(self) -> int:
        result = await self._session.execute(select(func.count()).select_from(UserTable))
        return int(result.scalar_one())

    async def update(self, user_id: str, changes: UserChanges) -> User | None:
        row = await self._session.get(UserTable, user_id, with_for_update=True)
        if row is None:
            return None
        if changes.email is not None:
            row.email = changes.email
        if changes.name is not None:
            row.name = changes.name
        if changes.role is not None:
            row.role = changes.role.value
        await _flush(
            self._session,
            ConflictError(f"User {user_id} could not be updated"),
            unique={"email": EmailAlreadyExistsError(f"Email {changes.email} already exists")},
        )
        return _table_to_user(row)


class SqlStoreSession:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self.tickets = SqlTicketRepository(session)
        self.messages = SqlMessageRepository(session)
        self.activity = SqlActivityLogRepository(session)
        self.users = SqlUserRepository(session)

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[None]:
        async with self._session.begin_nested():
            yield


class SqlStore:
    """Store wrapping the `tickets`, `messages`, `activity_logs` and `users` tables."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        engine: AsyncEngine | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._engine: AsyncEngine | None = engine

    @classmethod
    def from_dsn(cls, dsn: str) -> SqlStore:
        engine = create_async_engine(to_asyncpg_dsn(dsn), future=True)
        return cls(async_sessionmaker(engine, expire_on_commit=False), engine=engine)

    async def ensure_schema(self) -> None:
        if self._engine is None:
            raise RuntimeError("Session factory is not bound to an async engine")
        async with self._engine.begin() as connection:
            await connection.run_sync(SQLModel.metadata.create_all)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[SqlStoreSession]:
        async with self._session_factory() as session:
            async with session.begin():
                yield SqlStoreSession(session)

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()


def _table_to_ticket(row: TicketTable) -> Ticket:
    return Ticket(
        id=row.id,
        ticket_number=row.ticket_number,
        subject=row.subject,
        status=TicketStatus(row.status),
        priority=TicketPriority(row.priority),
        channel=row.channel,
        customer_name=row.customer_name,
        customer_email=row.customer_email,
        customer_phone=row.customer_phone,
        assignee_id=row.assignee_id,
        created_at=_ensure_datetime(row.created_at),
        updated_at=_ensure_datetime(row.updated_at),
        closed_at=_optional_datetime(row.closed_at),
        first_reply_at=_optional_datetime(row.first_reply_at),
        metadata=dict(row.metadata_) if row.metadata_ is not None else None,
    )


def _table_to_message(row: TicketMessageTable) -> Message:
    attachments = (
        [Attachment(name=str(item["name"]), url=str(item["url"])) for item in row.attachments]
        if row.attachments is not None
        else None
    )
    return Message(
        id=row.id,
        ticket_id=row.ticket_id,
        text=row.text,
        author_type=AuthorType(row.author_type),
        author_name=row.author_name,
        author_id=row.author_id,
        attachments=attachments,
        created_at=_ensure_datetime(row.created_at),
    )


def _table_to_activity(row: ActivityLogTable) -> ActivityLogEntry:
    return ActivityLogEntry(
        id=row.id,
        ticket_id=row.ticket_id,
        actor=row.actor,
        actor_id=row.actor_id,
        action=row.action,
        entity=row.entity,
        metadata=dict(row.metadata_) if row.metadata_ is not None else None,
        created_at=_ensure_datetime(row.created_at),
    )


def _table_to_user(row: UserTable) -> User:
    return User(
        id=row.id,
        email=row.email,
        name=row.name,
        role=Role(row.role),
        created_at=_ensure_datetime(row.created_at),
    )


def _ensure_datetime(value: datetime | None) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    raise TypeError("Expected datetime value from database")


def _optional_datetime(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return _ensure_datetime(value)
