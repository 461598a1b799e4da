from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from supportdesk.errors import BootstrapNotAllowedError, EmailAlreadyExistsError, UserNotFoundError
from supportdesk.tickets.journal import ActivityAction, ActivityJournal

from .models import Identity, NewUser, Role, User, UserChanges

if TYPE_CHECKING:
    from supportdesk.storage.base import Store

logger = logging.getLogger(__name__)


class UserDirectory:
    """Create and maintain agent/admin accounts with unique emails."""

    def __init__(self, store: Store, *, journal: ActivityJournal | None = None) -> None:
        self._store = store
        self._journal = journal or ActivityJournal(store)

    async def create_user(self, data: NewUser, user_id: str | None = None) -> User:
        """Create an account; ``user_id`` lets the identity provider pick the key."""

        async with self._store.transaction() as session:
            if await session.users.get_by_email(data.email) is not None:
                raise EmailAlreadyExistsError(f"Email {data.email} already exists")
            user = await session.users.add(
                User(
                    id=user_id or str(uuid.uuid4()),
                    email=data.email,
                    name=data.name,
                    role=data.role,
                    created_at=datetime.now(timezone.utc),
                )
            )
        logger.info("Created %s account %s", user.role.value, user.id)
        return user

    async def update_user(self, user_id: str, changes: UserChanges) -> User:
        async with self._store.transaction() as session:
            existing = await session.users.get(user_id)
            if existing is None:
                raise UserNotFoundError(f"User {user_id} not found")

            if changes.email is not None and changes.email != existing.email:
                owner = await session.users.get_by_email(changes.email)
                if owner is not None and owner.id != user_id:
                    raise EmailAlreadyExistsError(f"Email {changes.email} already exists")

            if changes.is_empty():
                return existing
            updated = await session.users.update(user_id, changes)
            if updated is None:
                raise UserNotFoundError(f"User {user_id} not found")
        return updated

    async def get_user(self, user_id: str) -> User:
        async with self._store.transaction() as session:
            user = await session.users.get(user_id)
        if user is None:
            raise UserNotFoundError(f"User {user_id} not found")
        return user

    async def find_user(self, user_id: str) -> User | None:
        async with self._store.transaction() as session:
            return await session.users.get(user_id)

    async def list_users(self) -> list[User]:
        async with self._store.transaction() as session:
            return await session.users.list()

    async def bootstrap_admin(self, identity: Identity, name: str | None = None) -> User:
        """Promote ``identity`` to the first administrator of an empty directory.

        The check and the insert share one transaction and the promotion is
        journaled, so it cannot happen silently or twice.
        """

        async with self._store.transaction() as session:
            if await session.users.count() > 0:
                raise BootstrapNotAllowedError("Users already exist; bootstrap is only allowed on an empty directory")
            now = datetime.now(timezone.utc)
            user = await session.users.add(
                User(
                    id=identity.id,
                    email=identity.email,
                    name=name or identity.email,
                    role=Role.ADMIN,
                    created_at=now,
                )
            )
            await self._journal.record(
                session,
                ticket_id=None,
                actor=user.name,
                actor_id=user.id,
                action=ActivityAction.ADMIN_BOOTSTRAPPED,
                entity=user.email,
                metadata={"role": Role.ADMIN.value},
                created_at=now,
            )
        logger.warning("Bootstrapped administrator account %s <%s>", user.id, user.email)
        return user
