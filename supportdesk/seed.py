"""Insert the demo agent and administrator accounts into an empty directory.

Usage: ``python -m supportdesk.seed``
"""

from __future__ import annotations

import asyncio
import logging

from supportdesk.core.config import get_settings
from supportdesk.core.logging import configure_logging
from supportdesk.storage.factory import build_store
from supportdesk.users.models import NewUser, Role
from supportdesk.users.service import UserDirectory

logger = logging.getLogger(__name__)

DEMO_USERS: tuple[NewUser, ...] = (
    NewUser(email="maria@example.com", name="María García", role=Role.AGENT),
    NewUser(email="carlos@example.com", name="Carlos López", role=Role.AGENT),
    NewUser(email="ana@example.com", name="Ana Martínez", role=Role.ADMIN),
)


async def seed_demo_users(directory: UserDirectory) -> int:
    """Create the demo accounts unless the directory already has users."""

    if await directory.list_users():
        logger.info("Users already present; skipping demo seed")
        return 0
    for user in DEMO_USERS:
        await directory.create_user(user)
    logger.info("Seeded %d demo users", len(DEMO_USERS))
    return len(DEMO_USERS)


async def _run() -> int:
    settings = get_settings()
    configure_logging(settings)
    store = build_store(settings)
    try:
        await store.ensure_schema()
        return await seed_demo_users(UserDirectory(store))
    finally:
        await store.close()


def main() -> None:
    asyncio.run(_run())


if __name__ == "__main__":
    main()
