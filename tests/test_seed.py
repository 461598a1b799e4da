import pytest

from supportdesk.core.config import Settings
from supportdesk.seed import DEMO_USERS, seed_demo_users
from supportdesk.storage.factory import build_store
from supportdesk.storage.memory import InMemoryStore
from supportdesk.users.models import NewUser, Role


@pytest.mark.asyncio
async def test_seed_populates_empty_directory(directory):
    created = await seed_demo_users(directory)

    users = await directory.list_users()
    assert created == len(DEMO_USERS)
    assert {user.email for user in users} == {"maria@example.com", "carlos@example.com", "ana@example.com"}
    assert [user.role for user in users if user.email == "ana@example.com"] == [Role.ADMIN]


@pytest.mark.asyncio
async def test_seed_skips_populated_directory(directory):
    await directory.create_user(NewUser(email="someone@example.com", name="Someone"))

    assert await seed_demo_users(directory) == 0
    assert len(await directory.list_users()) == 1


def test_build_store_memory_backend():
    assert isinstance(build_store(Settings(storage_backend="memory")), InMemoryStore)


def test_build_store_rejects_unknown_backend():
    with pytest.raises(ValueError):
        build_store(Settings(storage_backend="cassandra"))
