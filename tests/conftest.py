import pytest
from fastapi.testclient import TestClient

from supportdesk.core.config import Settings
from supportdesk.main import create_app
from supportdesk.storage.memory import InMemoryStore
from supportdesk.tickets.conversation import ConversationService
from supportdesk.tickets.journal import ActivityJournal
from supportdesk.tickets.models import NewTicket
from supportdesk.tickets.service import TicketService
from supportdesk.tickets.state import TicketPriority
from supportdesk.users.service import UserDirectory

ADMIN_TOKEN = "admin-token"
AGENT_TOKEN = "agent-token"
STRANGER_TOKEN = "stranger-token"

AUTH_TOKENS = {
    ADMIN_TOKEN: {"id": "user-admin", "email": "admin@example.com"},
    AGENT_TOKEN: {"id": "user-agent", "email": "agent@example.com"},
    STRANGER_TOKEN: {"id": "user-stranger", "email": "stranger@example.com"},
}


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def journal(store: InMemoryStore) -> ActivityJournal:
    return ActivityJournal(store)


@pytest.fixture
def ticket_service(store: InMemoryStore, journal: ActivityJournal) -> TicketService:
    return TicketService(store, journal=journal)


@pytest.fixture
def conversation_service(store: InMemoryStore, journal: ActivityJournal) -> ConversationService:
    return ConversationService(store, journal=journal)


@pytest.fixture
def directory(store: InMemoryStore, journal: ActivityJournal) -> UserDirectory:
    return UserDirectory(store, journal=journal)


def _make_new_ticket(**overrides) -> NewTicket:
    fields = {
        "subject": "Screen repair",
        "customer_name": "J. Doe",
        "priority": TicketPriority.HIGH,
        "channel": "web",
    }
    fields.update(overrides)
    return NewTicket(**fields)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        storage_backend="memory",
        auth_tokens=AUTH_TOKENS,
        webhook_api_key="test-key",
        activity_page_size=50,
    )


@pytest.fixture
def api_client(settings, store, journal, ticket_service, conversation_service, directory):
    """Client wired to in-memory services without running the lifespan."""

    app = create_app(settings)
    app.state.activity_journal = journal
    app.state.ticket_service = ticket_service
    app.state.conversation_service = conversation_service
    app.state.user_directory = directory
    client = TestClient(app)
    try:
        yield client
    finally:
        app.dependency_overrides.clear()


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def new_ticket():
    return _make_new_ticket


@pytest.fixture
def bearer():
    return _bearer
