import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from supportdesk.api.routes import activity, ping, tickets, users, webhooks
from supportdesk.core.config import Settings, get_settings
from supportdesk.core.logging import configure_logging, init_tracer, shutdown_tracer
from supportdesk.seed import seed_demo_users
from supportdesk.storage.factory import build_store
from supportdesk.tickets.conversation import ConversationService
from supportdesk.tickets.journal import ActivityJournal
from supportdesk.tickets.service import TicketService
from supportdesk.users.service import UserDirectory

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):  # pragma: no cover - executed by framework
    settings: Settings = app.state.settings
    configure_logging(settings)
    tracer_provider = init_tracer(settings)
    app.state.tracer_provider = tracer_provider

    store = None
    app.state.ticket_service = None
    app.state.conversation_service = None
    app.state.user_directory = None
    app.state.activity_journal = None
    try:
        store = build_store(settings)
        await store.ensure_schema()
        policies = settings.journal_policies()
        journal = ActivityJournal(store)
        app.state.activity_journal = journal
        app.state.ticket_service = TicketService(
            store,
            journal=journal,
            policies=policies,
            number_prefix=settings.ticket_number_prefix,
            number_width=settings.ticket_number_width,
            max_number_attempts=settings.ticket_number_max_attempts,
        )
        app.state.conversation_service = ConversationService(store, journal=journal, policies=policies)
        app.state.user_directory = UserDirectory(store, journal=journal)
        if settings.seed_demo_users:
            await seed_demo_users(app.state.user_directory)
    except Exception:
        logger.exception("Storage initialisation failed; ticket endpoints will answer 503")
        app.state.ticket_service = None
        app.state.conversation_service = None
        app.state.user_directory = None
        app.state.activity_journal = None
    try:
        yield
    finally:
        if store is not None:
            await store.close()
        shutdown_tracer(tracer_provider)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"detail": "Validation error", "errors": jsonable_encoder(exc.errors())},
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.settings = settings
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.include_router(ping.router)
    app.include_router(tickets.router)
    app.include_router(activity.router)
    app.include_router(users.router)
    app.include_router(webhooks.router)
    return app


app = create_app()
