"""Persistence gateway: storage ports and their adapters."""

from .base import (
    ActivityLogRepository,
    MessageRepository,
    Store,
    StoreSession,
    TicketRepository,
    UserRepository,
)
from .memory import InMemoryStore

__all__ = [
    "ActivityLogRepository",
    "InMemoryStore",
    "MessageRepository",
    "Store",
    "StoreSession",
    "TicketRepository",
    "UserRepository",
]
