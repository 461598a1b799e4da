"""Database models and utilities."""

from .models import (
    ActivityLogTable,
    TicketCounterTable,
    TicketMessageTable,
    TicketTable,
    UserTable,
)

__all__ = [
    "ActivityLogTable",
    "TicketCounterTable",
    "TicketMessageTable",
    "TicketTable",
    "UserTable",
]
