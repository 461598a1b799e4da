from __future__ import annotations

from enum import Enum
from typing import Mapping

from supportdesk.errors import InvalidTicketTransitionError


class TicketStatus(str, Enum):
    """Supported states for a ticket's lifecycle."""

    OPEN = "open"
    PENDING_CUSTOMER = "pending_customer"
    PENDING_AGENT = "pending_agent"
    CLOSED = "closed"


class TicketPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AuthorType(str, Enum):
    """Who wrote a message on the conversation thread."""

    CUSTOMER = "customer"
    AGENT = "agent"
    SYSTEM = "system"


class TicketStateMachine:
    """Validate ticket lifecycle transitions.

    The default table lets every status move to every other status, closed
    included, so a closed ticket can be reopened. A stricter table can be
    injected without touching the services.
    """

    _DEFAULT_TRANSITIONS: Mapping[TicketStatus, frozenset[TicketStatus]] = {
        status: frozenset(TicketStatus) for status in TicketStatus
    }

    def __init__(self, transitions: Mapping[TicketStatus, frozenset[TicketStatus]] | None = None) -> None:
        self._transitions = self._DEFAULT_TRANSITIONS if transitions is None else transitions

    @staticmethod
    def initial_state() -> TicketStatus:
        return TicketStatus.OPEN

    def can_transition(self, current: TicketStatus, new: TicketStatus) -> bool:
        if current == new:
            return True
        return new in self._transitions.get(current, frozenset())

    def assert_transition(self, current: TicketStatus, new: TicketStatus) -> None:
        if not self.can_transition(current, new):
            raise InvalidTicketTransitionError(
                f"Invalid ticket status transition: {current.value} -> {new.value}"
            )

    @staticmethod
    def stamps_closed_at(new: TicketStatus) -> bool:
        return new is TicketStatus.CLOSED
