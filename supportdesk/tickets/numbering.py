"""Human readable ticket numbers (``TK-001``, ``TK-002`` ...)."""

from __future__ import annotations

DEFAULT_PREFIX = "TK"
DEFAULT_WIDTH = 3


def format_ticket_number(value: int, *, prefix: str = DEFAULT_PREFIX, width: int = DEFAULT_WIDTH) -> str:
    """Render a sequence value, zero padded to ``width``; wider values grow naturally."""

    if value < 1:
        raise ValueError(f"Ticket sequence values start at 1, got {value}")
    return f"{prefix}-{value:0{width}d}"


def parse_ticket_number(ticket_number: str) -> int:
    """Return the numeric suffix after the first ``-``."""

    _, separator, digits = ticket_number.partition("-")
    if not separator or not digits.isdigit():
        raise ValueError(f"Malformed ticket number: {ticket_number!r}")
    return int(digits)


def next_sequence_value(latest_ticket_number: str | None) -> int:
    """Sequence value that follows the most recently created ticket."""

    if latest_ticket_number is None:
        return 1
    return parse_ticket_number(latest_ticket_number) + 1
