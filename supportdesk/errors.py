"""Error taxonomy shared by the managers and the request surface."""

from __future__ import annotations


class SupportDeskError(RuntimeError):
    """Base error for supportdesk failures."""

    code = "UNEXPECTED"


class NotFoundError(SupportDeskError):
    """Raised when an operation targets a record that does not exist."""

    code = "NOT_FOUND"


class TicketNotFoundError(NotFoundError):
    """Raised when a ticket could not be located."""

    code = "TICKET_NOT_FOUND"


class UserNotFoundError(NotFoundError):
    """Raised when a user could not be located."""

    code = "USER_NOT_FOUND"


class ConflictError(SupportDeskError):
    """Raised when a write would break a uniqueness rule."""

    code = "CONFLICT"


class EmailAlreadyExistsError(ConflictError):
    """Raised when another user already owns the email address."""

    code = "EMAIL_ALREADY_EXISTS"


class TicketNumberConflictError(ConflictError):
    """Raised when an allocated ticket number collides with an existing one."""

    code = "TICKET_NUMBER_CONFLICT"


class InvalidReferenceError(ConflictError):
    """Raised when a write points at a ticket or user that does not exist."""

    code = "INVALID_REFERENCE"


class BootstrapNotAllowedError(ConflictError):
    """Raised when the administrator bootstrap runs against a populated directory."""

    code = "BOOTSTRAP_NOT_ALLOWED"


class InvalidTicketTransitionError(SupportDeskError):
    """Raised when attempting to transition to an invalid state."""

    code = "INVALID_TRANSITION"
