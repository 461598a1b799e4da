from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    """Supported roles."""

    AGENT = "agent"
    ADMIN = "admin"


@dataclass(slots=True)
class User:
    """Support agent or administrator account."""

    id: str
    email: str
    name: str
    role: Role
    created_at: datetime


@dataclass(slots=True)
class NewUser:
    email: str
    name: str
    role: Role = Role.AGENT


@dataclass(slots=True)
class UserChanges:
    """Partial update; ``None`` leaves the field untouched."""

    email: str | None = None
    name: str | None = None
    role: Role | None = None

    def is_empty(self) -> bool:
        return self.email is None and self.name is None and self.role is None


@dataclass(slots=True, frozen=True)
class Identity:
    """Opaque identity handed over by the authentication provider."""

    id: str
    email: str
