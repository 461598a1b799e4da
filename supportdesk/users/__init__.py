"""User directory: agent and administrator accounts."""

from .models import Identity, NewUser, Role, User, UserChanges
from .service import UserDirectory

__all__ = ["Identity", "NewUser", "Role", "User", "UserChanges", "UserDirectory"]
