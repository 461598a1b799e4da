from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Annotated

from fastapi import Depends, HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from supportdesk.core.config import get_settings
from supportdesk.dependencies.services import UserDirectoryDep
from supportdesk.users.models import Identity, Role, User

_ROLE_RANK: dict[Role, int] = {Role.AGENT: 0, Role.ADMIN: 1}

bearer_scheme = HTTPBearer(auto_error=False)


def resolve_identity_from_token(
    token: str | None, tokens: Mapping[str, Mapping[str, str]]
) -> Identity | None:
    """Map a bearer token to the identity issued for it; ``None`` means anonymous."""

    if token is None:
        return None

    entry = tokens.get(token)
    if entry is None or not entry.get("id") or not entry.get("email"):
        raise HTTPException(status_code=401, detail="Invalid authentication credentials")
    return Identity(id=entry["id"], email=entry["email"])


async def get_current_identity(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Security(bearer_scheme)],
    request: Request,
) -> Identity | None:
    """Resolve the caller's identity from the static token table in settings.

    Public ticket endpoints accept anonymous callers, so a missing token is not
    an error here; endpoints that need an actor depend on ``require_identity``.
    """

    cached = getattr(request.state, "identity", None)
    if isinstance(cached, Identity):
        return cached

    settings = getattr(request.app.state, "settings", None) or get_settings()
    token = credentials.credentials if credentials is not None else None
    identity = resolve_identity_from_token(token, settings.auth_tokens)
    request.state.identity = identity
    return identity


async def require_identity(
    identity: Annotated[Identity | None, Depends(get_current_identity)],
) -> Identity:
    if identity is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    return identity


def role_required(role: Role) -> Callable[..., User]:
    """Dependency factory ensuring the caller's account holds at least ``role``."""

    async def dependency(
        identity: Annotated[Identity, Depends(require_identity)],
        directory: UserDirectoryDep,
    ) -> User:
        user = await directory.find_user(identity.id)
        if user is None or _ROLE_RANK[user.role] < _ROLE_RANK[role]:
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return user

    return dependency


require_agent = role_required(Role.AGENT)
require_admin = role_required(Role.ADMIN)

CurrentIdentity = Annotated[Identity | None, Depends(get_current_identity)]
AuthenticatedIdentity = Annotated[Identity, Depends(require_identity)]
AgentUser = Annotated[User, Depends(require_agent)]
AdminUser = Annotated[User, Depends(require_admin)]
