from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field

from supportdesk.dependencies.auth import AdminUser, AgentUser, AuthenticatedIdentity
from supportdesk.dependencies.services import UserDirectoryDep
from supportdesk.errors import ConflictError, UserNotFoundError
from supportdesk.users.models import NewUser, Role, User, UserChanges

router = APIRouter(prefix="/users", tags=["users"])


class UserCreateRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    name: str = Field(..., min_length=1, max_length=255)
    role: Role = Role.AGENT
    id: str | None = Field(default=None, min_length=1, max_length=36)


class UserUpdateRequest(BaseModel):
    email: str | None = Field(default=None, min_length=3, max_length=255)
    name: str | None = Field(default=None, min_length=1, max_length=255)
    role: Role | None = None

    def ensure_payload(self) -> None:
        if self.email is None and self.name is None and self.role is None:
            raise HTTPException(status_code=400, detail="No fields provided for update")


class BootstrapRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: str
    role: Role
    created_at: datetime


def _to_response(user: User) -> UserResponse:
    return UserResponse.model_validate(user)


@router.get("", response_model=list[UserResponse])
async def list_users(directory: UserDirectoryDep, _: AgentUser) -> list[UserResponse]:
    users = await directory.list_users()
    return [_to_response(user) for user in users]


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(payload: UserCreateRequest, directory: UserDirectoryDep, _: AdminUser) -> UserResponse:
    try:
        user = await directory.create_user(
            NewUser(email=payload.email, name=payload.name, role=payload.role),
            user_id=payload.id,
        )
    except ConflictError as exc:
        raise HTTPException(status_code=409, detail=exc.code) from exc
    return _to_response(user)


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str,
    payload: UserUpdateRequest,
    directory: UserDirectoryDep,
    _: AdminUser,
) -> UserResponse:
    payload.ensure_payload()
    try:
        user = await directory.update_user(
            user_id,
            UserChanges(email=payload.email, name=payload.name, role=payload.role),
        )
    except UserNotFoundError as exc:
        raise HTTPException(status_code=404, detail=exc.code) from exc
    except ConflictError as exc:
        raise HTTPException(status_code=409, detail=exc.code) from exc
    return _to_response(user)


@router.post("/bootstrap", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def bootstrap_admin(
    identity: AuthenticatedIdentity,
    directory: UserDirectoryDep,
    payload: BootstrapRequest | None = None,
) -> UserResponse:
    try:
        user = await directory.bootstrap_admin(identity, name=payload.name if payload else None)
    except ConflictError as exc:
        raise HTTPException(status_code=409, detail=exc.code) from exc
    return _to_response(user)


@router.get("/me", response_model=UserResponse)
async def get_me(identity: AuthenticatedIdentity, directory: UserDirectoryDep) -> UserResponse:
    try:
        user = await directory.get_user(identity.id)
    except UserNotFoundError as exc:
        raise HTTPException(status_code=404, detail=exc.code) from exc
    return _to_response(user)
