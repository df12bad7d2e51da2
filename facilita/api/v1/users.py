from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from facilita.core.authorization import get_ledger
from facilita.core.errors import to_http_exception
from facilita.core.security import get_password_hash, require_permission
from facilita.db import models
from facilita.ledger.errors import LedgerError
from facilita.ledger.schemas import Role
from facilita.ledger.service import DEFAULT_USER_PASSWORD, TenantLedger

router = APIRouter(tags=["Usuarios"])


class UserCreate(BaseModel):
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    role: Role = Role.USER
    password: str | None = None


class UserUpdate(BaseModel):
    name: str | None = None
    email: str | None = None
    role: Role | None = None
    password: str | None = None


def user_to_response(user: models.User) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role,
        "tenant_id": user.tenant_id,
    }


def _hash(password: str) -> str:
    try:
        return get_password_hash(password)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc


@router.get("/users")
def list_users(
    _user: models.User = Depends(require_permission("users.manage")),
    ledger: TenantLedger = Depends(get_ledger),
):
    tenant = ledger.tenant()
    users = ledger.list_users()
    return {
        "items": [user_to_response(u) for u in users],
        "max_users": tenant.max_users,
        "plan_name": tenant.plan_name,
    }


@router.post("/users", status_code=status.HTTP_201_CREATED)
def create_user(
    payload: UserCreate,
    _user: models.User = Depends(require_permission("users.manage")),
    ledger: TenantLedger = Depends(get_ledger),
):
    try:
        user = ledger.create_user(
            payload.name,
            payload.email,
            payload.role.value,
            _hash(payload.password or DEFAULT_USER_PASSWORD),
        )
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    return user_to_response(user)


@router.patch("/users/{user_id}")
def update_user(
    user_id: str,
    payload: UserUpdate,
    current_user: models.User = Depends(require_permission("users.manage")),
    ledger: TenantLedger = Depends(get_ledger),
):
    changes = payload.model_dump(exclude_unset=True, exclude={"password"}, mode="json")
    if payload.password:
        changes["password_hash"] = _hash(payload.password)
    try:
        user = ledger.update_user(current_user.id, user_id, changes)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    return user_to_response(user)


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: str,
    current_user: models.User = Depends(require_permission("users.manage")),
    ledger: TenantLedger = Depends(get_ledger),
):
    try:
        ledger.delete_user(current_user.id, user_id)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
