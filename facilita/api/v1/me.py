from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from facilita.core.errors import to_http_exception
from facilita.core.security import get_current_user, get_user_permissions
from facilita.db import models
from facilita.db.session import get_db
from facilita.ledger.errors import LedgerError
from facilita.services.accounts import delete_account, update_profile

router = APIRouter(tags=["Usuario"])


class ProfileUpdate(BaseModel):
    name: str = Field(..., min_length=1)
    password: str | None = None


class AccountDelete(BaseModel):
    password: str = Field(..., min_length=1)


def _me_payload(user: models.User) -> dict:
    tenant = user.tenant
    return {
        "user": {
            "id": user.id,
            "name": user.name,
            "email": user.email,
            "role": user.role,
            "permissions": sorted(get_user_permissions(user)),
        },
        "tenant": (
            {
                "id": tenant.id,
                "name": tenant.name,
                "plan_name": tenant.plan_name,
                "max_users": tenant.max_users,
            }
            if tenant
            else None
        ),
    }


@router.get("/me")
def get_me(current_user: models.User = Depends(get_current_user)):
    return _me_payload(current_user)


@router.patch("/me")
def update_me(
    payload: ProfileUpdate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        user = update_profile(db, current_user, payload.name, payload.password or None)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    return _me_payload(user)


@router.delete("/me", status_code=status.HTTP_204_NO_CONTENT)
def delete_me(
    payload: AccountDelete,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        delete_account(db, current_user, payload.password)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
