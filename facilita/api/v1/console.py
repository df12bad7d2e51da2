from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from facilita.core.errors import to_http_exception
from facilita.core.security import require_master
from facilita.db import models
from facilita.db.session import get_db
from facilita.ledger.errors import LedgerError
from facilita.services import tenants as tenant_service
from facilita.services.accounts import add_master, create_company, list_masters, remove_master

router = APIRouter(tags=["Console"])


class TenantResponse(BaseModel):
    id: str
    name: str
    active: bool
    plan_name: str
    max_users: int
    users: int = 0
    created_at: str


class TenantCreate(BaseModel):
    name: str = Field(..., min_length=1)
    plan_name: str = Field("Trial", min_length=1)
    max_users: int = Field(3, ge=1)
    admin_name: str = Field(..., min_length=1)
    admin_email: str = Field(..., min_length=3)
    admin_password: str = Field(..., min_length=4)


class TenantUpdate(BaseModel):
    name: str | None = None
    plan_name: str | None = None
    max_users: int | None = Field(None, ge=1)


class MasterCreate(BaseModel):
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=4)


def _to_tenant_response(tenant: models.Tenant, users: int = 0) -> TenantResponse:
    return TenantResponse(
        id=tenant.id,
        name=tenant.name,
        active=tenant.active,
        plan_name=tenant.plan_name,
        max_users=tenant.max_users,
        users=users,
        created_at=tenant.created_at.isoformat(),
    )


def _to_master_response(user: models.User) -> dict:
    return {"id": user.id, "name": user.name, "email": user.email, "role": user.role}


@router.get("/tenants")
def list_tenants(
    search: str | None = None,
    _master: models.User = Depends(require_master),
    db: Session = Depends(get_db),
):
    counts = tenant_service.user_counts(db)
    return {
        "items": [
            _to_tenant_response(tenant, counts.get(tenant.id, 0)).model_dump()
            for tenant in tenant_service.list_tenants(db, search)
        ],
        "stats": tenant_service.console_stats(db),
    }


@router.post("/tenants", status_code=status.HTTP_201_CREATED)
def create_tenant(
    payload: TenantCreate,
    _master: models.User = Depends(require_master),
    db: Session = Depends(get_db),
):
    try:
        tenant = create_company(
            db,
            payload.name,
            payload.admin_name,
            payload.admin_email,
            payload.admin_password,
            plan_name=payload.plan_name,
            max_users=payload.max_users,
        )
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    return {"tenant": _to_tenant_response(tenant, len(tenant.users)).model_dump()}


@router.patch("/tenants/{tenant_id}")
def update_tenant(
    tenant_id: str,
    payload: TenantUpdate,
    _master: models.User = Depends(require_master),
    db: Session = Depends(get_db),
):
    try:
        tenant = tenant_service.update_tenant(db, tenant_id, payload.model_dump(exclude_unset=True))
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    return {"tenant": _to_tenant_response(tenant, len(tenant.users)).model_dump()}


@router.post("/tenants/{tenant_id}/toggle-active")
def toggle_tenant(
    tenant_id: str,
    _master: models.User = Depends(require_master),
    db: Session = Depends(get_db),
):
    try:
        tenant = tenant_service.toggle_tenant(db, tenant_id)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    return {"tenant": _to_tenant_response(tenant, len(tenant.users)).model_dump()}


@router.delete("/tenants/{tenant_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_tenant(
    tenant_id: str,
    _master: models.User = Depends(require_master),
    db: Session = Depends(get_db),
):
    try:
        tenant_service.delete_tenant(db, tenant_id)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc


@router.get("/masters")
def get_masters(
    _master: models.User = Depends(require_master),
    db: Session = Depends(get_db),
):
    return {"items": [_to_master_response(m) for m in list_masters(db)]}


@router.post("/masters", status_code=status.HTTP_201_CREATED)
def create_master(
    payload: MasterCreate,
    _master: models.User = Depends(require_master),
    db: Session = Depends(get_db),
):
    try:
        master = add_master(db, payload.name, payload.email, payload.password)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    return _to_master_response(master)


@router.delete("/masters/{master_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_master(
    master_id: str,
    current_master: models.User = Depends(require_master),
    db: Session = Depends(get_db),
):
    try:
        remove_master(db, current_master, master_id)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
