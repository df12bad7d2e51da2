from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from facilita.core.authorization import get_ledger
from facilita.core.errors import to_http_exception
from facilita.core.security import require_permission
from facilita.db import models
from facilita.ledger.errors import LedgerError
from facilita.ledger.service import TenantLedger

router = APIRouter(tags=["Clientes"])


class ClientCreate(BaseModel):
    name: str = Field(..., min_length=1)
    plan_id: str = Field(..., min_length=1)
    document: str = ""
    contact: str = ""
    due_day: int = Field(10, ge=1, le=31)
    active: bool = True


class ClientUpdate(BaseModel):
    name: str | None = None
    plan_id: str | None = None
    document: str | None = None
    contact: str | None = None
    due_day: int | None = Field(None, ge=1, le=31)
    active: bool | None = None


class ClientResponse(BaseModel):
    id: str
    name: str
    document: str
    contact: str
    plan_id: str | None = None
    plan_name: str | None = None
    monthly_fee: float | None = None
    due_day: int
    active: bool


def to_response(c: models.Client) -> ClientResponse:
    return ClientResponse(
        id=c.id,
        name=c.name,
        document=c.document or "",
        contact=c.contact or "",
        plan_id=c.plan_id,
        plan_name=c.plan.name if c.plan else None,
        monthly_fee=c.plan.monthly_fee if c.plan else None,
        due_day=c.due_day,
        active=c.active,
    )


@router.get("/clients")
def list_clients(
    search: str | None = None,
    plan_id: str | None = None,
    due_day: str | None = Query(None, description="Dia de vencimento ou 'all'"),
    sort: str = "name",
    _user: models.User = Depends(require_permission("clients.view")),
    ledger: TenantLedger = Depends(get_ledger),
):
    day = None
    if due_day and due_day != "all":
        if not due_day.isdigit():
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Dia de vencimento invalido")
        day = int(due_day)
    try:
        clients = ledger.list_clients(search=search, plan_id=plan_id, due_day=day, sort=sort)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    return {"items": [to_response(c).model_dump() for c in clients]}


@router.get("/clients/due-days")
def list_due_days(
    _user: models.User = Depends(require_permission("clients.view")),
    ledger: TenantLedger = Depends(get_ledger),
):
    return {"items": ledger.due_days()}


@router.post("/clients", status_code=status.HTTP_201_CREATED)
def create_client(
    payload: ClientCreate,
    _user: models.User = Depends(require_permission("clients.manage")),
    ledger: TenantLedger = Depends(get_ledger),
):
    try:
        client = ledger.create_client(
            name=payload.name,
            plan_id=payload.plan_id,
            document=payload.document,
            contact=payload.contact,
            due_day=payload.due_day,
            active=payload.active,
        )
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    return to_response(client).model_dump()


@router.patch("/clients/{client_id}")
def update_client(
    client_id: str,
    payload: ClientUpdate,
    _user: models.User = Depends(require_permission("clients.manage")),
    ledger: TenantLedger = Depends(get_ledger),
):
    try:
        client = ledger.update_client(client_id, payload.model_dump(exclude_unset=True))
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    return to_response(client).model_dump()


@router.delete("/clients/{client_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_client(
    client_id: str,
    current_user: models.User = Depends(require_permission("clients.view")),
    ledger: TenantLedger = Depends(get_ledger),
):
    try:
        ledger.delete_client(client_id, actor_role=current_user.role)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
