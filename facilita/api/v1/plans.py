from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from facilita.core.authorization import get_ledger
from facilita.core.errors import to_http_exception
from facilita.core.security import require_permission
from facilita.db import models
from facilita.ledger.errors import LedgerError
from facilita.ledger.service import TenantLedger

router = APIRouter(tags=["Planos"])


class PlanCreate(BaseModel):
    name: str = Field(..., min_length=1)
    monthly_fee: float = Field(..., gt=0)
    service_limit: int = Field(..., gt=0)
    active: bool = True


class PlanUpdate(BaseModel):
    name: str | None = None
    monthly_fee: float | None = Field(None, gt=0)
    service_limit: int | None = Field(None, gt=0)
    active: bool | None = None


class PlanResponse(BaseModel):
    id: str
    name: str
    monthly_fee: float
    service_limit: int
    active: bool
    clients: int = 0


def to_response(plan: models.Plan, clients: int = 0) -> PlanResponse:
    return PlanResponse(
        id=plan.id,
        name=plan.name,
        monthly_fee=plan.monthly_fee,
        service_limit=plan.service_limit,
        active=plan.active,
        clients=clients,
    )


# Assistentes need the plan list to register clients.
@router.get("/plans")
def list_plans(
    search: str | None = None,
    _user: models.User = Depends(require_permission("clients.view")),
    ledger: TenantLedger = Depends(get_ledger),
):
    counts = ledger.clients_per_plan()
    return {"items": [to_response(p, counts.get(p.id, 0)).model_dump() for p in ledger.list_plans(search)]}


@router.post("/plans", status_code=status.HTTP_201_CREATED)
def create_plan(
    payload: PlanCreate,
    _user: models.User = Depends(require_permission("plans.manage")),
    ledger: TenantLedger = Depends(get_ledger),
):
    plan = ledger.create_plan(payload.name, payload.monthly_fee, payload.service_limit, payload.active)
    return to_response(plan).model_dump()


@router.patch("/plans/{plan_id}")
def update_plan(
    plan_id: str,
    payload: PlanUpdate,
    _user: models.User = Depends(require_permission("plans.manage")),
    ledger: TenantLedger = Depends(get_ledger),
):
    try:
        plan = ledger.update_plan(plan_id, payload.model_dump(exclude_unset=True))
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    return to_response(plan, ledger.clients_per_plan().get(plan.id, 0)).model_dump()


@router.delete("/plans/{plan_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_plan(
    plan_id: str,
    _user: models.User = Depends(require_permission("plans.manage")),
    ledger: TenantLedger = Depends(get_ledger),
):
    try:
        ledger.delete_plan(plan_id)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
