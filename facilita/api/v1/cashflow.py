import datetime
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from facilita.core.authorization import get_ledger
from facilita.core.errors import to_http_exception
from facilita.core.security import require_permission
from facilita.db import models
from facilita.ledger.errors import LedgerError
from facilita.ledger.schemas import CashFlowType, PaymentMethod
from facilita.ledger.service import TenantLedger

router = APIRouter(tags=["Fluxo de Caixa"])


class CashFlowCreate(BaseModel):
    date: datetime.date
    description: str = Field(..., min_length=1)
    value: float = Field(..., gt=0)
    type: CashFlowType = CashFlowType.INCOME
    payment_method: PaymentMethod | None = None
    observation: str | None = None


class CashFlowUpdate(BaseModel):
    date: datetime.date | None = None
    description: str | None = None
    value: float | None = Field(None, gt=0)
    type: CashFlowType | None = None
    payment_method: PaymentMethod | None = None
    observation: str | None = None


class CashFlowResponse(BaseModel):
    id: str
    date: datetime.date
    description: str
    value: float
    type: str
    payment_method: str | None = None
    observation: str | None = None


def to_response(item: models.CashFlowItem) -> CashFlowResponse:
    return CashFlowResponse(
        id=item.id,
        date=item.date,
        description=item.description,
        value=item.value,
        type=item.type,
        payment_method=item.payment_method,
        observation=item.observation,
    )


@router.get("/cash-flow")
def list_cash_flow(
    type: str | None = None,
    start: date | None = None,
    end: date | None = None,
    sort: str = "date_desc",
    _user: models.User = Depends(require_permission("cashflow.view")),
    ledger: TenantLedger = Depends(get_ledger),
):
    try:
        items = ledger.list_cash_flow(entry_type=type, start=start, end=end, sort=sort)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Tipo de lancamento invalido") from exc
    return {
        "items": [to_response(item).model_dump(mode="json") for item in items],
        "totals": ledger.cash_flow_totals(),
    }


@router.post("/cash-flow", status_code=status.HTTP_201_CREATED)
def create_entry(
    payload: CashFlowCreate,
    _user: models.User = Depends(require_permission("cashflow.manage")),
    ledger: TenantLedger = Depends(get_ledger),
):
    item = ledger.create_cash_flow_item(
        entry_date=payload.date,
        description=payload.description,
        value=payload.value,
        entry_type=payload.type.value,
        payment_method=payload.payment_method.value if payload.payment_method else None,
        observation=payload.observation,
    )
    return to_response(item).model_dump(mode="json")


@router.patch("/cash-flow/{item_id}")
def update_entry(
    item_id: str,
    payload: CashFlowUpdate,
    _user: models.User = Depends(require_permission("cashflow.manage")),
    ledger: TenantLedger = Depends(get_ledger),
):
    changes = payload.model_dump(exclude_unset=True, mode="json")
    if payload.date is not None:
        changes["date"] = payload.date
    try:
        item = ledger.update_cash_flow_item(item_id, changes)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    return to_response(item).model_dump(mode="json")


@router.delete("/cash-flow/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_entry(
    item_id: str,
    _user: models.User = Depends(require_permission("cashflow.manage")),
    ledger: TenantLedger = Depends(get_ledger),
):
    try:
        ledger.delete_cash_flow_item(item_id)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
