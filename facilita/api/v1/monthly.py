from datetime import date

from fastapi import APIRouter, Depends, Path, status
from pydantic import BaseModel, Field

from facilita.core.authorization import get_ledger
from facilita.core.errors import to_http_exception
from facilita.core.security import require_permission
from facilita.db import models
from facilita.ledger.errors import LedgerError
from facilita.ledger.schemas import MONTH_PATTERN, PaymentMethod, PaymentStatus
from facilita.ledger.service import ExtraChargeDecision, TenantLedger

router = APIRouter(tags=["Controle Mensal"])


class RecordUpdate(BaseModel):
    status: PaymentStatus | None = None
    notes: str | None = None


class ExtraCharge(BaseModel):
    charge: bool
    value: float = Field(0, ge=0)
    payment_method: PaymentMethod = PaymentMethod.PIX


class UsageCreate(BaseModel):
    description: str = Field(..., min_length=1)
    quantity: int = Field(1, ge=1)
    extra_charge: ExtraCharge | None = None


class RenewRequest(BaseModel):
    add_to_cash_flow: bool = False
    payment_method: PaymentMethod = PaymentMethod.PIX


def record_to_response(record: models.MonthlyRecord | None) -> dict | None:
    if record is None:
        return None
    return {
        "id": record.id,
        "client_id": record.client_id,
        "month": record.month,
        "services_used": record.services_used,
        "status": record.status,
        "notes": record.notes,
        "usage_history": [
            {
                "id": log.id,
                "date": log.date.isoformat(),
                "description": log.description,
                "quantity": log.quantity,
            }
            for log in record.usage_history
        ],
    }


def _cash_flow_entry(item: models.CashFlowItem | None) -> dict | None:
    if item is None:
        return None
    return {
        "id": item.id,
        "date": item.date.isoformat(),
        "description": item.description,
        "value": item.value,
        "type": item.type,
        "payment_method": item.payment_method,
        "observation": item.observation,
    }


@router.get("/monthly/{month}")
def monthly_overview(
    month: str = Path(..., pattern=MONTH_PATTERN),
    search: str | None = None,
    _user: models.User = Depends(require_permission("monthly.view")),
    ledger: TenantLedger = Depends(get_ledger),
):
    rows = ledger.monthly_overview(month, search)
    return {
        "month": month,
        "items": [
            {
                "client_id": row["client"].id,
                "client_name": row["client"].name,
                "due_day": row["client"].due_day,
                "plan_id": row["plan"].id if row["plan"] else None,
                "plan_name": row["plan"].name if row["plan"] else None,
                "monthly_fee": row["plan"].monthly_fee if row["plan"] else 0,
                "service_limit": row["service_limit"],
                "services_used": row["services_used"],
                "over_limit": row["over_limit"],
                "status": row["status"],
                "notes": row["notes"],
                "record": record_to_response(row["record"]),
            }
            for row in rows
        ],
    }


@router.patch("/monthly/{month}/clients/{client_id}")
def update_record(
    client_id: str,
    payload: RecordUpdate,
    month: str = Path(..., pattern=MONTH_PATTERN),
    _user: models.User = Depends(require_permission("monthly.manage")),
    ledger: TenantLedger = Depends(get_ledger),
):
    try:
        record = ledger.update_record(
            client_id,
            month,
            status=payload.status.value if payload.status else None,
            notes=payload.notes,
        )
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    return record_to_response(record)


@router.post("/monthly/{month}/clients/{client_id}/usage", status_code=status.HTTP_201_CREATED)
def add_usage(
    client_id: str,
    payload: UsageCreate,
    month: str = Path(..., pattern=MONTH_PATTERN),
    _user: models.User = Depends(require_permission("monthly.manage")),
    ledger: TenantLedger = Depends(get_ledger),
):
    """
    Registra consumo de servico. Quando o limite do plano seria excedido e
    ``extra_charge`` nao foi enviado, responde 409 ``USAGE_LIMIT_EXCEEDED`` sem
    gravar nada; o cliente reenvia com a decisao de cobranca.
    """
    decision = None
    if payload.extra_charge is not None:
        decision = ExtraChargeDecision(
            charge=payload.extra_charge.charge,
            value=payload.extra_charge.value,
            payment_method=payload.extra_charge.payment_method.value,
        )
    try:
        outcome = ledger.add_usage(
            client_id, month, payload.description, payload.quantity, decision=decision, today=date.today()
        )
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    return {
        "record": record_to_response(outcome.record),
        "log_id": outcome.log.id,
        "over_limit": outcome.over_limit,
        "charge": _cash_flow_entry(outcome.charge),
    }


@router.delete("/monthly/{month}/clients/{client_id}/usage/{log_id}")
def delete_usage_log(
    client_id: str,
    log_id: str,
    month: str = Path(..., pattern=MONTH_PATTERN),
    _user: models.User = Depends(require_permission("monthly.manage")),
    ledger: TenantLedger = Depends(get_ledger),
):
    try:
        record = ledger.delete_usage_log(client_id, month, log_id)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    return record_to_response(record)


@router.post("/monthly/{month}/clients/{client_id}/renew")
def renew(
    client_id: str,
    payload: RenewRequest,
    month: str = Path(..., pattern=MONTH_PATTERN),
    _user: models.User = Depends(require_permission("monthly.manage")),
    ledger: TenantLedger = Depends(get_ledger),
):
    try:
        record, entry = ledger.renew(
            client_id,
            month,
            add_to_cash_flow=payload.add_to_cash_flow,
            payment_method=payload.payment_method.value,
        )
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    return {"record": record_to_response(record), "cash_flow_entry": _cash_flow_entry(entry)}
