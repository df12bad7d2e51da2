from fastapi import APIRouter, Depends, Query

from facilita.core.authorization import get_ledger
from facilita.core.security import require_permission
from facilita.db import models
from facilita.ledger.schemas import MONTH_PATTERN
from facilita.ledger.service import TenantLedger, current_month
from facilita.services.insights import build_summary, get_financial_insights

router = APIRouter(tags=["Dashboard"])


@router.get("/dashboard")
def dashboard(
    month: str | None = Query(None, pattern=MONTH_PATTERN),
    _user: models.User = Depends(require_permission("dashboard.view")),
    ledger: TenantLedger = Depends(get_ledger),
):
    return ledger.monthly_summary(month or current_month())


@router.post("/dashboard/insights")
def dashboard_insights(
    month: str | None = Query(None, pattern=MONTH_PATTERN),
    _user: models.User = Depends(require_permission("dashboard.view")),
    ledger: TenantLedger = Depends(get_ledger),
):
    summary = ledger.monthly_summary(month or current_month())
    return {"month": summary["month"], "insight": get_financial_insights(build_summary(summary))}
