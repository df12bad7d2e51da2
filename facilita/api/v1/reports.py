import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from facilita.core.authorization import get_ledger
from facilita.core.security import require_permission
from facilita.db import models
from facilita.db.session import get_db
from facilita.ledger.schemas import CompanySettingsData, PaymentMethod
from facilita.ledger.service import TenantLedger, current_month
from facilita.ledger.snapshot import load_app_data
from facilita.reports.builder import PLAN_STATUS_FILTERS, REPORT_TYPES, ReportFilters, build_report
from facilita.reports.pdf_service import render_report_pdf, report_filename
from facilita.reports.xlsx import build_report_xlsx

router = APIRouter(tags=["Relatorios"])
logger = logging.getLogger("facilita.reports")

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@router.get("/reports/{report_type}")
def export_report(
    report_type: str,
    format: str = Query("pdf", pattern="^(pdf|xlsx)$"),
    start_date: date | None = None,
    end_date: date | None = None,
    cash_flow_type: str = "all",
    payment_methods: list[PaymentMethod] = Query(default=[]),
    plan_status: str = "all",
    month: str | None = Query(None, pattern=r"^\d{4}-(0[1-9]|1[0-2])$"),
    _user: models.User = Depends(require_permission("reports.view")),
    ledger: TenantLedger = Depends(get_ledger),
    db: Session = Depends(get_db),
):
    if report_type not in REPORT_TYPES:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tipo de relatorio invalido")
    if plan_status not in PLAN_STATUS_FILTERS:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Filtro de status invalido")
    if cash_flow_type not in {"all", "Entrada", "Saída"}:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Tipo de lancamento invalido")

    data = load_app_data(db, ledger.tenant_id)
    filters = ReportFilters(
        start_date=start_date,
        end_date=end_date,
        cash_flow_type=cash_flow_type,
        payment_methods=[method.value for method in payment_methods],
        plan_status=plan_status,
        month=month or current_month(),
    )
    table = build_report(data, report_type, filters)
    company = data.company_settings or CompanySettingsData()

    if format == "xlsx":
        content = build_report_xlsx(table, company)
        media_type = XLSX_MEDIA_TYPE
    else:
        content = render_report_pdf(table, company)
        media_type = "application/pdf"
    filename = report_filename(report_type, format)
    logger.info("report tenant=%s type=%s format=%s rows=%s", ledger.tenant_id, report_type, format, len(table.rows))
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
