from datetime import datetime
from io import BytesIO
from typing import Optional

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

from facilita.ledger.schemas import CompanySettingsData
from facilita.reports.builder import ReportTable


def build_report_xlsx(
    table: ReportTable, company: CompanySettingsData, now: Optional[datetime] = None
) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "RELATORIO"

    headers = list(table.headers)
    ws.append(headers)
    for cell in ws[1]:
        cell.font = Font(bold=True)
    for row in table.rows:
        ws.append(list(row))
    if table.totals:
        ws.append([])
        for label, value in table.totals:
            ws.append([label, value])

    ws.freeze_panes = "A2"
    for idx, _ in enumerate(headers, start=1):
        ws.column_dimensions[get_column_letter(idx)].width = 24

    info = wb.create_sheet("INFO")
    info["A1"] = "Empresa"
    info["B1"] = company.name
    info["A2"] = "Relatorio"
    info["B2"] = table.title
    info["A3"] = "Filtros"
    info["B3"] = table.filter_description
    info["A4"] = "Gerado em"
    info["B4"] = (now or datetime.now()).strftime("%d/%m/%Y %H:%M:%S")

    out = BytesIO()
    wb.save(out)
    return out.getvalue()
