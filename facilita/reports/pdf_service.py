from datetime import datetime
from typing import Optional

from jinja2 import Template
from weasyprint import HTML

from facilita.ledger.schemas import CompanySettingsData
from facilita.reports.builder import ReportTable

_TEMPLATE = Template(
    """
<!doctype html>
<html lang="pt-br">
<head>
  <meta charset="utf-8" />
  <style>
    @page {
      size: A4;
      margin: 18mm 14mm 20mm 14mm;
      @bottom-center {
        content: "Página " counter(page) " de " counter(pages);
        font-family: Helvetica, Arial, sans-serif;
        font-size: 8pt;
        color: #94a3b8;
      }
    }
    * { box-sizing: border-box; }
    body {
      font-family: Helvetica, Arial, sans-serif;
      color: #0f172a;
      font-size: 9pt;
      margin: 0;
    }
    .header {
      display: flex;
      align-items: center;
      gap: 14px;
      padding: 14px 16px;
      border-radius: 10px;
      background: #4f46e5;
      color: #ffffff;
      margin-bottom: 16px;
    }
    .header img {
      max-height: 44px;
      max-width: 120px;
      background: #ffffff;
      border-radius: 6px;
      padding: 4px;
    }
    .header h1 { font-size: 15pt; margin: 0; }
    .header p { margin: 2px 0 0 0; font-size: 8pt; opacity: 0.85; }
    .title { font-size: 13pt; font-weight: bold; margin: 0 0 4px 0; }
    .meta { color: #475569; font-size: 8pt; margin: 0 0 2px 0; }
    table {
      width: 100%;
      border-collapse: collapse;
      margin-top: 12px;
    }
    thead { display: table-header-group; }
    th {
      background: #eef2ff;
      color: #312e81;
      text-align: left;
      padding: 6px;
      font-size: 8pt;
      border-bottom: 1px solid #c7d2fe;
    }
    td {
      padding: 5px 6px;
      border-bottom: 1px solid #e2e8f0;
    }
    tr:nth-child(even) td { background: #f8fafc; }
    .right { text-align: right; }
    .center { text-align: center; }
    .empty { text-align: center; color: #94a3b8; padding: 18px; }
    .totals {
      margin-top: 14px;
      margin-left: auto;
      width: 45%;
      border: 1px solid #e2e8f0;
      border-radius: 8px;
      padding: 8px 10px;
    }
    .totals div {
      display: flex;
      justify-content: space-between;
      padding: 2px 0;
    }
    .totals div:last-child { font-weight: bold; border-top: 1px solid #e2e8f0; margin-top: 4px; padding-top: 4px; }
  </style>
</head>
<body>
  <div class="header">
    {% if company.logo_base64 %}<img src="{{ company.logo_base64 }}" alt="logo" />{% endif %}
    <div>
      <h1>{{ company.name or "Facilita Caixa" }}</h1>
      {% if company.address %}<p>{{ company.address }}</p>{% endif %}
    </div>
  </div>

  <p class="title">{{ table.title }}</p>
  <p class="meta">{{ table.filter_description }}</p>
  <p class="meta">Gerado em: {{ generated_at }}</p>

  <table>
    <thead>
      <tr>
        {% for header in table.headers %}
          <th class="{% if loop.index0 in table.right_aligned %}right{% elif loop.index0 in table.centered %}center{% endif %}">{{ header }}</th>
        {% endfor %}
      </tr>
    </thead>
    <tbody>
      {% for row in table.rows %}
        <tr>
          {% for cell in row %}
            <td class="{% if loop.index0 in table.right_aligned %}right{% elif loop.index0 in table.centered %}center{% endif %}">{{ cell }}</td>
          {% endfor %}
        </tr>
      {% else %}
        <tr><td class="empty" colspan="{{ table.headers | length }}">Nenhum registro encontrado.</td></tr>
      {% endfor %}
    </tbody>
  </table>

  {% if table.totals %}
    <div class="totals">
      {% for label, value in table.totals %}
        <div><span>{{ label }}</span><span>{{ value }}</span></div>
      {% endfor %}
    </div>
  {% endif %}
</body>
</html>
""",
    autoescape=True,
)


def report_filename(report_type: str, extension: str, now: Optional[datetime] = None) -> str:
    stamp = int((now or datetime.now()).timestamp() * 1000)
    return f"relatorio_{report_type}_{stamp}.{extension}"


def render_report_html(
    table: ReportTable, company: CompanySettingsData, now: Optional[datetime] = None
) -> str:
    generated_at = (now or datetime.now()).strftime("%d/%m/%Y %H:%M:%S")
    return _TEMPLATE.render(table=table, company=company, generated_at=generated_at)


def render_report_pdf(
    table: ReportTable, company: CompanySettingsData, now: Optional[datetime] = None
) -> bytes:
    return HTML(string=render_report_html(table, company, now)).write_pdf()
