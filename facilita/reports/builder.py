"""Report tables computed from a read-only :class:`AppData` snapshot."""

from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Optional

from facilita.ledger.schemas import AppData, CashFlowType

REPORT_TYPES = ("cashflow", "clients", "monthly", "plans")
PLAN_STATUS_FILTERS = ("all", "active", "inactive")


@dataclass
class ReportFilters:
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    cash_flow_type: str = "all"
    payment_methods: list[str] = field(default_factory=list)
    plan_status: str = "all"
    month: Optional[str] = None


@dataclass
class ReportTable:
    report_type: str
    title: str
    filter_description: str
    headers: list[str]
    rows: list[list[str]]
    totals: list[tuple[str, str]] = field(default_factory=list)
    right_aligned: set[int] = field(default_factory=set)
    centered: set[int] = field(default_factory=set)


def format_currency(value: float) -> str:
    formatted = f"{abs(value):,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")
    return f"-R$ {formatted}" if value < 0 else f"R$ {formatted}"


def format_date(value: date) -> str:
    return value.strftime("%d/%m/%Y")


def _join_methods(methods: Iterable[str]) -> str:
    return ", ".join(methods)


def build_cash_flow_report(data: AppData, filters: ReportFilters) -> ReportTable:
    items = list(data.cash_flow)
    start, end = filters.start_date, filters.end_date
    if start and not end:
        items = [item for item in items if item.date == start]
        description = f"Data: {format_date(start)}"
    elif start and end:
        items = [item for item in items if start <= item.date <= end]
        description = f"Período: {format_date(start)} a {format_date(end)}"
    elif end:
        items = [item for item in items if item.date <= end]
        description = f"Período: até {format_date(end)}"
    else:
        description = "Período: Completo"

    if filters.cash_flow_type != "all":
        items = [item for item in items if item.type == filters.cash_flow_type]
        description += f" | Tipo: {filters.cash_flow_type}"

    if filters.payment_methods:
        items = [item for item in items if item.payment_method and item.payment_method in filters.payment_methods]
        description += f" | Meios: {_join_methods(filters.payment_methods)}"
    else:
        description += " | Meios: Todos"

    items.sort(key=lambda item: item.date, reverse=True)

    income = sum(item.value for item in items if item.type == CashFlowType.INCOME.value)
    expense = sum(item.value for item in items if item.type == CashFlowType.EXPENSE.value)
    return ReportTable(
        report_type="cashflow",
        title="Fluxo de Caixa",
        filter_description=description,
        headers=["Data", "Descrição", "Tipo", "Meio", "Valor"],
        rows=[
            [
                format_date(item.date),
                item.description,
                item.type,
                item.payment_method or "-",
                format_currency(item.value),
            ]
            for item in items
        ],
        totals=[
            ("Entradas", format_currency(income)),
            ("Saídas", format_currency(expense)),
            ("Saldo do Período", format_currency(income - expense)),
        ],
        right_aligned={4},
    )


def build_clients_report(data: AppData) -> ReportTable:
    plans = {plan.id: plan for plan in data.plans}
    rows = []
    for client in data.clients:
        plan = plans.get(client.plan_id) if client.plan_id else None
        rows.append(
            [
                client.name,
                client.document,
                plan.name if plan else "-",
                format_currency(plan.monthly_fee if plan else 0),
                f"Dia {client.due_day}",
                "Ativo" if client.active else "Inativo",
            ]
        )
    return ReportTable(
        report_type="clients",
        title="Relatório de Clientes",
        filter_description="Todos os Clientes Ativos e Inativos",
        headers=["Nome", "Documento", "Plano", "Valor", "Vencimento", "Status"],
        rows=rows,
    )


def build_monthly_report(data: AppData, month: str) -> ReportTable:
    clients = {client.id: client for client in data.clients}
    plans = {plan.id: plan for plan in data.plans}
    rows = []
    for record in data.records:
        if record.month != month:
            continue
        client = clients.get(record.client_id)
        plan = plans.get(client.plan_id) if client and client.plan_id else None
        rows.append(
            [
                client.name if client else "-",
                plan.name if plan else "-",
                f"{record.services_used} / {plan.service_limit if plan else 0}",
                record.status,
                record.notes or "-",
            ]
        )
    return ReportTable(
        report_type="monthly",
        title=f"Controle Mensal - {month}",
        filter_description="Status de consumo e pagamentos do mês",
        headers=["Cliente", "Plano", "Uso / Limite", "Status Pagto", "Observações"],
        rows=rows,
    )


def build_plans_report(data: AppData, plan_status: str = "all") -> ReportTable:
    plans = list(data.plans)
    if plan_status == "active":
        plans = [plan for plan in plans if plan.active]
        description = "Filtro: Apenas Ativos"
    elif plan_status == "inactive":
        plans = [plan for plan in plans if not plan.active]
        description = "Filtro: Apenas Inativos"
    else:
        description = "Filtro: Todos"

    rows = []
    for plan in plans:
        client_count = sum(1 for client in data.clients if client.plan_id == plan.id)
        rows.append(
            [
                plan.name,
                format_currency(plan.monthly_fee),
                str(plan.service_limit),
                str(client_count),
                "Ativo" if plan.active else "Inativo",
            ]
        )
    return ReportTable(
        report_type="plans",
        title="Planos e Limites",
        filter_description=description,
        headers=["Nome do Plano", "Valor Mensal", "Limite", "Clientes", "Status"],
        rows=rows,
        right_aligned={1},
        centered={2, 3},
    )


def build_report(data: AppData, report_type: str, filters: ReportFilters) -> ReportTable:
    if report_type == "cashflow":
        return build_cash_flow_report(data, filters)
    if report_type == "clients":
        return build_clients_report(data)
    if report_type == "monthly":
        if not filters.month:
            raise ValueError("Mes obrigatorio para o relatorio mensal")
        return build_monthly_report(data, filters.month)
    if report_type == "plans":
        return build_plans_report(data, filters.plan_status)
    raise ValueError("Tipo de relatorio invalido")
