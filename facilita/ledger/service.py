import logging
import uuid
from dataclasses import dataclass
from datetime import date
from typing import Any, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from facilita.db import models
from facilita.ledger.errors import (
    NotFoundError,
    PermissionDeniedError,
    PlanInUseError,
    QuotaExceededError,
    UsageLimitExceeded,
    ValidationError,
)
from facilita.ledger.schemas import CashFlowType, PaymentMethod, PaymentStatus, Role

logger = logging.getLogger("facilita.ledger")

DEFAULT_USER_PASSWORD = "123456"
CLIENT_SORTS = {"name", "dueDay", "plan"}
CASH_FLOW_SORTS = {"date_desc", "date_asc", "value_desc", "value_asc"}


@dataclass
class ExtraChargeDecision:
    charge: bool
    value: float = 0.0
    payment_method: str = PaymentMethod.PIX.value


@dataclass
class UsageOutcome:
    record: models.MonthlyRecord
    log: models.UsageLog
    over_limit: bool
    charge: Optional[models.CashFlowItem] = None


def current_month(today: Optional[date] = None) -> str:
    return (today or date.today()).strftime("%Y-%m")


def _matches(term: str, *values: Optional[str]) -> bool:
    return any(term in (value or "").lower() for value in values)


def _clean_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    cleaned = value.strip()
    return cleaned or None


class TenantLedger:
    """Business rules over a single tenant's data.

    Every query is filtered by ``tenant_id``; mutations commit immediately and
    bump the tenant ``data_revision`` so pollers can detect changes.
    """

    def __init__(self, db: Session, tenant_id: str):
        self.db = db
        self.tenant_id = tenant_id

    # -- infrastructure -------------------------------------------------

    def tenant(self) -> models.Tenant:
        tenant = self.db.query(models.Tenant).filter(models.Tenant.id == self.tenant_id).first()
        if not tenant:
            raise NotFoundError("Empresa nao encontrada")
        return tenant

    def _commit(self) -> None:
        tenant = self.tenant()
        tenant.data_revision = (tenant.data_revision or 0) + 1
        self.db.commit()

    # -- plans ------------------------------------------------------------

    def list_plans(self, search: Optional[str] = None) -> list[models.Plan]:
        plans = (
            self.db.query(models.Plan)
            .filter(models.Plan.tenant_id == self.tenant_id)
            .order_by(models.Plan.created_at.asc())
            .all()
        )
        if search:
            term = search.strip().lower()
            plans = [plan for plan in plans if term in plan.name.lower()]
        return plans

    def get_plan(self, plan_id: str) -> models.Plan:
        plan = (
            self.db.query(models.Plan)
            .filter(models.Plan.id == plan_id, models.Plan.tenant_id == self.tenant_id)
            .first()
        )
        if not plan:
            raise NotFoundError("Plano nao encontrado")
        return plan

    def create_plan(self, name: str, monthly_fee: float, service_limit: int, active: bool = True) -> models.Plan:
        plan = models.Plan(
            id=str(uuid.uuid4()),
            tenant_id=self.tenant_id,
            name=name.strip(),
            monthly_fee=float(monthly_fee),
            service_limit=int(service_limit),
            active=active,
        )
        self.db.add(plan)
        self._commit()
        self.db.refresh(plan)
        return plan

    def update_plan(self, plan_id: str, changes: dict[str, Any]) -> models.Plan:
        plan = self.get_plan(plan_id)
        if changes.get("name") is not None:
            plan.name = _clean_text(changes["name"]) or plan.name
        if changes.get("monthly_fee") is not None:
            plan.monthly_fee = float(changes["monthly_fee"])
        if changes.get("service_limit") is not None:
            plan.service_limit = int(changes["service_limit"])
        if changes.get("active") is not None:
            plan.active = bool(changes["active"])
        self._commit()
        self.db.refresh(plan)
        return plan

    def delete_plan(self, plan_id: str) -> None:
        plan = self.get_plan(plan_id)
        in_use = (
            self.db.query(models.Client)
            .filter(models.Client.tenant_id == self.tenant_id, models.Client.plan_id == plan.id)
            .count()
        )
        if in_use:
            raise PlanInUseError(plan.id, in_use)
        self.db.delete(plan)
        self._commit()

    def clients_per_plan(self) -> dict[str, int]:
        rows = (
            self.db.query(models.Client.plan_id, func.count(models.Client.id))
            .filter(models.Client.tenant_id == self.tenant_id)
            .group_by(models.Client.plan_id)
            .all()
        )
        return {plan_id: count for plan_id, count in rows if plan_id}

    # -- clients ----------------------------------------------------------

    def list_clients(
        self,
        search: Optional[str] = None,
        plan_id: Optional[str] = None,
        due_day: Optional[int] = None,
        sort: str = "name",
    ) -> list[models.Client]:
        if sort not in CLIENT_SORTS:
            raise ValidationError("Ordenacao invalida")
        query = self.db.query(models.Client).filter(models.Client.tenant_id == self.tenant_id)
        if plan_id and plan_id != "all":
            query = query.filter(models.Client.plan_id == plan_id)
        if due_day is not None:
            query = query.filter(models.Client.due_day == due_day)
        clients = query.all()

        if search:
            term = search.strip().lower()
            clients = [
                client
                for client in clients
                if _matches(term, client.name, client.document, client.contact, client.plan.name if client.plan else "")
            ]

        if sort == "dueDay":
            clients.sort(key=lambda c: c.due_day)
        elif sort == "plan":
            clients.sort(key=lambda c: (c.plan.name if c.plan else "").casefold())
        else:
            clients.sort(key=lambda c: c.name.casefold())
        return clients

    def due_days(self) -> list[int]:
        rows = (
            self.db.query(models.Client.due_day)
            .filter(models.Client.tenant_id == self.tenant_id)
            .distinct()
            .all()
        )
        return sorted(day for (day,) in rows)

    def get_client(self, client_id: str) -> models.Client:
        client = (
            self.db.query(models.Client)
            .filter(models.Client.id == client_id, models.Client.tenant_id == self.tenant_id)
            .first()
        )
        if not client:
            raise NotFoundError("Cliente nao encontrado")
        return client

    def create_client(
        self,
        name: str,
        plan_id: str,
        document: str = "",
        contact: str = "",
        due_day: int = 10,
        active: bool = True,
    ) -> models.Client:
        self.get_plan(plan_id)
        client = models.Client(
            id=str(uuid.uuid4()),
            tenant_id=self.tenant_id,
            name=name.strip(),
            document=(document or "").strip(),
            contact=(contact or "").strip(),
            plan_id=plan_id,
            due_day=due_day or 10,
            active=active,
        )
        self.db.add(client)
        self._commit()
        self.db.refresh(client)
        return client

    def update_client(self, client_id: str, changes: dict[str, Any]) -> models.Client:
        client = self.get_client(client_id)
        if changes.get("plan_id") is not None:
            client.plan_id = self.get_plan(changes["plan_id"]).id
        if changes.get("name") is not None:
            client.name = _clean_text(changes["name"]) or client.name
        if changes.get("document") is not None:
            client.document = changes["document"].strip()
        if changes.get("contact") is not None:
            client.contact = changes["contact"].strip()
        if changes.get("due_day") is not None:
            client.due_day = int(changes["due_day"])
        if changes.get("active") is not None:
            client.active = bool(changes["active"])
        self._commit()
        self.db.refresh(client)
        return client

    def delete_client(self, client_id: str, actor_role: str) -> None:
        if actor_role not in {Role.SUPERVISOR.value, Role.MANAGER.value}:
            raise PermissionDeniedError("Apenas Supervisores ou Gestores podem excluir clientes.")
        client = self.get_client(client_id)
        self.db.delete(client)
        self._commit()

    # -- monthly records ----------------------------------------------------

    def get_record(self, client_id: str, month: str) -> Optional[models.MonthlyRecord]:
        return (
            self.db.query(models.MonthlyRecord)
            .filter(
                models.MonthlyRecord.tenant_id == self.tenant_id,
                models.MonthlyRecord.client_id == client_id,
                models.MonthlyRecord.month == month,
            )
            .first()
        )

    def _get_or_create_record(self, client: models.Client, month: str) -> models.MonthlyRecord:
        record = self.get_record(client.id, month)
        if record:
            return record
        record = models.MonthlyRecord(
            id=str(uuid.uuid4()),
            tenant_id=self.tenant_id,
            client_id=client.id,
            month=month,
            services_used=0,
            status=PaymentStatus.PENDING.value,
        )
        self.db.add(record)
        self.db.flush()
        return record

    def monthly_overview(self, month: str, search: Optional[str] = None) -> list[dict[str, Any]]:
        clients = (
            self.db.query(models.Client)
            .filter(models.Client.tenant_id == self.tenant_id, models.Client.active.is_(True))
            .order_by(models.Client.name.asc())
            .all()
        )
        records = {
            record.client_id: record
            for record in self.db.query(models.MonthlyRecord)
            .filter(models.MonthlyRecord.tenant_id == self.tenant_id, models.MonthlyRecord.month == month)
            .all()
        }
        term = (search or "").strip().lower()
        rows = []
        for client in clients:
            plan = client.plan
            if term and not _matches(term, client.name, plan.name if plan else ""):
                continue
            record = records.get(client.id)
            usage = record.services_used if record else 0
            limit = plan.service_limit if plan else 0
            rows.append(
                {
                    "client": client,
                    "plan": plan,
                    "record": record,
                    "services_used": usage,
                    "service_limit": limit,
                    "over_limit": limit > 0 and usage > limit,
                    "status": record.status if record else PaymentStatus.PENDING.value,
                    "notes": record.notes if record else None,
                }
            )
        return rows

    def update_record(
        self,
        client_id: str,
        month: str,
        status: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> models.MonthlyRecord:
        client = self.get_client(client_id)
        record = self._get_or_create_record(client, month)
        if status is not None:
            record.status = PaymentStatus(status).value
        if notes is not None:
            record.notes = notes
        self._commit()
        self.db.refresh(record)
        return record

    def _append_usage(
        self,
        record: models.MonthlyRecord,
        description: str,
        quantity: int,
        today: date,
    ) -> models.UsageLog:
        history = list(record.usage_history)
        log = models.UsageLog(
            id=str(uuid.uuid4()),
            position=(max((item.position for item in history), default=-1) + 1),
            date=today,
            description=description,
            quantity=int(quantity),
        )
        record.usage_history.append(log)
        record.services_used = sum(item.quantity for item in record.usage_history)
        return log

    def add_usage(
        self,
        client_id: str,
        month: str,
        description: str,
        quantity: int,
        decision: Optional[ExtraChargeDecision] = None,
        today: Optional[date] = None,
    ) -> UsageOutcome:
        description = (description or "").strip()
        if not description or quantity <= 0:
            raise ValidationError("Descricao e quantidade positiva sao obrigatorias")
        today = today or date.today()
        client = self.get_client(client_id)
        plan = client.plan
        record = self.get_record(client.id, month)
        current_usage = record.services_used if record else 0
        limit = plan.service_limit if plan else 0
        over_limit = limit > 0 and current_usage + quantity > limit

        if over_limit and decision is None:
            raise UsageLimitExceeded(client.id, current_usage, limit, quantity)

        record = record or self._get_or_create_record(client, month)
        log = self._append_usage(record, description, quantity, today)

        charge = None
        if over_limit and decision.charge:
            charge = models.CashFlowItem(
                id=str(uuid.uuid4()),
                tenant_id=self.tenant_id,
                date=today,
                description=f"Serviço Adicional - {description} ({client.name or 'Cliente'})",
                value=float(decision.value or 0),
                type=CashFlowType.INCOME.value,
                payment_method=PaymentMethod(decision.payment_method).value,
                observation="Cobrança por limite excedido",
            )
            self.db.add(charge)
            logger.info(
                "extra charge tenant=%s client=%s value=%.2f", self.tenant_id, client.id, charge.value
            )
        self._commit()
        self.db.refresh(record)
        return UsageOutcome(record=record, log=log, over_limit=over_limit, charge=charge)

    def delete_usage_log(self, client_id: str, month: str, log_id: str) -> models.MonthlyRecord:
        record = self.get_record(client_id, month)
        if not record:
            raise NotFoundError("Registro mensal nao encontrado")
        log = next((item for item in record.usage_history if item.id == log_id), None)
        if not log:
            raise NotFoundError("Lancamento de uso nao encontrado")
        record.usage_history.remove(log)
        record.services_used = sum(item.quantity for item in record.usage_history)
        self._commit()
        self.db.refresh(record)
        return record

    def renew(
        self,
        client_id: str,
        month: str,
        add_to_cash_flow: bool = False,
        payment_method: str = PaymentMethod.PIX.value,
        today: Optional[date] = None,
    ) -> tuple[models.MonthlyRecord, Optional[models.CashFlowItem]]:
        today = today or date.today()
        client = self.get_client(client_id)
        plan = client.plan
        if not plan:
            raise ValidationError("Cliente sem plano vinculado")

        note = f"Renovado manualmente em {today.strftime('%d/%m/%Y')}"
        record = self.get_record(client.id, month)
        if record:
            history_note = f"[Ciclo Fechado: {record.services_used} serviços]"
            record.notes = f"{record.notes} | {history_note} | {note}" if record.notes else f"{history_note} | {note}"
            record.status = PaymentStatus.PENDING.value
            record.services_used = 0
            record.usage_history.clear()
        else:
            record = self._get_or_create_record(client, month)
            record.notes = note

        entry = None
        if add_to_cash_flow:
            entry = models.CashFlowItem(
                id=str(uuid.uuid4()),
                tenant_id=self.tenant_id,
                date=today,
                description=f"Mensalidade - {client.name}",
                value=float(plan.monthly_fee),
                type=CashFlowType.INCOME.value,
                payment_method=PaymentMethod(payment_method).value,
                observation="Lançado automaticamente via renovação mensal",
            )
            self.db.add(entry)
        self._commit()
        self.db.refresh(record)
        logger.info("renewal tenant=%s client=%s month=%s", self.tenant_id, client.id, month)
        return record, entry

    # -- cash flow --------------------------------------------------------

    def list_cash_flow(
        self,
        entry_type: Optional[str] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
        sort: str = "date_desc",
    ) -> list[models.CashFlowItem]:
        if sort not in CASH_FLOW_SORTS:
            raise ValidationError("Ordenacao invalida")
        query = self.db.query(models.CashFlowItem).filter(models.CashFlowItem.tenant_id == self.tenant_id)
        if entry_type and entry_type != "all":
            query = query.filter(models.CashFlowItem.type == CashFlowType(entry_type).value)
        if start:
            query = query.filter(models.CashFlowItem.date >= start)
        if end:
            query = query.filter(models.CashFlowItem.date <= end)
        ordering = {
            "date_desc": (models.CashFlowItem.date.desc(), models.CashFlowItem.created_at.desc()),
            "date_asc": (models.CashFlowItem.date.asc(), models.CashFlowItem.created_at.asc()),
            "value_desc": (models.CashFlowItem.value.desc(),),
            "value_asc": (models.CashFlowItem.value.asc(),),
        }[sort]
        return query.order_by(*ordering).all()

    def cash_flow_totals(self) -> dict[str, float]:
        rows = (
            self.db.query(models.CashFlowItem.type, func.coalesce(func.sum(models.CashFlowItem.value), 0))
            .filter(models.CashFlowItem.tenant_id == self.tenant_id)
            .group_by(models.CashFlowItem.type)
            .all()
        )
        sums = {entry_type: float(total) for entry_type, total in rows}
        income = sums.get(CashFlowType.INCOME.value, 0.0)
        expense = sums.get(CashFlowType.EXPENSE.value, 0.0)
        return {"income": income, "expense": expense, "balance": income - expense}

    def get_cash_flow_item(self, item_id: str) -> models.CashFlowItem:
        item = (
            self.db.query(models.CashFlowItem)
            .filter(models.CashFlowItem.id == item_id, models.CashFlowItem.tenant_id == self.tenant_id)
            .first()
        )
        if not item:
            raise NotFoundError("Lancamento nao encontrado")
        return item

    def create_cash_flow_item(
        self,
        entry_date: date,
        description: str,
        value: float,
        entry_type: str = CashFlowType.INCOME.value,
        payment_method: Optional[str] = None,
        observation: Optional[str] = None,
    ) -> models.CashFlowItem:
        item = models.CashFlowItem(
            id=str(uuid.uuid4()),
            tenant_id=self.tenant_id,
            date=entry_date,
            description=description.strip(),
            value=float(value),
            type=CashFlowType(entry_type).value,
            payment_method=PaymentMethod(payment_method).value if payment_method else None,
            observation=_clean_text(observation),
        )
        self.db.add(item)
        self._commit()
        self.db.refresh(item)
        return item

    def update_cash_flow_item(self, item_id: str, changes: dict[str, Any]) -> models.CashFlowItem:
        item = self.get_cash_flow_item(item_id)
        if changes.get("date") is not None:
            item.date = changes["date"]
        if changes.get("description") is not None:
            item.description = _clean_text(changes["description"]) or item.description
        if changes.get("value") is not None:
            item.value = float(changes["value"])
        if changes.get("type") is not None:
            item.type = CashFlowType(changes["type"]).value
        if "payment_method" in changes:
            method = changes["payment_method"]
            item.payment_method = PaymentMethod(method).value if method else None
        if "observation" in changes:
            item.observation = _clean_text(changes["observation"])
        self._commit()
        self.db.refresh(item)
        return item

    def delete_cash_flow_item(self, item_id: str) -> None:
        item = self.get_cash_flow_item(item_id)
        self.db.delete(item)
        self._commit()

    # -- users ------------------------------------------------------------

    def list_users(self) -> list[models.User]:
        return (
            self.db.query(models.User)
            .filter(models.User.tenant_id == self.tenant_id)
            .order_by(models.User.created_at.asc())
            .all()
        )

    def get_user(self, user_id: str) -> models.User:
        user = (
            self.db.query(models.User)
            .filter(models.User.id == user_id, models.User.tenant_id == self.tenant_id)
            .first()
        )
        if not user:
            raise NotFoundError("Usuario nao encontrado")
        return user

    def _email_taken(self, email: str, exclude_id: Optional[str] = None) -> bool:
        query = self.db.query(models.User).filter(
            models.User.tenant_id == self.tenant_id, func.lower(models.User.email) == email
        )
        if exclude_id:
            query = query.filter(models.User.id != exclude_id)
        return query.first() is not None

    def create_user(self, name: str, email: str, role: str, password_hash: str) -> models.User:
        if Role(role) == Role.MASTER:
            raise ValidationError("Perfil invalido")
        tenant = self.tenant()
        if len(self.list_users()) >= tenant.max_users:
            raise QuotaExceededError(f"Limite de {tenant.max_users} usuarios atingido para esta empresa.")
        normalized = email.strip().lower()
        if self._email_taken(normalized):
            raise ValidationError("Email ja cadastrado")
        user = models.User(
            id=str(uuid.uuid4()),
            tenant_id=self.tenant_id,
            name=name.strip(),
            email=normalized,
            role=Role(role).value,
            password_hash=password_hash,
        )
        self.db.add(user)
        self._commit()
        self.db.refresh(user)
        return user

    def update_user(self, actor_id: str, user_id: str, changes: dict[str, Any]) -> models.User:
        user = self.get_user(user_id)
        if changes.get("role") is not None and Role(changes["role"]).value != user.role:
            if user.id == actor_id:
                raise PermissionDeniedError("Voce nao pode alterar o proprio perfil de acesso.")
            if Role(changes["role"]) == Role.MASTER:
                raise ValidationError("Perfil invalido")
            user.role = Role(changes["role"]).value
        if changes.get("name") is not None:
            user.name = _clean_text(changes["name"]) or user.name
        if changes.get("email") is not None:
            normalized = changes["email"].strip().lower()
            if self._email_taken(normalized, exclude_id=user.id):
                raise ValidationError("Email ja cadastrado")
            user.email = normalized
        if changes.get("password_hash"):
            user.password_hash = changes["password_hash"]
        self._commit()
        self.db.refresh(user)
        return user

    def delete_user(self, actor_id: str, user_id: str) -> None:
        if actor_id == user_id:
            raise PermissionDeniedError(
                "Voce nao pode excluir sua propria conta por aqui. Use a opcao de perfil."
            )
        user = self.get_user(user_id)
        self.db.delete(user)
        self._commit()

    # -- settings ---------------------------------------------------------

    def company_settings(self) -> dict[str, Optional[str]]:
        tenant = self.tenant()
        return {
            "name": tenant.settings_name or tenant.name,
            "address": tenant.settings_address,
            "logo_base64": tenant.logo_data_url,
        }

    def update_company_settings(
        self,
        name: Optional[str] = None,
        address: Optional[str] = None,
        logo_base64: Optional[str] = None,
        remove_logo: bool = False,
    ) -> dict[str, Optional[str]]:
        tenant = self.tenant()
        if name is not None:
            tenant.settings_name = _clean_text(name)
        if address is not None:
            tenant.settings_address = _clean_text(address)
        if remove_logo:
            tenant.logo_data_url = None
        elif logo_base64:
            if not logo_base64.startswith("data:image/"):
                raise ValidationError("Logo deve ser uma imagem em data URL")
            tenant.logo_data_url = logo_base64
        self._commit()
        return self.company_settings()

    # -- aggregates ---------------------------------------------------------

    def monthly_summary(self, month: str) -> dict[str, Any]:
        records = (
            self.db.query(models.MonthlyRecord)
            .filter(models.MonthlyRecord.tenant_id == self.tenant_id, models.MonthlyRecord.month == month)
            .all()
        )
        confirmed = 0.0
        potential = 0.0
        counts = {status.value: 0 for status in PaymentStatus}
        over_limit = 0
        for record in records:
            plan = record.client.plan if record.client else None
            fee = plan.monthly_fee if plan else 0.0
            potential += fee
            if record.status == PaymentStatus.PAID.value:
                confirmed += fee
            counts[record.status] = counts.get(record.status, 0) + 1
            if plan and plan.service_limit > 0 and record.services_used > plan.service_limit:
                over_limit += 1

        active_clients = (
            self.db.query(models.Client)
            .filter(models.Client.tenant_id == self.tenant_id, models.Client.active.is_(True))
            .count()
        )
        return {
            "month": month,
            "confirmed_revenue": confirmed,
            "potential_revenue": potential,
            "paid_count": counts[PaymentStatus.PAID.value],
            "pending_count": counts[PaymentStatus.PENDING.value],
            "late_count": counts[PaymentStatus.LATE.value],
            "over_limit_count": over_limit,
            "active_clients": active_clients,
            "cash_flow": self.cash_flow_totals(),
        }
