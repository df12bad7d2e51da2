"""Whole-tenant load/save of :class:`AppData`.

Used for backup export/restore and for read-only report snapshots. Regular
mutations go through :class:`facilita.ledger.service.TenantLedger` row by row;
a full save replaces every row of the tenant and is guarded by the tenant
``data_revision`` when the caller passes ``expected_revision``.
"""

import logging
import uuid
from datetime import date
from typing import Any, Callable, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from facilita.db import models
from facilita.ledger.errors import ConflictError, NotFoundError, QuotaExceededError, ValidationError
from facilita.ledger.schemas import (
    AppData,
    CashFlowItemData,
    ClientData,
    CompanySettingsData,
    MonthlyRecordData,
    PlanData,
    Role,
    UsageLogData,
    UserData,
)

logger = logging.getLogger("facilita.ledger")

BACKUP_REQUIRED_KEYS = ("users", "clients", "records")
INVALID_BACKUP_MESSAGE = "Arquivo de backup inválido."


def _get_tenant(db: Session, tenant_id: str) -> models.Tenant:
    tenant = db.query(models.Tenant).filter(models.Tenant.id == tenant_id).first()
    if not tenant:
        raise NotFoundError("Empresa nao encontrada")
    return tenant


def get_revision(db: Session, tenant_id: str) -> int:
    return _get_tenant(db, tenant_id).data_revision or 0


def load_app_data(db: Session, tenant_id: str) -> AppData:
    tenant = _get_tenant(db, tenant_id)
    return AppData(
        users=[
            UserData(id=u.id, name=u.name, email=u.email, role=u.role, company_id=tenant.id)
            for u in tenant.users
        ],
        plans=[
            PlanData(
                id=p.id,
                name=p.name,
                monthly_fee=p.monthly_fee,
                service_limit=p.service_limit,
                active=p.active,
            )
            for p in tenant.plans
        ],
        clients=[
            ClientData(
                id=c.id,
                name=c.name,
                document=c.document or "",
                contact=c.contact or "",
                plan_id=c.plan_id,
                active=c.active,
                due_day=c.due_day,
            )
            for c in tenant.clients
        ],
        records=[
            MonthlyRecordData(
                id=r.id,
                client_id=r.client_id,
                month=r.month,
                services_used=r.services_used,
                usage_history=[
                    UsageLogData(id=log.id, date=log.date, description=log.description, quantity=log.quantity)
                    for log in r.usage_history
                ],
                status=r.status,
                notes=r.notes,
            )
            for r in tenant.records
        ],
        cash_flow=[
            CashFlowItemData(
                id=item.id,
                date=item.date,
                description=item.description,
                value=item.value,
                type=item.type,
                payment_method=item.payment_method,
                observation=item.observation,
            )
            for item in tenant.cash_flow
        ],
        company_settings=CompanySettingsData(
            name=tenant.settings_name or tenant.name,
            address=tenant.settings_address,
            logo_base64=tenant.logo_data_url,
        ),
    )


def parse_backup(payload: Any) -> AppData:
    if not isinstance(payload, dict) or any(key not in payload for key in BACKUP_REQUIRED_KEYS):
        raise ValidationError(INVALID_BACKUP_MESSAGE)
    try:
        return AppData.model_validate(payload)
    except PydanticValidationError as exc:
        logger.warning("backup rejected: %s", exc.errors()[:3])
        raise ValidationError(INVALID_BACKUP_MESSAGE) from exc


def _month_start(month: str) -> date:
    year, month_number = month.split("-")
    return date(int(year), int(month_number), 1)


def save_app_data(
    db: Session,
    tenant_id: str,
    data: AppData,
    hash_password: Callable[[str], str],
    expected_revision: Optional[int] = None,
    acting_user_id: Optional[str] = None,
) -> int:
    """Replace all data of the tenant with ``data``; returns the new revision.

    Ids are regenerated so backups from other tenants never collide. Users are
    matched by e-mail and keep their password hash unless the backup carries a
    password. The acting user is kept even when the backup does not list them,
    and the restored team must still have a Gestor and fit ``max_users``.
    """
    tenant = _get_tenant(db, tenant_id)
    if expected_revision is not None and expected_revision != (tenant.data_revision or 0):
        raise ConflictError(
            "Os dados foram alterados por outra sessao. Recarregue antes de restaurar.",
            current_revision=tenant.data_revision,
        )

    seen_months: set[tuple[str, str]] = set()
    for record in data.records:
        key = (record.client_id, record.month)
        if key in seen_months:
            raise ValidationError(INVALID_BACKUP_MESSAGE)
        seen_months.add(key)

    backup_users = {
        item.email.strip().lower(): item for item in data.users if item.role != Role.MASTER.value
    }
    final_roles = {email: item.role for email, item in backup_users.items()}
    acting_user = next((user for user in tenant.users if user.id == acting_user_id), None)
    if acting_user and acting_user.email.lower() not in final_roles:
        final_roles[acting_user.email.lower()] = acting_user.role
    if Role.MANAGER.value not in final_roles.values():
        raise ValidationError("O backup precisa manter ao menos um Gestor na empresa.")
    if len(final_roles) > tenant.max_users:
        raise QuotaExceededError(f"Limite de {tenant.max_users} usuarios atingido para esta empresa.")

    existing_users = {user.email.lower(): user for user in tenant.users}
    kept_user_ids: set[str] = {acting_user.id} if acting_user else set()
    for email, item in backup_users.items():
        password_hash = None
        if item.password:
            password_hash = item.password if item.password.startswith("$2") else hash_password(item.password)
        user = existing_users.get(email)
        if user:
            user.name = item.name
            user.role = item.role
            if password_hash:
                user.password_hash = password_hash
        else:
            user = models.User(
                id=str(uuid.uuid4()),
                tenant_id=tenant.id,
                name=item.name,
                email=email,
                role=item.role,
                password_hash=password_hash,
            )
            db.add(user)
            existing_users[email] = user
        kept_user_ids.add(user.id)
    for user in list(tenant.users):
        if user.id not in kept_user_ids:
            tenant.users.remove(user)

    tenant.records.clear()
    tenant.cash_flow.clear()
    tenant.clients.clear()
    db.flush()
    tenant.plans.clear()
    db.flush()

    plan_ids: dict[str, str] = {}
    for item in data.plans:
        plan = models.Plan(
            id=str(uuid.uuid4()),
            name=item.name,
            monthly_fee=item.monthly_fee,
            service_limit=item.service_limit,
            active=item.active,
        )
        tenant.plans.append(plan)
        plan_ids[item.id] = plan.id

    client_ids: dict[str, str] = {}
    for item in data.clients:
        client = models.Client(
            id=str(uuid.uuid4()),
            name=item.name,
            document=item.document,
            contact=item.contact,
            plan_id=plan_ids.get(item.plan_id) if item.plan_id else None,
            due_day=item.due_day,
            active=item.active,
        )
        tenant.clients.append(client)
        client_ids[item.id] = client.id

    for item in data.records:
        client_id = client_ids.get(item.client_id)
        if not client_id:
            logger.warning("backup record %s skipped: unknown client %s", item.id, item.client_id)
            continue
        logs = list(item.usage_history)
        if not logs and item.services_used > 0:
            logs = [
                UsageLogData(
                    id="imported",
                    date=_month_start(item.month),
                    description="Saldo importado",
                    quantity=item.services_used,
                )
            ]
        record = models.MonthlyRecord(
            id=str(uuid.uuid4()),
            client_id=client_id,
            month=item.month,
            status=item.status,
            notes=item.notes,
            usage_history=[
                models.UsageLog(
                    id=str(uuid.uuid4()),
                    position=index,
                    date=log.date,
                    description=log.description,
                    quantity=log.quantity,
                )
                for index, log in enumerate(logs)
            ],
        )
        record.services_used = sum(log.quantity for log in record.usage_history)
        tenant.records.append(record)

    for item in data.cash_flow:
        tenant.cash_flow.append(
            models.CashFlowItem(
                id=str(uuid.uuid4()),
                date=item.date,
                description=item.description,
                value=item.value,
                type=item.type,
                payment_method=item.payment_method,
                observation=item.observation,
            )
        )

    if data.company_settings:
        tenant.settings_name = data.company_settings.name or tenant.settings_name
        tenant.settings_address = data.company_settings.address
        tenant.logo_data_url = data.company_settings.logo_base64 or None

    tenant.data_revision = (tenant.data_revision or 0) + 1
    db.commit()
    logger.info(
        "tenant=%s restored plans=%s clients=%s records=%s cash_flow=%s",
        tenant.id,
        len(data.plans),
        len(data.clients),
        len(data.records),
        len(data.cash_flow),
    )
    return tenant.data_revision
