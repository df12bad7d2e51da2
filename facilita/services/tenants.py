import logging
from typing import Any, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from facilita.db import models
from facilita.ledger.errors import NotFoundError, ValidationError

logger = logging.getLogger("facilita")


def get_tenant(db: Session, tenant_id: str) -> models.Tenant:
    tenant = db.query(models.Tenant).filter(models.Tenant.id == tenant_id).first()
    if not tenant:
        raise NotFoundError("Empresa nao encontrada")
    return tenant


def user_counts(db: Session) -> dict[str, int]:
    rows = (
        db.query(models.User.tenant_id, func.count(models.User.id))
        .filter(models.User.tenant_id.isnot(None))
        .group_by(models.User.tenant_id)
        .all()
    )
    return {tenant_id: count for tenant_id, count in rows}


def list_tenants(db: Session, search: Optional[str] = None) -> list[models.Tenant]:
    tenants = db.query(models.Tenant).order_by(models.Tenant.created_at.desc()).all()
    if search:
        term = search.strip().lower()
        tenants = [t for t in tenants if term in t.name.lower() or term in t.id.lower()]
    return tenants


def console_stats(db: Session) -> dict[str, int]:
    return {
        "companies": db.query(models.Tenant).count(),
        "active_companies": db.query(models.Tenant).filter(models.Tenant.active.is_(True)).count(),
        "total_users": db.query(models.User).filter(models.User.tenant_id.isnot(None)).count(),
    }


def update_tenant(db: Session, tenant_id: str, changes: dict[str, Any]) -> models.Tenant:
    tenant = get_tenant(db, tenant_id)
    if changes.get("name") is not None:
        name = changes["name"].strip()
        if not name:
            raise ValidationError("Nome obrigatorio")
        tenant.name = name
    if changes.get("plan_name") is not None:
        tenant.plan_name = changes["plan_name"].strip() or tenant.plan_name
    if changes.get("max_users") is not None:
        if int(changes["max_users"]) < 1:
            raise ValidationError("Limite de usuarios deve ser maior que zero")
        tenant.max_users = int(changes["max_users"])
    db.commit()
    db.refresh(tenant)
    return tenant


def toggle_tenant(db: Session, tenant_id: str) -> models.Tenant:
    tenant = get_tenant(db, tenant_id)
    tenant.active = not tenant.active
    db.commit()
    db.refresh(tenant)
    logger.info("tenant=%s active=%s", tenant.id, tenant.active)
    return tenant


def delete_tenant(db: Session, tenant_id: str) -> None:
    tenant = get_tenant(db, tenant_id)
    db.delete(tenant)
    db.commit()
    logger.info("tenant=%s deleted", tenant_id)
