import logging
import uuid
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from facilita.core.security import get_password_hash, verify_password
from facilita.db import models
from facilita.ledger.errors import NotFoundError, PermissionDeniedError, ValidationError
from facilita.ledger.schemas import Role

logger = logging.getLogger("facilita")

DEFAULT_PLAN_NAME = "Plano Exemplo"


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def authenticate(db: Session, email: str, password: str) -> Optional[models.User]:
    """Master records win; otherwise the first matching user of an active tenant."""
    normalized = _normalize_email(email)
    masters = (
        db.query(models.User)
        .filter(
            models.User.tenant_id.is_(None),
            models.User.role == Role.MASTER.value,
            func.lower(models.User.email) == normalized,
        )
        .order_by(models.User.created_at.asc())
        .all()
    )
    for master in masters:
        if verify_password(password, master.password_hash):
            return master

    candidates = (
        db.query(models.User)
        .join(models.Tenant, models.Tenant.id == models.User.tenant_id)
        .filter(models.Tenant.active.is_(True), func.lower(models.User.email) == normalized)
        .order_by(models.Tenant.created_at.asc(), models.User.created_at.asc())
        .all()
    )
    for user in candidates:
        if verify_password(password, user.password_hash):
            return user
    return None


def email_in_use(db: Session, email: str) -> bool:
    normalized = _normalize_email(email)
    return db.query(models.User).filter(func.lower(models.User.email) == normalized).first() is not None


def create_company(
    db: Session,
    company_name: str,
    admin_name: str,
    admin_email: str,
    admin_password: str,
    plan_name: str = "Trial",
    max_users: int = 3,
) -> models.Tenant:
    if email_in_use(db, admin_email):
        raise ValidationError("Email ja cadastrado")
    tenant = models.Tenant(
        id=str(uuid.uuid4()),
        name=company_name.strip(),
        active=True,
        plan_name=plan_name,
        max_users=max_users,
        settings_name=company_name.strip(),
    )
    tenant.users.append(
        models.User(
            id=str(uuid.uuid4()),
            name=admin_name.strip(),
            email=_normalize_email(admin_email),
            role=Role.MANAGER.value,
            password_hash=get_password_hash(admin_password),
        )
    )
    tenant.plans.append(
        models.Plan(
            id=str(uuid.uuid4()),
            name=DEFAULT_PLAN_NAME,
            monthly_fee=0,
            service_limit=10,
            active=True,
        )
    )
    db.add(tenant)
    db.commit()
    db.refresh(tenant)
    logger.info("company registered tenant=%s name=%s", tenant.id, tenant.name)
    return tenant


def update_profile(db: Session, user: models.User, name: str, password: Optional[str] = None) -> models.User:
    cleaned = name.strip()
    if not cleaned:
        raise ValidationError("Nome obrigatorio")
    user.name = cleaned
    if password:
        user.password_hash = get_password_hash(password)
    if user.tenant is not None:
        user.tenant.data_revision = (user.tenant.data_revision or 0) + 1
    db.commit()
    db.refresh(user)
    return user


def list_masters(db: Session) -> list[models.User]:
    return (
        db.query(models.User)
        .filter(models.User.tenant_id.is_(None), models.User.role == Role.MASTER.value)
        .order_by(models.User.created_at.asc())
        .all()
    )


def add_master(db: Session, name: str, email: str, password: str) -> models.User:
    normalized = _normalize_email(email)
    if any(master.email.lower() == normalized for master in list_masters(db)):
        raise ValidationError("Email ja cadastrado")
    master = models.User(
        id=str(uuid.uuid4()),
        tenant_id=None,
        name=name.strip(),
        email=normalized,
        role=Role.MASTER.value,
        password_hash=get_password_hash(password),
    )
    db.add(master)
    db.commit()
    db.refresh(master)
    return master


def remove_master(db: Session, actor: models.User, master_id: str) -> None:
    masters = list_masters(db)
    target = next((m for m in masters if m.id == master_id), None)
    if not target:
        raise NotFoundError("Administrador nao encontrado")
    if len(masters) <= 1:
        raise PermissionDeniedError("Não é possível excluir o último administrador.")
    if actor.id == master_id:
        raise PermissionDeniedError("Você não pode excluir sua própria conta aqui.")
    db.delete(target)
    db.commit()


def delete_account(db: Session, user: models.User, password: str) -> None:
    if not verify_password(password, user.password_hash):
        raise PermissionDeniedError("Senha incorreta.")
    if user.tenant_id is None and len(list_masters(db)) <= 1:
        raise PermissionDeniedError("Não é possível excluir o último administrador.")
    user_id, tenant = user.id, user.tenant
    db.delete(user)
    if tenant is not None:
        tenant.data_revision = (tenant.data_revision or 0) + 1
    db.commit()
    logger.info("account deleted user=%s", user_id)
