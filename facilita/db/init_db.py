import logging
import uuid
from datetime import datetime

from sqlalchemy import inspect, text
from sqlalchemy.orm import Session

from facilita.core.config import settings
from facilita.core.security import get_password_hash
from facilita.db import models
from facilita.db.session import SessionLocal
from facilita.ledger.schemas import AppData, Role
from facilita.ledger.snapshot import save_app_data

logger = logging.getLogger("facilita")

DEMO_COMPANY_NAME = "Facilita Contabilidade (Demo)"

DEMO_DATA = {
    "users": [
        {"id": "1", "name": "Ana Silva", "email": "ana@facilita.com", "role": "Assistente", "password": "123"},
        {"id": "2", "name": "Carlos Souza", "email": "carlos@facilita.com", "role": "Supervisor", "password": "123"},
        {"id": "3", "name": "Roberto Boss", "email": "roberto@facilita.com", "role": "Gestor", "password": "123"},
    ],
    "companySettings": {
        "name": "Facilita Contabilidade",
        "address": "Av. Paulista, 1000 - São Paulo, SP",
        "logoBase64": "",
    },
    "plans": [
        {"id": "p1", "name": "MEI Básico", "monthlyFee": 150, "serviceLimit": 5, "active": True},
        {"id": "p2", "name": "Simples Nacional", "monthlyFee": 450, "serviceLimit": 20, "active": True},
        {"id": "p3", "name": "Lucro Presumido", "monthlyFee": 1200, "serviceLimit": 50, "active": True},
    ],
    "clients": [
        {"id": "c1", "name": "Padaria do João", "document": "12.345.678/0001-90", "contact": "João", "planId": "p2", "dueDay": 10},
        {"id": "c2", "name": "Tech Solutions", "document": "98.765.432/0001-10", "contact": "Maria", "planId": "p3", "dueDay": 5},
        {"id": "c3", "name": "Consultório Dr. Pedro", "document": "11.111.222/0001-33", "contact": "Pedro", "planId": "p1", "dueDay": 20},
        {"id": "c4", "name": "Mercado Livreiro", "document": "44.555.666/0001-99", "contact": "Lucas", "planId": "p2", "dueDay": 15},
    ],
    "records": [
        {"id": "r1", "clientId": "c1", "month": "2023-10", "servicesUsed": 15, "status": "Pago"},
        {"id": "r2", "clientId": "c2", "month": "2023-10", "servicesUsed": 45, "status": "Pago"},
        {"id": "r3", "clientId": "c3", "month": "2023-10", "servicesUsed": 2, "status": "Atrasado"},
        {"id": "r4", "clientId": "c1", "month": "2023-11", "servicesUsed": 22, "status": "Pendente"},
        {"id": "r5", "clientId": "c2", "month": "2023-11", "servicesUsed": 10, "status": "Pago"},
        {"id": "r6", "clientId": "c3", "month": "2023-11", "servicesUsed": 6, "status": "Pendente"},
        {"id": "r7", "clientId": "c4", "month": "2023-11", "servicesUsed": 5, "status": "Atrasado"},
    ],
    "cashFlow": [
        {"id": "cf1", "date": "2023-11-01", "description": "Mensalidade Tech Solutions", "value": 1200, "type": "Entrada", "paymentMethod": "Pix", "observation": "Pagamento antecipado"},
        {"id": "cf2", "date": "2023-11-02", "description": "Mensalidade Padaria do João", "value": 450, "type": "Entrada", "paymentMethod": "Boleto"},
        {"id": "cf3", "date": "2023-11-05", "description": "Licença Software Contábil", "value": 250, "type": "Saída", "paymentMethod": "Cartão", "observation": "Recorrente mensal"},
        {"id": "cf4", "date": "2023-11-10", "description": "Material de Escritório", "value": 80, "type": "Saída", "paymentMethod": "Dinheiro"},
    ],
}


def ensure_missing_columns(engine) -> None:
    """Add columns created after the first deploy to existing SQLite tables."""
    if engine.dialect.name != "sqlite":
        return
    inspector = inspect(engine)
    preparer = engine.dialect.identifier_preparer
    existing_tables = set(inspector.get_table_names())
    for table_name, table in models.Base.metadata.tables.items():
        if table_name not in existing_tables:
            continue
        existing_columns = {col["name"] for col in inspector.get_columns(table_name)}
        for column in table.columns:
            if column.name in existing_columns:
                continue
            col_type = column.type.compile(dialect=engine.dialect)
            with engine.begin() as connection:
                connection.execute(
                    text(
                        f"ALTER TABLE {preparer.quote(table_name)} "
                        f"ADD COLUMN {preparer.quote(column.name)} {col_type}"
                    )
                )
            logger.info("schema column added table=%s column=%s", table_name, column.name)


def ensure_master_admin(db: Session) -> models.User:
    master = (
        db.query(models.User)
        .filter(models.User.tenant_id.is_(None), models.User.role == Role.MASTER.value)
        .order_by(models.User.created_at.asc())
        .first()
    )
    if master:
        return master
    master = models.User(
        id=str(uuid.uuid4()),
        tenant_id=None,
        name=settings.MASTER_ADMIN_NAME,
        email=settings.MASTER_ADMIN_EMAIL.strip().lower(),
        role=Role.MASTER.value,
        password_hash=get_password_hash(settings.MASTER_ADMIN_PASSWORD),
    )
    db.add(master)
    db.commit()
    db.refresh(master)
    logger.info("master admin created email=%s", master.email)
    return master


def seed_demo_company(db: Session) -> models.Tenant | None:
    if db.query(models.Tenant).filter(models.Tenant.name == DEMO_COMPANY_NAME).first():
        return None
    tenant = models.Tenant(
        id=str(uuid.uuid4()),
        name=DEMO_COMPANY_NAME,
        active=True,
        plan_name="Pro",
        max_users=5,
        created_at=datetime(2023, 1, 1),
    )
    db.add(tenant)
    db.commit()
    save_app_data(db, tenant.id, AppData.model_validate(DEMO_DATA), get_password_hash)
    db.refresh(tenant)
    logger.info("demo company seeded tenant=%s", tenant.id)
    return tenant


def seed_initial_data() -> None:
    db: Session = SessionLocal()
    try:
        ensure_master_admin(db)
        if settings.SEED_DEMO_DATA:
            seed_demo_company(db)
    finally:
        db.close()
