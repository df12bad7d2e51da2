import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def _uuid() -> str:
    return str(uuid.uuid4())


class Tenant(Base):
    __tablename__ = "tenants"

    id = Column(String, primary_key=True, default=_uuid)
    name = Column(String, nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    plan_name = Column(String, nullable=False, default="Trial")
    max_users = Column(Integer, nullable=False, default=3)
    settings_name = Column(String, nullable=True)
    settings_address = Column(String, nullable=True)
    logo_data_url = Column(Text, nullable=True)
    data_revision = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    users = relationship("User", back_populates="tenant", cascade="all, delete-orphan")
    plans = relationship("Plan", back_populates="tenant", cascade="all, delete-orphan")
    clients = relationship("Client", back_populates="tenant", cascade="all, delete-orphan")
    records = relationship("MonthlyRecord", back_populates="tenant", cascade="all, delete-orphan")
    cash_flow = relationship("CashFlowItem", back_populates="tenant", cascade="all, delete-orphan")


class User(Base):
    __tablename__ = "users"
    __table_args__ = (UniqueConstraint("tenant_id", "email", name="uq_tenant_user_email"),)

    id = Column(String, primary_key=True, default=_uuid)
    tenant_id = Column(String, ForeignKey("tenants.id"), nullable=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False)
    password_hash = Column(String, nullable=True)
    role = Column(String, nullable=False, default="Assistente")
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    tenant = relationship("Tenant", back_populates="users")


class Plan(Base):
    __tablename__ = "plans"

    id = Column(String, primary_key=True, default=_uuid)
    tenant_id = Column(String, ForeignKey("tenants.id"), nullable=False)
    name = Column(String, nullable=False)
    monthly_fee = Column(Float, nullable=False, default=0)
    service_limit = Column(Integer, nullable=False, default=0)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    tenant = relationship("Tenant", back_populates="plans")
    clients = relationship("Client", back_populates="plan")


class Client(Base):
    __tablename__ = "clients"

    id = Column(String, primary_key=True, default=_uuid)
    tenant_id = Column(String, ForeignKey("tenants.id"), nullable=False)
    name = Column(String, nullable=False)
    document = Column(String, nullable=False, default="")
    contact = Column(String, nullable=False, default="")
    plan_id = Column(String, ForeignKey("plans.id"), nullable=True)
    due_day = Column(Integer, nullable=False, default=10)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    tenant = relationship("Tenant", back_populates="clients")
    plan = relationship("Plan", back_populates="clients")
    records = relationship("MonthlyRecord", back_populates="client", cascade="all, delete-orphan")


class MonthlyRecord(Base):
    __tablename__ = "monthly_records"
    __table_args__ = (UniqueConstraint("client_id", "month", name="uq_record_client_month"),)

    id = Column(String, primary_key=True, default=_uuid)
    tenant_id = Column(String, ForeignKey("tenants.id"), nullable=False)
    client_id = Column(String, ForeignKey("clients.id"), nullable=False)
    month = Column(String(7), nullable=False)
    services_used = Column(Integer, nullable=False, default=0)
    status = Column(String, nullable=False, default="Pendente")
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    tenant = relationship("Tenant", back_populates="records")
    client = relationship("Client", back_populates="records")
    usage_history = relationship(
        "UsageLog",
        back_populates="record",
        cascade="all, delete-orphan",
        order_by="UsageLog.position",
    )


class UsageLog(Base):
    __tablename__ = "usage_logs"

    id = Column(String, primary_key=True, default=_uuid)
    record_id = Column(String, ForeignKey("monthly_records.id"), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    date = Column(Date, nullable=False)
    description = Column(String, nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    record = relationship("MonthlyRecord", back_populates="usage_history")


class CashFlowItem(Base):
    __tablename__ = "cash_flow_items"

    id = Column(String, primary_key=True, default=_uuid)
    tenant_id = Column(String, ForeignKey("tenants.id"), nullable=False)
    date = Column(Date, nullable=False)
    description = Column(String, nullable=False)
    value = Column(Float, nullable=False)
    type = Column(String, nullable=False, default="Entrada")
    payment_method = Column(String, nullable=True)
    observation = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    tenant = relationship("Tenant", back_populates="cash_flow")
