from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

MONTH_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"


class Role(str, Enum):
    USER = "Assistente"
    SUPERVISOR = "Supervisor"
    MANAGER = "Gestor"
    MASTER = "Super Admin"


class PaymentStatus(str, Enum):
    PENDING = "Pendente"
    PAID = "Pago"
    LATE = "Atrasado"


class CashFlowType(str, Enum):
    INCOME = "Entrada"
    EXPENSE = "Saída"


class PaymentMethod(str, Enum):
    MONEY = "Dinheiro"
    CARD = "Cartão"
    PIX = "Pix"
    BOLETO = "Boleto"
    LINK = "Link"
    OTHER = "Outro"


def _parse_flexible_date(value):
    # Older backups carry usage dates as DD/MM/YYYY.
    if isinstance(value, str) and "/" in value:
        return datetime.strptime(value.strip(), "%d/%m/%Y").date()
    if isinstance(value, str) and "T" in value:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    return value


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, use_enum_values=True)


class UserData(CamelModel):
    id: str
    name: str
    email: str
    role: Role
    password: Optional[str] = None
    company_id: Optional[str] = None


class PlanData(CamelModel):
    id: str
    name: str
    monthly_fee: float = 0
    service_limit: int = 0
    active: bool = True


class ClientData(CamelModel):
    id: str
    name: str
    document: str = ""
    contact: str = ""
    plan_id: Optional[str] = None
    active: bool = True
    due_day: int = Field(10, ge=1, le=31)


class UsageLogData(CamelModel):
    id: str
    date: date
    description: str
    quantity: int = Field(..., ge=1)

    @field_validator("date", mode="before")
    @classmethod
    def parse_date(cls, value):
        return _parse_flexible_date(value)


class MonthlyRecordData(CamelModel):
    id: str
    client_id: str
    month: str = Field(..., pattern=MONTH_PATTERN)
    services_used: int = 0
    usage_history: list[UsageLogData] = Field(default_factory=list)
    status: PaymentStatus = PaymentStatus.PENDING
    notes: Optional[str] = None


class CashFlowItemData(CamelModel):
    id: str
    date: date
    description: str
    value: float
    type: CashFlowType
    payment_method: Optional[PaymentMethod] = None
    observation: Optional[str] = None

    @field_validator("date", mode="before")
    @classmethod
    def parse_date(cls, value):
        return _parse_flexible_date(value)


class CompanySettingsData(CamelModel):
    name: str = ""
    address: Optional[str] = None
    logo_base64: Optional[str] = None


class AppData(CamelModel):
    users: list[UserData] = Field(default_factory=list)
    plans: list[PlanData] = Field(default_factory=list)
    clients: list[ClientData] = Field(default_factory=list)
    records: list[MonthlyRecordData] = Field(default_factory=list)
    cash_flow: list[CashFlowItemData] = Field(default_factory=list)
    company_settings: Optional[CompanySettingsData] = None
