from typing import Optional


class LedgerError(Exception):
    """Base class for business-rule violations raised by the ledger."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(LedgerError):
    pass


class ValidationError(LedgerError):
    pass


class PermissionDeniedError(LedgerError):
    pass


class PlanInUseError(LedgerError):
    def __init__(self, plan_id: str, clients_count: int):
        super().__init__(
            "Não é possível excluir um plano que está em uso por clientes. "
            "Remova ou altere os clientes deste plano primeiro."
        )
        self.plan_id = plan_id
        self.clients_count = clients_count


class QuotaExceededError(LedgerError):
    pass


class ConflictError(LedgerError):
    def __init__(self, message: str, current_revision: Optional[int] = None):
        super().__init__(message)
        self.current_revision = current_revision


class UsageLimitExceeded(LedgerError):
    """Adding the usage would exceed the plan limit and no billing decision was made."""

    code = "USAGE_LIMIT_EXCEEDED"

    def __init__(self, client_id: str, current: int, limit: int, quantity: int):
        super().__init__(
            f"Limite do plano excedido: {current} + {quantity} > {limit}. "
            "Informe se o servico adicional deve ser cobrado."
        )
        self.client_id = client_id
        self.current = current
        self.limit = limit
        self.quantity = quantity

    def to_detail(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "client_id": self.client_id,
            "current": self.current,
            "limit": self.limit,
            "quantity": self.quantity,
        }
