from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from facilita.core.security import get_current_user
from facilita.db import models
from facilita.db.session import get_db
from facilita.ledger.service import TenantLedger


def ensure_tenant_user(user: models.User) -> str:
    if not user.tenant_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Recurso disponivel apenas para usuarios de empresas",
        )
    return user.tenant_id


def get_ledger(
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> TenantLedger:
    return TenantLedger(db, ensure_tenant_user(current_user))
