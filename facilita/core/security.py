from datetime import datetime, timedelta
from typing import Any, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from facilita.core.config import settings
from facilita.db import models
from facilita.db.session import get_db
from facilita.ledger.schemas import Role

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token")

ROLE_PERMISSIONS: dict[str, set[str]] = {
    Role.USER.value: {
        "monthly.view",
        "monthly.manage",
        "clients.view",
        "clients.manage",
    },
    Role.SUPERVISOR.value: {
        "monthly.view",
        "monthly.manage",
        "clients.view",
        "clients.manage",
        "clients.delete",
        "dashboard.view",
        "reports.view",
        "cashflow.view",
        "cashflow.manage",
        "plans.view",
        "plans.manage",
    },
    Role.MANAGER.value: {
        "monthly.view",
        "monthly.manage",
        "clients.view",
        "clients.manage",
        "clients.delete",
        "dashboard.view",
        "reports.view",
        "cashflow.view",
        "cashflow.manage",
        "plans.view",
        "plans.manage",
        "users.manage",
        "settings.manage",
    },
    Role.MASTER.value: {"console.manage"},
}


def get_user_permissions(user: models.User) -> set[str]:
    return set(ROLE_PERMISSIONS.get(user.role, set()))


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    if not hashed_password or not plain_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        return False


def get_password_hash(password: str) -> str:
    if not isinstance(password, str):
        raise ValueError("Senha invalida para hash: envie somente a senha em texto do usuario.")
    if len(password.encode("utf-8")) > 72:
        raise ValueError("Senha maior que 72 bytes em UTF-8.")
    return pwd_context.hash(password)


def create_access_token(data: dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(hours=settings.ACCESS_TOKEN_EXPIRE_HOURS))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def token_for_user(user: models.User) -> str:
    return create_access_token({"sub": user.id, "tenant_id": user.tenant_id, "role": user.role})


def get_current_user(
    token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)
) -> models.User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Credenciais invalidas",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        user_id: str | None = payload.get("sub")
        tenant_id: str | None = payload.get("tenant_id")
        if user_id is None:
            raise credentials_exception
    except JWTError:
        raise credentials_exception

    user = db.query(models.User).filter(models.User.id == user_id).first()
    if not user or user.tenant_id != tenant_id:
        raise credentials_exception
    if user.tenant_id is not None:
        tenant = user.tenant
        if not tenant:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Empresa nao encontrada")
        if not tenant.active:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Esta empresa foi desativada pelo administrador.",
            )
    return user


def require_permission(permission_code: str):
    def _dependency(user: models.User = Depends(get_current_user)) -> models.User:
        if permission_code not in get_user_permissions(user):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Permissao negada")
        return user

    return _dependency


def require_master(user: models.User = Depends(get_current_user)) -> models.User:
    if user.role != Role.MASTER.value or user.tenant_id is not None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Sem permissao")
    return user
