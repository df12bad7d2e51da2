from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from facilita.core.errors import to_http_exception
from facilita.core.security import token_for_user
from facilita.db import models
from facilita.db.session import get_db
from facilita.ledger.errors import LedgerError
from facilita.services.accounts import authenticate, create_company

router = APIRouter(tags=["Auth"])

INVALID_CREDENTIALS = "Email ou senha incorretos."


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class SignupRequest(BaseModel):
    company_name: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=4)


class LoginResponse(BaseModel):
    access_token: str
    token_type: str
    role: str
    tenant_id: str | None = None
    user_id: str


def _login(db: Session, email: str, password: str) -> models.User:
    user = authenticate(db, email, password)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=INVALID_CREDENTIALS)
    return user


def _token_response(user: models.User) -> dict:
    return {
        "access_token": token_for_user(user),
        "token_type": "bearer",
        "role": user.role,
        "tenant_id": user.tenant_id,
        "user_id": user.id,
    }


@router.post("/auth/login", response_model=LoginResponse, summary="Login JSON (frontend)")
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    return _token_response(_login(db, payload.email, payload.password))


@router.post(
    "/auth/token",
    response_model=LoginResponse,
    summary="Login para Swagger (OAuth2PasswordBearer)",
)
def login_swagger(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    """
    Uso via Swagger UI (botao Authorize): o campo ``username`` recebe o email.
    """
    return _token_response(_login(db, form_data.username, form_data.password))


@router.post("/auth/signup", response_model=LoginResponse, status_code=status.HTTP_201_CREATED)
def signup(payload: SignupRequest, db: Session = Depends(get_db)):
    try:
        tenant = create_company(db, payload.company_name, payload.name, payload.email, payload.password)
    except LedgerError as exc:
        raise to_http_exception(exc) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    return _token_response(tenant.users[0])
