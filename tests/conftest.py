import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from facilita.core.security import token_for_user
from facilita.db import models
from facilita.db.session import get_db
from facilita.ledger.service import TenantLedger
from facilita.main import app
from facilita.services.accounts import add_master, create_company


def make_session():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    models.Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    return SessionLocal()


@pytest.fixture()
def db_session():
    db = make_session()
    yield db
    db.close()


@pytest.fixture()
def company(db_session):
    return create_company(db_session, "Escritorio Alfa", "Gestora Alfa", "gestor@alfa.com", "senha123")


@pytest.fixture()
def ledger(db_session, company):
    return TenantLedger(db_session, company.id)


@pytest.fixture()
def master(db_session):
    return add_master(db_session, "Administrador Master", "admin@master.com", "admin")


@pytest.fixture()
def client(db_session):
    def _get_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth_headers(user: models.User) -> dict:
    return {"Authorization": f"Bearer {token_for_user(user)}"}
