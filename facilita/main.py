import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from facilita.api.v1.auth import router as auth_router
from facilita.api.v1.cashflow import router as cashflow_router
from facilita.api.v1.clients import router as clients_router
from facilita.api.v1.console import router as console_router
from facilita.api.v1.dashboard import router as dashboard_router
from facilita.api.v1.me import router as me_router
from facilita.api.v1.monthly import router as monthly_router
from facilita.api.v1.plans import router as plans_router
from facilita.api.v1.reports import router as reports_router
from facilita.api.v1.settings import router as settings_router
from facilita.api.v1.sync import router as sync_router
from facilita.api.v1.users import router as users_router
from facilita.core.config import settings
from facilita.db import models
from facilita.db.init_db import ensure_missing_columns, seed_initial_data
from facilita.db.session import engine

if not logging.getLogger().handlers:
    logging.basicConfig(level=logging.INFO)

logger = logging.getLogger("facilita")

app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    description="Facilita Caixa - Gestao de clientes, planos e fluxo de caixa para escritorios contabeis",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def on_startup() -> None:
    models.Base.metadata.create_all(bind=engine)
    ensure_missing_columns(engine)
    seed_initial_data()
    if settings.ENV.lower() == "production":
        if settings.SECRET_KEY == "dev-secret-change-me":
            logger.warning("SECRET_KEY esta usando valor padrao em producao.")
        if settings.SQLALCHEMY_DATABASE_URI.startswith("sqlite"):
            logger.warning("SQLALCHEMY_DATABASE_URI aponta para SQLite em producao.")
        if settings.MASTER_ADMIN_PASSWORD == "admin":
            logger.warning("MASTER_ADMIN_PASSWORD esta usando valor padrao em producao.")


app.include_router(auth_router, prefix="/api")
app.include_router(me_router, prefix="/api")
app.include_router(plans_router, prefix="/api")
app.include_router(clients_router, prefix="/api")
app.include_router(monthly_router, prefix="/api")
app.include_router(cashflow_router, prefix="/api")
app.include_router(users_router, prefix="/api")
app.include_router(settings_router, prefix="/api")
app.include_router(dashboard_router, prefix="/api")
app.include_router(reports_router, prefix="/api")
app.include_router(sync_router, prefix="/api")
app.include_router(console_router, prefix="/api/console")


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    logger.info(
        "request method=%s path=%s status=%s duration_ms=%.2f",
        request.method,
        request.url.path,
        response.status_code,
        duration_ms,
    )
    return response


@app.get("/api/health", tags=["Health"])
def health_check():
    return {"status": "ok", "app": settings.APP_NAME}
