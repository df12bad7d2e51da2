import json
from datetime import date
from typing import Any

from fastapi import APIRouter, Body, Depends, Response
from pydantic import BaseModel
from sqlalchemy.orm import Session

from facilita.core.authorization import get_ledger
from facilita.core.errors import to_http_exception
from facilita.core.security import get_password_hash, require_permission
from facilita.db import models
from facilita.db.session import get_db
from facilita.ledger.errors import LedgerError
from facilita.ledger.service import TenantLedger
from facilita.ledger.snapshot import load_app_data, parse_backup, save_app_data

router = APIRouter(tags=["Configuracoes"])


class SettingsUpdate(BaseModel):
    name: str | None = None
    address: str | None = None
    logo_base64: str | None = None
    remove_logo: bool = False


@router.get("/settings")
def get_settings(
    _user: models.User = Depends(require_permission("settings.manage")),
    ledger: TenantLedger = Depends(get_ledger),
):
    return ledger.company_settings()


@router.put("/settings")
def update_settings(
    payload: SettingsUpdate,
    _user: models.User = Depends(require_permission("settings.manage")),
    ledger: TenantLedger = Depends(get_ledger),
):
    try:
        return ledger.update_company_settings(
            name=payload.name,
            address=payload.address,
            logo_base64=payload.logo_base64,
            remove_logo=payload.remove_logo,
        )
    except LedgerError as exc:
        raise to_http_exception(exc) from exc


@router.get("/settings/backup")
def export_backup(
    _user: models.User = Depends(require_permission("settings.manage")),
    ledger: TenantLedger = Depends(get_ledger),
    db: Session = Depends(get_db),
):
    data = load_app_data(db, ledger.tenant_id)
    content = json.dumps(data.model_dump(mode="json", by_alias=True), ensure_ascii=False, indent=2)
    filename = f"backup_facilita_{date.today().isoformat()}.json"
    return Response(
        content=content,
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/settings/backup")
def import_backup(
    payload: Any = Body(...),
    expected_revision: int | None = None,
    user: models.User = Depends(require_permission("settings.manage")),
    ledger: TenantLedger = Depends(get_ledger),
    db: Session = Depends(get_db),
):
    """Restaura um backup JSON substituindo todos os dados da empresa."""
    try:
        data = parse_backup(payload)
        revision = save_app_data(
            db, ledger.tenant_id, data, get_password_hash, expected_revision, acting_user_id=user.id
        )
    except LedgerError as exc:
        db.rollback()
        raise to_http_exception(exc) from exc
    return {"revision": revision, "message": "Backup restaurado com sucesso!"}
