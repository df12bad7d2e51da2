from fastapi import APIRouter, Depends

from facilita.core.authorization import get_ledger
from facilita.ledger.service import TenantLedger

router = APIRouter(tags=["Sincronizacao"])


@router.get("/sync/revision")
def data_revision(ledger: TenantLedger = Depends(get_ledger)):
    """Revisao atual dos dados da empresa; muda a cada alteracao gravada."""
    return {"tenant_id": ledger.tenant_id, "revision": ledger.tenant().data_revision or 0}
