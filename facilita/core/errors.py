from fastapi import HTTPException, status

from facilita.ledger.errors import (
    ConflictError,
    LedgerError,
    NotFoundError,
    PermissionDeniedError,
    PlanInUseError,
    QuotaExceededError,
    UsageLimitExceeded,
)


def to_http_exception(exc: LedgerError) -> HTTPException:
    if isinstance(exc, UsageLimitExceeded):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=exc.to_detail())
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.message)
    if isinstance(exc, PermissionDeniedError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=exc.message)
    if isinstance(exc, PlanInUseError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"code": "PLAN_IN_USE", "message": exc.message, "clients": exc.clients_count},
        )
    if isinstance(exc, ConflictError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"code": "REVISION_CONFLICT", "message": exc.message, "revision": exc.current_revision},
        )
    if isinstance(exc, QuotaExceededError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=exc.message)
    return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=exc.message)
