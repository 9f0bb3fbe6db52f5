"""Common request dependencies: bearer-token identity, database session, entitlement guard."""
from typing import Annotated, Callable, TypeAlias

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from app.core.audit import log_failure
from app.core.security import TokenExpiredError, TokenValidationError, decode_token
from app.db.session import get_db
from app.services.entitlement_service import EntitlementGate, LimitDecision, ResourceType


def get_current_user_id(authorization: str = Header(None)) -> int:
    """Resolve the subscriber id from an already-issued bearer token."""
    if not authorization or not authorization.lower().startswith("bearer "):
        log_failure("auth.token.parse", user_id=None, error="missing_token")
        raise HTTPException(status_code=401, detail="Missing token")
    token = authorization.split(" ", 1)[1]
    try:
        payload = decode_token(token)
        return int(payload["sub"])
    except TokenExpiredError as exc:
        log_failure("auth.token.expired", user_id=None, error="expired")
        raise HTTPException(status_code=401, detail="Token expired") from exc
    except (TokenValidationError, KeyError, ValueError) as exc:
        log_failure("auth.token.invalid", user_id=None, error="invalid")
        raise HTTPException(status_code=401, detail="Invalid token") from exc


CurrentUserDep: TypeAlias = Annotated[int, Depends(get_current_user_id)]
DbDep: TypeAlias = Annotated[Session, Depends(get_db)]


def require_entitlement(resource: ResourceType) -> Callable[..., LimitDecision]:
    """Dependency for record-creating endpoints; raises 403 when the plan limit is reached.

    Usage:
        @router.post("/policies", dependencies=[Depends(require_entitlement(ResourceType.POLICY))])
    """

    def _dependency(current_user_id: CurrentUserDep, db: DbDep) -> LimitDecision:
        return EntitlementGate(db, current_user_id).enforce(resource)

    return _dependency
