from typing import Annotated, Iterable, TypeAlias

from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.api.dependencies import get_current_user_id
from app.core.audit import log_denied
from app.db.session import get_db
from app.models import models


def require_roles(allowed: Iterable[str]):
    allowed_set = set(r.lower() for r in allowed)

    async def _dependency(user_id: int = Depends(get_current_user_id), db: Session = Depends(get_db)) -> models.User:
        user = (
            db.query(models.User)
            .filter(models.User.id == user_id, models.User.deleted_at.is_(None))
            .one_or_none()
        )
        if not user:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid user")
        if user.role.value.lower() not in allowed_set:
            log_denied("rbac.check", user_id=user_id, reason="insufficient_role", role=user.role.value)
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient role")
        return user

    return _dependency


admin_required = require_roles([models.Role.ADMIN.value])  # Convenience dependency
AdminDep: TypeAlias = Annotated[models.User, Depends(admin_required)]
