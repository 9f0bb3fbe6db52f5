"""Tests for RBAC utilities."""
import pytest
from fastapi import HTTPException

from app.core.rbac import require_roles
from app.models.models import Role


@pytest.mark.asyncio
async def test_allows_matching_role(db_session, make_user):
    admin = make_user(role=Role.ADMIN)
    dependency = require_roles(["admin"])
    assert (await dependency(user_id=admin.id, db=db_session)).id == admin.id


@pytest.mark.asyncio
async def test_rejects_other_roles(db_session, make_user):
    user = make_user()
    with pytest.raises(HTTPException) as excinfo:
        await require_roles(["Admin"])(user_id=user.id, db=db_session)
    assert excinfo.value.status_code == 403


@pytest.mark.asyncio
async def test_unknown_user(db_session):
    with pytest.raises(HTTPException) as excinfo:
        await require_roles(["Admin"])(user_id=999, db=db_session)
    assert excinfo.value.status_code == 401
