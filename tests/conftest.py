from __future__ import annotations

import os
import tempfile

os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("AUDIT_LOG_FILE", os.path.join(tempfile.gettempdir(), "policyvault-test-audit.log"))

from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.api.rate_limit import limiter  # noqa: E402
from app.core.security import create_access_token  # noqa: E402
from app.db import session as db_session_module  # noqa: E402
from app.db.base_class import Base  # noqa: E402
from app.db.session import SessionLocal  # noqa: E402
from app.models import models  # noqa: E402
from app.models.models import PlanName, Role  # noqa: E402
from app.services.catalog_service import PlanCatalog  # noqa: E402

test_engine = create_engine(
    "sqlite:///:memory:",
    future=True,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

# Ensure application code uses the test engine
db_session_module.engine = test_engine  # type: ignore[assignment]
SessionLocal.configure(bind=test_engine)


@pytest.fixture(autouse=True)
def _reset_database_state():
    """Each test sees a fresh schema."""
    Base.metadata.drop_all(bind=test_engine)
    Base.metadata.create_all(bind=test_engine)
    yield


@pytest.fixture(autouse=True)
def _reset_rate_limits():
    limiter.reset()
    yield


@pytest.fixture
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    from app.api.main import app

    return TestClient(app)


@pytest.fixture
def make_user(db_session):
    """Factory for subscribers; defaults to a Free, role=User account with an email."""
    counter = {"n": 0}

    def _make(**fields) -> models.User:
        counter["n"] += 1
        values = {
            "name": f"User {counter['n']}",
            "email": f"user{counter['n']}@example.com",
            "role": Role.USER,
            "plan": PlanName.FREE,
        }
        values.update(fields)
        user = models.User(**values)
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture
def seed_plans(db_session) -> dict[PlanName, models.Plan]:
    """Catalog with tier defaults and INR prices."""
    catalog = PlanCatalog(db_session)
    return {
        PlanName.FREE: catalog.create(PlanName.FREE),
        PlanName.PRO: catalog.create(
            PlanName.PRO, monthly_price=Decimal("999"), yearly_price=Decimal("9999")
        ),
        PlanName.FAMILY: catalog.create(
            PlanName.FAMILY, monthly_price=Decimal("1499"), yearly_price=Decimal("14999"), max_family_members=4
        ),
    }


def auth_headers(user: models.User) -> dict[str, str]:
    token = create_access_token(user.id, user.role.value)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(name="auth_headers")
def auth_headers_fixture():
    return auth_headers
