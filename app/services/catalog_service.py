"""Administrator-managed plan catalog and coupon store.

Both are soft-deleted; a coupon's ``used_count`` is never written here, only
by the pricing engine when a coupon is redeemed.
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from sqlalchemy.orm import Session

from app.core.exceptions import CouponNotFoundError, DuplicateRecordError, PlanNotFoundError
from app.models import models
from app.models.models import PlanName, utcnow

logger = logging.getLogger(__name__)

_LIMIT_FIELDS = (
    "max_policies",
    "max_products",
    "max_brands",
    "max_policy_types",
    "max_notifications",
)

# Limits applied when the administrator leaves them out; None is unlimited.
# Passing a limit explicitly (even None) overrides the default.
TIER_DEFAULTS: dict[PlanName, dict[str, Any]] = {
    PlanName.FREE: {**{f: 2 for f in _LIMIT_FIELDS}, "max_family_members": 0, "allow_family_members": False},
    PlanName.PRO: {**{f: None for f in _LIMIT_FIELDS}, "max_family_members": 0, "allow_family_members": False},
    PlanName.FAMILY: {**{f: None for f in _LIMIT_FIELDS}, "max_family_members": None, "allow_family_members": True},
}

_PLAN_FIELDS = frozenset(
    {*_LIMIT_FIELDS, "max_family_members", "monthly_price", "yearly_price", "features", "is_active"}
)
_COUPON_FIELDS = frozenset(
    {
        "code",
        "discount_type",
        "discount_value",
        "max_discount",
        "min_purchase",
        "expiry_date",
        "usage_limit",
        "allowed_user_ids",
        "is_active",
    }
)


class PlanCatalog:
    def __init__(self, db: Session):
        self.db = db

    def _live(self):
        return self.db.query(models.Plan).filter(models.Plan.deleted_at.is_(None))

    def list_plans(self, include_inactive: bool = True) -> list[models.Plan]:
        query = self._live()
        if not include_inactive:
            query = query.filter(models.Plan.is_active.is_(True))
        return query.order_by(models.Plan.monthly_price.asc(), models.Plan.id.asc()).all()

    def get(self, plan_id: int) -> models.Plan:
        plan = self._live().filter(models.Plan.id == plan_id).one_or_none()
        if not plan:
            raise PlanNotFoundError(plan_id)
        return plan

    def create(self, name: PlanName, **fields: Any) -> models.Plan:
        if self._live().filter(models.Plan.name == name).first():
            raise DuplicateRecordError("Plan", name.value)

        values = dict(TIER_DEFAULTS[name])
        values.update({k: v for k, v in fields.items() if k in _PLAN_FIELDS})
        # Family must always be able to add members; other tiers never can
        values["allow_family_members"] = name == PlanName.FAMILY
        if name == PlanName.FREE:
            values["monthly_price"] = Decimal("0")
            values["yearly_price"] = Decimal("0")

        plan = models.Plan(name=name, **values)
        self.db.add(plan)
        self.db.commit()
        self.db.refresh(plan)
        logger.info("Created plan %s (id=%s)", name.value, plan.id)
        return plan

    def update(self, plan_id: int, **fields: Any) -> models.Plan:
        plan = self.get(plan_id)
        for key, value in fields.items():
            if key in _PLAN_FIELDS:
                setattr(plan, key, value)
        self.db.commit()
        self.db.refresh(plan)
        return plan

    def set_active(self, plan_id: int, is_active: bool) -> models.Plan:
        return self.update(plan_id, is_active=is_active)

    def soft_delete(self, plan_id: int) -> None:
        plan = self.get(plan_id)
        plan.deleted_at = utcnow()
        self.db.commit()
        logger.info("Soft-deleted plan %s (id=%s)", plan.name.value, plan.id)


class CouponStore:
    def __init__(self, db: Session):
        self.db = db

    def _live(self):
        return self.db.query(models.Coupon).filter(models.Coupon.deleted_at.is_(None))

    def list_coupons(self, search: str | None = None, page: int = 1, limit: int = 20) -> tuple[list[models.Coupon], int]:
        query = self._live()
        if search:
            pattern = f"%{search}%"
            query = query.filter(models.Coupon.code.like(pattern))
        total = query.count()
        page = max(page, 1)
        items = (
            query.order_by(models.Coupon.created_at.desc(), models.Coupon.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return items, total

    def get(self, coupon_id: int) -> models.Coupon:
        coupon = self._live().filter(models.Coupon.id == coupon_id).one_or_none()
        if not coupon:
            raise CouponNotFoundError(coupon_id)
        return coupon

    def find_redeemable(self, code: str) -> models.Coupon | None:
        """Active, non-deleted coupon with exactly this code (case-sensitive)."""
        return (
            self._live()
            .filter(models.Coupon.code == code, models.Coupon.is_active.is_(True))
            .order_by(models.Coupon.id.desc())
            .first()
        )

    def _ensure_unique(self, code: str, exclude_id: int | None = None) -> None:
        query = self._live().filter(models.Coupon.code == code)
        if exclude_id is not None:
            query = query.filter(models.Coupon.id != exclude_id)
        if query.first():
            raise DuplicateRecordError("Coupon", code)

    def create(self, **fields: Any) -> models.Coupon:
        self._ensure_unique(fields["code"])
        coupon = models.Coupon(**{k: v for k, v in fields.items() if k in _COUPON_FIELDS})
        self.db.add(coupon)
        self.db.commit()
        self.db.refresh(coupon)
        logger.info("Created coupon %s (id=%s)", coupon.code, coupon.id)
        return coupon

    def update(self, coupon_id: int, **fields: Any) -> models.Coupon:
        coupon = self.get(coupon_id)
        if "code" in fields and fields["code"] != coupon.code:
            self._ensure_unique(fields["code"], exclude_id=coupon.id)
        for key, value in fields.items():
            if key in _COUPON_FIELDS:
                setattr(coupon, key, value)
        self.db.commit()
        self.db.refresh(coupon)
        return coupon

    def set_active(self, coupon_id: int, is_active: bool) -> models.Coupon:
        return self.update(coupon_id, is_active=is_active)

    def soft_delete(self, coupon_id: int) -> None:
        coupon = self.get(coupon_id)
        coupon.deleted_at = utcnow()
        self.db.commit()
        logger.info("Soft-deleted coupon %s (id=%s)", coupon.code, coupon.id)
