"""Plan catalog and coupon store administration."""
import datetime as dt
from decimal import Decimal

import pytest

from app.core.exceptions import CouponNotFoundError, DuplicateRecordError, PlanNotFoundError
from app.models.models import DiscountType, PlanName
from app.services.catalog_service import CouponStore, PlanCatalog


class TestPlanCatalog:
    def test_tier_defaults(self, db_session):
        catalog = PlanCatalog(db_session)
        free = catalog.create(PlanName.FREE, monthly_price=Decimal("99"))
        pro = catalog.create(PlanName.PRO, monthly_price=Decimal("999"))
        family = catalog.create(PlanName.FAMILY)

        assert free.max_policies == 2
        assert free.max_family_members == 0
        assert free.monthly_price == Decimal("0")
        assert pro.max_policies is None
        assert pro.allow_family_members is False
        assert family.max_family_members is None
        assert family.allow_family_members is True

    def test_explicit_limit_overrides_default(self, db_session):
        plan = PlanCatalog(db_session).create(PlanName.FREE, max_policies=5, max_brands=None)
        assert plan.max_policies == 5
        assert plan.max_brands is None
        assert plan.max_products == 2

    def test_duplicate_name(self, db_session):
        catalog = PlanCatalog(db_session)
        catalog.create(PlanName.PRO)
        with pytest.raises(DuplicateRecordError):
            catalog.create(PlanName.PRO)

    def test_soft_delete_hides_and_frees_name(self, db_session):
        catalog = PlanCatalog(db_session)
        plan = catalog.create(PlanName.PRO)
        catalog.soft_delete(plan.id)

        with pytest.raises(PlanNotFoundError):
            catalog.get(plan.id)
        assert catalog.list_plans() == []
        assert catalog.create(PlanName.PRO).id != plan.id

    def test_active_filter(self, db_session):
        catalog = PlanCatalog(db_session)
        free = catalog.create(PlanName.FREE)
        pro = catalog.create(PlanName.PRO, monthly_price=Decimal("999"))
        catalog.set_active(pro.id, False)

        assert [p.id for p in catalog.list_plans(include_inactive=False)] == [free.id]
        assert len(catalog.list_plans()) == 2

    def test_update(self, db_session):
        catalog = PlanCatalog(db_session)
        plan = catalog.create(PlanName.PRO)
        updated = catalog.update(plan.id, yearly_price=Decimal("9999"), features=["Unlimited policies"])
        assert updated.yearly_price == Decimal("9999")
        assert updated.features == ["Unlimited policies"]


class TestCouponStore:
    def _create(self, store, code, **fields):
        values = {
            "code": code,
            "discount_type": DiscountType.FIXED_AMOUNT,
            "discount_value": Decimal("100"),
            "expiry_date": dt.date(2030, 1, 1),
        }
        values.update(fields)
        return store.create(**values)

    def test_duplicate_code(self, db_session):
        store = CouponStore(db_session)
        self._create(store, "WELCOME")
        with pytest.raises(DuplicateRecordError):
            self._create(store, "WELCOME")

    def test_rename_to_existing_code(self, db_session):
        store = CouponStore(db_session)
        self._create(store, "A")
        second = self._create(store, "B")
        with pytest.raises(DuplicateRecordError):
            store.update(second.id, code="A")

    def test_search_and_pagination(self, db_session):
        store = CouponStore(db_session)
        for i in range(5):
            self._create(store, f"DIWALI{i}")
        self._create(store, "HOLI")

        items, total = store.list_coupons(search="DIWALI", page=2, limit=2)

        assert total == 5
        assert len(items) == 2

    def test_find_redeemable_skips_inactive_and_deleted(self, db_session):
        store = CouponStore(db_session)
        inactive = self._create(store, "OFF", is_active=False)
        deleted = self._create(store, "GONE")
        store.soft_delete(deleted.id)

        assert store.find_redeemable("OFF") is None
        assert store.find_redeemable("GONE") is None
        store.set_active(inactive.id, True)
        assert store.find_redeemable("OFF").id == inactive.id

    def test_missing_coupon(self, db_session):
        with pytest.raises(CouponNotFoundError):
            CouponStore(db_session).get(1)
