"""Coupon administration and checkout preview."""
from __future__ import annotations

from fastapi import APIRouter, Query, status

from app.api.dependencies import CurrentUserDep, DbDep
from app.core.rbac import AdminDep
from app.models.schemas import CouponCreate, CouponOut, CouponPage, CouponUpdate, QuoteOut, QuoteRequest, StatusUpdate
from app.services.catalog_service import CouponStore
from app.services.pricing_service import PricingEngine

router = APIRouter()


@router.get("", response_model=CouponPage)
def list_coupons(
    admin: AdminDep,
    db: DbDep,
    search: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    items, total = CouponStore(db).list_coupons(search=search, page=page, limit=limit)
    return CouponPage(items=items, total=total, page=page, limit=limit)


@router.post("/apply", response_model=QuoteOut)
def apply_coupon(payload: QuoteRequest, current_user_id: CurrentUserDep, db: DbDep):
    """Preview the price with a coupon and points. Does not consume a coupon use."""
    quote = PricingEngine(db, current_user_id).quote(
        payload.plan,
        payload.billing_cycle,
        coupon_code=payload.coupon_code,
        points=payload.points,
        reserve_coupon=False,
    )
    return QuoteOut(**quote.to_dict())


@router.post("", response_model=CouponOut, status_code=status.HTTP_201_CREATED)
def create_coupon(payload: CouponCreate, admin: AdminDep, db: DbDep):
    return CouponStore(db).create(**payload.model_dump())


@router.put("/{coupon_id}", response_model=CouponOut)
def update_coupon(coupon_id: int, payload: CouponUpdate, admin: AdminDep, db: DbDep):
    return CouponStore(db).update(coupon_id, **payload.model_dump(exclude_unset=True))


@router.put("/{coupon_id}/status", response_model=CouponOut)
def update_coupon_status(coupon_id: int, payload: StatusUpdate, admin: AdminDep, db: DbDep):
    return CouponStore(db).set_active(coupon_id, payload.is_active)


@router.delete("/{coupon_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_coupon(coupon_id: int, admin: AdminDep, db: DbDep) -> None:
    CouponStore(db).soft_delete(coupon_id)
