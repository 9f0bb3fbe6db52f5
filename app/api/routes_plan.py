"""Plan catalog endpoints and plan selection."""
from __future__ import annotations

import logging

from fastapi import APIRouter, status

from app.api.dependencies import CurrentUserDep, DbDep
from app.core.exceptions import PaymentVerificationFailedError
from app.core.rbac import AdminDep
from app.models.schemas import PlanCreate, PlanOut, PlanUpdate, SelectPlanIn, SelectPlanOut, StatusUpdate
from app.services.catalog_service import PlanCatalog
from app.services.payment_service import PaymentBridge
from app.services.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=list[PlanOut])
def list_plans(db: DbDep, active_only: bool = False):
    return PlanCatalog(db).list_plans(include_inactive=not active_only)


@router.put("/select-plan", response_model=SelectPlanOut)
def select_plan(payload: SelectPlanIn, current_user_id: CurrentUserDep, db: DbDep):
    """
    Commit a plan choice.

    Free needs nothing else. Paid plans must carry the Razorpay checkout
    callback fields for an order opened by /payments/initiate. The signature
    is checked first, then the order is claimed once; points come from the
    order, not the request.
    """
    points_spent = 0
    if payload.plan.is_paid:
        bridge = PaymentBridge(db, current_user_id)
        if not bridge.verify_callback(
            payload.razorpay_order_id, payload.razorpay_payment_id, payload.razorpay_signature
        ):
            raise PaymentVerificationFailedError()
        order = bridge.claim_order(payload.razorpay_order_id, payload.plan, payload.billing_cycle)
        points_spent = order.points_applied

    result = SubscriptionService(db).select_plan(
        current_user_id,
        payload.plan,
        payload.billing_cycle,
        points_spent=points_spent,
    )
    user = result.user
    return SelectPlanOut(
        plan=user.plan,
        previous_plan=result.previous_plan,
        billing_type=user.billing_type.value,
        payment_status=user.payment_status.value,
        subscription_start_date=user.subscription_start_date,
        subscription_expiry_date=user.subscription_expiry_date,
        points=user.points,
        points_deducted=result.points_deducted,
        access_token=result.access_token,
    )


@router.get("/{plan_id}", response_model=PlanOut)
def get_plan(plan_id: int, db: DbDep):
    return PlanCatalog(db).get(plan_id)


@router.post("", response_model=PlanOut, status_code=status.HTTP_201_CREATED)
def create_plan(payload: PlanCreate, admin: AdminDep, db: DbDep):
    fields = payload.model_dump(exclude_unset=True, exclude={"name"})
    plan = PlanCatalog(db).create(payload.name, **fields)
    logger.info("Admin %s created plan %s", admin.id, plan.name.value)
    return plan


@router.put("/{plan_id}", response_model=PlanOut)
def update_plan(plan_id: int, payload: PlanUpdate, admin: AdminDep, db: DbDep):
    return PlanCatalog(db).update(plan_id, **payload.model_dump(exclude_unset=True))


@router.put("/{plan_id}/status", response_model=PlanOut)
def update_plan_status(plan_id: int, payload: StatusUpdate, admin: AdminDep, db: DbDep):
    return PlanCatalog(db).set_active(plan_id, payload.is_active)


@router.delete("/{plan_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_plan(plan_id: int, admin: AdminDep, db: DbDep) -> None:
    PlanCatalog(db).soft_delete(plan_id)
