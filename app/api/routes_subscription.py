from fastapi import APIRouter

from app.api.dependencies import CurrentUserDep, DbDep
from app.models.schemas import ReferralApplyIn, ReferralApplyOut, SubscriptionStatusOut
from app.services.referral_service import ReferralService
from app.services.subscription_service import SubscriptionService

router = APIRouter()


@router.get("/status", response_model=SubscriptionStatusOut)
def subscription_status(current_user_id: CurrentUserDep, db: DbDep):
    """Current plan with lazy expiry applied, plus the subscriber's referral details."""
    data = SubscriptionService(db).status(current_user_id)
    referrals = ReferralService(db)
    return SubscriptionStatusOut(
        **data,
        referral_code=referrals.get_or_create_referral_code(current_user_id),
        referral_count=referrals.referral_count(current_user_id),
    )


@router.post("/referral", response_model=ReferralApplyOut)
def apply_referral(payload: ReferralApplyIn, current_user_id: CurrentUserDep, db: DbDep):
    """
    Record who referred the current user.

    Only the first valid code counts; own, unknown and repeat codes return applied=false.
    """
    return ReferralApplyOut(applied=ReferralService(db).apply_referral(current_user_id, payload.code))
