"""Read-only view of the entitlement gate for the dashboard."""
from __future__ import annotations

from fastapi import APIRouter, HTTPException

from app.api.dependencies import CurrentUserDep, DbDep
from app.models.schemas import LimitOut, UsageSummaryOut
from app.services.entitlement_service import EntitlementGate, parse_resource_type

router = APIRouter()


@router.get("", response_model=UsageSummaryOut)
def usage_summary(current_user_id: CurrentUserDep, db: DbDep):
    gate = EntitlementGate(db, current_user_id)
    return UsageSummaryOut(
        plan=gate.plan_name.value,
        resources=[LimitOut(**decision.to_dict()) for decision in gate.usage_summary()],
    )


@router.get("/{resource}", response_model=LimitOut)
def check_resource(resource: str, current_user_id: CurrentUserDep, db: DbDep):
    try:
        resource_type = parse_resource_type(resource)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    decision = EntitlementGate(db, current_user_id).check_limit(resource_type)
    return LimitOut(**decision.to_dict())
