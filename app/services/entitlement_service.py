"""
Entitlement gate for plan-based record limits.

Before any record is created the gate compares the subscriber's live count of
non-deleted records of that type with the limit declared on their plan.
Counts are derived per check, never stored, so there is no counter to drift.

The gate is a precondition check, not a reservation: two concurrent creations
can both pass and overshoot a limit by one.
"""
from __future__ import annotations

import datetime as dt
import enum
import logging
from dataclasses import dataclass

from sqlalchemy import func
from sqlalchemy.orm import Session

from app import metrics
from app.core.audit import log_denied
from app.core.exceptions import LimitExceededError, SubscriberNotFoundError
from app.models import models
from app.models.models import PlanName
from app.services.subscription_service import effective_plan

logger = logging.getLogger(__name__)


class ResourceType(str, enum.Enum):
    POLICY = "policy"
    PRODUCT = "product"
    BRAND = "brand"
    POLICY_TYPE = "policyType"
    NOTIFICATION = "notification"
    USER = "user"


# resource -> (model, owner column, plan limit attribute, label used in messages)
_RESOURCES: dict[ResourceType, tuple[type, str, str, str]] = {
    ResourceType.POLICY: (models.Policy, "user_id", "max_policies", "policies"),
    ResourceType.PRODUCT: (models.Product, "user_id", "max_products", "products"),
    ResourceType.BRAND: (models.Brand, "user_id", "max_brands", "brands"),
    ResourceType.POLICY_TYPE: (models.PolicyType, "user_id", "max_policy_types", "policy types"),
    ResourceType.NOTIFICATION: (models.Notification, "user_id", "max_notifications", "notifications"),
    ResourceType.USER: (models.User, "owner_id", "max_family_members", "family members"),
}


@dataclass(frozen=True)
class LimitDecision:
    allowed: bool
    resource_type: ResourceType
    plan: PlanName
    limit: int | None
    used: int
    reason: str | None = None

    @property
    def unlimited(self) -> bool:
        return self.limit is None

    def to_dict(self) -> dict[str, object]:
        return {
            "resource": self.resource_type.value,
            "allowed": self.allowed,
            "plan": self.plan.value,
            "limit": "Unlimited" if self.limit is None else self.limit,
            "used": self.used,
            "reason": self.reason,
        }


def parse_resource_type(value: ResourceType | str) -> ResourceType:
    if isinstance(value, ResourceType):
        return value
    try:
        return ResourceType(value)
    except ValueError:
        allowed = ", ".join(r.value for r in ResourceType)
        raise ValueError(f"Unknown resource type '{value}'. Expected one of: {allowed}") from None


class EntitlementGate:
    """Check whether a subscriber may create another record of a given type."""

    def __init__(self, db: Session, subscriber_id: int, now: dt.datetime | None = None):
        self.db = db
        self.subscriber_id = subscriber_id
        self.now = now
        self._user: models.User | None = None
        self._plan_loaded = False
        self._plan: models.Plan | None = None

    @property
    def user(self) -> models.User:
        """Lazy load the subscriber; a missing subscriber is fatal to the request."""
        if self._user is None:
            self._user = (
                self.db.query(models.User)
                .filter(models.User.id == self.subscriber_id, models.User.deleted_at.is_(None))
                .one_or_none()
            )
            if not self._user:
                raise SubscriberNotFoundError(self.subscriber_id)
        return self._user

    @property
    def plan_name(self) -> PlanName:
        return effective_plan(self.user, self.now)

    @property
    def plan(self) -> models.Plan | None:
        """Current non-deleted catalog row for the subscriber's effective tier."""
        if not self._plan_loaded:
            self._plan = (
                self.db.query(models.Plan)
                .filter(models.Plan.name == self.plan_name, models.Plan.deleted_at.is_(None))
                .order_by(models.Plan.id.desc())
                .first()
            )
            self._plan_loaded = True
            if self._plan is None:
                logger.warning(
                    "No catalog row for plan %s; treating limits as undeclared for user %s",
                    self.plan_name.value, self.subscriber_id,
                )
        return self._plan

    def count(self, resource: ResourceType) -> int:
        model, owner_column, _, _ = _RESOURCES[resource]
        return (
            self.db.query(func.count(model.id))
            .filter(getattr(model, owner_column) == self.user.id, model.deleted_at.is_(None))
            .scalar()
            or 0
        )

    def limit_for(self, resource: ResourceType) -> int | None:
        """Declared limit, or None for the unlimited sentinel or an undeclared plan."""
        plan = self.plan
        if plan is None:
            return None
        _, _, attribute, _ = _RESOURCES[resource]
        return getattr(plan, attribute)

    def check_limit(self, resource: ResourceType | str) -> LimitDecision:
        """Return an allow/deny decision. Denials are values, not exceptions."""
        resource = parse_resource_type(resource)
        plan_name = self.plan_name
        used = self.count(resource)
        limit = self.limit_for(resource)
        label = _RESOURCES[resource][3]

        if resource == ResourceType.USER:
            if plan_name != PlanName.FAMILY:
                return LimitDecision(
                    allowed=False,
                    resource_type=resource,
                    plan=plan_name,
                    limit=0,
                    used=used,
                    reason=f"{plan_name.value} plan does not allow adding users",
                )
            if limit is not None and used >= limit:
                return LimitDecision(
                    allowed=False,
                    resource_type=resource,
                    plan=plan_name,
                    limit=limit,
                    used=used,
                    reason=f"Family plan allows a maximum of {limit} {label}",
                )
            return LimitDecision(True, resource, plan_name, limit, used)

        if limit is not None and used >= limit:
            return LimitDecision(
                allowed=False,
                resource_type=resource,
                plan=plan_name,
                limit=limit,
                used=used,
                reason=f"{plan_name.value} plan allows only {limit} {label}",
            )
        return LimitDecision(True, resource, plan_name, limit, used)

    def enforce(self, resource: ResourceType | str) -> LimitDecision:
        """Raise LimitExceededError when the gate denies; used by create endpoints."""
        decision = self.check_limit(resource)
        if not decision.allowed:
            metrics.entitlement_denied(decision.plan.value, decision.resource_type.value)
            log_denied(
                "entitlement.create",
                user_id=self.subscriber_id,
                reason=decision.reason,
                resource=decision.resource_type.value,
                plan=decision.plan.value,
                limit=decision.limit,
                used=decision.used,
            )
            raise LimitExceededError(
                reason=decision.reason or "Plan limit reached",
                plan=decision.plan.value,
                resource_type=decision.resource_type.value,
                limit=decision.limit,
                used=decision.used,
            )
        return decision

    def usage_summary(self) -> list[LimitDecision]:
        """Decision for every resource type, for the dashboard."""
        return [self.check_limit(resource) for resource in ResourceType]


def check_limit(db: Session, subscriber_id: int, resource: ResourceType | str) -> LimitDecision:
    """Convenience function for one-off checks."""
    return EntitlementGate(db, subscriber_id).check_limit(resource)
