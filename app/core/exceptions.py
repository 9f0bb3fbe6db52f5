"""Exception hierarchy for the entitlement and billing engine.

All errors inherit from PolicyVaultException so the API layer can render them
through one handler. Expected business outcomes (gate denials, coupon
rejections) are also returned as values by the services; these classes are
what the HTTP layer raises once it decides to reject the request.

Error codes follow pattern: [CATEGORY][NUMBER]
- NF:  Missing plan/coupon/subscriber (100-199)
- ENT: Entitlement gate denials (200-299)
- VAL: Malformed input (300-399)
- CPN: Coupon rejections (400-499)
- PAY: Payment verification and provider errors (500-599)
"""

from __future__ import annotations

from typing import Any


class PolicyVaultException(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str,
        code: str,
        status_code: int = 400,
        details: dict[str, Any] | None = None,
    ):
        """Initialize exception with a user-facing message and metadata.

        Args:
            message: User-facing error message
            code: Unique error code (e.g., "CPN401")
            status_code: HTTP status code (default: 400 Bad Request)
            details: Optional additional context
        """
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to API response format."""
        return {
            "error": {
                "message": self.message,
                "code": self.code,
                "details": self.details,
            }
        }


# ============================================================================
# NOT FOUND (NF100-199)
# ============================================================================

class NotFoundError(PolicyVaultException):
    """Base class for missing records."""
    pass


class SubscriberNotFoundError(NotFoundError):
    def __init__(self, subscriber_id: int | None = None):
        message = "User not found" if subscriber_id is None else f"User {subscriber_id} not found"
        super().__init__(
            message=message,
            code="NF100",
            status_code=404,
            details={"subscriber_id": subscriber_id} if subscriber_id is not None else {},
        )


class PlanNotFoundError(NotFoundError):
    def __init__(self, plan: str | int | None = None):
        message = "Plan not found" if plan is None else f"Plan '{plan}' not found"
        super().__init__(
            message=message,
            code="NF101",
            status_code=404,
            details={"plan": plan} if plan is not None else {},
        )


class CouponNotFoundError(NotFoundError):
    def __init__(self, coupon_id: int | None = None):
        super().__init__(
            message="Coupon not found",
            code="NF102",
            status_code=404,
            details={"coupon_id": coupon_id} if coupon_id is not None else {},
        )


# ============================================================================
# ENTITLEMENT (ENT200-299)
# ============================================================================

class LimitExceededError(PolicyVaultException):
    """The subscriber's plan does not allow creating another record of this type."""

    def __init__(self, reason: str, plan: str, resource_type: str, limit: int | None, used: int):
        super().__init__(
            message=reason,
            code="ENT200",
            status_code=403,
            details={
                "plan": plan,
                "resource_type": resource_type,
                "limit": limit,
                "used": used,
                "upgrade_url": "/plans/upgrade",
            },
        )


# ============================================================================
# VALIDATION (VAL300-399)
# ============================================================================

class QuoteValidationError(PolicyVaultException):
    """Quote inputs are malformed (e.g. billing cycle missing for a paid plan)."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(
            message=message,
            code="VAL300",
            status_code=400,
            details={"field": field} if field else {},
        )


class DuplicateRecordError(PolicyVaultException):
    def __init__(self, entity: str, key: str):
        super().__init__(
            message=f"{entity} '{key}' already exists",
            code="VAL301",
            status_code=409,
            details={"entity": entity, "key": key},
        )


# ============================================================================
# COUPON (CPN400-499)
# ============================================================================

class CouponRejectedError(PolicyVaultException):
    """Base class for coupon rejections; `reason` identifies the exact rule."""

    reason = "rejected"

    def __init__(self, message: str, code: str, coupon_code: str | None, **details: Any):
        super().__init__(
            message=message,
            code=code,
            status_code=400,
            details={"reason": self.reason, "coupon_code": coupon_code, **details},
        )


class InvalidCouponError(CouponRejectedError):
    reason = "invalid"

    def __init__(self, coupon_code: str | None):
        super().__init__("Invalid coupon code", "CPN400", coupon_code)


class CouponExpiredError(CouponRejectedError):
    reason = "expired"

    def __init__(self, coupon_code: str | None, expiry_date: str | None = None):
        super().__init__("This coupon has expired", "CPN401", coupon_code, expiry_date=expiry_date)


class UsageLimitReachedError(CouponRejectedError):
    reason = "usage_limit_reached"

    def __init__(self, coupon_code: str | None, usage_limit: int | None = None):
        super().__init__(
            "This coupon has reached its usage limit", "CPN402", coupon_code, usage_limit=usage_limit
        )


class NotEligibleError(CouponRejectedError):
    reason = "not_eligible"

    def __init__(self, coupon_code: str | None):
        super().__init__("You are not eligible to use this coupon", "CPN403", coupon_code)


class BelowMinimumPurchaseError(CouponRejectedError):
    reason = "below_minimum_purchase"

    def __init__(self, coupon_code: str | None, min_purchase: str | None = None):
        super().__init__(
            f"This coupon requires a minimum purchase of {min_purchase}",
            "CPN404",
            coupon_code,
            min_purchase=min_purchase,
        )


# ============================================================================
# PAYMENT (PAY500-599)
# ============================================================================

class PaymentVerificationFailedError(PolicyVaultException):
    """Signature mismatch or missing callback field. Never says which."""

    def __init__(self):
        super().__init__(
            message="Payment verification failed",
            code="PAY500",
            status_code=400,
        )


class ProviderError(PolicyVaultException):
    """The payment provider rejected or failed the request; message is verbatim."""

    def __init__(self, message: str, provider: str = "razorpay", provider_status: int | None = None):
        super().__init__(
            message=message,
            code="PAY501",
            status_code=502,
            details={"provider": provider, "provider_status": provider_status},
        )


class OrderMismatchError(PolicyVaultException):
    """The plan or cycle being committed differs from what the paid order was priced for."""

    def __init__(self, order_id: str, plan: str, billing_cycle: str):
        super().__init__(
            message="Selected plan does not match the paid order",
            code="PAY502",
            status_code=400,
            details={"order_id": order_id, "plan": plan, "billing_cycle": billing_cycle},
        )
