"""Metrics facade.

Service code should ONLY call the semantic helpers here so we can change backend freely.

Metrics:
- entitlement_denied_total        Gate denials by plan and resource type
- coupon_redemptions_total        Coupon applications by outcome
- payment_orders_total            Provider orders created, or skipped when nothing is payable
- payment_verifications_total     Callback signature checks by result
- subscription_changes_total      Plan transitions from select_plan and the sweep
- sweep_outcomes_total            Per-record results of the nightly sweep
- sweep_duration_seconds          Wall time of each sweep pass
"""

from __future__ import annotations

import logging

from prometheus_client import Counter, Histogram

logger = logging.getLogger("metrics")

_ENTITLEMENT_DENIED = Counter(
    "entitlement_denied_total", "Resource creations denied by the entitlement gate", ["plan", "resource"]
)
_COUPON_REDEMPTIONS = Counter(
    "coupon_redemptions_total", "Coupon applications by outcome", ["outcome"]
)
_PAYMENT_ORDERS = Counter(
    "payment_orders_total", "Payment orders by plan and result", ["plan", "result"]
)
_PAYMENT_VERIFICATIONS = Counter(
    "payment_verifications_total", "Payment callback signature checks", ["result"]
)
_SUBSCRIPTION_CHANGES = Counter(
    "subscription_changes_total", "Subscription plan transitions", ["from_plan", "to_plan", "source"]
)
_SWEEP_OUTCOMES = Counter(
    "sweep_outcomes_total", "Nightly sweep per-record outcomes", ["sweep_pass", "outcome"]
)
_SWEEP_DURATION = Histogram(
    "sweep_duration_seconds",
    "Duration of each nightly sweep pass",
    ["sweep_pass"],
    buckets=(0.1, 0.5, 1, 2.5, 5, 10, 30, 60, 120, 300),
)


def entitlement_denied(plan: str, resource: str) -> None:
    _ENTITLEMENT_DENIED.labels(plan=plan, resource=resource).inc()


def coupon_redeemed() -> None:
    _COUPON_REDEMPTIONS.labels(outcome="redeemed").inc()


def coupon_rejected(reason: str) -> None:
    _COUPON_REDEMPTIONS.labels(outcome=reason).inc()


def payment_order_created(plan: str) -> None:
    _PAYMENT_ORDERS.labels(plan=plan, result="created").inc()


def payment_order_skipped(plan: str) -> None:
    """Nothing payable after discounts, so no provider order was requested."""
    _PAYMENT_ORDERS.labels(plan=plan, result="skipped").inc()


def payment_order_failed(plan: str) -> None:
    _PAYMENT_ORDERS.labels(plan=plan, result="provider_error").inc()


def payment_verification(verified: bool) -> None:
    _PAYMENT_VERIFICATIONS.labels(result="verified" if verified else "rejected").inc()


def subscription_changed(from_plan: str, to_plan: str, source: str = "select_plan") -> None:
    _SUBSCRIPTION_CHANGES.labels(from_plan=from_plan, to_plan=to_plan, source=source).inc()


def sweep_outcome(sweep_pass: str, outcome: str, count: int = 1) -> None:
    if count:
        _SWEEP_OUTCOMES.labels(sweep_pass=sweep_pass, outcome=outcome).inc(count)


def sweep_pass_duration(sweep_pass: str, seconds: float) -> None:
    _SWEEP_DURATION.labels(sweep_pass=sweep_pass).observe(seconds)
    logger.debug("sweep pass %s took %.3fs", sweep_pass, seconds)
