"""Audit logging utilities.

Writes structured JSON lines to a dedicated audit log file and standard logger.
Events cover entitlement denials, coupon rejections, payment verification
results and subscription changes. Provider secrets passed as metadata are
masked before anything is written.
"""
from __future__ import annotations

import json
import logging
import os
import time
from typing import Any

_AUDIT_LOG_PATH = os.getenv("AUDIT_LOG_FILE", "storage/audit.log")
_logger = logging.getLogger("audit")

_MASKED_FIELDS = frozenset({"signature", "payment_id", "token"})


def _mask(value: Any) -> Any:
    text = str(value)
    if len(text) <= 4:
        return "****"
    return "*" * (len(text) - 4) + text[-4:]


def log_audit_event(action: str, user_id: int | None = None, status: str = "success", **metadata: Any) -> None:
    """Record an audit event.

    Parameters:
        action: A machine-readable action key (e.g. 'entitlement.check', 'payment.verify').
        user_id: The subscriber the event concerns (if known).
        status: 'success' | 'failure' | 'denied'.
        **metadata: Additional context fields (plan, coupon code, order id, etc.).
    """
    event = {
        "ts": int(time.time()),
        "action": action,
        "user_id": user_id,
        "status": status,
    }
    for key, value in metadata.items():
        event[key] = _mask(value) if key in _MASKED_FIELDS and value is not None else value
    line = json.dumps(event, separators=(",", ":"), default=str)
    try:
        os.makedirs(os.path.dirname(_AUDIT_LOG_PATH), exist_ok=True)
        with open(_AUDIT_LOG_PATH, "a", encoding="utf-8") as f:
            f.write(line + "\n")
    except OSError:
        _logger.debug("Failed to write audit event to file: %s", event)
    _logger.info(line)


def log_denied(action: str, user_id: int | None = None, reason: str | None = None, **extra: Any) -> None:
    log_audit_event(action, user_id=user_id, status="denied", reason=reason, **extra)


def log_failure(action: str, user_id: int | None = None, error: str | None = None, **extra: Any) -> None:
    log_audit_event(action, user_id=user_id, status="failure", error=error, **extra)
