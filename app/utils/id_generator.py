from __future__ import annotations

import secrets
import uuid


def generate_receipt_id() -> str:
    """Provider receipt reference for a new order."""
    return str(uuid.uuid4())


def generate_referral_code() -> str:
    """8-character uppercase hex code handed out to each subscriber."""
    return secrets.token_hex(4).upper()
