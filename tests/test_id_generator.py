"""Tests for ID generator utility."""
import uuid

from app.utils.id_generator import generate_receipt_id, generate_referral_code


def test_receipt_ids_are_unique_uuids():
    ids = {generate_receipt_id() for _ in range(100)}
    assert len(ids) == 100
    uuid.UUID(next(iter(ids)))


def test_referral_code_format():
    code = generate_referral_code()
    assert len(code) == 8
    assert code.isupper() or code.isdigit()
    int(code, 16)
