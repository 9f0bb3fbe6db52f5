import pytest

from app.core.security import TokenExpiredError, TokenValidationError, create_access_token, decode_token


def test_round_trip_claims():
    claims = decode_token(create_access_token(12, "User"))
    assert claims["sub"] == "12"
    assert claims["role"] == "User"
    assert claims["type"] == "access"


def test_expired_token():
    token = create_access_token(1, "User", expires_minutes=-1)
    with pytest.raises(TokenExpiredError):
        decode_token(token)


def test_tampered_token():
    token = create_access_token(1, "Admin")
    with pytest.raises(TokenValidationError):
        decode_token(token[:-2] + ("AA" if not token.endswith("AA") else "BB"))
