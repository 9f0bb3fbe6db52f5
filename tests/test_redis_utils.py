import certifi

from app.core import redis_utils
from app.core.config import settings


def test_plain_redis_url_unchanged():
    assert redis_utils.prepare_redis_url("redis://localhost:6379/0") == "redis://localhost:6379/0"
    assert redis_utils.prepare_redis_url(None) is None


def test_tls_url_gets_cert_params(monkeypatch):
    monkeypatch.setattr(settings, "REDIS_SSL_CERT_REQS", "required")
    monkeypatch.setattr(settings, "REDIS_SSL_CA_CERTS", None)

    url = redis_utils.prepare_redis_url("rediss://:pw@cache.example.com:6380/0")

    assert "ssl_cert_reqs=required" in url
    assert "ssl_ca_certs=" in url
    assert certifi.where().split("/")[-1] in url


def test_unknown_cert_reqs_falls_back_to_none():
    assert redis_utils.normalize_cert_reqs("paranoid") == "none"
