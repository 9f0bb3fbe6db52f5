"""Redis TLS helpers shared by the Celery broker and result backend."""
from __future__ import annotations

import ssl
from typing import Any
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

import certifi

from app.core.config import settings

_CERT_REQS = {
    "none": ssl.CERT_NONE,
    "optional": ssl.CERT_OPTIONAL,
    "required": ssl.CERT_REQUIRED,
}


def _with_query_param(url: str, key: str, value: str) -> str:
    parsed = urlparse(url)
    query = parse_qs(parsed.query, keep_blank_values=True)
    query[key] = [value]
    return urlunparse(parsed._replace(query=urlencode(query, doseq=True)))


def normalize_cert_reqs(value: str | None = None) -> str:
    """Return one of none/optional/required; unknown values fall back to none.

    Managed Redis hosts often present self-signed certificates, so stronger
    verification is opt-in through ``REDIS_SSL_CERT_REQS``.
    """
    candidate = (value or settings.REDIS_SSL_CERT_REQS or "none").lower()
    return candidate if candidate in _CERT_REQS else "none"


def prepare_redis_url(url: str | None) -> str | None:
    """Append TLS query params to Redis URL when using rediss."""
    if not url or not url.startswith("rediss://"):
        return url
    url = _with_query_param(url, "ssl_cert_reqs", normalize_cert_reqs())
    return _with_query_param(url, "ssl_ca_certs", settings.REDIS_SSL_CA_CERTS or certifi.where())


def get_ssl_options() -> dict[str, Any] | None:
    url = settings.REDIS_URL
    if not url or not url.startswith("rediss://"):
        return None
    return {"ssl_cert_reqs": _CERT_REQS[normalize_cert_reqs()]}
