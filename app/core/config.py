from __future__ import annotations

import os
from functools import lru_cache

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseAppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    APP_NAME: str = "PolicyVault"
    ENV: str = "dev"
    DATABASE_URL: str | None = None

    # Email - Brevo SMTP relay by default
    EMAIL_PROVIDER: str = "brevo"
    FROM_EMAIL: str | None = None
    SMTP_HOST: str | None = None
    SMTP_PORT: int = 587
    SMTP_USER: str | None = None
    SMTP_PASSWORD: str | None = None
    BREVO_API_KEY: str | None = None
    BREVO_SMTP_LOGIN: str | None = None
    BREVO_SENDER_NAME: str = "PolicyVault"

    # Razorpay order + signature settings
    RAZORPAY_KEY_ID: str | None = None
    RAZORPAY_KEY_SECRET: str | None = None
    RAZORPAY_API_BASE: str = "https://api.razorpay.com/v1"
    PAYMENT_CURRENCY: str = "INR"
    PAYMENT_PROVIDER_TIMEOUT: float = 10.0

    # Pricing
    MIN_PAYABLE_AMOUNT: int = 1  # provider refuses orders below one currency unit
    # When True, fixed-amount coupons never discount more than the base price
    PRICING_CLAMP_FIXED_DISCOUNT: bool = False

    # Nightly sweep
    SWEEP_TIMEZONE: str = "Asia/Kolkata"
    REMINDER_OFFSETS_DAYS: list[int] = [30, 15, 5]

    JWT_SECRET: str = "change_me"
    JWT_EXPIRE_MINUTES: int = 60 * 24
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_SSL_CERT_REQS: str | None = None
    REDIS_SSL_CA_CERTS: str | None = None
    FRONTEND_URL: str = "https://policyvault.app"
    CORS_ALLOW_ORIGINS: list[str] = ["*"]
    CORS_ALLOW_METHODS: list[str] = ["*"]
    CORS_ALLOW_HEADERS: list[str] = ["*"]
    CORS_ALLOW_CREDENTIALS: bool = True
    HSTS_SECONDS: int = 31_536_000
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "plain"
    SENTRY_DSN: str | None = None

    @field_validator("REMINDER_OFFSETS_DAYS")
    @classmethod
    def _sorted_unique_offsets(cls, v: list[int]) -> list[int]:
        """Offsets are processed furthest-first and must be positive."""
        if any(day <= 0 for day in v):
            raise ValueError("REMINDER_OFFSETS_DAYS must contain positive integers")
        return sorted(set(v), reverse=True)

    @model_validator(mode="after")
    def _validate_required_fields(self) -> BaseAppSettings:
        # Convert Heroku's postgres:// URL to postgresql://
        if self.DATABASE_URL and self.DATABASE_URL.startswith("postgres://"):
            self.DATABASE_URL = self.DATABASE_URL.replace("postgres://", "postgresql://", 1)

        required_in_prod = (
            "DATABASE_URL",
            "RAZORPAY_KEY_ID",
            "RAZORPAY_KEY_SECRET",
            "JWT_SECRET",
            "BREVO_API_KEY",
        )
        if self.ENV.lower() == "prod":
            missing = [name for name in required_in_prod if not getattr(self, name)]
            if missing:
                raise ValueError(f"Missing required production settings: {', '.join(missing)}")
            if self.JWT_SECRET == "change_me":
                raise ValueError("Insecure default secrets in production: JWT_SECRET uses default placeholder")
        return self


class DevSettings(BaseAppSettings):
    ENV: str = "dev"
    DATABASE_URL: str = "sqlite:///./policyvault-dev.db"
    RAZORPAY_KEY_ID: str = "rzp_test_dev"
    RAZORPAY_KEY_SECRET: str = "dev-razorpay-secret"


class TestSettings(BaseAppSettings):
    ENV: str = "test"
    DATABASE_URL: str = "sqlite:///:memory:"
    RAZORPAY_KEY_ID: str = "rzp_test_key"
    RAZORPAY_KEY_SECRET: str = "test-razorpay-secret"


class ProdSettings(BaseAppSettings):
    ENV: str = "prod"
    CORS_ALLOW_ORIGINS: list[str] = [
        "https://policyvault.app",
        "https://www.policyvault.app",
    ]
    LOG_FORMAT: str = "json"


_ENV_TO_SETTINGS: dict[str, type[BaseAppSettings]] = {
    "dev": DevSettings,
    "development": DevSettings,
    "test": TestSettings,
    "testing": TestSettings,
    "prod": ProdSettings,
    "production": ProdSettings,
}


@lru_cache
def get_settings() -> BaseAppSettings:
    env_name = os.getenv("APP_ENV") or os.getenv("ENV") or "dev"
    env = env_name.lower()
    settings_cls = _ENV_TO_SETTINGS.get(env, DevSettings)
    return settings_cls()


settings = get_settings()
