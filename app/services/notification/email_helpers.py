from __future__ import annotations

import asyncio
import logging
import smtplib
from datetime import datetime, timezone
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, select_autoescape

from app.core.config import settings

logger = logging.getLogger(__name__)

_template_dir = Path(__file__).resolve().parent.parent.parent / "templates" / "email"
_jinja_env = Environment(
    loader=FileSystemLoader(str(_template_dir)),
    autoescape=select_autoescape(["html", "xml"]),
)


class EmailNotConfiguredError(RuntimeError):
    """No SMTP credentials are available for the configured provider."""


def get_smtp_config() -> dict[str, str | int] | None:
    """Get SMTP configuration for Brevo email sending.

    Returns:
        dict with host, port, user, password or None if not configured
    """
    provider = (settings.EMAIL_PROVIDER or "brevo").lower()
    if provider not in {"brevo", "smtp"}:
        logger.warning("Unsupported EMAIL_PROVIDER: %s", provider)
        return None

    host = settings.SMTP_HOST or ("smtp-relay.brevo.com" if provider == "brevo" else None)
    # SMTP_USER first (actual SMTP credential), fallback to BREVO_SMTP_LOGIN
    user = settings.SMTP_USER or settings.BREVO_SMTP_LOGIN
    # Brevo SMTP password is separate from the API key; prefer SMTP_PASSWORD
    password = settings.SMTP_PASSWORD or settings.BREVO_API_KEY
    if not all([host, user, password]):
        logger.warning("Email not configured. Set SMTP_USER/BREVO_SMTP_LOGIN and SMTP_PASSWORD/BREVO_API_KEY")
        return None
    return {"host": host, "port": settings.SMTP_PORT, "user": user, "password": password}


def render_email(template_name: str, **context: Any) -> str:
    context.setdefault("app_name", settings.APP_NAME)
    context.setdefault("current_year", datetime.now(timezone.utc).year)
    return _jinja_env.get_template(template_name).render(**context)


def send_email(recipient: str, subject: str, html_body: str, text_body: str | None = None) -> None:
    """Send one message over SMTP. Raises on any delivery failure."""
    smtp_config = get_smtp_config()
    if not smtp_config:
        raise EmailNotConfiguredError("No email provider configured")

    msg = MIMEMultipart("alternative")
    msg["From"] = f"{settings.BREVO_SENDER_NAME} <{settings.FROM_EMAIL or smtp_config['user']}>"
    msg["To"] = recipient
    msg["Subject"] = subject
    if text_body:
        msg.attach(MIMEText(text_body, "plain"))
    msg.attach(MIMEText(html_body, "html"))

    with smtplib.SMTP(str(smtp_config["host"]), int(smtp_config["port"]), timeout=10) as server:
        server.starttls()
        server.login(str(smtp_config["user"]), str(smtp_config["password"]))
        server.send_message(msg)
    logger.info("Sent email '%s' to %s", subject, recipient)


async def send_email_async(recipient: str, subject: str, html_body: str, text_body: str | None = None) -> None:
    """smtplib blocks; run it on a worker thread so sends in one batch overlap."""
    await asyncio.to_thread(send_email, recipient, subject, html_body, text_body)
