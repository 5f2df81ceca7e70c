import logging
import os
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from smtplib import SMTP
from typing import Optional

import jinja2
from pydantic import EmailStr
from starlette.concurrency import run_in_threadpool

from config import settings

logger = logging.getLogger(__name__)

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
TEMPLATES_DIR = os.path.join(BASE_DIR, "templates", "email")

env = jinja2.Environment(
    loader=jinja2.FileSystemLoader(TEMPLATES_DIR),
    autoescape=True
)


def render_email(template_name: str, **context) -> str:
    context.setdefault("site_url", settings.SITE_URL)
    return env.get_template(template_name).render(**context)


def absolute_url(path: Optional[str]) -> Optional[str]:
    if not path:
        return None
    if path.startswith("http://") or path.startswith("https://"):
        return path
    return f"{settings.SITE_URL}/{path.lstrip('/')}"


def _deliver(msg: MIMEMultipart) -> None:
    with SMTP(settings.SMTP_SERVER, settings.SMTP_PORT) as server:
        server.starttls()
        if settings.EMAIL_USER and settings.EMAIL_PASS:
            server.login(settings.EMAIL_USER, settings.EMAIL_PASS)
        server.send_message(msg)


async def send_email(to_email: EmailStr, subject: str, html: str, text: Optional[str] = None) -> bool:
    """Send one email over SMTP. Returns False instead of raising when delivery fails."""
    if not settings.EMAIL_ENABLED:
        logger.info(f"Email disabled, skipping '{subject}' to {to_email}")
        return False

    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = formataddr((settings.EMAIL_FROM_NAME, settings.EMAIL_FROM))
    msg["To"] = to_email
    if text:
        msg.attach(MIMEText(text, "plain"))
    msg.attach(MIMEText(html, "html"))

    try:
        await run_in_threadpool(_deliver, msg)
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Failed to send email '{subject}' to {to_email}: {e}")
        return False
    logger.info(f"Email '{subject}' sent to {to_email}")
    return True


async def send_reset_email(to_email: EmailStr, reset_link: str, name: Optional[str] = None) -> bool:
    html = render_email(
        "password_reset.html",
        title="Reset your password",
        name=name,
        expires_minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES,
        action_url=reset_link,
        action_label="Reset password",
    )
    text = (
        "Click the link below to reset your password:\n"
        f"{reset_link}\n\n"
        f"This link will expire in {settings.PASSWORD_RESET_EXPIRE_MINUTES} minutes."
    )
    return await send_email(to_email, "Reset your password", html, text)


async def send_verification_email(to_email: EmailStr, verify_link: str, name: Optional[str] = None,
                                  expires_hours: int = 24) -> bool:
    html = render_email(
        "verify_email.html",
        title="Verify your email address",
        name=name,
        expires_hours=expires_hours,
        action_url=verify_link,
        action_label="Verify email address",
    )
    text = (
        "Confirm your email address by opening the link below:\n"
        f"{verify_link}\n\n"
        f"This link will expire in {expires_hours} hours."
    )
    return await send_email(to_email, "Verify your email - Open Event", html, text)


async def send_notification_email(
    to_email: EmailStr,
    title: str,
    message: str,
    action_url: Optional[str] = None,
    action_label: Optional[str] = None,
    template_name: str = "notification.html",
    **context,
) -> bool:
    html = render_email(
        template_name,
        title=title,
        message=message,
        action_url=absolute_url(action_url),
        action_label=action_label,
        **context,
    )
    return await send_email(to_email, title, html, message)
