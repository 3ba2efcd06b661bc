"""
Send nudge emails through Resend, branded as the tenant's product.
"""
import logging
import os
from email.utils import formataddr
from typing import Optional

import resend

from app.services.email_templates import render_nudge

logger = logging.getLogger(__name__)

RESEND_API_KEY = os.getenv("RESEND_API_KEY", "").strip()
# Mailbox on our verified sending domain; the display name is the tenant's product
NUDGE_FROM_ADDRESS = os.getenv("NUDGE_FROM_ADDRESS", "mail@trialrescue.qzz.io")


def email_configured() -> bool:
    return bool(RESEND_API_KEY)


def send_nudge_email(
    to_email: str,
    nudge: str,
    product_name: str,
    support_email: str,
    app_url: str,
) -> Optional[str]:
    """
    Send one nudge and return Resend's message id (None if Resend returned none).

    Raises on any provider error so the caller does not record the nudge as sent.
    """
    if not RESEND_API_KEY:
        raise RuntimeError("RESEND_API_KEY is not set")

    resend.api_key = RESEND_API_KEY
    rendered = render_nudge(nudge, product_name, app_url)

    params = {
        "from": formataddr((product_name, NUDGE_FROM_ADDRESS)),
        "to": [to_email],
        "subject": rendered.subject,
        "html": rendered.html,
        "text": rendered.text,
        "reply_to": support_email,
    }
    response = resend.Emails.send(params)

    message_id = None
    if isinstance(response, dict):
        message_id = response.get("id") or (response.get("data") or {}).get("id")
    else:
        message_id = getattr(response, "id", None)

    logger.info("[nudge_email] %s sent to %s (message_id=%s)", nudge, to_email, message_id)
    return message_id
