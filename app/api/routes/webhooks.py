"""
Webhooks for payment provider (Dodo Payments).
Register https://your-backend.com/api/webhooks/dodopayments in the Dodo dashboard.
"""
import os
import json
import hmac
import hashlib
import base64
import binascii
import logging
from typing import Optional
from fastapi import APIRouter, Request, HTTPException, status, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from app.core.trial_defaults import BILLING_ACTIVE, BILLING_CANCELLED, EARLY_BIRD_PLAN
from app.db.session import get_db
from app.models.project import Project
from app.utils.dates import utcnow

logger = logging.getLogger(__name__)

router = APIRouter()

# Prefer the new env var name, but fall back to the old one for safety.
DODO_WEBHOOK_SECRET = (
    os.getenv("DODO_PAYMENTS_WEBHOOK_SECRET")
    or os.getenv("DODO_WEBHOOK_SECRET", "")
).strip()

SUCCESSFUL_EVENT_TYPES = (
    "payment.completed",
    "payment.succeeded",
    "subscription.created",
    "subscription.active",
    "subscription.renewed",
)
ENDED_EVENT_TYPES = (
    "subscription.cancelled",
    "subscription.expired",
    "subscription.failed",
)


def _secret_key_bytes(secret: str) -> bytes:
    # Standard Webhooks secrets are base64-encoded and prefixed with "whsec_".
    if secret.startswith("whsec_"):
        return base64.b64decode(secret[len("whsec_"):])
    return secret.encode()


def verify_dodo_signature(
    payload: bytes,
    signature_header: Optional[str],
    webhook_id: Optional[str],
    webhook_timestamp: Optional[str],
    secret: Optional[str] = None,
) -> bool:
    """
    Verify webhook signature using the Standard Webhooks scheme that Dodo implements.

    Docs: https://docs.dodopayments.com/developer-resources/webhooks
    Signed payload format:
        f"{webhook_id}.{webhook_timestamp}.{raw_body}"

    The `webhook-signature` header holds one or more space-separated
    "v1,<base64 digest>" entries (several during secret rotation); any one
    matching is enough.
    """
    secret = DODO_WEBHOOK_SECRET if secret is None else secret
    if not secret or not signature_header or not webhook_id or not webhook_timestamp:
        return False

    try:
        key_bytes = _secret_key_bytes(secret)
    except (binascii.Error, ValueError):
        logger.error("[Dodo webhook] Webhook secret is not valid base64")
        return False

    signed_payload = f"{webhook_id}.{webhook_timestamp}.".encode() + payload
    expected = hmac.new(key_bytes, signed_payload, hashlib.sha256).digest()

    for part in signature_header.split():
        version, _, signature = part.partition(",")
        if version != "v1" or not signature:
            continue
        try:
            received = base64.b64decode(signature, validate=True)
        except (binascii.Error, ValueError):
            continue
        if hmac.compare_digest(expected, received):
            return True
    return False


def _as_dict(value) -> dict:
    return value if isinstance(value, dict) else {}


def _customer_email(obj: dict) -> Optional[str]:
    # customer may also arrive as a bare customer id string
    customer = _as_dict(obj.get("customer"))
    billing = _as_dict(obj.get("billing"))
    email = customer.get("email") or billing.get("email") or obj.get("email")
    return email.strip().lower() if isinstance(email, str) and email.strip() else None


def _resolve_project(db: Session, obj: dict) -> Optional[Project]:
    """
    Resolve the project a payment belongs to:
    1. metadata.project_id (set when we created the checkout session)
    2. newest project whose owner_email matches the customer email
    """
    metadata = _as_dict(obj.get("metadata"))
    project_id = metadata.get("project_id")
    if project_id:
        project = db.query(Project).filter(Project.id == str(project_id)).first()
        if project:
            return project
        logger.warning("[Dodo webhook] metadata.project_id %s not found, falling back to email", project_id)

    customer_email = _customer_email(obj)
    if not customer_email:
        logger.error("[Dodo webhook] No customer email found in webhook payload")
        return None

    project = (
        db.query(Project)
        .filter(Project.owner_email == customer_email)
        .order_by(Project.created_at.desc())
        .first()
    )
    if not project:
        logger.error("[Dodo webhook] No project found for email %s", customer_email)
    return project


def _set_billing(db: Session, obj: dict, billing_status: str, billing_plan: Optional[str]) -> None:
    project = _resolve_project(db, obj)
    if not project:
        return

    project.billing_status = billing_status
    if billing_plan:
        project.billing_plan = billing_plan
    project.billing_updated_at = utcnow()
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("[Dodo webhook] Error updating billing status for project %s", project.id)
        raise
    logger.info("[Dodo webhook] Project %s billing_status=%s", project.id, billing_status)


@router.post("/webhooks/dodopayments")
async def dodo_webhook(request: Request, db: Session = Depends(get_db)):
    payload = await request.body()

    if not verify_dodo_signature(
        payload,
        request.headers.get("webhook-signature"),
        request.headers.get("webhook-id"),
        request.headers.get("webhook-timestamp"),
    ):
        logger.warning("[Dodo webhook] Invalid webhook signature")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid signature"
        )

    try:
        event = json.loads(payload)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON")
    if not isinstance(event, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON")

    event_type = event.get("type")
    # Dodo payload shape: {"type": "...", "data": {...}}
    obj = event.get("data")
    if not isinstance(obj, dict):
        obj = event

    logger.info("[Dodo webhook] type=%s", event_type)

    if event_type in SUCCESSFUL_EVENT_TYPES:
        _set_billing(db, obj, BILLING_ACTIVE, EARLY_BIRD_PLAN)
    elif event_type in ENDED_EVENT_TYPES:
        _set_billing(db, obj, BILLING_CANCELLED, None)

    return {"received": True}
