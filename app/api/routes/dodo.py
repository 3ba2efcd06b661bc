"""
Billing status for the dashboard, plus Dodo Payments (Merchant of Record) checkout.
The webhook in webhooks.py is the source of truth for billing_status.
"""
import os
import logging
import httpx
from fastapi import APIRouter, Depends, HTTPException, status, Body
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field
from app.db.session import get_db
from app.dependencies.projects import load_project, require_project_id
from app.schemas.projects import CheckoutResponse
from app.schemas.settings import BillingResponse, BillingUpdate
from app.utils.dates import utcnow

logger = logging.getLogger(__name__)

router = APIRouter()

# Strip whitespace to avoid invisible copy/paste errors.
DODO_API_KEY = (
    os.getenv("DODO_PAYMENTS_API_KEY")
    or os.getenv("DODO_API_KEY", "")
).strip()
DODO_PRODUCT_ID = os.getenv("DODO_PRODUCT_ID", "")  # Early Bird plan
DODO_BASE_URL = os.getenv("DODO_BASE_URL", "").rstrip("/")  # e.g. https://test.dodopayments.com
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")


def _dodo_configured() -> bool:
    return bool(DODO_API_KEY and DODO_BASE_URL and DODO_PRODUCT_ID)


def _dodo_missing_config_message() -> str:
    """Human-readable message listing which Dodo env vars are missing."""
    missing_parts: list[str] = []
    if not DODO_API_KEY:
        missing_parts.append("API_KEY")
    if not DODO_BASE_URL:
        missing_parts.append("BASE_URL")
    if not DODO_PRODUCT_ID:
        missing_parts.append("PRODUCT_ID")
    return f"Payment system not configured. Missing: {' '.join(missing_parts)}"


def _billing_payload(project) -> dict:
    return {
        "id": project.id,
        "billing_status": project.billing_status,
        "billing_plan": project.billing_plan,
        "billing_updated_at": project.billing_updated_at,
    }


@router.get("/internal/project/billing", response_model=BillingResponse)
def get_billing(
    project_id: str = Depends(require_project_id),
    db: Session = Depends(get_db),
):
    return _billing_payload(load_project(db, project_id))


@router.patch("/internal/project/billing", response_model=BillingResponse)
def update_billing(body: BillingUpdate, db: Session = Depends(get_db)):
    """Manual override for support cases (refunds, comped accounts)."""
    project = load_project(db, body.project_id)

    if body.billing_status is not None:
        project.billing_status = body.billing_status
    if body.billing_plan is not None:
        project.billing_plan = body.billing_plan
    project.billing_updated_at = utcnow()

    try:
        db.commit()
        db.refresh(project)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("billing: PATCH failed for project %s", project.id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update billing"
        )

    logger.info("billing: project %s set to %s (%s)", project.id, project.billing_status, project.billing_plan)
    return _billing_payload(project)


class CheckoutRequest(BaseModel):
    project_id: str = Field(..., min_length=1)


@router.post("/internal/project/checkout", response_model=CheckoutResponse)
async def create_checkout_session(
    body: CheckoutRequest = Body(...),
    db: Session = Depends(get_db),
):
    """
    Create a Dodo Payments checkout session for the Early Bird plan.
    The project id travels in metadata so the webhook can find the project
    even if the customer pays with a different email.
    """
    if not _dodo_configured():
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=_dodo_missing_config_message(),
        )

    project = load_project(db, body.project_id)

    payload = {
        "product_cart": [{"product_id": DODO_PRODUCT_ID, "quantity": 1}],
        "return_url": f"{FRONTEND_URL}/billing/success",
        "metadata": {"project_id": str(project.id)},
    }
    if project.owner_email:
        payload["customer"] = {"email": project.owner_email, "name": project.owner_email}

    headers = {
        "Authorization": f"Bearer {DODO_API_KEY}",
        "Content-Type": "application/json",
    }

    try:
        async with httpx.AsyncClient(timeout=15.0) as client:
            r = await client.post(f"{DODO_BASE_URL}/checkouts", json=payload, headers=headers)
    except httpx.TimeoutException as e:
        logger.error("[Dodo] Timeout creating checkout for project %s: %s", project.id, e)
        raise HTTPException(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail="Dodo API timeout")
    except httpx.RequestError as e:
        logger.error("[Dodo] Request error creating checkout for project %s: %s", project.id, e)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Dodo request failed")

    if r.status_code != 200:
        logger.error("[Dodo] Non-200 response from Dodo: %s - %s", r.status_code, r.text[:500])
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Our payment provider rejected the request. Please try again."
        )

    checkout_url = r.json().get("checkout_url")
    if not checkout_url:
        logger.error("[Dodo] Missing checkout_url in response: %s", r.text[:500])
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Dodo did not return checkout_url"
        )
    return {"checkout_url": checkout_url}
