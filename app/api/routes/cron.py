"""
Sweep trigger for an external scheduler (Vercel/Render cron, GitHub Actions, crontab + curl).
"""
import logging
import hmac
import os
from typing import Optional
from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.services import nudge_email
from app.services.nudge_sweep import run_sweep

logger = logging.getLogger(__name__)

router = APIRouter()

CRON_SWEEP_SECRET = os.getenv("CRON_SWEEP_SECRET", "")


def _secret_matches(provided: Optional[str]) -> bool:
    # Bytes: compare_digest rejects non-ASCII str, and headers arrive latin-1 decoded
    if not provided:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), CRON_SWEEP_SECRET.encode("utf-8"))


@router.get("/cron/sweep")
def sweep(
    x_cron_secret: Optional[str] = Header(None),
    db: Session = Depends(get_db),
):
    # Optional: when a secret is configured, randoms can't trigger sweeps
    if CRON_SWEEP_SECRET and not _secret_matches(x_cron_secret):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    if not nudge_email.email_configured():
        logger.error("[Cron] RESEND_API_KEY not configured")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Resend not configured"
        )

    try:
        return run_sweep(db)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("[Cron] Error loading trial settings")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error loading trial settings"
        )
