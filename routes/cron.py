# routes/cron.py
import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlmodel import Session

from core.config import settings
from core.database import get_session
from schemas.cron_schema import (
    AddonExpirationSummary,
    EmailReminderSummary,
    ExpirationJobReport,
    ExpirationMarkingSummary,
)
from services.addon_expiration import (
    mark_expired_items,
    process_expired_addons,
    run_expiration_jobs,
    send_warning_emails,
)
from services.cache_service import CacheService, get_cache_service
from services.email_service import EmailService, email_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cron/addon-expiration", tags=["Cron"])


# -----------------------
# Dependencies
# -----------------------
def verify_cron_secret(x_cron_secret: Optional[str] = Header(default=None, alias="X-Cron-Secret")) -> None:
    """Only the external scheduler, holding CRON_SECRET, may trigger the jobs."""
    if not settings.CRON_SECRET:
        logger.error("❌ CRON_SECRET is not configured; refusing cron request")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Cron endpoint is not configured")

    if not x_cron_secret or not hmac.compare_digest(x_cron_secret, settings.CRON_SECRET):
        logger.warning("⚠️ Rejected cron request with invalid secret")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid cron secret")


def get_email_service() -> EmailService:
    return email_service


def get_cache() -> CacheService:
    return get_cache_service()


# -----------------------
# Full run
# -----------------------
@router.post("", response_model=ExpirationJobReport, dependencies=[Depends(verify_cron_secret)])
def run_all_jobs(
    session: Session = Depends(get_session),
    mailer: EmailService = Depends(get_email_service),
    cache: CacheService = Depends(get_cache),
):
    """Mark expired items, send warnings, then reconcile expired add-ons."""
    return run_expiration_jobs(session, email_service=mailer, cache_service=cache)


# -----------------------
# Individual phases
# -----------------------
@router.post("/mark", response_model=ExpirationMarkingSummary, dependencies=[Depends(verify_cron_secret)])
def run_marking(session: Session = Depends(get_session)):
    return mark_expired_items(session)


@router.post("/warnings", response_model=EmailReminderSummary, dependencies=[Depends(verify_cron_secret)])
def run_warnings(
    session: Session = Depends(get_session),
    mailer: EmailService = Depends(get_email_service),
):
    return send_warning_emails(session, email_service=mailer)


@router.post("/process", response_model=AddonExpirationSummary, dependencies=[Depends(verify_cron_secret)])
def run_processing(
    session: Session = Depends(get_session),
    mailer: EmailService = Depends(get_email_service),
    cache: CacheService = Depends(get_cache),
):
    return process_expired_addons(session, email_service=mailer, cache_service=cache)
