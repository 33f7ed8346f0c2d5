# ================================================================
# services/addon_expiration.py — Entry points for the scheduled expiration jobs
# ================================================================
import logging
import time
from datetime import datetime
from typing import Optional

from sqlmodel import Session

from models.models import utc_now
from schemas.cron_schema import (
    AddonExpirationSummary,
    EmailReminderSummary,
    ExpirationJobReport,
    ExpirationMarkingSummary,
)
from services.cache_service import CacheService, get_cache_service
from services.domain_service import DomainService
from services.email_service import EmailService
from services.expiration_marker import ExpirationMarker
from services.expiration_processor import ExpirationProcessor
from services.warning_scheduler import WarningScheduler

logger = logging.getLogger(__name__)


# ============================================================
# ✅ Phase 1: mark past-due subscriptions and add-ons EXPIRED
# ============================================================
def mark_expired_items(session: Session, now: Optional[datetime] = None) -> ExpirationMarkingSummary:
    return ExpirationMarker(session, now=now).run()


# ============================================================
# ✅ Phase 2: 7 / 3 / 1 day warning emails
# ============================================================
def send_warning_emails(
    session: Session,
    email_service: Optional[EmailService] = None,
    now: Optional[datetime] = None,
) -> EmailReminderSummary:
    return WarningScheduler(session, email_service=email_service, now=now).run()


# ============================================================
# ✅ Phase 3: downgrade resources of expired add-ons
# ============================================================
def process_expired_addons(
    session: Session,
    email_service: Optional[EmailService] = None,
    cache_service: Optional[CacheService] = None,
    domain_service: Optional[DomainService] = None,
    now: Optional[datetime] = None,
) -> AddonExpirationSummary:
    if cache_service is None:
        cache_service = get_cache_service()

    # One Cloudflare HTTP client per run, shared by every domain add-on
    owned_domain_service = None
    if domain_service is None:
        domain_service = owned_domain_service = DomainService(session)

    try:
        processor = ExpirationProcessor(
            session,
            email_service=email_service,
            cache_service=cache_service,
            domain_service=domain_service,
            now=now,
        )
        return processor.run()
    finally:
        if owned_domain_service is not None:
            owned_domain_service.close()


# ============================================================
# ✅ Full run: mark → warn → process
# ============================================================
def run_expiration_jobs(
    session: Session,
    email_service: Optional[EmailService] = None,
    cache_service: Optional[CacheService] = None,
    domain_service: Optional[DomainService] = None,
    now: Optional[datetime] = None,
) -> ExpirationJobReport:
    """
    Marking must finish before processing so add-ons that ran out since the
    last run are reconciled in the same pass.
    """
    started = time.perf_counter()
    now = now or utc_now()
    logger.info(f"🚀 Starting add-on expiration jobs at {now.isoformat()}")

    marking = mark_expired_items(session, now=now)
    warnings = send_warning_emails(session, email_service=email_service, now=now)
    expiration = process_expired_addons(
        session,
        email_service=email_service,
        cache_service=cache_service,
        domain_service=domain_service,
        now=now,
    )

    report = ExpirationJobReport(
        success=marking.success and warnings.success and expiration.success,
        marking=marking,
        warnings=warnings,
        expiration=expiration,
        execution_time_ms=int((time.perf_counter() - started) * 1000),
    )
    logger.info(f"🏁 Expiration jobs finished in {report.execution_time_ms}ms (success={report.success})")
    return report
