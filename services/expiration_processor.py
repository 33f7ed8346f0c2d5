# ================================================================
# services/expiration_processor.py — Reconcile resources for expired add-ons
# ================================================================
import logging
import time
from datetime import datetime
from typing import Dict, List, Optional

from sqlmodel import Session, select, col

from core.config import settings
from core.exceptions import UnsupportedAddOnTypeError
from models.models import AddOn, AddOnStatus, User, utc_now
from schemas.cron_schema import AddonExpirationSummary, ExpiredAddonResult, HandlerResult, ItemError
from services.cache_service import CacheService
from services.domain_service import DomainService
from services.email_service import EmailService, email_service as default_email_service
from services.email_templates import TEMPLATE_EXPIRED, get_addon_friendly_name, get_what_happened_text
from services.handlers import ExpirationHandler, build_handler_registry
from services.warning_scheduler import recipient_name

logger = logging.getLogger(__name__)


class ExpirationProcessor:
    """
    Runs the matching handler for every EXPIRED add-on whose resources have
    not been processed yet, then flags it as processed.

    The flag is set whether or not the handler succeeded, so a permanently
    failing add-on is reported once and not retried on every run.
    """

    def __init__(
        self,
        session: Session,
        email_service: Optional[EmailService] = None,
        cache_service: Optional[CacheService] = None,
        domain_service: Optional[DomainService] = None,
        now: Optional[datetime] = None,
        handlers: Optional[Dict[str, ExpirationHandler]] = None,
    ):
        self.session = session
        self.email_service = email_service or default_email_service
        self.now = now or utc_now()
        self.handlers = (
            handlers
            if handlers is not None
            else build_handler_registry(session, cache_service, domain_service, self.now)
        )

    def _pending_addons(self) -> List[AddOn]:
        addons = self.session.exec(
            select(AddOn)
            .where(AddOn.status == AddOnStatus.EXPIRED.value)
            .order_by(col(AddOn.end_date).asc(), col(AddOn.id).asc())
        ).all()
        return [addon for addon in addons if not addon.get_reminders().resources_processed]

    def run(self) -> AddonExpirationSummary:
        started = time.perf_counter()
        summary = AddonExpirationSummary(success=True)

        try:
            addons = self._pending_addons()
            summary.total_expired = len(addons)
            logger.info(f"🔄 Found {len(addons)} expired add-on(s) to process")

            # Ids are captured up front; a rollback inside one item expires the rest
            addon_ids = [addon.id for addon in addons]
            for addon_id in addon_ids:
                result = self._process_one(addon_id)
                summary.results.append(result)
                if result.success:
                    summary.total_processed += 1
                else:
                    summary.total_failed += 1
                    summary.errors.append(ItemError(id=result.addon_id, error=result.error or "Unknown error"))
        except Exception as e:
            logger.exception(f"❌ Add-on expiration run aborted: {e}")
            self.session.rollback()
            summary.total_failed += 1
            summary.errors.append(ItemError(id=0, error=str(e)))

        summary.success = not summary.errors
        summary.execution_time_ms = int((time.perf_counter() - started) * 1000)

        logger.info(
            f"✅ Add-on expiration done: {summary.total_processed} processed, "
            f"{summary.total_failed} failed in {summary.execution_time_ms}ms"
        )
        return summary

    def _process_one(self, addon_id: int) -> ExpiredAddonResult:
        addon = self.session.get(AddOn, addon_id)
        if addon is None:
            return ExpiredAddonResult(
                addon_id=addon_id, addon_type="unknown", user_id=0, success=False, error=f"Add-on {addon_id} not found"
            )

        result = ExpiredAddonResult(
            addon_id=addon_id,
            addon_type=addon.type,
            user_id=addon.user_id,
            workspace_id=addon.workspace_id,
            success=False,
        )

        try:
            logger.info(f"Processing add-on {addon_id} ({addon.type}) for user {addon.user_id}")
            handler_result = self._dispatch(addon)

            result.success = handler_result.success
            result.resources_affected = handler_result.resources_affected
            result.details = handler_result.details
            result.error = handler_result.error

            # The handler may have committed or rolled back; reload before flagging
            addon = self.session.get(AddOn, addon_id)
            self._mark_processed(addon)

            if result.success:
                result.notification_sent = self._notify(addon, result.resources_affected)
        except Exception as e:
            logger.exception(f"❌ Failed to process add-on {addon_id}: {e}")
            self.session.rollback()
            result.success = False
            result.error = str(e)

        return result

    def _dispatch(self, addon: AddOn) -> HandlerResult:
        handler = self.handlers.get(addon.type)
        if handler is None:
            error = UnsupportedAddOnTypeError(addon.type)
            logger.error(f"❌ {error.message}")
            return HandlerResult(success=False, error=error.message)
        try:
            return handler.handle(addon)
        except Exception as e:
            logger.exception(f"❌ Handler for add-on {addon.id} raised: {e}")
            self.session.rollback()
            return HandlerResult(success=False, error=str(e))

    def _mark_processed(self, addon: AddOn) -> None:
        reminders = addon.get_reminders()
        reminders.resources_processed = True
        addon.set_reminders(reminders)
        addon.updated_at = self.now
        self.session.add(addon)
        self.session.commit()

    def _notify(self, addon: AddOn, resources_affected: Dict[str, int]) -> bool:
        """Best-effort confirmation email; never affects the processed flag."""
        try:
            user = self.session.get(User, addon.user_id)
            if not user:
                logger.warning(f"⚠️ No user {addon.user_id} to notify for add-on {addon.id}")
                return False

            return self.email_service.send(
                user.email,
                TEMPLATE_EXPIRED,
                {
                    "recipient_name": recipient_name(user),
                    "addon_type_name": get_addon_friendly_name(addon.type),
                    "quantity": addon.quantity,
                    "expiration_date": addon.end_date or self.now,
                    "what_happened": get_what_happened_text(addon.type, resources_affected),
                    "renewal_url": settings.ADDON_RENEWAL_URL,
                    "app_name": settings.APP_NAME,
                },
            )
        except Exception as e:
            logger.warning(f"⚠️ Failed to send expiration notice for add-on {addon.id}: {e}")
            return False
