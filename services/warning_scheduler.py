# ================================================================
# services/warning_scheduler.py — 7 / 3 / 1 day add-on expiration reminders
# ================================================================
import logging
import time
from datetime import datetime, timedelta
from typing import Optional

from sqlmodel import Session, select, col

from core.config import settings
from models.models import AddOn, AddOnStatus, ExpirationReminders, User, utc_now
from schemas.cron_schema import EmailReminderResult, EmailReminderSummary, ItemError
from services.email_service import EmailService, email_service as default_email_service
from services.email_templates import REMINDER_TEMPLATES, get_addon_friendly_name, get_what_will_happen_text

logger = logging.getLogger(__name__)

# Checked in this order; the first unset bucket containing the day count wins,
# so day3 takes the shared boundary at 2 days.
REMINDER_BUCKETS = (
    ("day7", 6, 8),
    ("day3", 2, 4),
    ("day1", 0, 2),
)


def days_until_expiration(end_date: datetime, now: datetime) -> int:
    """Whole calendar days between the two dates, ignoring time of day."""
    return (end_date.date() - now.date()).days


def select_reminder_bucket(days: int, reminders: ExpirationReminders) -> Optional[str]:
    for bucket, low, high in REMINDER_BUCKETS:
        if low <= days <= high and not getattr(reminders, bucket):
            return bucket
    return None


def recipient_name(user: User) -> str:
    if user.first_name:
        return user.first_name
    return user.email.split("@")[0]


class WarningScheduler:
    """
    Sends at most one email per bucket per add-on.

    The bucket flag is only set after a successful send, so a failed delivery
    is retried on the next run while it still falls in the same window.
    """

    def __init__(
        self,
        session: Session,
        email_service: Optional[EmailService] = None,
        now: Optional[datetime] = None,
        window_days: Optional[int] = None,
    ):
        self.session = session
        self.email_service = email_service or default_email_service
        self.now = now or utc_now()
        self.window_days = window_days if window_days is not None else settings.WARNING_WINDOW_DAYS

    def _eligible_addons(self):
        # Active add-ons auto-renew; only cancelled ones get warnings
        return self.session.exec(
            select(AddOn)
            .where(
                AddOn.status != AddOnStatus.ACTIVE.value,
                col(AddOn.end_date).is_not(None),
                col(AddOn.end_date) >= self.now,
                col(AddOn.end_date) <= self.now + timedelta(days=self.window_days),
            )
            .order_by(col(AddOn.end_date).asc(), col(AddOn.id).asc())
        ).all()

    def run(self) -> EmailReminderSummary:
        started = time.perf_counter()
        summary = EmailReminderSummary(success=True)

        try:
            addons = self._eligible_addons()
            summary.total_eligible = len(addons)
            logger.info(f"📧 Found {len(addons)} add-on(s) inside the {self.window_days}-day warning window")

            for addon in addons:
                result = self._process_addon(addon)
                if result is None:
                    continue
                summary.results.append(result)
                if result.email_sent:
                    if result.reminder_type == "day7":
                        summary.day7_sent += 1
                    elif result.reminder_type == "day3":
                        summary.day3_sent += 1
                    elif result.reminder_type == "day1":
                        summary.day1_sent += 1
                else:
                    summary.total_failed += 1
                    summary.errors.append(ItemError(id=result.addon_id, error=result.error or "Unknown error"))
        except Exception as e:
            logger.exception(f"❌ Warning email run aborted: {e}")
            self.session.rollback()
            summary.total_failed += 1
            summary.errors.append(ItemError(id=0, error=str(e)))

        summary.success = not summary.errors
        summary.execution_time_ms = int((time.perf_counter() - started) * 1000)

        logger.info(
            f"✅ Warning emails: {summary.day7_sent} day7, {summary.day3_sent} day3, "
            f"{summary.day1_sent} day1, {summary.total_failed} failed in {summary.execution_time_ms}ms"
        )
        return summary

    def _process_addon(self, addon: AddOn) -> Optional[EmailReminderResult]:
        """Returns None when no reminder is due for this add-on."""
        addon_id = addon.id
        days = days_until_expiration(addon.end_date, self.now)
        reminders = addon.get_reminders()
        bucket = select_reminder_bucket(days, reminders)
        if bucket is None:
            return None

        result = EmailReminderResult(
            addon_id=addon_id,
            addon_type=addon.type,
            user_id=addon.user_id,
            days_until_expiration=days,
            reminder_type=bucket,
            email_sent=False,
        )

        try:
            user = self.session.get(User, addon.user_id)
            if not user:
                result.error = f"User {addon.user_id} not found"
                logger.error(f"❌ Add-on {addon_id}: {result.error}")
                return result
            result.user_email = user.email

            sent = self.email_service.send(
                user.email,
                REMINDER_TEMPLATES[bucket],
                {
                    "recipient_name": recipient_name(user),
                    "addon_type_name": get_addon_friendly_name(addon.type),
                    "quantity": addon.quantity,
                    "expiration_date": addon.end_date,
                    "what_will_happen": get_what_will_happen_text(addon.type),
                    "renewal_url": settings.ADDON_RENEWAL_URL,
                    "app_name": settings.APP_NAME,
                },
            )
            if not sent:
                result.error = "Email delivery failed"
                logger.warning(f"⚠️ {bucket} reminder for add-on {addon_id} was not delivered")
                return result

            setattr(reminders, bucket, True)
            addon.set_reminders(reminders)
            addon.updated_at = self.now
            self.session.add(addon)
            self.session.commit()

            result.email_sent = True
            logger.info(f"✅ {bucket} reminder sent to {user.email} for add-on {addon_id} ({days} day(s) left)")
        except Exception as e:
            self.session.rollback()
            result.email_sent = False
            result.error = str(e)
            logger.error(f"❌ Failed to send reminder for add-on {addon_id}: {e}")

        return result
