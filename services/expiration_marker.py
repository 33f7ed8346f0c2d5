# ================================================================
# services/expiration_marker.py — Flip past-due subscriptions and add-ons to EXPIRED
# ================================================================
import logging
import time
from datetime import datetime
from typing import Optional

from sqlmodel import Session, select, col

from models.models import AddOn, AddOnStatus, Subscription, SubscriptionStatus, utc_now
from schemas.cron_schema import (
    AddonMarkingGroup,
    ExpiredAddonMarkResult,
    ExpiredSubscriptionResult,
    ExpirationMarkingSummary,
    MarkingError,
    SubscriptionMarkingGroup,
)

logger = logging.getLogger(__name__)


class ExpirationMarker:
    """
    Two independent passes, subscriptions then add-ons. Each record is
    committed on its own, so one failure never blocks the others, and records
    already EXPIRED are never selected again.
    """

    def __init__(self, session: Session, now: Optional[datetime] = None):
        self.session = session
        self.now = now or utc_now()

    def run(self) -> ExpirationMarkingSummary:
        started = time.perf_counter()
        summary = ExpirationMarkingSummary(success=True)

        logger.info(f"🔄 Marking expired items at {self.now.isoformat()}")

        try:
            summary.subscriptions = self.mark_subscriptions(summary.errors)
        except Exception as e:
            logger.exception(f"❌ Subscription marking aborted: {e}")
            self.session.rollback()
            summary.errors.append(MarkingError(id=0, type="system", error=str(e)))

        try:
            summary.addons = self.mark_addons(summary.errors)
        except Exception as e:
            logger.exception(f"❌ Add-on marking aborted: {e}")
            self.session.rollback()
            summary.errors.append(MarkingError(id=0, type="system", error=str(e)))

        summary.success = not summary.errors
        summary.execution_time_ms = int((time.perf_counter() - started) * 1000)

        logger.info(
            f"✅ Marking done: {summary.subscriptions.total_marked} subscription(s), "
            f"{summary.addons.total_marked} add-on(s), {len(summary.errors)} error(s) "
            f"in {summary.execution_time_ms}ms"
        )
        return summary

    # ------------------------
    # Subscriptions
    # ------------------------
    def mark_subscriptions(self, errors: list) -> SubscriptionMarkingGroup:
        group = SubscriptionMarkingGroup()
        subscriptions = self.session.exec(
            select(Subscription).where(
                col(Subscription.ends_at).is_not(None),
                col(Subscription.ends_at) < self.now,
                Subscription.status != SubscriptionStatus.EXPIRED.value,
            )
        ).all()

        logger.info(f"Found {len(subscriptions)} subscription(s) to expire")

        for subscription in subscriptions:
            subscription_id = subscription.id
            result = ExpiredSubscriptionResult(
                subscription_id=subscription_id,
                user_id=subscription.user_id,
                plan_type=subscription.subscription_type or "unknown",
                previous_status=subscription.status,
                end_date=subscription.ends_at,
                success=False,
            )
            try:
                subscription.status = SubscriptionStatus.EXPIRED.value
                subscription.updated_at = self.now
                self.session.add(subscription)
                self.session.commit()

                result.success = True
                group.total_marked += 1
                logger.info(f"✅ Subscription {subscription_id} marked expired (was {result.previous_status})")
            except Exception as e:
                self.session.rollback()
                result.error = str(e)
                errors.append(MarkingError(id=subscription_id, type="subscription", error=str(e)))
                logger.error(f"❌ Failed to expire subscription {subscription_id}: {e}")
            group.results.append(result)

        return group

    # ------------------------
    # Add-ons
    # ------------------------
    def mark_addons(self, errors: list) -> AddonMarkingGroup:
        group = AddonMarkingGroup()
        addons = self.session.exec(
            select(AddOn).where(
                col(AddOn.end_date).is_not(None),
                col(AddOn.end_date) < self.now,
                AddOn.status != AddOnStatus.EXPIRED.value,
            )
        ).all()

        logger.info(f"Found {len(addons)} add-on(s) to expire")

        for addon in addons:
            addon_id = addon.id
            result = ExpiredAddonMarkResult(
                addon_id=addon_id,
                addon_type=addon.type,
                user_id=addon.user_id,
                workspace_id=addon.workspace_id,
                previous_status=addon.status,
                end_date=addon.end_date,
                success=False,
            )
            try:
                addon.status = AddOnStatus.EXPIRED.value
                addon.updated_at = self.now
                self.session.add(addon)
                self.session.commit()

                result.success = True
                group.total_marked += 1
                logger.info(f"✅ Add-on {addon_id} ({result.addon_type}) marked expired (was {result.previous_status})")
            except Exception as e:
                self.session.rollback()
                result.error = str(e)
                errors.append(MarkingError(id=addon_id, type="addon", error=str(e)))
                logger.error(f"❌ Failed to expire add-on {addon_id}: {e}")
            group.results.append(result)

        return group
