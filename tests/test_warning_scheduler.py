from datetime import datetime, timedelta

import pytest

from models.models import AddOn, AddOnStatus, AddOnType, ExpirationReminders
from services.addon_expiration import send_warning_emails
from services.email_templates import TEMPLATE_WARNING_DAY1, TEMPLATE_WARNING_DAY3, TEMPLATE_WARNING_DAY7
from services.warning_scheduler import WarningScheduler, days_until_expiration, select_reminder_bucket


# ------------------------
# Pure helpers
# ------------------------
@pytest.mark.unit
def test_days_ignore_time_of_day():
    now = datetime(2026, 3, 15, 23, 30)
    assert days_until_expiration(datetime(2026, 3, 22, 0, 15), now) == 7
    assert days_until_expiration(datetime(2026, 3, 15, 23, 59), now) == 0
    assert days_until_expiration(datetime(2026, 3, 16, 0, 1), now) == 1


@pytest.mark.unit
@pytest.mark.parametrize(
    "days, flags, expected",
    [
        (8, {}, "day7"),
        (7, {}, "day7"),
        (6, {}, "day7"),
        (5, {}, None),
        (4, {}, "day3"),
        (3, {}, "day3"),
        (2, {}, "day3"),
        (2, {"day3": True}, "day1"),
        (1, {}, "day1"),
        (0, {}, "day1"),
        (7, {"day7": True}, None),
        (1, {"day1": True}, None),
    ],
)
def test_select_reminder_bucket(days, flags, expected):
    assert select_reminder_bucket(days, ExpirationReminders(**flags)) == expected


# ------------------------
# Scheduler runs
# ------------------------
@pytest.mark.integration
def test_day7_warning_is_sent_exactly_once(session, factory, email_service, now):
    user = factory.user(email="owner@example.com")
    addon = factory.addon(
        user,
        AddOnType.EXTRA_FUNNEL.value,
        quantity=2,
        status=AddOnStatus.CANCELLED,
        end_date=now + timedelta(days=7),
    )

    first = send_warning_emails(session, email_service=email_service, now=now)

    assert first.success
    assert first.day7_sent == 1
    assert first.total_sent == 1
    assert email_service.templates() == [TEMPLATE_WARNING_DAY7]
    assert email_service.sent[0]["to"] == "owner@example.com"
    assert email_service.sent[0]["data"]["quantity"] == 2
    assert session.get(AddOn, addon.id).get_reminders().day7 is True

    second = send_warning_emails(session, email_service=email_service, now=now)

    assert second.success
    assert second.total_sent == 0
    assert len(email_service.sent) == 1


@pytest.mark.integration
def test_two_days_left_sends_day3_first(session, factory, email_service, now):
    user = factory.user()
    addon = factory.addon(user, AddOnType.EXTRA_PAGE.value, status=AddOnStatus.CANCELLED, end_date=now + timedelta(days=2))

    send_warning_emails(session, email_service=email_service, now=now)
    send_warning_emails(session, email_service=email_service, now=now)

    assert email_service.templates() == [TEMPLATE_WARNING_DAY3, TEMPLATE_WARNING_DAY1]
    reminders = session.get(AddOn, addon.id).get_reminders()
    assert reminders.day3 and reminders.day1 and not reminders.day7


@pytest.mark.integration
def test_active_addons_are_not_warned(session, factory, email_service, now):
    user = factory.user()
    factory.addon(user, AddOnType.EXTRA_PAGE.value, status=AddOnStatus.ACTIVE, end_date=now + timedelta(days=7))

    summary = send_warning_emails(session, email_service=email_service, now=now)

    assert summary.total_eligible == 0
    assert email_service.sent == []


@pytest.mark.integration
def test_addons_outside_window_are_skipped(session, factory, email_service, now):
    user = factory.user()
    factory.addon(user, AddOnType.EXTRA_PAGE.value, status=AddOnStatus.CANCELLED, end_date=now + timedelta(days=9))
    factory.addon(user, AddOnType.EXTRA_PAGE.value, status=AddOnStatus.CANCELLED, end_date=now - timedelta(hours=1))
    # In the window but between buckets
    factory.addon(user, AddOnType.EXTRA_PAGE.value, status=AddOnStatus.CANCELLED, end_date=now + timedelta(days=5))

    summary = send_warning_emails(session, email_service=email_service, now=now)

    assert summary.total_eligible == 1
    assert summary.total_sent == 0
    assert summary.results == []
    assert email_service.sent == []


@pytest.mark.integration
def test_failed_delivery_is_isolated_and_retried(session, factory, email_service, now):
    unlucky = factory.user(email="bounce@example.com")
    lucky = factory.user(email="ok@example.com")
    failing = factory.addon(unlucky, AddOnType.EXTRA_FUNNEL.value, status=AddOnStatus.CANCELLED, end_date=now + timedelta(days=1))
    passing = factory.addon(lucky, AddOnType.EXTRA_FUNNEL.value, status=AddOnStatus.CANCELLED, end_date=now + timedelta(days=1))
    email_service.fail_for = {"bounce@example.com"}

    summary = WarningScheduler(session, email_service=email_service, now=now).run()

    assert not summary.success
    assert summary.day1_sent == 1
    assert summary.total_failed == 1
    assert summary.errors[0].id == failing.id
    assert session.get(AddOn, failing.id).get_reminders().day1 is False
    assert session.get(AddOn, passing.id).get_reminders().day1 is True

    email_service.fail_for = set()
    retry = WarningScheduler(session, email_service=email_service, now=now).run()

    assert retry.success
    assert retry.day1_sent == 1
    assert session.get(AddOn, failing.id).get_reminders().day1 is True


@pytest.mark.integration
def test_earlier_flags_survive_reminder_update(session, factory, email_service, now):
    user = factory.user()
    addon = factory.addon(
        user,
        AddOnType.EXTRA_PAGE.value,
        status=AddOnStatus.CANCELLED,
        end_date=now + timedelta(days=3),
        reminders={"day7": True},
    )

    send_warning_emails(session, email_service=email_service, now=now)

    reminders = session.get(AddOn, addon.id).get_reminders()
    assert reminders.day7 and reminders.day3
    assert not reminders.day1
