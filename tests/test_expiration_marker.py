from datetime import timedelta

import pytest

from models.models import AddOn, AddOnStatus, AddOnType, Subscription, SubscriptionStatus
from services.addon_expiration import mark_expired_items
from services.expiration_marker import ExpirationMarker

pytestmark = pytest.mark.integration


def test_addon_past_end_date_is_marked_once(session, factory, now):
    user = factory.user()
    addon = factory.addon(
        user,
        AddOnType.EXTRA_FUNNEL.value,
        status=AddOnStatus.ACTIVE,
        end_date=now - timedelta(days=1),
    )

    first = mark_expired_items(session, now=now)
    session.refresh(addon)

    assert first.success
    assert first.addons.total_marked == 1
    assert first.addons.results[0].addon_id == addon.id
    assert first.addons.results[0].previous_status == AddOnStatus.ACTIVE.value
    assert addon.status == AddOnStatus.EXPIRED.value

    second = mark_expired_items(session, now=now)
    assert second.success
    assert second.addons.total_marked == 0
    assert second.addons.results == []


def test_only_past_due_addons_are_marked(session, factory, now):
    user = factory.user()
    past_cancelled = factory.addon(
        user, AddOnType.EXTRA_PAGE.value, status=AddOnStatus.CANCELLED, end_date=now - timedelta(hours=1)
    )
    future = factory.addon(user, AddOnType.EXTRA_PAGE.value, status=AddOnStatus.CANCELLED, end_date=now + timedelta(days=2))
    open_ended = factory.addon(user, AddOnType.EXTRA_PAGE.value, status=AddOnStatus.ACTIVE, end_date=None)

    summary = ExpirationMarker(session, now=now).run()

    assert summary.addons.total_marked == 1
    assert session.get(AddOn, past_cancelled.id).status == AddOnStatus.EXPIRED.value
    assert session.get(AddOn, future.id).status == AddOnStatus.CANCELLED.value
    assert session.get(AddOn, open_ended.id).status == AddOnStatus.ACTIVE.value


def test_subscriptions_are_marked_independently(session, factory, now):
    user = factory.user()
    overdue = factory.subscription(user, ends_at=now - timedelta(days=3), status=SubscriptionStatus.PAST_DUE)
    running = factory.subscription(user, ends_at=now + timedelta(days=30))
    already = factory.subscription(user, ends_at=now - timedelta(days=60), status=SubscriptionStatus.EXPIRED)

    summary = mark_expired_items(session, now=now)

    assert summary.success
    assert summary.subscriptions.total_marked == 1
    result = summary.subscriptions.results[0]
    assert result.subscription_id == overdue.id
    assert result.previous_status == SubscriptionStatus.PAST_DUE.value
    assert result.success

    assert session.get(Subscription, overdue.id).status == SubscriptionStatus.EXPIRED.value
    assert session.get(Subscription, running.id).status == SubscriptionStatus.ACTIVE.value
    assert session.get(Subscription, already.id).status == SubscriptionStatus.EXPIRED.value
    assert summary.addons.total_marked == 0


def test_marking_updates_timestamp(session, factory, now):
    user = factory.user()
    addon = factory.addon(user, AddOnType.EXTRA_WORKSPACE.value, status=AddOnStatus.ACTIVE, end_date=now - timedelta(days=1))

    mark_expired_items(session, now=now)

    assert session.get(AddOn, addon.id).updated_at == now


def test_unexpected_failure_becomes_synthetic_error(session, factory, now, monkeypatch):
    user = factory.user()
    addon = factory.addon(user, AddOnType.EXTRA_PAGE.value, status=AddOnStatus.ACTIVE, end_date=now - timedelta(days=1))
    marker = ExpirationMarker(session, now=now)

    def boom(errors):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(marker, "mark_subscriptions", boom)
    summary = marker.run()

    assert not summary.success
    assert len(summary.errors) == 1
    assert summary.errors[0].id == 0
    assert summary.errors[0].type == "system"
    assert "database unavailable" in summary.errors[0].error
    # The add-on pass still runs after the subscription pass blew up
    assert summary.addons.total_marked == 1
    assert session.get(AddOn, addon.id).status == AddOnStatus.EXPIRED.value
