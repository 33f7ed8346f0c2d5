from datetime import timedelta

import pytest
from sqlalchemy import DateTime
from sqlmodel import SQLModel

from models.models import AddOn, AddOnStatus, AddOnType, Subscription

DATETIME_COLUMNS = [
    ("user", "created_at"),
    ("subscription", "starts_at"),
    ("subscription", "ends_at"),
    ("subscription", "created_at"),
    ("subscription", "updated_at"),
    ("add_on", "start_date"),
    ("add_on", "end_date"),
    ("add_on", "created_at"),
    ("add_on", "updated_at"),
    ("workspace", "created_at"),
    ("funnel", "created_at"),
    ("domain", "created_at"),
    ("page", "created_at"),
    ("workspace_member", "joined_at"),
]


@pytest.mark.unit
@pytest.mark.parametrize("table, column", DATETIME_COLUMNS)
def test_datetime_columns_are_plain_naive(table, column):
    column_type = SQLModel.metadata.tables[table].columns[column].type

    assert type(column_type) is DateTime
    assert column_type.timezone is False


@pytest.mark.integration
def test_naive_timestamps_round_trip(session, factory, now):
    user = factory.user()
    addon = factory.addon(user, AddOnType.EXTRA_PAGE.value, status=AddOnStatus.ACTIVE, end_date=now + timedelta(days=3))
    subscription = factory.subscription(user, ends_at=now)

    addon.updated_at = now
    session.add(addon)
    session.commit()
    session.expire_all()

    loaded = session.get(AddOn, addon.id)
    assert loaded.end_date == now + timedelta(days=3)
    assert loaded.end_date.tzinfo is None
    assert loaded.updated_at == now
    assert session.get(Subscription, subscription.id).ends_at == now
