from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from core.config import settings
from core.database import get_session
from main import app
from models.models import AddOn, AddOnStatus, AddOnType, utc_now
from routes.cron import get_cache, get_email_service

pytestmark = pytest.mark.integration

SECRET = "cron-test-secret"


@pytest.fixture
def client(session, email_service, cache_service, monkeypatch):
    monkeypatch.setattr(settings, "CRON_SECRET", SECRET)

    def override_get_session():
        yield session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_email_service] = lambda: email_service
    app.dependency_overrides[get_cache] = lambda: cache_service

    # No context manager: the lifespan would create tables in the real database
    yield TestClient(app)

    app.dependency_overrides.clear()


def test_missing_secret_configuration_returns_503(client, monkeypatch):
    monkeypatch.setattr(settings, "CRON_SECRET", None)

    response = client.post("/cron/addon-expiration/mark", headers={"X-Cron-Secret": SECRET})

    assert response.status_code == 503


@pytest.mark.parametrize("headers", [{}, {"X-Cron-Secret": "wrong"}])
def test_bad_secret_returns_401(client, headers):
    response = client.post("/cron/addon-expiration/mark", headers=headers)

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid cron secret"


def test_mark_endpoint(client, session, factory):
    user = factory.user()
    addon = factory.addon(
        user,
        AddOnType.EXTRA_FUNNEL.value,
        status=AddOnStatus.ACTIVE,
        end_date=utc_now() - timedelta(days=1),
    )

    response = client.post("/cron/addon-expiration/mark", headers={"X-Cron-Secret": SECRET})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["addons"]["total_marked"] == 1
    session.expire_all()
    assert session.get(AddOn, addon.id).status == AddOnStatus.EXPIRED.value


def test_warnings_endpoint_uses_injected_email_service(client, factory, email_service):
    user = factory.user(email="soon@example.com")
    factory.addon(
        user,
        AddOnType.EXTRA_PAGE.value,
        status=AddOnStatus.CANCELLED,
        end_date=utc_now() + timedelta(days=1, hours=1),
    )

    response = client.post("/cron/addon-expiration/warnings", headers={"X-Cron-Secret": SECRET})

    assert response.status_code == 200
    body = response.json()
    # One or two calendar days out depending on the time of day
    assert body["day1_sent"] + body["day3_sent"] == 1
    assert email_service.sent[0]["to"] == "soon@example.com"


def test_full_run_returns_all_phases(client, factory):
    user = factory.user()
    workspace = factory.workspace(user)
    factory.addon(
        user,
        AddOnType.EXTRA_FUNNEL.value,
        workspace=workspace,
        status=AddOnStatus.CANCELLED,
        end_date=utc_now() - timedelta(hours=1),
    )

    response = client.post("/cron/addon-expiration", headers={"X-Cron-Secret": SECRET})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["marking"]["addons"]["total_marked"] == 1
    assert body["expiration"]["total_processed"] == 1
    assert set(body) >= {"marking", "warnings", "expiration", "execution_time_ms"}


def test_process_endpoint(client, factory):
    user = factory.user()
    workspace = factory.workspace(user)
    factory.addon(user, AddOnType.EXTRA_ADMIN_SEAT.value, workspace=workspace)

    response = client.post("/cron/addon-expiration/process", headers={"X-Cron-Secret": SECRET})

    assert response.status_code == 200
    assert response.json()["total_expired"] == 1


def test_health(client):
    assert client.get("/health").json()["status"] == "ok"
