from unittest.mock import MagicMock

import pytest
import redis

import services.cache_service as cache_module
from core.config import settings
from services.cache_service import CacheService, close_cache_client, get_cache_service

pytestmark = pytest.mark.unit


def test_service_without_client_is_a_no_op():
    service = CacheService()

    assert not service.enabled
    assert service.invalidate("user:1:workspaces") is True
    assert service.invalidate_workspace_cache(1) is True


def test_invalidate_deletes_key():
    client = MagicMock()
    service = CacheService(client)

    assert service.invalidate_user_workspaces_cache(7) is True
    client.delete.assert_called_once_with("user:7:workspaces")


def test_pattern_invalidation_scans_then_deletes():
    client = MagicMock()
    client.scan_iter.return_value = iter(["app:workspace:3", "workspace:3:funnels:all"])
    service = CacheService(client)

    assert service.invalidate_workspace_cache(3) is True
    client.scan_iter.assert_called_once_with(match="*workspace:3*", count=500)
    client.delete.assert_called_once_with("app:workspace:3", "workspace:3:funnels:all")


def test_pattern_without_matches_deletes_nothing():
    client = MagicMock()
    client.scan_iter.return_value = iter([])

    assert CacheService(client).invalidate_funnel_cache(9) is True
    client.delete.assert_not_called()


def test_redis_errors_are_swallowed():
    client = MagicMock()
    client.delete.side_effect = redis.ConnectionError("refused")
    client.scan_iter.side_effect = redis.TimeoutError("slow")
    service = CacheService(client)

    assert service.invalidate_workspace_funnels(3) is False
    assert service.invalidate_funnel_cache(3) is False


@pytest.fixture
def shared_client(monkeypatch):
    monkeypatch.setattr(cache_module, "_redis_client", None)
    yield
    monkeypatch.setattr(cache_module, "_redis_client", None)


def test_invalid_redis_url_disables_cache(shared_client, monkeypatch):
    monkeypatch.setattr(settings, "REDIS_URL", "not-a-redis-url")

    service = get_cache_service()

    assert not service.enabled
    assert service.invalidate_workspace_cache(1) is True


def test_redis_client_is_built_once_and_closed(shared_client, monkeypatch):
    client = MagicMock()
    from_url = MagicMock(return_value=client)
    monkeypatch.setattr(settings, "REDIS_URL", "redis://localhost:6379/0")
    monkeypatch.setattr(redis, "from_url", from_url)

    first = get_cache_service()
    second = get_cache_service()

    assert first.client is client and second.client is client
    from_url.assert_called_once_with("redis://localhost:6379/0", decode_responses=True)

    close_cache_client()
    client.close.assert_called_once()
    assert cache_module._redis_client is None
