"""
Tests for the shared Redis connection health check.
"""
import asyncio
from unittest.mock import AsyncMock

import pytest

from storedesk.common import redis_client


@pytest.fixture
def shared(monkeypatch):
    client = AsyncMock()
    monkeypatch.setattr(redis_client, "_redis", client)
    return client


class TestResetIfUnhealthy:

    def test_healthy_client_is_kept(self, shared):
        assert asyncio.run(redis_client.reset_if_unhealthy()) is False
        assert redis_client._redis is shared
        shared.close.assert_not_awaited()

    def test_dead_client_is_dropped(self, shared):
        shared.ping.side_effect = ConnectionError("gone")
        assert asyncio.run(redis_client.reset_if_unhealthy()) is True
        assert redis_client._redis is None
        shared.close.assert_awaited_once()

    def test_nothing_to_check(self, monkeypatch):
        monkeypatch.setattr(redis_client, "_redis", None)
        assert asyncio.run(redis_client.reset_if_unhealthy()) is False
