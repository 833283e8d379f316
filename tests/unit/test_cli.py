"""Tests for the command-line interface."""

from unittest.mock import AsyncMock

import fakeredis
import fakeredis.aioredis
import pytest
from typer.testing import CliRunner

from vynox import cli
from vynox.cache import CacheKeys, Namespace

runner = CliRunner()


@pytest.fixture
def server() -> fakeredis.FakeServer:
    return fakeredis.FakeServer()


@pytest.fixture
def patched_redis(monkeypatch: pytest.MonkeyPatch, server: fakeredis.FakeServer) -> None:
    async def get_redis() -> fakeredis.aioredis.FakeRedis:
        return fakeredis.aioredis.FakeRedis(server=server)

    monkeypatch.setattr(cli, "get_redis", get_redis)
    monkeypatch.setattr(cli, "close_redis", AsyncMock())


class TestCacheReset:
    """Test the cache-reset command."""

    def test_bumps_named_namespaces(
        self, patched_redis: None, server: fakeredis.FakeServer
    ) -> None:
        """Only the named namespaces are bumped."""
        result = runner.invoke(cli.app, ["cache-reset", "servers", "ads"])
        assert result.exit_code == 0
        assert "servers: generation 1" in result.output
        assert "ads: generation 1" in result.output

        sync = fakeredis.FakeRedis(server=server)
        assert sync.get(CacheKeys(Namespace.SERVERS).version()) == b"1"
        assert sync.get(CacheKeys(Namespace.FAQS).version()) is None

    def test_defaults_to_all_namespaces(self, patched_redis: None) -> None:
        """Without arguments every namespace is bumped."""
        result = runner.invoke(cli.app, ["cache-reset"])
        assert result.exit_code == 0
        for namespace in Namespace:
            assert f"{namespace.value}: generation" in result.output

    def test_cache_disabled(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """A disabled cache is reported per namespace."""
        monkeypatch.setattr(cli, "get_redis", AsyncMock(return_value=None))
        monkeypatch.setattr(cli, "close_redis", AsyncMock())
        result = runner.invoke(cli.app, ["cache-reset", "pages"])
        assert result.exit_code == 0
        assert "pages: cache unavailable" in result.output
