"""Tests for server shaping and server cache invalidation."""

import pytest

from tests.unit.services.factories import (
    FEEDBACK_ID,
    SERVER_ID,
    SESSION_ID,
    city_row,
    country_row,
    make_cascade,
    make_repo,
    server_row,
)
from vynox.api.errors import ConflictError
from vynox.cache import CacheKeys, Namespace, VersionedCache
from vynox.core.filters import ServerFilter
from vynox.core.payloads import CountryUpdate, OpenVpnConfig, ServerCreate, ServerUpdate
from vynox.persistence.repositories import CityRepository, CountryRepository, ServerRepository
from vynox.services.countries import CountryService
from vynox.services.servers import (
    ServerCascade,
    ServerService,
    detect_protocol,
    flatten_server,
    server_detail,
)

KEYS = CacheKeys(Namespace.SERVERS)


@pytest.fixture
def repo():
    return make_repo(ServerRepository)


@pytest.fixture
def cascade() -> ServerCascade:
    return make_cascade(
        sessions=[(SESSION_ID, "user-1", SERVER_ID)], feedback_ids=[FEEDBACK_ID]
    )


@pytest.fixture
def service(repo, cascade: ServerCascade, cache: VersionedCache) -> ServerService:
    return ServerService(repo, cascade, cache)


class TestServerShaping:
    """Test list and detail shapes."""

    def test_no_protocol_configured(self) -> None:
        """A server without configs has no protocol."""
        assert detect_protocol(server_row()) is None

    def test_empty_values_do_not_count(self) -> None:
        """Configs holding only empty values are not configured."""
        row = server_row(openvpn_config={"username": "", "password": None})
        assert detect_protocol(row) is None

    def test_protocol_precedence(self) -> None:
        """OpenVPN wins over WireGuard, which wins over Xray."""
        row = server_row(
            wireguard_config={"url": "https://wg"},
            xray_config={"vless": "vless://x"},
        )
        assert detect_protocol(row) == "wireguard"
        row.openvpn_config = {"config": "client\n"}
        assert detect_protocol(row) == "openvpn"

    def test_list_item_inlines_location(self) -> None:
        """List items carry country and city fields."""
        item = flatten_server(server_row())
        assert item["country"] == "Germany"
        assert item["country_code"] == "DE"
        assert item["flag"] == "de.png"
        assert item["city"] == "Berlin"
        assert item["latitude"] == 52.52
        assert "openvpn_config" not in item

    def test_detail_includes_configs(self) -> None:
        """Detail items include configured protocols and None otherwise."""
        row = server_row(xray_config={"vmess": "vmess://x", "vless": ""})
        item = server_detail(row)
        assert item["xray_config"] == {"vmess": "vmess://x", "vless": ""}
        assert item["openvpn_config"] is None
        assert item["wireguard_config"] is None
        assert item["protocol"] == "xray"


class TestServerReads:
    """Test cached server reads."""

    @pytest.mark.asyncio
    async def test_list_follows_country_writes(
        self, service: ServerService, repo, cache: VersionedCache
    ) -> None:
        """A country bump orphans cached server lists."""
        repo.list_page.return_value = ([server_row()], 1)
        await service.list_servers(ServerFilter(mode="live"))
        await service.list_servers(ServerFilter(mode="live"))
        assert repo.list_page.await_count == 1

        await cache.invalidate_on_write(Namespace.COUNTRIES)
        await service.list_servers(ServerFilter(mode="live"))
        assert repo.list_page.await_count == 2

    @pytest.mark.asyncio
    async def test_grouped_paginates_over_countries(
        self, service: ServerService, repo
    ) -> None:
        """Grouped listings page over country groups, not servers."""
        germany = city_row()
        france = city_row(
            country=country_row(id="FR", name="France", slug="france", flag="fr.png"),
            id="c2",
            name="Paris",
        )
        repo.list_all.return_value = [
            server_row(germany, id="s1"),
            server_row(germany, id="s2"),
            server_row(france, id="s3"),
        ]

        first = await service.list_grouped_servers(ServerFilter(), page=1, limit=1)
        assert first["pagination"] == {"page": 1, "limit": 1, "total": 2, "pages": 2}
        assert first["data"][0]["country"] == "Germany"
        assert [s["id"] for s in first["data"][0]["servers"]] == ["s1", "s2"]

        second = await service.list_grouped_servers(ServerFilter(), page=2, limit=1)
        assert second["data"][0]["country_code"] == "FR"

    @pytest.mark.asyncio
    async def test_list_and_grouped_do_not_collide(self, service: ServerService, repo) -> None:
        """The two list views are cached under different fingerprints."""
        repo.list_page.return_value = ([server_row()], 1)
        repo.list_all.return_value = [server_row()]
        flat = await service.list_servers(ServerFilter())
        grouped = await service.list_grouped_servers(ServerFilter())
        assert "servers" not in flat["data"][0]
        assert "servers" in grouped["data"][0]


class TestServerWrites:
    """Test server write paths."""

    @pytest.mark.asyncio
    async def test_address_conflict(self, service: ServerService, repo) -> None:
        """An (ip, os_type) pair already in use is rejected."""
        repo.address_taken.return_value = True
        payload = ServerCreate(
            name="de-2", country_id="de", city_id="c1", ip="10.0.0.1", os_type="android"
        )
        with pytest.raises(ConflictError):
            await service.create_server(payload)
        repo.add.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_update_checks_address_against_current_row(
        self, service: ServerService, repo
    ) -> None:
        """Changing only the ip re-checks it with the stored os_type."""
        repo.get.return_value = server_row(os_type="ios")
        repo.address_taken.return_value = False
        repo.update.return_value = server_row(ip="10.0.0.9", os_type="ios")

        result = await service.update_server(SERVER_ID, ServerUpdate(ip="10.0.0.9"))

        repo.address_taken.assert_awaited_once_with("10.0.0.9", "ios", exclude_id=SERVER_ID)
        assert result is not None
        assert result["ip"] == "10.0.0.9"

    @pytest.mark.asyncio
    async def test_config_merge_keeps_other_fields(self, service: ServerService, repo) -> None:
        """Partial config updates merge into the stored config."""
        repo.get.return_value = server_row(
            openvpn_config={"username": "u", "password": "p", "config": "old"}
        )
        repo.update.return_value = server_row(
            openvpn_config={"username": "u", "password": "p", "config": "new"}
        )
        await service.update_openvpn_config(SERVER_ID, OpenVpnConfig(config="new"))
        repo.update.assert_awaited_once_with(
            SERVER_ID, {"openvpn_config": {"username": "u", "password": "p", "config": "new"}}
        )

    @pytest.mark.asyncio
    async def test_mode_change_refreshes_detail(self, service: ServerService, repo) -> None:
        """get_server after set_server_mode returns the new mode."""
        repo.get.return_value = server_row(mode="test")
        assert (await service.get_server(SERVER_ID))["mode"] == "test"

        repo.update.return_value = server_row(mode="live")
        repo.get.return_value = server_row(mode="live")
        await service.set_server_mode(SERVER_ID, "live")

        assert (await service.get_server(SERVER_ID))["mode"] == "live"

    @pytest.mark.asyncio
    async def test_delete_bumps_dependents(
        self, service: ServerService, repo, cache: VersionedCache
    ) -> None:
        """Deleting a server invalidates sessions and feedback too."""
        namespaces = (Namespace.SERVERS, Namespace.CONNECTIVITY, Namespace.FEEDBACK)
        for namespace in namespaces:
            await cache.current_generation(namespace)
        await cache.kv.set(KEYS.by_id(SERVER_ID), {"id": SERVER_ID}, ttl=60)
        repo.delete_many.return_value = 1

        assert await service.delete_servers([SERVER_ID, SERVER_ID]) is True

        repo.delete_many.assert_awaited_once_with([SERVER_ID])
        assert await cache.kv.get(KEYS.by_id(SERVER_ID)) is None
        for namespace in namespaces:
            assert await cache.current_generation(namespace) == "2"

    @pytest.mark.asyncio
    async def test_delete_drops_session_and_feedback_entries(
        self, service: ServerService, repo, cascade: ServerCascade, cache: VersionedCache
    ) -> None:
        """Cached sessions and feedback of a deleted server are gone."""
        sessions = CacheKeys(Namespace.CONNECTIVITY)
        feedback = CacheKeys(Namespace.FEEDBACK)
        cached = [
            sessions.by_id(SESSION_ID),
            sessions.open_pair("user-1", SERVER_ID),
            feedback.by_id(FEEDBACK_ID),
        ]
        for key in cached:
            await cache.kv.set(key, {"id": "cached"}, ttl=60)
        repo.delete.return_value = server_row()

        assert await service.delete_server(SERVER_ID) is True

        for key in cached:
            assert await cache.kv.get(key) is None
        cascade.sessions.sessions_where.assert_awaited_once()
        cascade.feedback.ids_where.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_dependents_collected_before_delete(
        self, service: ServerService, repo, cascade: ServerCascade
    ) -> None:
        """Sessions are looked up while they still exist."""
        calls: list[str] = []
        cascade.sessions.sessions_where.side_effect = lambda *where: calls.append("sessions") or []
        repo.delete.side_effect = lambda server_id: calls.append("delete") or server_row()

        await service.delete_server(SERVER_ID)

        assert calls == ["sessions", "delete"]

    @pytest.mark.asyncio
    async def test_malformed_ids_skip_lookup(self, repo, cache: VersionedCache) -> None:
        """Non-UUID ids never reach the dependent queries."""
        cascade = make_cascade()
        service = ServerService(repo, cascade, cache)
        repo.delete_many.return_value = 0

        assert await service.delete_servers(["not-a-uuid"]) is False
        cascade.sessions.sessions_where.assert_not_awaited()
        cascade.feedback.ids_where.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delete_nothing(self, service: ServerService, repo) -> None:
        """Bulk delete of unknown ids reports False."""
        repo.delete_many.return_value = 0
        assert await service.delete_servers([SERVER_ID]) is False


class TestCountryCascade:
    """Country writes reach the server namespace."""

    @pytest.mark.asyncio
    async def test_country_update_refreshes_servers(
        self, service: ServerService, repo, cascade: ServerCascade, cache: VersionedCache
    ) -> None:
        """Renaming a country shows up in server lists and details."""
        countries = make_repo(CountryRepository)
        cities = make_repo(CityRepository)
        cities.ids_where.return_value = []
        country_service = CountryService(countries, cities, repo, cascade, cache)

        repo.list_page.return_value = ([server_row()], 1)
        repo.get.return_value = server_row()
        assert (await service.list_servers(ServerFilter()))["data"][0]["country"] == "Germany"
        assert (await service.get_server(SERVER_ID))["country"] == "Germany"

        renamed = city_row(country=country_row(name="Deutschland"))
        countries.update.return_value = country_row(name="Deutschland")
        repo.ids_where.return_value = [SERVER_ID]
        await country_service.update_country("de", CountryUpdate(name="Deutschland"))

        countries.update.assert_awaited_once_with("DE", {"name": "Deutschland"})
        repo.list_page.return_value = ([server_row(renamed)], 1)
        repo.get.return_value = server_row(renamed)
        assert (await service.list_servers(ServerFilter()))["data"][0]["country"] == "Deutschland"
        assert (await service.get_server(SERVER_ID))["country"] == "Deutschland"
