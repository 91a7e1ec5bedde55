"""Integration tests for the HTTP surface.

Tests the actual FastAPI app with a real WatcherContext wired around
scripted explorer adapters. No HTTP traffic leaves the process.
"""

import asyncio
import time

import pytest
from httpx import ASGITransport, AsyncClient

from wallet_watcher.core.config import ConfigurationError
from wallet_watcher.core.context import WatcherContext
from wallet_watcher.main import create_app
from wallet_watcher.services.explorers.base import NetworkError, NotFoundError
from wallet_watcher.services.explorers.registry import AdapterRegistry

HOUR = 3600


@pytest.fixture
def now():
    return int(time.time())


@pytest.fixture
def adapters(adapter_factory, now):
    return {
        "ltc": adapter_factory(
            "ltc",
            "chainz",
            script={"LFresh": [now - HOUR], "LStale": [now - 100 * HOUR]},
            balance=4.2,
        ),
        "bln": adapter_factory(
            "bln",
            "blnscan",
            script={"BGone": [NotFoundError("unknown address")], "BDown": [NetworkError("refused")]},
        ),
    }


@pytest.fixture
def wallets(wallet_factory):
    return [
        wallet_factory("LFresh", "ltc", hours=24, label="Fresh stake"),
        wallet_factory("LStale", "ltc", hours=24, label="Old stake"),
        wallet_factory("BGone", "bln", hours=24),
        wallet_factory("BDown", "bln", hours=24),
    ]


@pytest.fixture
async def context(settings, adapters, wallets):
    registry = AdapterRegistry()
    for adapter in adapters.values():
        registry.register(adapter)
    registry.freeze()

    ctx = WatcherContext.build(settings, wallets, registry=registry)
    yield ctx
    await ctx.aclose()


@pytest.fixture
async def client(context) -> AsyncClient:
    app = create_app(context)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def poll_all(context: WatcherContext) -> None:
    for wallet in context.wallets:
        await context.scheduler.poll_wallet(wallet.id)
    await context.scheduler.process_pending()


class TestContextBuild:
    """Startup validation through the context."""

    def test_unsupported_coin_refuses_to_start(self, settings, adapter_factory, wallet_factory):
        registry = AdapterRegistry()
        registry.register(adapter_factory("ltc"))
        registry.freeze()

        with pytest.raises(ConfigurationError, match="'doge'"):
            WatcherContext.build(settings, [wallet_factory("DAddr", "doge")], registry=registry)

    @pytest.mark.asyncio
    async def test_missing_wallet_file(self, settings, tmp_path):
        missing = settings.model_copy(update={"coins_file": str(tmp_path / "absent.toml")})
        with pytest.raises(ConfigurationError):
            await WatcherContext.from_settings(missing)

    @pytest.mark.asyncio
    async def test_from_settings_wires_default_explorers(self, settings, tmp_path):
        path = tmp_path / "coins.toml"
        path.write_text('[[coins]]\nticker = "LTC"\napi = "Chainz"\naddress = "LFromFile"\n', encoding="utf-8")

        ctx = await WatcherContext.from_settings(settings.model_copy(update={"coins_file": str(path)}))
        try:
            assert [str(w.id) for w in ctx.wallets] == ["ltc:LFromFile"]
            assert ctx.registry.resolve("ltc").provider == "chainz"
            assert ctx.http_client is not None
        finally:
            await ctx.aclose()
        assert ctx.http_client is None


class TestHealthEndpoint:
    """GET /api/v1/health"""

    @pytest.mark.asyncio
    async def test_degraded_when_scheduler_not_running(self, client):
        response = await client.get("/api/v1/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "degraded"
        assert data["wallets"] == 4
        assert data["scheduler"]["running"] is False

    @pytest.mark.asyncio
    async def test_reports_alert_counts_and_providers(self, client, context):
        for _ in range(5):
            await poll_all(context)

        data = (await client.get("/api/v1/health")).json()

        assert data["stale_wallets"] == 1
        # BGone is config-suspect, BDown has a persisted failure alert
        assert data["failing_wallets"] == 2
        assert {p["provider"] for p in data["providers"]} == {"chainz", "blnscan"}

    @pytest.mark.asyncio
    async def test_healthy_when_running(self, client, context):
        context.start()
        try:
            await asyncio.sleep(0)
            data = (await client.get("/api/v1/health")).json()
            assert data["scheduler"]["running"] is True
            assert data["scheduler"]["job_count"] == 5
        finally:
            await context.scheduler.stop()

    @pytest.mark.asyncio
    async def test_no_context_is_503(self):
        app = create_app()
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            response = await ac.get("/api/v1/health")
        assert response.status_code == 503


class TestWalletEndpoints:
    """GET/POST /api/v1/wallets"""

    @pytest.mark.asyncio
    async def test_list_before_any_poll(self, client):
        data = (await client.get("/api/v1/wallets")).json()

        assert data["total"] == 4
        assert data["stale_count"] == 0
        assert all(w["last_seen"] is None for w in data["wallets"])

    @pytest.mark.asyncio
    async def test_list_after_poll(self, client, context):
        await poll_all(context)

        data = (await client.get("/api/v1/wallets")).json()

        assert data["stale_count"] == 1
        assert data["failing_count"] == 2
        by_address = {w["address"]: w for w in data["wallets"]}
        assert by_address["LFresh"]["is_stale"] is False
        assert by_address["LFresh"]["balance"] == 4.2
        assert by_address["LFresh"]["provider"] == "chainz"
        assert by_address["LStale"]["is_stale"] is True
        assert by_address["LStale"]["alert_active"] is True
        assert by_address["BGone"]["last_error_kind"] == "not_found"
        assert by_address["BDown"]["next_retry_seconds"] == 30

        stale = (await client.get("/api/v1/wallets", params={"stale_only": "true"})).json()
        assert [w["address"] for w in stale["wallets"]] == ["LStale"]

    @pytest.mark.asyncio
    async def test_get_wallet(self, client, context):
        await poll_all(context)

        response = await client.get("/api/v1/wallets/LTC/LFresh")

        assert response.status_code == 200
        data = response.json()
        assert data["coin"] == "ltc"
        assert data["label"] == "Fresh stake"
        assert data["stale_after_hours"] == 36
        assert data["age_hours"] == pytest.approx(1, abs=0.1)

    @pytest.mark.asyncio
    async def test_unknown_wallet_404(self, client):
        response = await client.get("/api/v1/wallets/ltc/LNobody")
        assert response.status_code == 404
        assert response.json() == {"detail": "Wallet ltc:LNobody is not monitored"}

    @pytest.mark.asyncio
    async def test_poll_during_shutdown_is_503(self, client, context, adapters):
        await context.scheduler.stop()

        response = await client.post("/api/v1/wallets/ltc/LFresh/poll")

        assert response.status_code == 503
        assert response.json() == {"detail": "Wallet watcher is shutting down"}
        assert adapters["ltc"].calls == []

    @pytest.mark.asyncio
    async def test_poll_now(self, client, context, adapters):
        response = await client.post("/api/v1/wallets/ltc/LFresh/poll")

        assert response.status_code == 202
        assert response.json()["accepted"] is True

        for _ in range(100):
            if await context.scheduler.process_pending():
                break
            await asyncio.sleep(0.01)

        assert adapters["ltc"].calls == ["LFresh"]
        assert context.store.get(context.wallets[0].id).current is not None

    @pytest.mark.asyncio
    async def test_poll_now_conflict(self, client, adapters):
        adapters["ltc"].delay = 0.2

        first = await client.post("/api/v1/wallets/ltc/LFresh/poll")
        second = await client.post("/api/v1/wallets/ltc/LFresh/poll")

        assert first.status_code == 202
        assert second.status_code == 409
        assert second.json()["accepted"] is False


class TestAlertEndpoint:
    """GET /api/v1/alerts"""

    @pytest.mark.asyncio
    async def test_alerts_newest_first_and_filtered(self, client, context):
        for _ in range(5):
            await poll_all(context)

        data = (await client.get("/api/v1/alerts")).json()

        assert data["total"] == 3
        assert data["by_kind"] == {"became_stale": 1, "fetch_failure_persisted": 2}
        assert data["alerts"][0]["kind"] == "fetch_failure_persisted"

        stale = (await client.get("/api/v1/alerts", params={"kind": "became_stale"})).json()
        assert stale["total"] == 1
        assert stale["alerts"][0]["address"] == "LStale"
        assert stale["alerts"][0]["title"] == "Old stake has gone stale"

    @pytest.mark.asyncio
    async def test_unknown_kind_422(self, client):
        response = await client.get("/api/v1/alerts", params={"kind": "exploded"})
        assert response.status_code == 422


class TestStatusPage:
    """GET /"""

    @pytest.mark.asyncio
    async def test_renders_every_wallet(self, client, context):
        await poll_all(context)

        response = await client.get("/")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        body = response.text
        for name in ("Fresh stake", "Old stake", "BGone", "BDown"):
            assert name in body
        assert "Balance: 4.2 LTC" in body
