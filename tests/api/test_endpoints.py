"""
API endpoint tests
"""

import pytest
import pytest_asyncio
import httpx
from unittest.mock import AsyncMock

from api.main import create_app
from core.exceptions import SyncInProgressError
from ingestion.auth.oauth import Credential


@pytest_asyncio.fixture
async def app(database, test_settings, make_catalog, release_factory):
    catalog = make_catalog([
        release_factory(1, basic_information={
            "id": 100001, "title": "Kind of Blue", "year": 1959,
            "artists": [{"name": "Miles Davis"}], "genres": ["Jazz"],
            "formats": [{"name": "Vinyl", "qty": "1", "descriptions": ["LP"]}],
        }),
        release_factory(2, basic_information={
            "id": 100002, "title": "Homework", "year": 0,
            "artists": [{"name": "Daft Punk"}], "genres": ["Electronic"],
            "formats": [{"name": "CD", "qty": "1"}],
        }),
    ])
    catalog.prices[100001] = {"Mint (M)": {"value": 40.0}}
    catalog.prices[100002] = {"Good (G)": {"value": 8.0}}

    application = create_app(
        database=database,
        app_settings=test_settings,
        http_client=catalog.client(),
        enable_scheduler=False
    )
    application.state.catalog = catalog
    return application


@pytest_asyncio.fixture
async def client(app):
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as test_client:
        yield test_client


@pytest_asyncio.fixture
async def logged_in(credential_store):
    await credential_store.save(Credential("access-token", "access-secret"))


# ============================================================================
# Health
# ============================================================================

@pytest.mark.asyncio
async def test_health_endpoint_database_connected(client):
    response = await client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["database_connected"] is True
    assert data["status"] == "healthy"
    assert data["sync_status"] == "unknown"
    assert data["scheduler_running"] is False


@pytest.mark.asyncio
async def test_request_context_headers(client):
    response = await client.get("/health", headers={"X-Request-ID": "abc-123"})

    assert response.headers["X-Request-ID"] == "abc-123"
    assert int(response.headers["X-API-Latency-ms"]) >= 0


# ============================================================================
# Sync
# ============================================================================

@pytest.mark.asyncio
async def test_status_before_any_run(client):
    response = await client.get("/collection/sync/status")

    assert response.status_code == 200
    assert response.json() == {"status": "unknown", "currentItem": 0, "totalItems": 0, "lastError": None}


@pytest.mark.asyncio
async def test_sync_success(client, logged_in):
    response = await client.post("/collection/sync")

    assert response.status_code == 200
    body = response.json()
    assert body["itemCount"] == 2
    assert body["message"].startswith("Sync complete. Processed 2 items")

    status = (await client.get("/collection/sync/status")).json()
    assert status == {"status": "idle", "currentItem": 2, "totalItems": 2, "lastError": None}


@pytest.mark.asyncio
async def test_sync_without_credential_reports_error(client, app):
    response = await client.post("/collection/sync")

    assert response.status_code == 500
    body = response.json()
    assert body["message"] == "Failed to sync collection"
    assert "OAuth" in body["error"]
    assert app.state.catalog.requests == []

    status = (await client.get("/collection/sync/status")).json()
    assert status["status"] == "error"
    assert "OAuth" in status["lastError"]

    health = (await client.get("/health")).json()
    assert health["status"] == "degraded"


@pytest.mark.asyncio
async def test_sync_conflict(client, app):
    app.state.runner.run = AsyncMock(side_effect=SyncInProgressError("A sync is already in progress"))

    response = await client.post("/collection/sync")

    assert response.status_code == 409
    assert response.json()["error"] == "A sync is already in progress"


# ============================================================================
# Authentication
# ============================================================================

@pytest.mark.asyncio
async def test_auth_status(client, logged_in, test_settings):
    response = await client.get("/auth/status")

    assert response.json() == {"isAuthenticated": True, "username": test_settings.DISCOGS_USERNAME}


@pytest.mark.asyncio
async def test_auth_status_unauthenticated(client):
    assert (await client.get("/auth/status")).json() == {"isAuthenticated": False}


@pytest.mark.asyncio
async def test_revoke(client, logged_in):
    response = await client.delete("/auth")

    assert response.status_code == 200
    assert (await client.get("/auth/status")).json() == {"isAuthenticated": False}


@pytest.mark.asyncio
async def test_oauth_setup_already_authenticated(client, logged_in, app):
    response = await client.get("/oauth/setup")

    assert response.json()["status"] == "already_authenticated"
    assert app.state.catalog.count("/oauth/request_token") == 0


@pytest.mark.asyncio
async def test_full_handshake(client, test_settings):
    setup = (await client.get("/oauth/setup")).json()

    assert setup["status"] == "auth_required"
    assert setup["requestToken"] == "req-token"
    assert setup["authorizeUrl"] == f"{test_settings.DISCOGS_AUTHORIZE_URL}?oauth_token=req-token"
    assert len(setup["instructions"]) == 4

    response = await client.post(
        "/oauth/callback",
        json={"verifier": "123456", "requestToken": setup["requestToken"]}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "success"
    assert body["username"] == "crate_digger"
    assert body["tokensStored"] is True
    assert (await client.get("/auth/status")).json()["isAuthenticated"] is True


@pytest.mark.asyncio
async def test_callback_identity_failure_is_a_warning(client, app):
    app.state.catalog.identity_status = 401
    await client.get("/oauth/setup")

    response = await client.post("/oauth/callback", json={"verifier": "123456", "requestToken": "req-token"})

    assert response.status_code == 200
    body = response.json()
    assert body["warning"] == "Could not verify identity endpoint"
    assert body["tokensStored"] is True


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [
    {"requestToken": "req-token"},
    {"verifier": "", "requestToken": "req-token"},
    {"verifier": "123456"},
    {"verifier": "123456", "requestToken": "   "},
])
async def test_callback_missing_fields(client, payload):
    response = await client.post("/oauth/callback", json=payload)

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_callback_unknown_ticket(client, app):
    response = await client.post("/oauth/callback", json={"verifier": "123456", "requestToken": "never-issued"})

    assert response.status_code == 400
    assert "restart" in response.json()["message"]
    assert app.state.catalog.count("/oauth/access_token") == 0


@pytest.mark.asyncio
async def test_callback_rejected_verifier(client, app):
    app.state.catalog.access_token_status = 401
    await client.get("/oauth/setup")

    response = await client.post("/oauth/callback", json={"verifier": "wrong", "requestToken": "req-token"})

    assert response.status_code == 500
    assert (await client.get("/auth/status")).json() == {"isAuthenticated": False}


# ============================================================================
# Statistics
# ============================================================================

@pytest.mark.asyncio
async def test_stats_after_sync(client, logged_in):
    await client.post("/collection/sync")

    response = await client.get("/stats")

    assert response.status_code == 200
    stats = response.json()
    assert stats["totalItems"] == 2
    assert stats["latestValueMean"] == pytest.approx(1234.56)
    assert stats["averageValuePerItem"] == pytest.approx(617.28)
    assert len(stats["itemCountHistory"]) == 1
    assert [i["title"] for i in stats["topValuableItems"]] == ["Kind of Blue", "Homework"]
    assert [i["title"] for i in stats["leastValuableItems"]] == ["Homework", "Kind of Blue"]
    assert stats["genreDistribution"] == {"Jazz": 1, "Electronic": 1}
    assert stats["yearDistribution"] == {"1959": 1, "Unknown": 1}
    assert stats["formatDistribution"] == {"Vinyl": 1, "CD": 1}


@pytest.mark.asyncio
async def test_stats_empty(client):
    stats = (await client.get("/stats")).json()

    assert stats["totalItems"] == 0
    assert stats["latestValueMean"] is None
    assert stats["topValuableItems"] == []
