"""
Pytest configuration and fixtures
"""

import pytest
import pytest_asyncio
import httpx
from typing import Any, Dict, List, Optional, Set
from unittest.mock import AsyncMock

from core.config import Settings
from core.database import Database
from core.retry import RetryPolicy
from ingestion.auth.oauth import Credential, CredentialStore
from ingestion.state import SettingsStore

API_BASE_URL = "https://api.catalog.test"


@pytest.fixture
def test_settings() -> Settings:
    """Settings with a fake API host and instant retries"""
    return Settings(
        _env_file=None,
        DATABASE_URL="sqlite+aiosqlite://",
        DISCOGS_USERNAME="crate_digger",
        DISCOGS_CONSUMER_KEY="consumer-key",
        DISCOGS_CONSUMER_SECRET="consumer-secret",
        DISCOGS_API_BASE_URL=API_BASE_URL,
        DISCOGS_AUTHORIZE_URL="https://www.catalog.test/oauth/authorize",
        MAX_RETRIES=2,
        RETRY_BASE_DELAY=0.0,
        RETRY_MAX_DELAY=0.0,
        RETRY_JITTER=0.0,
        RATE_LIMIT_BUFFER=0.0,
        SCHEDULER_ENABLED=False,
    )


@pytest.fixture
def fast_policy() -> RetryPolicy:
    return RetryPolicy(max_retries=2, base_delay=0.0, max_delay=0.0, jitter=0.0, rate_limit_buffer=0.0)


@pytest.fixture
def no_sleep() -> AsyncMock:
    """Replacement for asyncio.sleep that records requested delays"""
    return AsyncMock()


@pytest_asyncio.fixture(scope="function")
async def database(tmp_path):
    """Throwaway SQLite database with all tables created"""
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    await db.create_all()
    yield db
    await db.close()


@pytest_asyncio.fixture
async def credential_store(database) -> CredentialStore:
    return CredentialStore(SettingsStore(database))


@pytest_asyncio.fixture
async def authenticated(credential_store) -> Credential:
    """Store an access credential so runs pass pre-flight"""
    credential = Credential(key="access-token", secret="access-secret")
    await credential_store.save(credential)
    return credential


def make_release(instance_id: int, release_id: Optional[int] = None, **overrides: Any) -> Dict[str, Any]:
    """A collection listing entry as the catalog returns it"""
    release_id = release_id or instance_id + 100000
    release = {
        "id": release_id,
        "instance_id": instance_id,
        "folder_id": 1,
        "rating": 4,
        "date_added": "2023-05-04T10:11:12-07:00",
        "notes": [{"field_id": 3, "value": "Signed copy"}],
        "basic_information": {
            "id": release_id,
            "title": f"Album {instance_id}",
            "year": 1977,
            "artists": [{"name": "Artist A"}, {"name": "Artist B"}],
            "formats": [{"name": "Vinyl", "qty": "1", "descriptions": ["LP", "Album"]}],
            "genres": ["Rock", "Jazz"],
            "styles": ["Fusion"],
            "cover_image": f"https://img.catalog.test/{release_id}.jpg",
        },
    }
    release.update(overrides)
    return release


class FakeCatalog:
    """
    In-process stand-in for the catalog API, served through httpx.MockTransport.

    Records every request so tests can assert on call counts and headers.
    """

    def __init__(self, releases: Optional[List[Dict[str, Any]]] = None, page_size: int = 100):
        self.releases = releases or []
        self.page_size = page_size
        self.requests: List[httpx.Request] = []
        self.prices: Dict[int, Dict[str, Any]] = {}
        self.default_price = {"Very Good Plus (VG+)": {"currency": "USD", "value": 12.5}}
        self.price_status: Dict[int, int] = {}
        self.failing_pages: Set[int] = set()
        self.collection_value: Optional[Dict[str, str]] = {
            "minimum": "$1,000.00",
            "median": "$1,234.56",
            "maximum": "$2,000.00",
        }
        self.collection_value_status = 200
        self.identity = {"id": 1, "username": "crate_digger"}
        self.identity_status = 200
        self.access_token_status = 200

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    def count(self, fragment: str) -> int:
        return sum(1 for r in self.requests if fragment in r.url.path)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path.endswith("/collection/folders/0/releases"):
            return self._collection_page(request)

        if path.endswith("/collection/value"):
            if self.collection_value_status != 200:
                return httpx.Response(self.collection_value_status, text="unavailable")
            return httpx.Response(200, json=self.collection_value)

        if path.startswith("/marketplace/price_suggestions/"):
            release_id = int(path.rsplit("/", 1)[-1])
            status = self.price_status.get(release_id, 200)
            if status != 200:
                return httpx.Response(status, text="error")
            return httpx.Response(200, json=self.prices.get(release_id, self.default_price))

        if path == "/oauth/identity":
            if self.identity_status != 200:
                return httpx.Response(self.identity_status, text="error")
            return httpx.Response(200, json=self.identity)

        if path == "/oauth/request_token":
            return httpx.Response(200, text=(
                "oauth_token=req-token&oauth_token_secret=req-secret&oauth_callback_confirmed=true"
            ))

        if path == "/oauth/access_token":
            if self.access_token_status != 200:
                return httpx.Response(self.access_token_status, text="Invalid verifier")
            return httpx.Response(200, text="oauth_token=access-token&oauth_token_secret=access-secret")

        return httpx.Response(404, json={"message": "Not found"})

    def _collection_page(self, request: httpx.Request) -> httpx.Response:
        page = int(request.url.params.get("page", "1"))
        if page in self.failing_pages:
            return httpx.Response(503, text="Service Unavailable")

        pages = max(1, -(-len(self.releases) // self.page_size))
        start = (page - 1) * self.page_size
        urls = {}
        if page < pages:
            urls["next"] = (
                f"{API_BASE_URL}{request.url.path}?page={page + 1}&per_page={self.page_size}"
            )
        return httpx.Response(200, json={
            "pagination": {"page": page, "pages": pages, "per_page": self.page_size, "urls": urls},
            "releases": self.releases[start:start + self.page_size],
        })


@pytest.fixture
def make_catalog():
    return FakeCatalog


@pytest.fixture
def release_factory():
    return make_release
