# ============================================================================
# File: ingestion/runner.py
# Description: Collection sync orchestrator with single-flight guard
# ============================================================================
"""
Sync Runner - Orchestrates fetch, enrich and transactional replace.

Run state machine (published through the progress reporter):

    idle -> running -> idle     (success, summary returned)
                    -> error    (fatal failure recorded, then re-raised)

Phases:
1. Pre-flight - username, consumer pair and stored credential must exist;
   nothing touches the network otherwise
2. Extract - walk every listing page
3. Aggregate - collection value lookup (failure means "unknown", not fatal)
4. Enrich - per-item price resolution (failure means a null value, not fatal)
5. Load - replace items and append the snapshot in one transaction
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

import httpx
from pydantic import ValidationError

from core.config import Settings, settings as default_settings
from core.database import Database
from core.exceptions import ConfigurationError, SyncError, SyncInProgressError
from core.retry import RetryPolicy
from ingestion.auth.oauth import CredentialStore, RequestSigner
from ingestion.extractors.discogs_client import CatalogClient, collection_releases_endpoint
from ingestion.loaders.collection_loader import CollectionLoader
from ingestion.pagination import fetch_all_pages
from ingestion.state import ProgressReporter, SettingsProgressStore, SettingsStore
from ingestion.valuation import ValueResolver, parse_currency
from models.base import SyncState
from schemas.collection import (
    CollectionItemCreate,
    CollectionValue,
    ValueSnapshotCreate,
    is_valid_release,
)

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    item_count: int
    message: str
    duration_seconds: float


class SyncRunner:
    """
    Collection sync orchestrator.

    Responsibilities:
    - Refuse overlapping runs within this process
    - Validate configuration before any network call
    - Drive pagination, valuation and the transactional replace
    - Publish progress and the terminal status for pollers
    """

    def __init__(
        self,
        database: Database,
        settings: Optional[Settings] = None,
        progress: Optional[ProgressReporter] = None,
        credential_store: Optional[CredentialStore] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        condition_priority: Optional[Sequence[str]] = None
    ):
        self.database = database
        self.settings = settings or default_settings
        store = SettingsStore(database)
        self.progress = progress or SettingsProgressStore(store)
        self.credential_store = credential_store or CredentialStore(store)
        self.loader = CollectionLoader(database)
        self.http_client = http_client
        self.retry_policy = retry_policy or RetryPolicy.from_settings(self.settings)
        self.condition_priority = condition_priority
        self._sleep = sleep
        self._lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    async def run(self) -> SyncResult:
        """
        Run one full sync.

        Returns:
            SyncResult with the stored item count and a summary message

        Raises:
            SyncInProgressError: Another run is in flight (progress keys untouched)
            ConfigurationError: Username, consumer pair or credential missing
            SyncError: Any other fatal failure, after the error status was recorded
        """
        # No await between the check and the acquire, so this is atomic on the loop
        if self._lock.locked():
            raise SyncInProgressError("A sync is already in progress")

        async with self._lock:
            return await self._run()

    async def _run(self) -> SyncResult:
        started = time.monotonic()
        logger.info("Starting collection sync")

        try:
            await self.progress.begin_run()
            username, signer = await self._preflight()

            async with CatalogClient(
                signer,
                settings=self.settings,
                http_client=self.http_client,
                retry_policy=self.retry_policy,
                sleep=self._sleep
            ) as client:
                # --------------------------------------------------
                # PHASE 1: EXTRACTION
                # --------------------------------------------------
                releases = await fetch_all_pages(
                    client,
                    collection_releases_endpoint(username, self.settings.COLLECTION_PAGE_SIZE)
                )
                total = len(releases)
                logger.info(f"Fetched {total} collection records")
                await self.progress.report_progress(0, total)

                # --------------------------------------------------
                # PHASE 2: AGGREGATE VALUE
                # --------------------------------------------------
                collection_value = await self._fetch_collection_value(client, username)

                # --------------------------------------------------
                # PHASE 3: ENRICHMENT
                # --------------------------------------------------
                items = await self._enrich(client, releases)

            # --------------------------------------------------
            # PHASE 4: LOAD
            # --------------------------------------------------
            snapshot = ValueSnapshotCreate(
                timestamp=datetime.utcnow(),
                total_items=len(items),
                value_min=parse_currency(collection_value.minimum),
                value_mean=parse_currency(collection_value.median),
                value_max=parse_currency(collection_value.maximum),
            )
            item_count = await self.loader.replace_all(items, snapshot)

            await self.progress.report_status(SyncState.IDLE)

        except Exception as e:
            message = e.message if isinstance(e, SyncError) else str(e)
            logger.error(f"Collection sync failed: {message}")
            try:
                await self.progress.report_status(SyncState.ERROR, message)
            except Exception as report_error:
                logger.error(f"Failed to record sync error status: {report_error}")
            raise

        duration = time.monotonic() - started
        message = f"Sync complete. Processed {item_count} items in {duration:.2f} seconds."
        logger.info(message)
        return SyncResult(item_count=item_count, message=message, duration_seconds=duration)

    async def _preflight(self) -> Tuple[str, RequestSigner]:
        """Check configuration; raises ConfigurationError without any network call."""
        username = self.settings.DISCOGS_USERNAME
        if not username:
            raise ConfigurationError("DISCOGS_USERNAME is not configured")

        consumer_key = self.settings.DISCOGS_CONSUMER_KEY
        consumer_secret = self.settings.DISCOGS_CONSUMER_SECRET
        if not consumer_key or not consumer_secret:
            raise ConfigurationError(
                "DISCOGS_CONSUMER_KEY and DISCOGS_CONSUMER_SECRET must be set"
            )

        credential = await self.credential_store.load()
        if credential is None:
            raise ConfigurationError(
                "No OAuth credential found. Please complete the OAuth handshake first."
            )

        return username, RequestSigner(consumer_key, consumer_secret, credential)

    async def _fetch_collection_value(self, client: CatalogClient, username: str) -> CollectionValue:
        try:
            data = await client.fetch_collection_value(username)
        except SyncError as e:
            logger.error(f"Failed to fetch collection value, continuing without it: {e.message}")
            return CollectionValue()

        if not isinstance(data, dict):
            logger.error(f"Unexpected collection value payload, continuing without it: {type(data).__name__}")
            return CollectionValue()
        try:
            return CollectionValue(**data)
        except ValidationError as e:
            logger.error(f"Malformed collection value, continuing without it: {e}")
            return CollectionValue()

    async def _enrich(
        self,
        client: CatalogClient,
        releases: List[Dict[str, Any]]
    ) -> List[CollectionItemCreate]:
        """Resolve a value per record and stage it; duplicates keep the last occurrence."""
        resolver = ValueResolver(client, self.condition_priority)
        total = len(releases)
        staged: Dict[int, CollectionItemCreate] = {}

        for index, release in enumerate(releases, start=1):
            await self.progress.report_progress(index, total)

            if not is_valid_release(release):
                logger.warning(f"Skipping invalid collection record at position {index}")
                continue

            release_id = release["id"]
            value: Optional[float] = None
            checked_at: Optional[datetime] = None
            try:
                value = await resolver.resolve(release_id)
                checked_at = datetime.utcnow()
            except SyncError as e:
                logger.error(f"Price lookup failed for release {release_id}: {e.message}")

            try:
                item = CollectionItemCreate.from_release(release, value, checked_at)
            except ValidationError as e:
                logger.warning(f"Skipping malformed collection record {release_id}: {e}")
                continue

            if item.id in staged:
                logger.warning(f"Duplicate instance id {item.id}; keeping the last occurrence")
            staged[item.id] = item

        return list(staged.values())
