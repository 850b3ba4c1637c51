"""
Signed catalog API client with retry, rate-limit handling and response classification.

Every request:
- is signed with the stored OAuth credential (re-signed per attempt, so each
  retry carries a fresh nonce and timestamp)
- runs under the retry policy; 429 / 5xx / transport failures are retried,
  401 / 403 / 404 / other 4xx propagate immediately
- decodes JSON, treating 204 and empty bodies as "no content"
"""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional
from urllib.parse import quote

import httpx

from core.config import Settings, settings as default_settings
from core.exceptions import DataFormatError
from core.retry import RetryPolicy, with_retry
from ingestion.auth.oauth import RequestSigner
from ingestion.http import default_headers, raise_for_status, transport_error

logger = logging.getLogger(__name__)


class CatalogClient:
    """
    Thin async client for the catalog API.

    Use as an async context manager. An injected ``httpx.AsyncClient`` is
    borrowed and left open; otherwise one is created and closed here.

    Attributes:
        signer: Produces the Authorization header for each attempt
        base_url: API root, e.g. ``https://api.discogs.com``
        retry_policy: Backoff configuration applied to every request
    """

    def __init__(
        self,
        signer: RequestSigner,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        self.settings = settings or default_settings
        self.signer = signer
        self.base_url = self.settings.DISCOGS_API_BASE_URL.rstrip("/")
        self.user_agent = self.settings.USER_AGENT
        self.timeout = self.settings.REQUEST_TIMEOUT
        self.retry_policy = retry_policy or RetryPolicy.from_settings(self.settings)
        self._sleep = sleep
        self._client = http_client
        self._owns_client = http_client is None

    async def __aenter__(self) -> "CatalogClient":
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def close(self):
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    def _url(self, endpoint: str) -> str:
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        if not endpoint.startswith("/"):
            endpoint = f"/{endpoint}"
        return f"{self.base_url}{endpoint}"

    async def _send_once(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]]
    ) -> Optional[Any]:
        """Single signed attempt; raises a classified error on failure."""
        if self._client is None:
            raise RuntimeError("CatalogClient used outside of its context manager")

        url = httpx.URL(self._url(endpoint))
        if params:
            url = url.copy_merge_params(params)
        url = str(url)
        headers = default_headers(self.user_agent, self.signer.sign(url, method))

        logger.debug(f"{method} {endpoint}")
        try:
            response = await self._client.request(method, url, headers=headers)
        except httpx.TransportError as e:
            raise transport_error(e, endpoint)

        raise_for_status(response, endpoint)

        if response.status_code == 204 or not response.content.strip():
            return None

        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise DataFormatError(
                f"Failed to parse JSON response from {endpoint}",
                context={
                    "endpoint": endpoint,
                    "status_code": response.status_code,
                    "response_body": response.text[:500]
                },
                original_exception=e
            )

    async def request(
        self,
        endpoint: str,
        method: str = "GET",
        params: Optional[Dict[str, Any]] = None
    ) -> Optional[Any]:
        """
        Perform a signed request under the retry policy.

        Args:
            endpoint: Path (optionally with query string) relative to the API root
            method: HTTP method
            params: Extra query parameters

        Returns:
            Decoded JSON body, or None for 204 / empty responses

        Raises:
            AuthenticationError: 401 / 403
            ResourceNotFoundError: 404
            CatalogAPIError: Other 4xx
            DataFormatError: Body is not valid JSON
            RetriesExhaustedError: Retryable failures outlasted the policy
        """
        return await with_retry(
            lambda: self._send_once(method, endpoint, params),
            self.retry_policy,
            description=f"{method} {endpoint}",
            sleep=self._sleep
        )

    # ------------------------------------------------------------------
    # Catalog operations
    # ------------------------------------------------------------------

    async def fetch_price_suggestions(self, release_id: int) -> Optional[Dict[str, Any]]:
        """Per-condition price suggestions for one release."""
        return await self.request(f"/marketplace/price_suggestions/{release_id}")

    async def fetch_collection_value(self, username: str) -> Optional[Dict[str, Any]]:
        """Aggregate value strings (minimum / median / maximum) of a collection."""
        return await self.request(f"/users/{quote(username, safe='')}/collection/value")

    async def fetch_identity(self) -> Optional[Dict[str, Any]]:
        """Identity of the user the credential belongs to."""
        return await self.request("/oauth/identity")


def collection_releases_endpoint(username: str, page_size: int = 100, folder_id: int = 0) -> str:
    """First page of the all-folders collection listing."""
    return (
        f"/users/{quote(username, safe='')}/collection/folders/{folder_id}/releases"
        f"?per_page={page_size}"
    )
