"""
Pagination walker for the catalog listing endpoints.

A listing page looks like::

    {
        "pagination": {"page": 1, "pages": 2, "urls": {"next": "https://api.../releases?page=2&per_page=100"}},
        "releases": [...]
    }

The continuation reference may be absolute (with host variance after
redirects); only its path and query are kept.
"""

from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit
import logging

from core.exceptions import DataFormatError

logger = logging.getLogger(__name__)


def normalize_next_reference(reference: Any) -> Optional[str]:
    """
    Reduce a continuation reference to ``/path?query``.

    Returns:
        The relative reference, or None when it is missing or unparseable
    """
    if not reference or not isinstance(reference, str):
        return None
    try:
        parts = urlsplit(reference.strip())
    except ValueError:
        logger.warning(f"Could not parse pagination reference: {reference!r}")
        return None

    if not parts.path:
        logger.warning(f"Pagination reference has no path: {reference!r}")
        return None

    path = parts.path if parts.path.startswith("/") else f"/{parts.path}"
    return f"{path}?{parts.query}" if parts.query else path


def _next_reference(page: Dict[str, Any]) -> Any:
    pagination = page.get("pagination") or {}
    urls = pagination.get("urls") or {}
    return urls.get("next")


async def fetch_all_pages(
    client,
    start_endpoint: str,
    records_key: str = "releases"
) -> List[Dict[str, Any]]:
    """
    Follow continuation references until the listing is exhausted.

    Pages are fetched one at a time; record order across pages is preserved.
    Errors from the client (after its own retries) propagate unchanged.

    Args:
        client: Object with an async ``request(endpoint)`` method
        start_endpoint: Relative endpoint of the first page
        records_key: Key holding the page's records

    Returns:
        All records in API order

    Raises:
        DataFormatError: If a page is not a JSON object
    """
    records: List[Dict[str, Any]] = []
    endpoint: Optional[str] = start_endpoint
    page_number = 0

    while endpoint:
        page_number += 1
        page = await client.request(endpoint)

        if page is None:
            logger.warning(f"Empty response for page {page_number} ({endpoint}); stopping")
            break
        if not isinstance(page, dict):
            raise DataFormatError(
                f"Unexpected page payload from {endpoint}",
                context={"endpoint": endpoint, "page": page_number}
            )

        page_records = page.get(records_key) or []
        records.extend(page_records)
        logger.info(f"Fetched page {page_number}: {len(page_records)} records ({len(records)} total)")

        next_endpoint = normalize_next_reference(_next_reference(page))
        if next_endpoint is not None and next_endpoint == endpoint:
            logger.warning(f"Pagination reference repeats current page ({endpoint}); stopping")
            break
        endpoint = next_endpoint

    return records
