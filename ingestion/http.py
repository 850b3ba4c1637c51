"""
Shared HTTP helpers for the catalog API: default headers, response
classification and transport error mapping.
"""

from typing import Dict, Optional
import logging

import httpx

from core.exceptions import (
    AuthenticationError,
    CatalogAPIError,
    RateLimitError,
    ResourceNotFoundError,
    ServerError,
    TransientError,
)

logger = logging.getLogger(__name__)

MAX_BODY_IN_ERROR = 500


def default_headers(user_agent: str, authorization: Optional[str] = None) -> Dict[str, str]:
    """Identifying user agent, optional signed authorization and JSON content type."""
    headers = {
        "User-Agent": user_agent,
        "Content-Type": "application/json",
    }
    if authorization:
        headers["Authorization"] = authorization
    return headers


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Parse a Retry-After header given in seconds; anything else is ignored."""
    if value is None:
        return None
    try:
        seconds = float(value.strip())
    except (TypeError, ValueError):
        return None
    return seconds if seconds >= 0 else None


def raise_for_status(response: httpx.Response, endpoint: str):
    """
    Map an error response onto the structured exception taxonomy.

    Raises:
        RateLimitError: 429, carrying the Retry-After hint
        AuthenticationError: 401 / 403
        ResourceNotFoundError: 404
        ServerError: 5xx
        CatalogAPIError: any other 4xx
    """
    status = response.status_code
    if status < 400:
        return

    body = response.text[:MAX_BODY_IN_ERROR]
    context = {"endpoint": endpoint}

    if status == 429:
        retry_after = parse_retry_after(response.headers.get("Retry-After"))
        raise RateLimitError(
            f"Catalog API rate limit exceeded for {endpoint}",
            status_code=status,
            response_body=body,
            context=context,
            retry_after=retry_after
        )

    if status in (401, 403):
        raise AuthenticationError(
            f"Authentication failed for {endpoint} (status: {status})",
            status_code=status,
            response_body=body,
            context=context
        )

    if status == 404:
        raise ResourceNotFoundError(
            f"Resource not found: {endpoint}",
            status_code=status,
            response_body=body,
            context=context
        )

    if status >= 500:
        raise ServerError(
            f"Catalog API server error for {endpoint} (status: {status})",
            status_code=status,
            response_body=body,
            context=context
        )

    raise CatalogAPIError(
        f"Catalog API request failed for {endpoint} (status: {status})",
        status_code=status,
        response_body=body,
        context=context
    )


def transport_error(error: httpx.HTTPError, endpoint: str) -> TransientError:
    """Wrap DNS failures, connection resets and timeouts as retryable errors."""
    if isinstance(error, httpx.TimeoutException):
        message = f"Request timeout for {endpoint}"
    else:
        message = f"Network error for {endpoint}"
    return TransientError(message, context={"endpoint": endpoint}, original_exception=error)
