"""
Value resolution: condition-priority price fallback and currency string parsing.
"""

import re
import logging
from typing import Any, Dict, Optional, Sequence

from core.exceptions import ResourceNotFoundError

logger = logging.getLogger(__name__)

# Highest preference first
CONDITION_PRIORITY = (
    "Mint (M)",
    "Near Mint (NM or M-)",
    "Very Good Plus (VG+)",
    "Very Good (VG)",
    "Good Plus (G+)",
    "Good (G)",
    "Fair (F)",
    "Poor (P)",
)

_NON_NUMERIC = re.compile(r"[^0-9.,\-]")


def _suggestion_value(entry: Any) -> Optional[float]:
    if isinstance(entry, dict):
        entry = entry.get("value")
    if isinstance(entry, bool) or not isinstance(entry, (int, float)):
        return None
    return float(entry)


def resolve_value(
    suggestions: Optional[Dict[str, Any]],
    condition_priority: Sequence[str] = CONDITION_PRIORITY
) -> Optional[float]:
    """
    Pick the value of the highest-priority condition present.

    Entries may be ``{"value": 12.5, "currency": "USD"}`` or bare numbers.
    Returns None for an empty map or when no listed condition is present.
    """
    if not suggestions or not isinstance(suggestions, dict):
        return None

    for condition in condition_priority:
        if condition in suggestions:
            value = _suggestion_value(suggestions[condition])
            if value is not None:
                return value
    return None


def parse_currency(text: Optional[str]) -> Optional[float]:
    """
    Parse a locale-formatted currency string.

    The last ``.`` or ``,`` is the decimal point and earlier ones are grouping,
    so both ``"$1,234.56"`` and ``"€1.234,56"`` give 1234.56. A lone separator
    followed by exactly three digits is grouping (``"$1,234"`` gives 1234.0).
    A minus sign is accepted only in front of the amount.

    Returns:
        The numeric value, or None when nothing parseable remains
    """
    if text is None:
        return None

    cleaned = _NON_NUMERIC.sub("", str(text))
    if not any(ch.isdigit() for ch in cleaned):
        return None

    negative = cleaned.startswith("-")
    if negative:
        cleaned = cleaned[1:]
    if "-" in cleaned:
        logger.warning(f"Failed to parse currency value: {text!r}")
        return None

    separators = [i for i, ch in enumerate(cleaned) if ch in ".,"]
    if separators:
        last = separators[-1]
        integer_part = re.sub(r"[.,]", "", cleaned[:last])
        fraction = cleaned[last + 1:]
        if len(separators) == 1 and len(fraction) == 3 and integer_part:
            cleaned = integer_part + fraction
        else:
            cleaned = f"{integer_part or '0'}.{fraction or '0'}"

    try:
        value = float(cleaned)
    except ValueError:
        logger.warning(f"Failed to parse currency value: {text!r}")
        return None
    return -value if negative else value


class ValueResolver:
    """
    Resolve one representative value per release from price suggestions.

    A not-found answer means "no data" and resolves to None. Transport and
    authentication errors propagate; the caller decides how to degrade.
    """

    def __init__(self, client, condition_priority: Optional[Sequence[str]] = None):
        self.client = client
        self.condition_priority = tuple(condition_priority or CONDITION_PRIORITY)

    async def resolve(self, release_id: int) -> Optional[float]:
        try:
            suggestions = await self.client.fetch_price_suggestions(release_id)
        except ResourceNotFoundError:
            logger.debug(f"No price data for release {release_id}")
            return None

        value = resolve_value(suggestions, self.condition_priority)
        logger.debug(f"Release {release_id} resolved to {value}")
        return value
