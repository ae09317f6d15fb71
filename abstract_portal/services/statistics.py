from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

from abstract_portal.models.enumerations import AbstractCategory, AbstractStatus
from abstract_portal.utils.logging_utils import get_logger

logger = get_logger("statistics")

_STATUS_KEYS = tuple(status.value for status in AbstractStatus)


def percent(part: int, total: int) -> float:
    """Percentage rounded to one decimal; 0.0 when there is nothing to divide."""

    if not total:
        return 0.0
    return round(part / total * 100, 1)


def classify_category(value: Any) -> AbstractCategory:
    """
    Map a stored category onto one of the four buckets.

    Enum members and exact names (any case) map directly. Anything else is
    legacy free text and goes through the substring fallback, which can
    misfile titles such as "Poster-Award Hybrid"; those are logged.
    """

    if isinstance(value, AbstractCategory):
        return value

    raw = (getattr(value, "value", value) or "")
    raw = str(raw).strip()
    lowered = raw.lower()
    for category in AbstractCategory:
        if lowered in (category.value.lower(), category.name.lower()):
            return category

    if "award" in lowered:
        resolved = AbstractCategory.AWARD_PAPER
    elif "e-poster" in lowered:
        resolved = AbstractCategory.E_POSTER
    elif "poster" in lowered:
        resolved = AbstractCategory.POSTER
    else:
        resolved = AbstractCategory.FREE_PAPER

    if raw:
        logger.warning("Loose category match %r -> %s", raw, resolved.value)
    return resolved


def _field(item: Any, name: str) -> Optional[Any]:
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name, None)


def _empty_bucket() -> Dict[str, int]:
    bucket = {"total": 0}
    bucket.update({key: 0 for key in _STATUS_KEYS})
    return bucket


def compute_stats(abstracts: Iterable[Any]) -> Dict[str, Any]:
    """
    Aggregate counts over the full current set of abstracts.

    Accepts model instances or mappings exposing ``status`` and ``category``.
    """

    stats: Dict[str, Any] = _empty_bucket()
    by_category = {category.value: _empty_bucket() for category in AbstractCategory}

    for item in abstracts:
        status = _field(item, "status")
        status = getattr(status, "value", status)
        category = classify_category(_field(item, "category")).value

        stats["total"] += 1
        by_category[category]["total"] += 1
        if status in _STATUS_KEYS:
            stats[status] += 1
            by_category[category][status] += 1
        else:
            logger.warning("Unknown status %r ignored in counts", status)

    stats["byCategory"] = by_category
    return stats
