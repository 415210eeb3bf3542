"""Selection helpers over remote-fetched collections."""

from datetime import datetime, timezone
from typing import Iterable, Optional, TypeVar

from ..models.application_models import VersionStatus

T = TypeVar("T")

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def find_by_name(items: Iterable[T], name: Optional[str]) -> Optional[T]:
    """Return the first item whose name matches ``name``, ignoring case."""
    if not name:
        return None
    wanted = name.lower()
    for item in items:
        item_name = getattr(item, "name", None)
        if item_name is not None and item_name.lower() == wanted:
            return item
    return None


def _date_key(item) -> datetime:
    value = getattr(item, "version_date", None)
    if value is None:
        return _EPOCH
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def select_version(
    versions: Iterable[T],
    name: Optional[str] = None,
    min_status: VersionStatus = VersionStatus.DELIVERED,
) -> Optional[T]:
    """Pick a version by name, or the most recent one with a sufficient status.

    Args:
        versions: Items exposing ``name``, ``status`` and ``version_date``
        name: Exact name to look for (case-insensitive)
        min_status: Lowest acceptable status when no name is given

    Returns:
        The selected item, or None when nothing qualifies
    """
    versions = list(versions)
    if name:
        return find_by_name(versions, name)

    eligible = [v for v in versions if v.status.is_at_least(min_status)]
    if not eligible:
        return None
    return max(eligible, key=_date_key)
