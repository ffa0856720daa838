"""Ordering, overlap and routing over zone key ranges.

Bounds are compared the way MongoDB compares shard key values: by BSON type
first (MinKey < null < numbers < strings < ObjectId < booleans < dates < MaxKey)
and then by value. A bound that names fewer fields than the shard key is
padded with MinKey, the same as the server does.
"""

from datetime import datetime
from typing import Any, Iterable, Mapping, Optional, Sequence

from bson import ObjectId
from bson.json_util import dumps
from bson.max_key import MaxKey
from bson.min_key import MinKey

_MIN_RANK = 0
_MAX_RANK = 100


def _rank(value: Any) -> tuple[int, Any]:
    if isinstance(value, MinKey):
        return (_MIN_RANK, 0)
    if isinstance(value, MaxKey):
        return (_MAX_RANK, 0)
    if value is None:
        return (5, 0)
    # bool is a subclass of int, check it first
    if isinstance(value, bool):
        return (40, value)
    if isinstance(value, (int, float)):
        return (10, value)
    if isinstance(value, str):
        return (15, value)
    if isinstance(value, ObjectId):
        return (35, value)
    if isinstance(value, datetime):
        return (45, value)
    raise ValueError(f"Unsupported shard key value type: {type(value).__name__}")


def bound_key(bound: Mapping[str, Any], fields: Sequence[str]) -> tuple:
    """Ordering key for a range bound over the full shard key."""
    return tuple(_rank(bound[f]) if f in bound else (_MIN_RANK, 0) for f in fields)


def document_key(document: Mapping[str, Any], fields: Sequence[str]) -> tuple:
    """Ordering key for a document; a missing field compares as null."""
    return tuple(_rank(document.get(f)) for f in fields)


def overlaps(a_min: tuple, a_max: tuple, b_min: tuple, b_max: tuple) -> bool:
    """True if the half-open intervals [a_min, a_max) and [b_min, b_max) intersect."""
    return a_min < b_max and b_min < a_max


def find_overlap(ranges: Iterable, fields: Sequence[str]) -> Optional[tuple]:
    """Return the first pair of intersecting ranges, or None."""
    keyed = sorted(
        (
            (bound_key(r.min_bound, fields), bound_key(r.max_bound, fields), r)
            for r in ranges
        ),
        key=lambda item: (item[0], item[1]),
    )
    # after sorting by lower bound, only neighbours need checking
    for (a_min, a_max, a), (b_min, b_max, b) in zip(keyed, keyed[1:]):
        if overlaps(a_min, a_max, b_min, b_max):
            return a, b
    return None


def route(
    document: Mapping[str, Any],
    fields: Sequence[str],
    ranges: Iterable,
    shard_zones: Mapping[str, Iterable[str]],
) -> Optional[str]:
    """Return the shard a document is placed on under zone sharding.

    The document's shard key is matched against each range, then the first
    shard (by name) tagged with that range's zone wins. Returns None when the
    document falls outside every range or no shard carries the zone.
    """
    key = document_key(document, fields)
    for zone_range in ranges:
        low = bound_key(zone_range.min_bound, fields)
        high = bound_key(zone_range.max_bound, fields)
        if low <= key < high:
            candidates = sorted(
                shard_id
                for shard_id, zones in shard_zones.items()
                if zone_range.zone_label in zones
            )
            return candidates[0] if candidates else None
    return None


def format_bound(bound: Mapping[str, Any]) -> str:
    """Render a bound as MongoDB extended JSON."""
    return dumps(dict(bound))
