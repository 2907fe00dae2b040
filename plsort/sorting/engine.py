"""Sort & reorder engine.

Every sort returns a new PlaylistTable with the same rows; the input table is
never touched. Column sorts compare the named field, put unknown values after
all known ones in either direction and break ties by ascending original
position. Descending order flips the field comparison only, so ties and
unknowns keep their place.
"""
from __future__ import annotations
import logging
import random
import secrets
from functools import cmp_to_key
from typing import Any, List, MutableSequence, TypeVar

from ..models import UNKNOWN, PlaylistRow, PlaylistTable, SortDirection, SortKey, SortSpec
from .separation import separate_artists

logger = logging.getLogger(__name__)

T = TypeVar("T")

_TEXT_KEYS = {SortKey.TITLE, SortKey.ARTIST}


def _normalize(key: SortKey, value: Any) -> Any:
    if key in _TEXT_KEYS:
        return value.casefold()
    if key is SortKey.RELEASE:
        # "1999" < "1999-05" < "1999-05-01" would misorder partial dates; pad to full length
        parts = (value.split('-') + ['01', '01'])[:3]
        return '-'.join(p.zfill(2) for p in parts)
    return value


def _comparator(key: SortKey, direction: SortDirection):
    sign = -1 if direction is SortDirection.DESCENDING else 1

    def compare(a: PlaylistRow, b: PlaylistRow) -> int:
        va, vb = a.value(key), b.value(key)
        if va is UNKNOWN or vb is UNKNOWN:
            if va is UNKNOWN and vb is not UNKNOWN:
                return 1
            if vb is UNKNOWN and va is not UNKNOWN:
                return -1
        else:
            na, nb = _normalize(key, va), _normalize(key, vb)
            if na != nb:
                return sign * (-1 if na < nb else 1)
        pa, pb = a.track.original_position, b.track.original_position
        return (pa > pb) - (pa < pb)

    return compare


def shuffle(items: MutableSequence[T], seed: int | None = None) -> MutableSequence[T]:
    """In-place Fisher-Yates shuffle.

    Seeded calls are reproducible; unseeded calls draw from the OS CSPRNG.
    """
    rng: random.Random = random.Random(seed) if seed is not None else secrets.SystemRandom()
    for i in range(len(items) - 1, 0, -1):
        j = rng.randint(0, i)
        items[i], items[j] = items[j], items[i]
    return items


def sort_rows(rows: List[PlaylistRow], spec: SortSpec) -> List[PlaylistRow]:
    key = SortKey(spec.key)
    if key is SortKey.ARTIST_SEPARATION:
        return separate_artists(rows)
    if key is SortKey.RANDOM:
        return list(shuffle(list(rows), spec.seed))
    return sorted(rows, key=cmp_to_key(_comparator(key, SortDirection(spec.direction))))


def sort_table(table: PlaylistTable, spec: SortSpec) -> PlaylistTable:
    """Return a reordered copy of ``table`` according to ``spec``."""
    new_rows = sort_rows(list(table.rows), spec)
    logger.debug(f"Sorted {len(new_rows)} rows by {SortKey(spec.key).value} ({SortDirection(spec.direction).value})")
    return table.with_rows(new_rows)


__all__ = ["sort_table", "sort_rows", "shuffle"]
