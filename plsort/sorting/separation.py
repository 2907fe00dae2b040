"""Artist separation: spread tracks by the same artist across the playlist.

The reordering walks the current order once. At each slot it keeps the next
track in line unless that track shares an artist with the one just placed,
or unless taking it would make it impossible to keep the remaining tracks of
some artist apart. In those cases it takes the head track of another artist,
preferring the artist placed least recently (never-placed artists first, in
order of appearance). Tracks of one artist always keep their relative order.

Feasibility is judged on each track's primary (first-listed) artist: with
``r`` slots left, no artist may hold more than ``ceil(r / 2)`` of them, and
the artist just placed no more than ``floor(r / 2)``. So an artist with
``k <= ceil(n / 2)`` tracks never ends up adjacent to itself.
"""
from __future__ import annotations
from collections import Counter, OrderedDict, deque
from dataclasses import dataclass
from typing import Deque, Dict, List, Sequence, Tuple

from ..models import PlaylistRow


@dataclass(frozen=True)
class SeparationMetric:
    """Spacing of same-artist tracks in one order.

    ``min_distance`` is the smallest position gap between two tracks sharing
    an artist (None when no artist repeats); ``adjacent_pairs`` counts
    neighbouring tracks that share an artist.
    """
    min_distance: int | None
    adjacent_pairs: int


def _artist_set(names: Sequence[str]) -> frozenset[str]:
    return frozenset(n.casefold() for n in names if n)


def separation_metric(artist_sequence: Sequence[Sequence[str]]) -> SeparationMetric:
    last_seen: Dict[str, int] = {}
    min_distance: int | None = None
    adjacent = 0
    prev: frozenset[str] = frozenset()
    for pos, names in enumerate(artist_sequence):
        artists = _artist_set(names)
        if artists & prev:
            adjacent += 1
        for artist in artists:
            if artist in last_seen:
                gap = pos - last_seen[artist]
                if min_distance is None or gap < min_distance:
                    min_distance = gap
            last_seen[artist] = pos
        prev = artists
    return SeparationMetric(min_distance=min_distance, adjacent_pairs=adjacent)


def _primary_key(row: PlaylistRow) -> str:
    names = row.track.artist_names
    if names and names[0]:
        return names[0].casefold()
    # Tracks without artists never conflict with each other
    return f"\0{row.track_id}"


def _feasible(counts: Counter, remaining: int, last_key: str) -> bool:
    """Can ``remaining`` slots hold these counts with ``last_key`` just placed?"""
    if remaining <= 0:
        return True
    ceiling = (remaining + 1) // 2
    for key, count in counts.items():
        limit = remaining // 2 if key == last_key else ceiling
        if count > limit:
            return False
    return True


def separate_artists(rows: Sequence[PlaylistRow]) -> List[PlaylistRow]:
    """Reorder rows so tracks sharing an artist are spread apart.

    Deterministic for a given input order; applying it to its own output
    returns the same order whenever a fully separated order exists.
    """
    queues: "OrderedDict[str, Deque[Tuple[int, PlaylistRow]]]" = OrderedDict()
    for pos, row in enumerate(rows):
        queues.setdefault(_primary_key(row), deque()).append((pos, row))
    counts = Counter({key: len(q) for key, q in queues.items()})
    last_placed: Dict[str, int] = {}

    result: List[PlaylistRow] = []
    prev_artists: frozenset[str] = frozenset()
    n = len(rows)
    for slot in range(n):
        remaining_after = n - slot - 1
        heads = [(q[0][0], key) for key, q in queues.items() if q]
        heads.sort()

        def acceptable(key: str) -> bool:
            row = queues[key][0][1]
            if _artist_set(row.track.artist_names) & prev_artists:
                return False
            counts[key] -= 1
            ok = _feasible(counts, remaining_after, key)
            counts[key] += 1
            return ok

        chosen: str | None = None
        next_in_line = heads[0][1]
        if acceptable(next_in_line):
            chosen = next_in_line
        else:
            # Round-robin: least recently placed artist first, then order of appearance
            candidates = sorted(heads, key=lambda h: (last_placed.get(h[1], -1), h[0]))
            for _, key in candidates:
                if acceptable(key):
                    chosen = key
                    break
        if chosen is None:
            # Pigeonhole: no separated order exists. Spend the artist with the
            # most tracks left whenever it is not adjacent to itself.
            free = [h for h in heads if not (_artist_set(queues[h[1]][0][1].track.artist_names) & prev_artists)]
            chosen = max(free or heads, key=lambda h: (counts[h[1]], -h[0]))[1]

        _, row = queues[chosen].popleft()
        counts[chosen] -= 1
        if not counts[chosen]:
            del counts[chosen]
        last_placed[chosen] = slot
        prev_artists = _artist_set(row.track.artist_names)
        result.append(row)
    return result


__all__ = ["SeparationMetric", "separation_metric", "separate_artists"]
