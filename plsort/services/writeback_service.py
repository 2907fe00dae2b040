"""Write a new track order back to a Spotify playlist.

Spotify reorders playlists with range moves (move ``range_length`` items
starting at ``range_start`` to just before ``insert_before``), each of which
returns a new snapshot ID that the next move must quote. The coordinator:

  * fetches the current upstream order and snapshot
  * plans a bounded list of range moves (at most n - 1, runs already in the
    desired order travel together)
  * applies them strictly one after another
  * re-fetches the playlist and verifies it matches the requested order

Any rejected move aborts the sequence with WriteConflict, carrying the moves
that did apply and the upstream order they produced. Calling save_order again
with the same order resumes from whatever state the upstream is in.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from collections import Counter
from typing import List, Sequence, TYPE_CHECKING
import logging
import time

from ..errors import OrderMismatch, PlsortError, WriteConflict
from ..utils.logging_helpers import format_writeback_summary, log_progress

if TYPE_CHECKING:
    from ..providers.spotify import SpotifyAPIClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RangeMove:
    range_start: int
    insert_before: int
    range_length: int = 1


@dataclass
class WriteBackResult:
    playlist_id: str
    moves: List[RangeMove] = field(default_factory=list)
    snapshot_id: str | None = None
    changed: bool = False
    verified: bool = False
    duration_seconds: float = 0.0


def apply_move(order: Sequence[str], move: RangeMove) -> List[str]:
    """Apply one range move locally, with Spotify's insert_before semantics."""
    items = list(order)
    block = items[move.range_start : move.range_start + move.range_length]
    del items[move.range_start : move.range_start + move.range_length]
    target = move.insert_before
    if target > move.range_start:
        target -= move.range_length
    items[target:target] = block
    return items


def plan_moves(current: Sequence[str], desired: Sequence[str]) -> List[RangeMove]:
    """Plan range moves turning ``current`` into ``desired``.

    Walks the desired order left to right; whenever slot ``i`` holds the wrong
    item, the matching item (and every following item that already sits in
    the desired sequence behind it) moves to ``i`` in one operation.

    Raises:
        ValueError: The two orders do not hold the same items
    """
    if Counter(current) != Counter(desired):
        raise ValueError("Current and desired orders must contain the same tracks")
    working = list(current)
    moves: List[RangeMove] = []
    n = len(working)
    for i in range(n):
        if working[i] == desired[i]:
            continue
        j = working.index(desired[i], i + 1)
        length = 1
        while j + length < n and i + length < n and working[j + length] == desired[i + length]:
            length += 1
        move = RangeMove(range_start=j, insert_before=i, range_length=length)
        working = apply_move(working, move)
        moves.append(move)
    return moves


def merge_with_upstream(current: Sequence[str], new_order: Sequence[str]) -> List[str]:
    """Lay ``new_order`` over the upstream order.

    A loaded table holds each track once and no local files, so upstream
    items it does not cover (local files, repeated entries) keep their index
    and the table's tracks fill the remaining slots in the new order.

    Raises:
        OrderMismatch: ``new_order`` repeats a track or names one the upstream lacks
    """
    wanted = set(new_order)
    if len(wanted) != len(new_order):
        raise OrderMismatch("New order lists a track more than once")
    unknown = wanted.difference(current)
    if unknown:
        raise OrderMismatch(
            f"{len(unknown)} track(s) are no longer in the playlist; reload it and sort again"
        )
    merged = list(current)
    slots: List[int] = []
    seen: set[str] = set()
    for idx, item in enumerate(current):
        if item in wanted and item not in seen:
            seen.add(item)
            slots.append(idx)
    for idx, item in zip(slots, new_order):
        merged[idx] = item
    return merged


def save_order(client: "SpotifyAPIClient", playlist_id: str, new_order: Sequence[str]) -> WriteBackResult:
    """Persist ``new_order`` (track IDs) to the upstream playlist.

    Upstream items missing from ``new_order`` stay where they are (see
    :func:`merge_with_upstream`).

    Raises:
        OrderMismatch: ``new_order`` does not fit the upstream playlist
        WriteConflict: A move was rejected or the final order did not verify
        AuthExpired: The token was rejected before any move was issued
        ProviderError: Reading the upstream order failed
    """
    start = time.time()
    result = WriteBackResult(playlist_id=playlist_id)
    current = client.playlist_track_ids(playlist_id)
    snapshot_id = client.playlist_snapshot(playlist_id)
    desired = merge_with_upstream(current, new_order)
    moves = plan_moves(current, desired)
    result.moves = moves
    result.snapshot_id = snapshot_id
    logger.info(f"preview playlist={playlist_id} tracks={len(current)} moves={len(moves)}")
    if not moves:
        logger.info('No changes detected; skipping write-back')
        result.verified = True
        result.duration_seconds = time.time() - start
        return result

    applied: List[RangeMove] = []
    working = list(current)
    for idx, move in enumerate(moves, start=1):
        try:
            snapshot_id = client.reorder_items(
                playlist_id,
                range_start=move.range_start,
                insert_before=move.insert_before,
                range_length=move.range_length,
                snapshot_id=snapshot_id,
            )
        except PlsortError as e:
            logger.warning(f"Reorder move {idx}/{len(moves)} rejected: {e}")
            raise WriteConflict(
                f"Write-back stopped after {len(applied)} of {len(moves)} moves: {e}",
                applied_moves=applied,
                last_known_order=working,
                snapshot_id=snapshot_id,
                failed_move=move,
            ) from e
        working = apply_move(working, move)
        applied.append(move)
        logger.debug(f"applied move {move} snapshot={snapshot_id}")
        log_progress(idx, len(moves), "moves applied")
    result.snapshot_id = snapshot_id
    result.changed = True

    final = client.playlist_track_ids(playlist_id)
    if list(final) != desired:
        raise WriteConflict(
            "Playlist order after write-back does not match the requested order "
            "(was it modified concurrently?)",
            applied_moves=applied,
            last_known_order=final,
            snapshot_id=snapshot_id,
        )
    result.verified = True
    result.duration_seconds = time.time() - start
    logger.info(format_writeback_summary(len(applied), len(desired), result.duration_seconds))
    return result


__all__ = ["RangeMove", "WriteBackResult", "plan_moves", "apply_move", "merge_with_upstream", "save_order"]
