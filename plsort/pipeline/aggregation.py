"""Playlist aggregation: tracks, album dates, audio features and BPM fallback.

Step 1 paginates the playlist from Spotify. Step 2 fans out to the secondary
sources in parallel; each of them may fail without aborting the load, in
which case the affected columns stay unknown and a diagnostic is recorded on
the table. Step 3 runs the BPM fallback for tracks still missing a tempo,
under its own deadline; lookups that finish in time are kept. Only
authentication failures and a failed first track page reach the caller.
"""
from __future__ import annotations
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from typing import Dict, List, Sequence, TYPE_CHECKING

from ..errors import AuthExpired, LoadFailed, PlsortError, ProviderUnavailable
from ..models import AlbumInfo, FeatureSet, PlaylistRow, PlaylistTable, Track
from ..utils.logging_helpers import format_load_summary
from .combinators import CancelToken, Outcome, gather_tolerant, map_bounded

if TYPE_CHECKING:
    from ..providers.bpm import BpmClient
    from ..providers.spotify import SpotifyAPIClient

logger = logging.getLogger(__name__)


@dataclass
class TempoStage:
    """What the BPM fallback found for tracks without a Spotify tempo."""
    tempos: Dict[str, float] = field(default_factory=dict)
    attempted: int = 0
    failed: int = 0
    timed_out: int = 0


def fetch_all_tracks(
    client: "SpotifyAPIClient",
    playlist_id: str,
    diagnostics: List[str],
    cancel: CancelToken | None = None,
) -> List[Track]:
    """Paginate until no cursor remains, renumbering positions contiguously.

    Raises:
        LoadFailed: The first page could not be fetched
        AuthExpired: The token was rejected
    """
    tracks: List[Track] = []
    seen: set[str] = set()
    cursor: str | None = None
    pages = 0
    while True:
        if cancel is not None:
            cancel.raise_if_cancelled()
        try:
            page = client.fetch_track_page(playlist_id, cursor)
        except AuthExpired:
            raise
        except PlsortError as e:
            if pages == 0:
                raise LoadFailed(f"Could not load playlist {playlist_id}: {e}") from e
            msg = f"tracks: pagination stopped after {pages} page(s): {e}"
            logger.warning(msg)
            diagnostics.append(msg)
            break
        pages += 1
        for track in page.items:
            if track.id in seen:
                diagnostics.append(f"tracks: duplicate entry for {track.id} at upstream position {track.original_position} skipped")
                continue
            seen.add(track.id)
            tracks.append(replace(track, original_position=len(tracks)))
        if not page.next_cursor:
            break
        cursor = page.next_cursor
    return tracks


def _fetch_features(client: "SpotifyAPIClient", tracks: Sequence[Track]) -> Dict[str, FeatureSet]:
    return {fs.track_id: fs for fs in client.fetch_audio_features([t.id for t in tracks])}


def fetch_tempos(
    bpm_client: "BpmClient",
    tracks: Sequence[Track],
    concurrency: int = 3,
    cancel: CancelToken | None = None,
    timeout: float | None = None,
) -> TempoStage:
    """Look up fallback tempos, keeping whatever finished before ``timeout``.

    Lookups still queued at the deadline are never issued.
    """
    stage = TempoStage(attempted=len(tracks))
    outcomes = map_bounded(
        lambda t: bpm_client.lookup_tempo(t.artist_names[0] if t.artist_names else "", t.title),
        ((t.id, t) for t in tracks),
        max_workers=concurrency,
        cancel=cancel,
        timeout=timeout,
    )
    for track_id, outcome in outcomes.items():
        if isinstance(outcome.error, TimeoutError):
            stage.timed_out += 1
        elif not outcome.ok:
            stage.failed += 1
            logger.debug(f"bpm: lookup for {track_id} failed: {outcome.error}")
        elif outcome.value is not None:
            stage.tempos[track_id] = outcome.value
    return stage


def load_playlist(
    client: "SpotifyAPIClient",
    playlist_id: str,
    bpm_client: "BpmClient | None" = None,
    cancel: CancelToken | None = None,
    stage_timeout: float | None = 120.0,
    bpm_concurrency: int = 3,
) -> PlaylistTable:
    """Build the PlaylistTable for one playlist in upstream order.

    Args:
        client: Spotify client bound to the current session
        playlist_id: Spotify playlist ID
        bpm_client: Optional fallback tempo provider
        cancel: Token that abandons the load (raises LoadCancelled)
        stage_timeout: Seconds each secondary stage may take
        bpm_concurrency: Fallback lookups in flight at once

    Raises:
        LoadFailed: Primary track listing unavailable
        AuthExpired: Token rejected by any source
        LoadCancelled: ``cancel`` fired before the table was built
    """
    t0 = time.time()
    diagnostics: List[str] = []
    tracks = fetch_all_tracks(client, playlist_id, diagnostics, cancel)
    album_ids = list(dict.fromkeys(t.album_id for t in tracks if t.album_id))

    pool = ThreadPoolExecutor(max_workers=3, thread_name_prefix="plsort-load")
    try:
        outcomes = gather_tolerant(
            pool,
            {
                "albums": lambda: client.fetch_albums(album_ids),
                "features": lambda: _fetch_features(client, tracks),
                "snapshot": lambda: client.playlist_snapshot(playlist_id),
            },
            timeout=stage_timeout,
            cancel=cancel,
        )
    finally:
        pool.shutdown(wait=False, cancel_futures=True)

    for outcome in outcomes.values():
        if isinstance(outcome.error, AuthExpired):
            raise outcome.error

    albums = _albums_from(outcomes["albums"], diagnostics)
    features = _features_from(outcomes["features"], diagnostics)
    snapshot_id = outcomes["snapshot"].value if outcomes["snapshot"].ok else None
    if not outcomes["snapshot"].ok:
        diagnostics.append(f"snapshot: unavailable ({outcomes['snapshot'].error})")

    tempo_stage = TempoStage()
    if bpm_client is not None:
        missing = [t for t in tracks if features.get(t.id) is None or features[t.id].tempo_bpm is None]
        if missing:
            tempo_stage = fetch_tempos(bpm_client, missing, bpm_concurrency, cancel, stage_timeout)
            _record_tempo_issues(tempo_stage, stage_timeout, diagnostics)

    rows: List[PlaylistRow] = []
    for track in tracks:
        feature_set = features.get(track.id)
        tempo = tempo_stage.tempos.get(track.id)
        if tempo is not None:
            feature_set = (feature_set or FeatureSet(track_id=track.id)).merged(tempo_bpm=tempo)
        album = albums.get(track.album_id) if track.album_id else None
        rows.append(PlaylistRow(track=track, album=album, features=feature_set))

    if cancel is not None:
        cancel.raise_if_cancelled()
    table = PlaylistTable(playlist_id, rows, snapshot_id=snapshot_id, diagnostics=diagnostics)
    # Computed once per load; the table re-derives it only when the artist order changes
    metric = table.separation_metric
    logger.info(format_load_summary(
        tracks=len(rows),
        albums=len(albums),
        features=len(features),
        tempos=len(tempo_stage.tempos),
        issues=len(diagnostics),
        duration_seconds=time.time() - t0,
    ))
    logger.debug(f"Artist spacing: min_distance={metric.min_distance} adjacent_pairs={metric.adjacent_pairs}")
    return table


def _albums_from(outcome: Outcome, diagnostics: List[str]) -> Dict[str, AlbumInfo]:
    if not outcome.ok:
        msg = f"albums: release dates unavailable ({outcome.error})"
        logger.warning(msg)
        diagnostics.append(msg)
        return {}
    return {a.album_id: a for a in outcome.value or []}


def _features_from(outcome: Outcome, diagnostics: List[str]) -> Dict[str, FeatureSet]:
    if outcome.ok:
        return outcome.value or {}
    if isinstance(outcome.error, ProviderUnavailable):
        # Expected for apps without audio-features access; not an error for the user
        msg = f"features: provider unavailable, columns left unknown ({outcome.error})"
        logger.info(msg)
    else:
        msg = f"features: fetch failed, columns left unknown ({outcome.error})"
        logger.warning(msg)
    diagnostics.append(msg)
    return {}


def _record_tempo_issues(stage: TempoStage, timeout: float | None, diagnostics: List[str]) -> None:
    if stage.failed:
        msg = f"bpm: {stage.failed}/{stage.attempted} fallback lookups failed"
        logger.warning(msg)
        diagnostics.append(msg)
    if stage.timed_out:
        msg = f"bpm: {stage.timed_out}/{stage.attempted} fallback lookups did not finish within {timeout}s"
        logger.warning(msg)
        diagnostics.append(msg)


__all__ = ["load_playlist", "fetch_all_tracks", "fetch_tempos", "TempoStage"]
