"""Spotify Web API client.

Covers the three Spotify-hosted data sources the pipeline consults (playlist
tracks, album metadata, audio features) plus the playlist write endpoint used
for reordering.

The audio-features endpoint has been closed to most applications; it answers
403 for every request, which maps to ProviderUnavailable.
"""

from __future__ import annotations
import logging
from typing import Any, Callable, Dict, Iterator, List, Sequence

from ...models import AlbumInfo, FeatureSet, Session, Track
from ..base import HttpClient, Page, chunked

logger = logging.getLogger(__name__)
API_BASE = "https://api.spotify.com/v1"

TRACK_PAGE_SIZE = 100
ALBUM_BATCH_SIZE = 20
FEATURE_BATCH_SIZE = 100

# 0..1 fractions scaled to 0..100
_PERCENT_FEATURES = {
    "energy": "energy",
    "danceability": "danceability",
    "valence": "valence",
    "acousticness": "acousticness",
}


class SpotifyAPIClient(HttpClient):
    """Spotify Web API client bound to one Session.

    Args:
        session: Session issued by the auth state machine
        on_auth_rejected: Hook invoked on HTTP 401 (usually AuthStateMachine.mark_rejected)
    """

    provider_name = "spotify"

    def __init__(
        self,
        session: Session,
        on_auth_rejected: Callable[[], None] | None = None,
        api_base: str = API_BASE,
        **kwargs: Any,
    ):
        super().__init__(on_auth_rejected=on_auth_rejected, **kwargs)
        self.session = session
        self.api_base = api_base.rstrip('/')

    def _headers(self) -> Dict[str, str]:
        """Build authorization headers for API requests."""
        return {"Authorization": f"Bearer {self.session.access_token}"}

    def _get(self, path_or_url: str, params: Dict[str, Any] | None = None, **kwargs: Any) -> Dict[str, Any]:
        url = path_or_url if path_or_url.startswith('http') else self.api_base + path_or_url
        return self._request("GET", url, params=params, **kwargs)

    # ---------------- Playlist tracks -----------------

    def fetch_track_page(self, playlist_id: str, cursor: str | None = None) -> Page[Track]:
        """Fetch one page of playlist tracks.

        Args:
            playlist_id: Spotify playlist ID
            cursor: The ``next`` URL of the previous page, or None for the first page

        Returns:
            Page whose items carry their upstream position; local files and
            removed tracks are skipped.
        """
        if cursor:
            data = self._get(cursor)
        else:
            data = self._get(f"/playlists/{playlist_id}/tracks", params={"limit": TRACK_PAGE_SIZE, "offset": 0})
        offset = int(data.get("offset") or 0)
        tracks: List[Track] = []
        for idx, item in enumerate(data.get("items") or []):
            track = parse_track(item, offset + idx)
            if track is not None:
                tracks.append(track)
        logger.debug(f"Playlist {playlist_id} page fetched {len(tracks)} tracks (offset={offset})")
        return Page(items=tracks, next_cursor=data.get("next"))

    def playlist_snapshot(self, playlist_id: str) -> str | None:
        data = self._get(f"/playlists/{playlist_id}", params={"fields": "snapshot_id"})
        return data.get("snapshot_id")

    def playlist_track_ids(self, playlist_id: str) -> List[str]:
        """Current upstream order, one entry per playlist item.

        Local files have no track ID; their URI stands in so positions stay aligned.
        """
        ids: List[str] = []
        url: str | None = f"/playlists/{playlist_id}/tracks"
        params: Dict[str, Any] | None = {
            "limit": TRACK_PAGE_SIZE,
            "offset": 0,
            "fields": "items(track(id,uri,is_local)),next",
        }
        while url:
            data = self._get(url, params=params)
            for item in data.get("items") or []:
                track = (item or {}).get("track") or {}
                ids.append(track.get("id") or track.get("uri") or "")
            url = data.get("next")
            params = None
        return ids

    # ---------------- Albums / features -----------------

    def fetch_albums(self, album_ids: Sequence[str]) -> List[AlbumInfo]:
        """Fetch album release dates in batches of 20."""
        albums: List[AlbumInfo] = []
        for batch in chunked(list(album_ids), ALBUM_BATCH_SIZE):
            data = self._get("/albums", params={"ids": ",".join(batch)})
            for album in data.get("albums") or []:
                if album and album.get("id"):
                    albums.append(AlbumInfo(album_id=album["id"], release_date=album.get("release_date")))
        return albums

    def fetch_audio_features(self, track_ids: Sequence[str]) -> List[FeatureSet]:
        """Fetch audio features in batches of 100.

        Raises:
            ProviderUnavailable: The endpoint refuses this application (403/404)
        """
        features: List[FeatureSet] = []
        for batch in chunked(list(track_ids), FEATURE_BATCH_SIZE):
            data = self._get("/audio-features", params={"ids": ",".join(batch)}, categorical=(403, 404))
            for entry in data.get("audio_features") or []:
                fs = parse_features(entry)
                if fs is not None:
                    features.append(fs)
        return features

    # ---------------- Writes -----------------

    def reorder_items(
        self,
        playlist_id: str,
        range_start: int,
        insert_before: int,
        range_length: int = 1,
        snapshot_id: str | None = None,
    ) -> str | None:
        """Move a contiguous range of items; returns the new snapshot ID.

        Not retried: a rejected move aborts the caller's sequence.
        """
        body: Dict[str, Any] = {
            "range_start": range_start,
            "insert_before": insert_before,
            "range_length": range_length,
        }
        if snapshot_id:
            body["snapshot_id"] = snapshot_id
        data = self._request("PUT", f"{self.api_base}/playlists/{playlist_id}/tracks", json=body, retry=False)
        return data.get("snapshot_id") or snapshot_id

    # ---------------- Discovery -----------------

    def current_user_playlists(self) -> Iterator[Dict[str, Any]]:
        """Yield the current user's playlists (id, name, owner, tracks.total)."""
        url: str | None = "/me/playlists"
        params: Dict[str, Any] | None = {"limit": 50}
        while url:
            data = self._get(url, params=params)
            for pl in data.get("items") or []:
                if pl:
                    yield pl
            url = data.get("next")
            params = None


def parse_track(item: Dict[str, Any] | None, position: int) -> Track | None:
    """Map a playlist item to a Track; None for local files and removed tracks."""
    track = (item or {}).get("track")
    if not track or track.get("is_local") or not track.get("id"):
        return None
    album = track.get("album") or {}
    return Track(
        id=track["id"],
        title=track.get("name") or "",
        artist_names=tuple(a["name"] for a in track.get("artists") or [] if a and a.get("name")),
        album_id=album.get("id"),
        duration_ms=track.get("duration_ms"),
        popularity=track.get("popularity"),
        original_position=position,
    )


def parse_features(entry: Dict[str, Any] | None) -> FeatureSet | None:
    if not entry or not entry.get("id"):
        return None
    values: Dict[str, Any] = {
        "tempo_bpm": _number(entry.get("tempo")),
        "loudness_db": _number(entry.get("loudness")),
    }
    for src, dest in _PERCENT_FEATURES.items():
        v = _number(entry.get(src))
        values[dest] = round(v * 100, 1) if v is not None else None
    # Spotify reports tempo 0 when it could not detect one
    if values["tempo_bpm"] is not None and values["tempo_bpm"] <= 0:
        values["tempo_bpm"] = None
    return FeatureSet(track_id=entry["id"], **values)


def _number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


__all__ = ["SpotifyAPIClient", "parse_track", "parse_features", "API_BASE"]
