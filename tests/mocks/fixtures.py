from __future__ import annotations
from typing import Sequence

from plsort.models import AlbumInfo, FeatureSet, PlaylistRow, PlaylistTable, Track


def make_track(track_id: str, title: str | None = None, artists: Sequence[str] = ("Artist",),
               position: int = 0, album_id: str | None = None, duration_ms: int | None = 200000,
               popularity: int | None = 50) -> Track:
    return Track(
        id=track_id,
        title=title if title is not None else f"Song {track_id}",
        artist_names=tuple(artists),
        album_id=album_id,
        duration_ms=duration_ms,
        popularity=popularity,
        original_position=position,
    )


def make_row(track_id: str, position: int = 0, artists: Sequence[str] = ("Artist",), tempo: float | None = None,
             release: str | None = None, **track_kwargs) -> PlaylistRow:
    track = make_track(track_id, artists=artists, position=position, album_id=f"al-{track_id}", **track_kwargs)
    album = AlbumInfo(f"al-{track_id}", release) if release is not None else None
    features = FeatureSet(track_id, tempo_bpm=tempo) if tempo is not None else None
    return PlaylistRow(track=track, album=album, features=features)


def make_table(rows: Sequence[PlaylistRow], playlist_id: str = "pl1") -> PlaylistTable:
    return PlaylistTable(playlist_id, rows, snapshot_id="snap1")


def artist_table(artists: Sequence[str], playlist_id: str = "pl1") -> PlaylistTable:
    """One single-artist track per entry, in the given order."""
    rows = [make_row(f"t{i}", position=i, artists=(a,)) for i, a in enumerate(artists)]
    return make_table(rows, playlist_id)
