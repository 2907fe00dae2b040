"""Domain records for sessions and the in-memory playlist table.

Provider responses are mapped into these typed records as soon as they are
received; missing values are stored as ``None`` and surface through
:meth:`PlaylistRow.value` as the :data:`UNKNOWN` sentinel.
"""
from __future__ import annotations
import time
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Sequence, Tuple, TYPE_CHECKING

if TYPE_CHECKING:
    from .sorting.separation import SeparationMetric

# Refresh a little before the upstream expiry to avoid racing it
EXPIRY_MARGIN_SECONDS = 60


class _Unknown:
    """Placeholder for a field that could not be obtained."""

    _instance: "_Unknown | None" = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNKNOWN"

    def __bool__(self) -> bool:
        return False


UNKNOWN = _Unknown()


# ---------------- Auth records -----------------

@dataclass
class Session:
    access_token: str
    expires_at: float | None = None
    refresh_token: str | None = None

    def is_expired(self, now: float | None = None) -> bool:
        """True only when the expiry is known and has (almost) passed."""
        if self.expires_at is None:
            return False
        now = time.time() if now is None else now
        return now + EXPIRY_MARGIN_SECONDS >= self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Session":
        expires_at = data.get("expires_at")
        return cls(
            access_token=data["access_token"],
            expires_at=float(expires_at) if expires_at is not None else None,
            refresh_token=data.get("refresh_token"),
        )

    @classmethod
    def from_token_response(cls, payload: Dict[str, Any], now: float | None = None) -> "Session":
        """Build a session from a token endpoint JSON response."""
        now = time.time() if now is None else now
        expires_in = payload.get("expires_in")
        return cls(
            access_token=payload["access_token"],
            expires_at=now + int(expires_in) if expires_in is not None else None,
            refresh_token=payload.get("refresh_token"),
        )


@dataclass
class PendingAuth:
    code_verifier: str
    state: str | None = None
    created_at: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PendingAuth":
        return cls(
            code_verifier=data["code_verifier"],
            state=data.get("state"),
            created_at=float(data.get("created_at") or 0.0),
        )


# ---------------- Playlist records -----------------

@dataclass(frozen=True)
class Track:
    id: str
    title: str
    artist_names: Tuple[str, ...]
    album_id: str | None
    duration_ms: int | None
    popularity: int | None
    original_position: int

    @property
    def artist_display(self) -> str:
        return ", ".join(self.artist_names)


@dataclass(frozen=True)
class AlbumInfo:
    album_id: str
    release_date: str | None = None


@dataclass(frozen=True)
class FeatureSet:
    """Audio features on a 0-100 scale (loudness in dB, tempo in BPM)."""
    track_id: str
    tempo_bpm: float | None = None
    energy: float | None = None
    danceability: float | None = None
    loudness_db: float | None = None
    valence: float | None = None
    acousticness: float | None = None

    def merged(self, **values: Any) -> "FeatureSet":
        """Return a copy with the given fields filled where currently missing."""
        current = asdict(self)
        for name, value in values.items():
            if current.get(name) is None and value is not None:
                current[name] = value
        return FeatureSet(**current)


class SortKey(str, Enum):
    INDEX = "index"
    TITLE = "title"
    ARTIST = "artist"
    RELEASE = "release"
    LENGTH = "length"
    POPULARITY = "popularity"
    BPM = "bpm"
    ENERGY = "energy"
    DANCE = "dance"
    LOUD = "loud"
    VALENCE = "valence"
    ACOUSTIC = "acoustic"
    ARTIST_SEPARATION = "artist-separation"
    RANDOM = "random"


class SortDirection(str, Enum):
    ASCENDING = "ascending"
    DESCENDING = "descending"


@dataclass(frozen=True)
class SortSpec:
    key: SortKey
    direction: SortDirection = SortDirection.ASCENDING
    seed: int | None = None


FEATURE_KEYS = (
    SortKey.BPM, SortKey.ENERGY, SortKey.DANCE,
    SortKey.LOUD, SortKey.VALENCE, SortKey.ACOUSTIC,
)

_FEATURE_FIELDS = {
    SortKey.BPM: "tempo_bpm",
    SortKey.ENERGY: "energy",
    SortKey.DANCE: "danceability",
    SortKey.LOUD: "loudness_db",
    SortKey.VALENCE: "valence",
    SortKey.ACOUSTIC: "acousticness",
}


@dataclass(frozen=True)
class PlaylistRow:
    track: Track
    album: AlbumInfo | None = None
    features: FeatureSet | None = None

    @property
    def track_id(self) -> str:
        return self.track.id

    def value(self, key: SortKey) -> Any:
        """Column value for a sortable key, or :data:`UNKNOWN`."""
        t = self.track
        if key is SortKey.INDEX:
            return t.original_position
        if key is SortKey.TITLE:
            return t.title if t.title else UNKNOWN
        if key is SortKey.ARTIST:
            return t.artist_display if t.artist_names else UNKNOWN
        if key is SortKey.RELEASE:
            if self.album is None or not self.album.release_date:
                return UNKNOWN
            return self.album.release_date
        if key is SortKey.LENGTH:
            return UNKNOWN if t.duration_ms is None else t.duration_ms
        if key is SortKey.POPULARITY:
            return UNKNOWN if t.popularity is None else t.popularity
        if key in _FEATURE_FIELDS:
            if self.features is None:
                return UNKNOWN
            v = getattr(self.features, _FEATURE_FIELDS[key])
            return UNKNOWN if v is None else v
        raise KeyError(f"{key} is not a column key")


class PlaylistTable:
    """Ordered, id-unique rows of one playlist.

    Never gains or loses rows after construction; :meth:`with_rows` returns a
    permuted copy.
    """

    def __init__(
        self,
        playlist_id: str,
        rows: Sequence[PlaylistRow],
        snapshot_id: str | None = None,
        diagnostics: Sequence[str] = (),
    ):
        ids = [r.track_id for r in rows]
        if len(set(ids)) != len(ids):
            raise ValueError("PlaylistTable rows must be unique by track id")
        self.playlist_id = playlist_id
        self.rows: List[PlaylistRow] = list(rows)
        self.snapshot_id = snapshot_id
        self.diagnostics: List[str] = list(diagnostics)
        self._metric_for: Tuple[Tuple[str, ...], ...] | None = None
        self._metric: "SeparationMetric | None" = None

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self):
        return iter(self.rows)

    def track_ids(self) -> List[str]:
        return [r.track_id for r in self.rows]

    def artist_sequence(self) -> Tuple[Tuple[str, ...], ...]:
        return tuple(r.track.artist_names for r in self.rows)

    @property
    def separation_metric(self) -> "SeparationMetric":
        """Artist spacing of the current order, cached per artist sequence."""
        from .sorting.separation import separation_metric

        sequence = self.artist_sequence()
        if self._metric is None or self._metric_for != sequence:
            self._metric = separation_metric(sequence)
            self._metric_for = sequence
        return self._metric

    def with_rows(self, rows: Sequence[PlaylistRow]) -> "PlaylistTable":
        """Return a new table holding ``rows``, which must be a permutation of ours."""
        if sorted(r.track_id for r in rows) != sorted(self.track_ids()):
            raise ValueError("Reordered rows must contain exactly the original tracks")
        return PlaylistTable(self.playlist_id, rows, self.snapshot_id, self.diagnostics)


__all__ = [
    "UNKNOWN",
    "Session",
    "PendingAuth",
    "Track",
    "AlbumInfo",
    "FeatureSet",
    "PlaylistRow",
    "PlaylistTable",
    "SortKey",
    "SortDirection",
    "SortSpec",
    "FEATURE_KEYS",
]
