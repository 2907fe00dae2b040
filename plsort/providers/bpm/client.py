"""Fallback tempo lookup against a GetSongBPM-style search API.

Tracks are looked up by (artist, title) rather than by Spotify ID, so every
candidate returned by the search is scored with rapidfuzz against the
requested names and only a close match is accepted.
"""

from __future__ import annotations
import logging
from typing import Any, Dict, List

from rapidfuzz import fuzz

from ...utils.normalization import normalize_title_artist, search_text
from ..base import HttpClient

logger = logging.getLogger(__name__)
DEFAULT_BASE_URL = "https://api.getsong.co"


class BpmClient(HttpClient):
    """Per-track BPM lookups.

    Rate limiting (429) is retried with backoff up to ``max_attempts``; the
    final TransientFetchError propagates so the caller can leave the tempo
    unknown.
    """

    provider_name = "bpm"
    bearer_auth = False

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        min_similarity: float = 0.8,
        **kwargs: Any,
    ):
        super().__init__(**kwargs)
        self.api_key = api_key
        self.base_url = base_url.rstrip('/')
        self.min_similarity = min_similarity

    def search(self, artist: str, title: str) -> List[Dict[str, Any]]:
        params = {
            "api_key": self.api_key,
            "type": "both",
            "lookup": f"song:{search_text(title)} artist:{search_text(artist)}",
        }
        data = self._request("GET", f"{self.base_url}/search/", params=params)
        results = data.get("search")
        # "no result" comes back as {"search": {"error": "no result"}}
        if not isinstance(results, list):
            return []
        return [r for r in results if isinstance(r, dict)]

    def lookup_tempo(self, artist: str, title: str) -> float | None:
        """Best-matching tempo for (artist, title), or None when nothing matches closely."""
        if not artist or not title:
            return None
        want_title, want_artist = normalize_title_artist(title, artist)
        best_score = 0.0
        best_tempo: float | None = None
        for result in self.search(artist, title):
            tempo = _tempo(result.get("tempo"))
            if tempo is None:
                continue
            artist_name = (result.get("artist") or {}).get("name") or ""
            got_title, got_artist = normalize_title_artist(result.get("title") or "", artist_name)
            score = min(
                fuzz.token_set_ratio(want_title, got_title),
                fuzz.token_set_ratio(want_artist, got_artist),
            ) / 100.0
            if score > best_score:
                best_score, best_tempo = score, tempo
        if best_tempo is None or best_score < self.min_similarity:
            logger.debug(f"bpm: no close match for '{artist} - {title}' (best={best_score:.2f})")
            return None
        return best_tempo


def _tempo(value: Any) -> float | None:
    try:
        tempo = float(value)
    except (TypeError, ValueError):
        return None
    return tempo if tempo > 0 else None


__all__ = ["BpmClient", "DEFAULT_BASE_URL"]
