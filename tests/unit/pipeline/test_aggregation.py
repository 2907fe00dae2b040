"""Playlist aggregation with partially failing sources."""
import threading
import time

import pytest

from plsort.errors import AuthExpired, LoadCancelled, LoadFailed, TransientFetchError
from plsort.models import FEATURE_KEYS, UNKNOWN, AlbumInfo, FeatureSet, SortKey
from plsort.pipeline import CancelToken, load_playlist

from tests.mocks.fixtures import make_track
from tests.mocks.stub_spotify import StubSpotifyClient, features_unavailable


def _tracks(n, artists=None):
    return [
        make_track(f"t{i}", artists=(artists[i] if artists else f"Artist {i}",), position=i, album_id=f"al{i % 3}")
        for i in range(n)
    ]


def _client(n=5, page_size=2, **kwargs):
    tracks = _tracks(n)
    albums = [AlbumInfo(f"al{i}", f"200{i}-01-01") for i in range(3)]
    features = [FeatureSet(t.id, tempo_bpm=100 + i, energy=50.0) for i, t in enumerate(tracks)]
    return StubSpotifyClient(tracks, albums=albums, features=features, page_size=page_size, **kwargs)


class StubBpm:
    def __init__(self, tempos=None, fail=()):
        self.tempos = tempos or {}
        self.fail = set(fail)
        self.calls = []

    def lookup_tempo(self, artist, title):
        self.calls.append((artist, title))
        if title in self.fail:
            raise TransientFetchError("rate limit", provider="bpm", status=429)
        return self.tempos.get(title)


def test_full_load_joins_all_sources():
    client = _client()
    table = load_playlist(client, "pl1")
    assert table.track_ids() == [f"t{i}" for i in range(5)]
    assert [r.track.original_position for r in table.rows] == list(range(5))
    row = table.rows[4]
    assert row.value(SortKey.RELEASE) == "2001-01-01"
    assert row.value(SortKey.BPM) == 104
    assert table.snapshot_id == "snap1"
    assert table.diagnostics == []


def test_id_set_matches_upstream_across_pages():
    client = _client(n=7, page_size=3)
    table = load_playlist(client, "pl1")
    assert set(table.track_ids()) == {t.id for t in client.tracks}
    assert len(table) == 7


def test_features_unavailable_leaves_feature_columns_unknown():
    client = _client()
    client.feature_error = features_unavailable()
    table = load_playlist(client, "pl1")
    assert len(table) == 5
    for row in table.rows:
        for key in FEATURE_KEYS:
            assert row.value(key) is UNKNOWN
        assert row.value(SortKey.RELEASE) is not UNKNOWN
    assert any("features" in d for d in table.diagnostics)


def test_album_failure_leaves_release_unknown():
    client = _client()
    client.album_error = TransientFetchError("server error 503", provider="spotify", status=503)
    table = load_playlist(client, "pl1")
    assert all(r.value(SortKey.RELEASE) is UNKNOWN for r in table.rows)
    assert table.rows[0].value(SortKey.BPM) == 100
    assert any(d.startswith("albums") for d in table.diagnostics)


def test_first_page_failure_is_fatal():
    client = _client()
    client.page_errors[0] = TransientFetchError("timeout", provider="spotify")
    with pytest.raises(LoadFailed):
        load_playlist(client, "pl1")


def test_later_page_failure_keeps_partial_data():
    client = _client(n=5, page_size=2)
    client.page_errors[1] = TransientFetchError("timeout", provider="spotify")
    table = load_playlist(client, "pl1")
    assert table.track_ids() == ["t0", "t1"]
    assert any("pagination stopped" in d for d in table.diagnostics)


def test_auth_failure_in_secondary_source_is_surfaced():
    client = _client()
    client.album_error = AuthExpired("spotify rejected the access token")
    with pytest.raises(AuthExpired):
        load_playlist(client, "pl1")


def test_duplicates_are_dropped_with_diagnostic():
    tracks = _tracks(3)
    client = StubSpotifyClient(tracks + [tracks[0]])
    table = load_playlist(client, "pl1")
    assert table.track_ids() == ["t0", "t1", "t2"]
    assert any("duplicate" in d for d in table.diagnostics)


def test_bpm_fallback_fills_missing_tempo_only():
    tracks = _tracks(3)
    features = [FeatureSet("t0", tempo_bpm=120.0, energy=10.0), FeatureSet("t1", energy=20.0)]
    client = StubSpotifyClient(tracks, features=features)
    bpm = StubBpm(tempos={"Song t0": 60.0, "Song t1": 90.0, "Song t2": 130.0})
    table = load_playlist(client, "pl1", bpm_client=bpm)
    values = {r.track_id: r.value(SortKey.BPM) for r in table.rows}
    assert values == {"t0": 120.0, "t1": 90.0, "t2": 130.0}
    assert table.rows[1].value(SortKey.ENERGY) == 20.0
    assert ("Artist 0", "Song t0") not in bpm.calls


def test_bpm_fallback_failures_are_absorbed():
    client = _client()
    client.feature_error = features_unavailable()
    bpm = StubBpm(tempos={"Song t1": 88.0}, fail={"Song t0"})
    table = load_playlist(client, "pl1", bpm_client=bpm)
    assert table.rows[0].value(SortKey.BPM) is UNKNOWN
    assert table.rows[1].value(SortKey.BPM) == 88.0
    assert any(d.startswith("bpm") for d in table.diagnostics)


def test_cancelled_load_raises():
    token = CancelToken()
    token.cancel()
    with pytest.raises(LoadCancelled):
        load_playlist(_client(), "pl1", cancel=token)


def test_separation_metric_is_computed():
    tracks = _tracks(4, artists=["A", "A", "B", "A"])
    table = load_playlist(StubSpotifyClient(tracks), "pl1")
    metric = table.separation_metric
    assert metric.adjacent_pairs == 1
    assert metric.min_distance == 1


class SlowBpm(StubBpm):
    def __init__(self, delay, tempo):
        super().__init__()
        self.delay = delay
        self.tempo = tempo
        self.lock = threading.Lock()

    def lookup_tempo(self, artist, title):
        with self.lock:
            self.calls.append((artist, title))
        time.sleep(self.delay)
        return self.tempo


def test_slow_bpm_fallback_keeps_features_and_finished_tempos():
    tracks = _tracks(12)
    features = [FeatureSet(t.id, energy=50.0) for t in tracks]
    client = StubSpotifyClient(tracks, features=features)
    bpm = SlowBpm(delay=0.25, tempo=120.0)
    table = load_playlist(client, "pl1", bpm_client=bpm, stage_timeout=0.6, bpm_concurrency=3)
    assert [r.value(SortKey.ENERGY) for r in table.rows] == [50.0] * 12
    tempos = [r.value(SortKey.BPM) for r in table.rows]
    assert tempos.count(120.0) >= 3
    assert UNKNOWN in tempos
    assert not any(d.startswith("features") for d in table.diagnostics)
    assert any("did not finish" in d for d in table.diagnostics)


def test_timed_out_bpm_lookups_stop_after_load_returns():
    tracks = _tracks(12)
    client = StubSpotifyClient(tracks, features=[FeatureSet(t.id, energy=50.0) for t in tracks])
    bpm = SlowBpm(delay=0.25, tempo=120.0)
    load_playlist(client, "pl1", bpm_client=bpm, stage_timeout=0.6, bpm_concurrency=3)
    time.sleep(0.6)
    assert len(bpm.calls) < 12
