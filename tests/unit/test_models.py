import pytest

from plsort.models import UNKNOWN, FeatureSet, PlaylistTable, Session, SortKey

from tests.mocks.fixtures import artist_table, make_row


class TestSession:
    def test_unknown_expiry_never_expires(self):
        assert not Session("t").is_expired(now=1e12)

    def test_expiry_margin(self):
        session = Session("t", expires_at=1000.0)
        assert not session.is_expired(now=900.0)
        assert session.is_expired(now=950.0)

    def test_from_token_response(self):
        session = Session.from_token_response({"access_token": "a", "expires_in": 3600, "refresh_token": "r"}, now=100.0)
        assert session == Session("a", expires_at=3700.0, refresh_token="r")

    def test_dict_round_trip(self):
        session = Session("a", expires_at=12.0, refresh_token=None)
        assert Session.from_dict(session.to_dict()) == session


def test_unknown_is_a_falsy_singleton():
    assert not UNKNOWN
    assert type(UNKNOWN)() is UNKNOWN
    assert repr(UNKNOWN) == "UNKNOWN"


def test_row_values():
    row = make_row("t1", 3, artists=("A", "B"), tempo=128.0, release="2020")
    assert row.value(SortKey.INDEX) == 3
    assert row.value(SortKey.ARTIST) == "A, B"
    assert row.value(SortKey.BPM) == 128.0
    assert row.value(SortKey.ENERGY) is UNKNOWN
    assert row.value(SortKey.RELEASE) == "2020"
    assert make_row("t2").value(SortKey.RELEASE) is UNKNOWN
    with pytest.raises(KeyError):
        row.value(SortKey.RANDOM)


def test_feature_merge_fills_only_missing():
    fs = FeatureSet("t1", tempo_bpm=None, energy=10.0)
    merged = fs.merged(tempo_bpm=99.0, energy=50.0)
    assert merged.tempo_bpm == 99.0
    assert merged.energy == 10.0
    assert fs.tempo_bpm is None


def test_table_rejects_duplicate_ids():
    row = make_row("t1")
    with pytest.raises(ValueError):
        PlaylistTable("pl", [row, row])


def test_with_rows_requires_permutation():
    table = artist_table(["A", "B", "C"])
    reordered = table.with_rows(list(reversed(table.rows)))
    assert reordered.track_ids() == ["t2", "t1", "t0"]
    assert table.track_ids() == ["t0", "t1", "t2"]
    with pytest.raises(ValueError):
        table.with_rows(table.rows[:2])


def test_separation_metric_is_cached_per_order():
    table = artist_table(["A", "A", "B"])
    first = table.separation_metric
    assert table.separation_metric is first
    table.rows.reverse()
    assert table.separation_metric is not first
