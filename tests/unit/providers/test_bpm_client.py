import pytest

from plsort.errors import TransientFetchError
from plsort.providers.bpm import BpmClient

from tests.mocks.fake_http import FakeHttp, FakeResponse


def _client(responses, **kwargs):
    kwargs.setdefault("max_attempts", 1)
    return BpmClient("key", base_url="https://bpm.test/", http=FakeHttp(responses),
                     backoff_multiplier=0, backoff_max=0, **kwargs)


def _result(title, artist, tempo):
    return {"title": title, "tempo": tempo, "artist": {"name": artist}}


def test_best_match_wins():
    client = _client([FakeResponse(200, {"search": [
        _result("Something Else", "Other Band", "90"),
        _result("Hey Jude - Remastered 2015", "The Beatles", "147"),
    ]})])
    assert client.lookup_tempo("The Beatles", "Hey Jude") == 147.0
    call = client.http.calls[0]
    assert call["url"] == "https://bpm.test/search/"
    assert call["params"]["api_key"] == "key"
    assert call["params"]["lookup"] == "song:Hey Jude artist:The Beatles"


def test_weak_match_is_rejected():
    client = _client([FakeResponse(200, {"search": [_result("Completely Different", "Nobody", "100")]})])
    assert client.lookup_tempo("The Beatles", "Hey Jude") is None


def test_no_result_payload():
    client = _client([FakeResponse(200, {"search": {"error": "no result"}})])
    assert client.lookup_tempo("A", "B") is None


def test_missing_names_skip_lookup():
    client = _client([])
    assert client.lookup_tempo("", "Title") is None
    assert client.http.calls == []


def test_rate_limit_retried_then_raised():
    client = _client([FakeResponse(429), FakeResponse(429)], max_attempts=2)
    with pytest.raises(TransientFetchError):
        client.lookup_tempo("A", "B")
    assert len(client.http.calls) == 2


def test_search_strips_featuring_credit():
    client = _client([FakeResponse(200, {"search": [_result("Song", "Main", "128")]})])
    assert client.lookup_tempo("Main", "Song (feat. Guest)") == 128.0
    assert client.http.calls[0]["params"]["lookup"] == "song:Song artist:Main"
