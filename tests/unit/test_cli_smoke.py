import time

from click.testing import CliRunner

from plsort.cli import cli
from plsort.cli import playlist_cmds
from plsort.auth import AuthStateMachine, TokenStore
from plsort.config_types import AppConfig
from plsort.models import Session
from plsort.services import PlaylistSorter
from plsort.version import __version__

from tests.mocks.fixtures import make_track
from tests.mocks.stub_spotify import StubSpotifyClient


def test_cli_version():
    runner = CliRunner()
    result = runner.invoke(cli, ['--version'])
    assert result.exit_code == 0
    assert 'playlist-sorter' in result.output.lower()
    assert __version__ in result.output


def test_redirect_uri(test_config):
    result = CliRunner().invoke(cli, ['redirect-uri'], obj=test_config)
    assert result.exit_code == 0
    assert result.output.splitlines()[0] == 'http://127.0.0.1:9876/callback'


def test_token_info_without_cache(test_config):
    result = CliRunner().invoke(cli, ['token-info'], obj=test_config)
    assert result.exit_code == 0
    assert 'Token cache not found' in result.output


def test_token_info_with_cache(test_config):
    TokenStore(test_config['state_dir']).save_session(Session('tok', expires_at=time.time() + 600, refresh_token='r'))
    result = CliRunner().invoke(cli, ['token-info'], obj=test_config)
    assert result.exit_code == 0
    assert 'valid' in result.output
    assert 'Refresh token: yes' in result.output


def test_logout_removes_session(test_config):
    store = TokenStore(test_config['state_dir'])
    store.save_session(Session('tok'))
    result = CliRunner().invoke(cli, ['logout'], obj=test_config)
    assert result.exit_code == 0
    assert store.load_session() is None


def test_sort_requires_login(test_config):
    result = CliRunner().invoke(cli, ['sort', 'pl1', '--by', 'title'], obj=test_config)
    assert result.exit_code == 1
    assert 'plsort login' in result.output


def test_missing_client_id_is_usage_error(test_config):
    test_config['spotify']['client_id'] = ''
    result = CliRunner().invoke(cli, ['show', 'pl1'], obj=test_config)
    assert result.exit_code == 2
    assert 'client_id' in result.output


def _stub_sorter(monkeypatch, test_config):
    cfg = AppConfig.from_dict(test_config)
    store = TokenStore(cfg.state_dir)
    store.save_session(Session('tok', expires_at=time.time() + 3600))
    auth = AuthStateMachine('cid', cfg.spotify.redirect_uri, cfg.spotify.scope, store)
    auth.complete_from_redirect()
    stub = StubSpotifyClient([
        make_track('t0', title='Zebra', position=0),
        make_track('t1', title='apple', position=1),
        make_track('t2', title='Mango', position=2),
    ])
    sorter = PlaylistSorter(auth, cfg, client_factory=lambda session, hook: stub)
    monkeypatch.setattr(playlist_cmds, 'build_sorter', lambda obj: sorter)
    return stub


def test_sort_preview_does_not_write(monkeypatch, test_config):
    stub = _stub_sorter(monkeypatch, test_config)
    result = CliRunner().invoke(cli, ['sort', 'pl1', '--by', 'title'], obj=test_config)
    assert result.exit_code == 0, result.output
    assert 'Preview only' in result.output
    assert stub.reorder_calls == []
    lines = [line for line in result.output.splitlines() if line.strip()[:1].isdigit()]
    assert [line.split()[1] for line in lines] == ['apple', 'Mango', 'Zebra']


def test_sort_apply_writes_order(monkeypatch, test_config):
    stub = _stub_sorter(monkeypatch, test_config)
    result = CliRunner().invoke(cli, ['sort', 'pl1', '--by', 'title', '--desc', '--apply'], obj=test_config)
    assert result.exit_code == 0, result.output
    assert stub.order == ['t0', 't2', 't1']
    assert 'Saved new order' in result.output


def test_sort_apply_conflict_exits_nonzero(monkeypatch, test_config):
    stub = _stub_sorter(monkeypatch, test_config)
    stub.reject_move_numbers = {1}
    result = CliRunner().invoke(cli, ['sort', 'pl1', '--by', 'title', '--apply'], obj=test_config)
    assert result.exit_code == 1
    assert '0 move(s) were applied' in result.output


def test_sort_apply_keeps_local_file_in_place(monkeypatch, test_config):
    stub = _stub_sorter(monkeypatch, test_config)
    stub.order = ['t0', 'spotify:local:x', 't1', 't2']
    result = CliRunner().invoke(cli, ['sort', 'pl1', '--by', 'title', '--apply'], obj=test_config)
    assert result.exit_code == 0, result.output
    assert stub.order == ['t1', 'spotify:local:x', 't2', 't0']
    assert 'Saved new order' in result.output


def test_sort_apply_upstream_changed_is_clean_error(monkeypatch, test_config):
    stub = _stub_sorter(monkeypatch, test_config)
    stub.order = ['t0', 't1', 't9']
    result = CliRunner().invoke(cli, ['sort', 'pl1', '--by', 'title', '--apply'], obj=test_config)
    assert result.exit_code == 1
    assert isinstance(result.exception, SystemExit)
    assert 'no longer in the playlist' in result.output
    assert stub.reorder_calls == []


def test_show_lists_tracks(monkeypatch, test_config):
    _stub_sorter(monkeypatch, test_config)
    result = CliRunner().invoke(cli, ['show', 'pl1'], obj=test_config)
    assert result.exit_code == 0, result.output
    assert 'Zebra' in result.output
    assert 'Artist spacing' in result.output


def test_playlists_lists_ids(monkeypatch, test_config):
    stub = _stub_sorter(monkeypatch, test_config)
    stub.playlists = [{'id': 'p1', 'name': 'Road Trip', 'tracks': {'total': 12}, 'owner': {'id': 'me'}}]
    result = CliRunner().invoke(cli, ['playlists'], obj=test_config)
    assert result.exit_code == 0, result.output
    assert 'p1  Road Trip  [12 tracks] me' in result.output
