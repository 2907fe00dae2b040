"""Pytest fixtures for test configuration.

Global test safety measures:
 - Monkeypatch webbrowser.open to a no-op so no login flow opens a window
 - Keep every token file under tmp_path
"""
import pytest
import os
import webbrowser
from pathlib import Path
from typing import Dict, Any


def pytest_sessionstart(session):  # type: ignore[no-untyped-def]
    os.environ.setdefault('PLSORT__LOG_LEVEL', 'DEBUG')
    webbrowser.open = lambda *a, **k: True  # type: ignore[assignment]


@pytest.fixture
def test_config(tmp_path: Path) -> Dict[str, Any]:
    """Minimal configuration dict isolated to tmp_path.

    Tests pass it to the CLI (``obj=``) or to AppConfig.from_dict directly
    rather than writing .env files.
    """
    return {
        'log_level': 'DEBUG',
        'state_dir': str(tmp_path / 'state'),
        'spotify': {
            'client_id': 'test-client',
            'redirect_scheme': 'http',
            'redirect_host': '127.0.0.1',
            'redirect_port': 9876,
            'redirect_path': '/callback',
            'scope': 'playlist-read-private playlist-modify-private',
            'timeout_seconds': 1,
            'request_timeout': 5,
            'max_attempts': 2,
            'backoff_max': 0,
        },
        'bpm': {
            'api_key': None,
            'base_url': 'https://bpm.test',
            'max_concurrency': 2,
            'timeout_seconds': 5,
            'max_attempts': 1,
            'min_similarity': 0.8,
        },
        'pipeline': {
            'stage_timeout': 10,
        },
    }


@pytest.fixture
def token_store(tmp_path: Path):
    from plsort.auth.store import TokenStore
    return TokenStore(tmp_path / 'state')
