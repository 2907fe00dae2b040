from __future__ import annotations
import os
import json
import logging
from typing import Any, Dict
from pathlib import Path
import copy

logger = logging.getLogger(__name__)

ENV_PREFIX = "PLSORT__"

_DEFAULTS: Dict[str, Any] = {
    "log_level": "INFO",
    "state_dir": ".plsort",
    "spotify": {
        "client_id": None,
        "redirect_scheme": "http",
        "redirect_host": "127.0.0.1",
        "redirect_port": 9876,
        "redirect_path": "/callback",
        "scope": "playlist-read-private playlist-read-collaborative playlist-modify-public playlist-modify-private",
        "timeout_seconds": 300,
        "request_timeout": 30,
        "max_attempts": 4,
        "backoff_max": 30,
    },
    "bpm": {
        "api_key": None,
        "base_url": "https://api.getsong.co",
        "max_concurrency": 3,
        "timeout_seconds": 10,
        "max_attempts": 3,
        "min_similarity": 0.8,
    },
    "pipeline": {
        "stage_timeout": 120,
    },
}


def deep_merge(base: Dict[str, Any], extra: Dict[str, Any]) -> Dict[str, Any]:
    """Return ``base`` updated with ``extra``; nested sections merge key by key.

    Neither input is mutated.
    """
    merged = dict(base)
    for key, value in extra.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def _load_dotenv(path: Path) -> Dict[str, str]:
    """Read ``PLSORT__*`` assignments from a dotenv file.

    Accepts an ``export`` prefix, single or double quotes and trailing
    `` # comments``; every other line is ignored.
    """
    values: Dict[str, str] = {}
    if not path.is_file():
        return values
    for raw in path.read_text(encoding='utf-8').splitlines():
        key, sep, val = raw.strip().removeprefix('export ').partition('=')
        key = key.strip()
        if not sep or not key.startswith(ENV_PREFIX):
            continue
        val = val.strip()
        quote = val[:1]
        if quote in {'"', "'"} and quote in val[1:]:
            val = val[1:val.index(quote, 1)]
        else:
            val = val.split(' #', 1)[0].strip()
        values[key] = val
    return values


def load_config(overrides: Dict[str, Any] | None = None, env_file: str | Path = '.env') -> Dict[str, Any]:
    """Load configuration merging defaults <- .env <- environment <- overrides.

    Environment keys use the ``PLSORT__SECTION__KEY`` form, e.g.
    ``PLSORT__SPOTIFY__CLIENT_ID``. During test runs (detected via
    PYTEST_CURRENT_TEST) .env loading is skipped unless PLSORT_ENABLE_DOTENV=1.

    Args:
        overrides: Dict of values to deep-merge last (primarily for tests).
        env_file: Location of the dotenv file.

    Returns:
        dict: Configuration dictionary (for typed access use load_typed_config()).
    """
    dotenv_values: Dict[str, str] = {}
    if os.environ.get('PLSORT_ENABLE_DOTENV') or not os.environ.get('PYTEST_CURRENT_TEST'):
        dotenv_values = _load_dotenv(Path(env_file))
    cfg: Dict[str, Any] = copy.deepcopy(_DEFAULTS)

    # Real environment wins over .env
    combined = {**dotenv_values,
                **{k: v for k, v in os.environ.items() if k.startswith(ENV_PREFIX)}}
    for raw_key, value in combined.items():
        path_parts = raw_key[len(ENV_PREFIX):].split("__")
        cursor: Dict[str, Any] = cfg
        for part in path_parts[:-1]:
            cursor = cursor.setdefault(part.lower(), {})  # type: ignore[assignment]
        cursor[path_parts[-1].lower()] = coerce_scalar(value)
    if overrides:
        cfg = deep_merge(cfg, overrides)

    _configure_logging(cfg.get('log_level', 'INFO'))

    return cfg


def load_typed_config(overrides: Dict[str, Any] | None = None):
    """Load configuration as typed AppConfig object."""
    from .config_types import AppConfig
    return AppConfig.from_dict(load_config(overrides))


def _configure_logging(level_str: str) -> None:
    """Configure Python logging based on configured level."""
    level = getattr(logging, str(level_str).upper(), None)
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(
        level=level,
        format='%(message)s',
        force=True,
    )


def coerce_scalar(value: str) -> Any:
    txt = value.strip()
    if (txt.startswith('[') and txt.endswith(']')) or (txt.startswith('{') and txt.endswith('}')):
        try:
            return json.loads(txt)
        except json.JSONDecodeError:
            pass  # fall through to scalar heuristics
    lower = txt.lower()
    if lower in {"true", "yes"}:
        return True
    if lower in {"false", "no"}:
        return False
    if txt.isdigit() or (txt.startswith("-") and txt[1:].isdigit()):
        return int(txt)
    try:
        return float(txt)
    except ValueError:
        return txt

__all__ = ["load_config", "deep_merge", "load_typed_config", "coerce_scalar"]
