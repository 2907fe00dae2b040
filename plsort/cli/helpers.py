from __future__ import annotations
import contextlib
import time
from typing import Iterator

import click

from ..config import load_typed_config
from ..config_types import AppConfig
from ..errors import AuthError, AuthExpired, PlsortError, WriteConflict
from ..services.sorter_service import PlaylistSorter, build_auth as _build_auth
from ..version import __version__


@click.group()
@click.version_option(version=__version__, prog_name="playlist-sorter")
@click.option('--log-level', type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False),
              default=None, help='Override configured log level')
@click.pass_context
def cli(ctx: click.Context, log_level: str | None):
    """Sort Spotify playlists by audio features, release date and more.

    \b
    TYPICAL WORKFLOW:
      plsort login                          # Authenticate with Spotify (PKCE)
      plsort playlists                      # Find the playlist ID
      plsort show PLAYLIST_ID               # Inspect tracks and features
      plsort sort PLAYLIST_ID --by bpm      # Preview a new order
      plsort sort PLAYLIST_ID --by bpm --apply

    \b
    Sort keys: index, title, artist, release, length, popularity, bpm,
    energy, dance, loud, valence, acoustic, artist-separation, random
    """
    overrides = {'log_level': log_level.upper()} if log_level else None
    if isinstance(ctx.obj, dict):
        if overrides:
            ctx.obj = {**ctx.obj, **overrides}
    else:
        ctx.obj = load_typed_config(overrides).to_dict()


def get_config(cfg: dict) -> AppConfig:
    return AppConfig.from_dict(cfg)


def build_auth(cfg: dict):
    """Build the auth state machine from the CLI config dict.

    Raises:
        click.UsageError: spotify.client_id is not configured
    """
    app_cfg = get_config(cfg)
    if not app_cfg.spotify.client_id:
        raise click.UsageError('spotify.client_id not configured (set PLSORT__SPOTIFY__CLIENT_ID)')
    return _build_auth(app_cfg)


def build_sorter(cfg: dict) -> PlaylistSorter:
    """Sorter with the cached session restored (refreshed when expired)."""
    app_cfg = get_config(cfg)
    if not app_cfg.spotify.client_id:
        raise click.UsageError('spotify.client_id not configured (set PLSORT__SPOTIFY__CLIENT_ID)')
    with cli_errors():
        return PlaylistSorter.from_config(app_cfg)


@contextlib.contextmanager
def cli_errors() -> Iterator[None]:
    """Translate domain errors into click exceptions with a non-zero exit."""
    try:
        yield
    except (AuthExpired, AuthError) as e:
        raise click.ClickException(f"{e}\nRun `plsort login` to authenticate again.") from e
    except WriteConflict as e:
        raise click.ClickException(
            f"{e}\n{len(e.applied_moves)} move(s) were applied before the failure. "
            "Re-run the same command to resume from the current playlist order."
        ) from e
    except PlsortError as e:
        raise click.ClickException(str(e)) from e


def format_duration(duration_ms: int | None) -> str:
    if duration_ms is None:
        return "?"
    seconds = duration_ms // 1000
    return f"{seconds // 60}:{seconds % 60:02d}"


def format_expiry(expires_at: float | None) -> str:
    if not expires_at:
        return "unknown"
    remaining = int(expires_at - time.time())
    return f"{time.strftime('%Y-%m-%d %H:%M:%S', time.localtime(expires_at))} (in {remaining}s)"


__all__ = ["cli", "get_config", "build_auth", "build_sorter", "cli_errors", "format_duration", "format_expiry"]
