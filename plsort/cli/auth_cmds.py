"""Login, logout and OAuth helper commands."""

from __future__ import annotations
import logging

import click

from ..auth.callback_server import wait_for_redirect
from ..auth.state_machine import AuthState
from ..auth.store import TokenStore
from .helpers import cli, build_auth, cli_errors, format_expiry, get_config

logger = logging.getLogger(__name__)


@cli.command()
@click.option('--force', is_flag=True, help='Discard any cached session and log in again')
@click.option('--no-browser', is_flag=True, help='Print the authorization URL instead of opening a browser')
@click.pass_context
def login(ctx: click.Context, force: bool, no_browser: bool):
    """Authenticate with Spotify (authorization code + PKCE)."""
    cfg = get_config(ctx.obj)
    auth = build_auth(ctx.obj)
    with cli_errors():
        if force:
            auth.logout()
        else:
            outcome = auth.complete_from_redirect()
            if auth.state is AuthState.LOGGED_IN:
                click.echo(f"Already logged in ({outcome.action}); expires at {format_expiry(auth.session.expires_at)}")
                return

        url = auth.begin_login(open_browser=not no_browser)
        if no_browser:
            click.echo(f"Open this URL to authorize:\n{url}")
        sp = cfg.spotify
        try:
            params = wait_for_redirect(sp.redirect_host, sp.redirect_port, sp.redirect_path, sp.timeout_seconds)
        except TimeoutError as e:
            auth.logout()
            raise click.ClickException(str(e)) from e
        auth.complete_from_redirect(query=params)
    click.echo(f"Token acquired; expires at {format_expiry(auth.session.expires_at)}")


@cli.command()
@click.pass_context
def logout(ctx: click.Context):
    """Forget the cached session."""
    auth = build_auth(ctx.obj)
    auth.logout()
    click.echo("Logged out.")


@cli.command(name="redirect-uri")
@click.pass_context
def redirect_uri(ctx: click.Context):
    """Show OAuth redirect URI for Spotify app configuration."""
    sp = get_config(ctx.obj).spotify
    uri = sp.redirect_uri
    click.echo(uri)
    click.echo("\nValidation checklist:")
    for line in [
        f"1. Spotify Dashboard has EXACT entry: {uri}",
        f"2. Scheme matches (expected {sp.redirect_scheme})",
        f"3. Port matches (expected {sp.redirect_port})",
        f"4. Path matches (expected {sp.redirect_path})",
        "5. No trailing slash difference (unless you registered with one)",
        "6. Client ID corresponds to the app whose dashboard you edited",
    ]:
        click.echo(f" - {line}")


@cli.command(name="token-info")
@click.pass_context
def token_info(ctx: click.Context):
    """Show cached session status and expiration info."""
    store = TokenStore(get_config(ctx.obj).state_dir)
    path = store.session_path.resolve()
    session = store.load_session()
    if session is None:
        click.echo(f"Token cache not found: {path}")
        return
    status = click.style("expired", fg="yellow") if session.is_expired() else click.style("valid", fg="green")
    click.echo(f"Token cache: {path}")
    click.echo(f"Status: {status}")
    click.echo(f"Expires at: {format_expiry(session.expires_at)}")
    click.echo(f"Refresh token: {'yes' if session.refresh_token else 'no'}")


__all__ = ["login", "logout", "redirect_uri", "token_info"]
