from __future__ import annotations
import click
import logging

from ..models import UNKNOWN, PlaylistRow, PlaylistTable, SortDirection, SortKey, SortSpec
from .helpers import cli, build_sorter, cli_errors, format_duration

logger = logging.getLogger(__name__)

SORT_KEY_CHOICE = click.Choice([k.value for k in SortKey], case_sensitive=False)


def _cell(value, fmt: str = "{:.0f}") -> str:
    if value is UNKNOWN:
        return "-"
    if isinstance(value, (int, float)):
        return fmt.format(value)
    return str(value)


def _truncate(text: str, width: int) -> str:
    return text if len(text) <= width else text[: width - 1] + "…"


def format_row(position: int, row: PlaylistRow) -> str:
    t = row.track
    return (
        f"{position:>4}  {_truncate(t.title, 34):<34}  {_truncate(t.artist_display, 24):<24}  "
        f"{_cell(row.value(SortKey.RELEASE)):<10}  {format_duration(t.duration_ms):>6}  "
        f"{_cell(row.value(SortKey.BPM)):>4}  {_cell(row.value(SortKey.ENERGY)):>3}  "
        f"{_cell(row.value(SortKey.DANCE)):>3}  {_cell(row.value(SortKey.VALENCE)):>3}  "
        f"{_cell(row.value(SortKey.POPULARITY)):>3}"
    )


def echo_table(table: PlaylistTable) -> None:
    header = (
        f"{'#':>4}  {'Title':<34}  {'Artist':<24}  {'Release':<10}  {'Length':>6}  "
        f"{'BPM':>4}  {'Nrg':>3}  {'Dnc':>3}  {'Val':>3}  {'Pop':>3}"
    )
    click.echo(click.style(header, bold=True))
    for row in table.rows:
        # Position shown is the upstream position so a preview reads as a permutation
        click.echo(format_row(row.track.original_position + 1, row))
    metric = table.separation_metric
    spacing = "no repeated artists" if metric.min_distance is None else f"min distance {metric.min_distance}"
    click.echo(f"\nArtist spacing: {spacing}, {metric.adjacent_pairs} adjacent pair(s)")
    for line in table.diagnostics:
        click.echo(click.style(f"! {line}", fg="yellow"))


def _spec(key: str, desc: bool, seed: int | None) -> SortSpec:
    return SortSpec(
        key=SortKey(key.lower()),
        direction=SortDirection.DESCENDING if desc else SortDirection.ASCENDING,
        seed=seed,
    )


@cli.command(name='playlists')
@click.pass_context
def playlists(ctx: click.Context):
    """List the current user's playlists with their IDs."""
    sorter = build_sorter(ctx.obj)
    count = 0
    with cli_errors():
        for pl in sorter.client().current_user_playlists():
            total = (pl.get('tracks') or {}).get('total', '?')
            owner = (pl.get('owner') or {}).get('display_name') or (pl.get('owner') or {}).get('id') or ''
            click.echo(f"{pl.get('id')}  {pl.get('name') or '(untitled)'}  [{total} tracks] {owner}".rstrip())
            count += 1
    logger.debug(f"Listed {count} playlists")


@cli.command(name='show')
@click.argument('playlist_id')
@click.option('--sort', 'sort_key', type=SORT_KEY_CHOICE, default=None, help='Display sorted by this key (nothing is saved)')
@click.option('--desc', is_flag=True, help='Descending order')
@click.option('--seed', type=int, default=None, help='Seed for --sort random')
@click.pass_context
def show(ctx: click.Context, playlist_id: str, sort_key: str | None, desc: bool, seed: int | None):
    """Show a playlist's tracks with release dates and audio features."""
    sorter = build_sorter(ctx.obj)
    with cli_errors():
        table = sorter.load(playlist_id)
    if sort_key:
        table = sorter.preview(_spec(sort_key, desc, seed))
    echo_table(table)


@cli.command(name='sort')
@click.argument('playlist_id')
@click.option('--by', 'sort_key', type=SORT_KEY_CHOICE, required=True, help='Sort key')
@click.option('--desc', is_flag=True, help='Descending order (ignored for artist-separation and random)')
@click.option('--seed', type=int, default=None, help='Seed for a repeatable random order')
@click.option('--apply', 'apply_changes', is_flag=True, help='Write the new order back to Spotify')
@click.pass_context
def sort(ctx: click.Context, playlist_id: str, sort_key: str, desc: bool, seed: int | None, apply_changes: bool):
    """Reorder a playlist (preview by default; --apply saves it).

    \b
    Examples:
      plsort sort PLAYLIST_ID --by release
      plsort sort PLAYLIST_ID --by bpm --desc --apply
      plsort sort PLAYLIST_ID --by random --seed 42 --apply
    """
    sorter = build_sorter(ctx.obj)
    spec = _spec(sort_key, desc, seed)
    with cli_errors():
        sorter.load(playlist_id)
        preview = sorter.preview(spec)
        echo_table(preview)
        if not apply_changes:
            click.echo("\nPreview only. Re-run with --apply to save this order.")
            return
        sorter.commit(preview)
        result = sorter.save()
    if result.changed:
        click.echo(f"Saved new order ({len(result.moves)} moves).")
    else:
        click.echo("Playlist already in this order; nothing to save.")


__all__ = ["playlists", "show", "sort", "echo_table", "format_row"]
