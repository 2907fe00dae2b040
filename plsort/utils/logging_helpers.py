"""Logging helper utilities for consistent summary lines."""

import logging
import click

logger = logging.getLogger(__name__)


def log_progress(processed: int, total: int | None, item_name: str = "items") -> None:
    """Log progress info with consistent formatting."""
    if total:
        pct = processed / total * 100
        logger.info(f"{click.style(f'{processed}/{total}', fg='cyan')} {item_name} ({pct:.0f}%)")
    else:
        logger.info(f"{click.style(f'{processed}', fg='cyan')} {item_name} processed")


def format_load_summary(
    tracks: int,
    albums: int,
    features: int,
    tempos: int = 0,
    issues: int = 0,
    duration_seconds: float = 0.0,
) -> str:
    """Format a playlist load summary line with colored counts.

    Args:
        tracks: Rows in the table
        albums: Albums with release data
        features: Tracks with audio features
        tempos: Tempos filled by the BPM fallback
        issues: Absorbed source failures
        duration_seconds: Total duration in seconds
    """
    parts = [
        click.style('✓', fg='green'),
        "Loaded:",
        click.style(f'{tracks} tracks', fg='green'),
        click.style(f'{albums} albums', fg='blue'),
        click.style(f'{features} with features', fg='blue'),
    ]
    if tempos > 0:
        parts.append(click.style(f'{tempos} fallback tempos', fg='blue'))
    if issues > 0:
        parts.append(click.style(f'{issues} issues', fg='yellow'))
    if duration_seconds > 0:
        parts.append(f"in {duration_seconds:.2f}s")
    return " ".join(parts)


def format_writeback_summary(moves: int, tracks: int, duration_seconds: float = 0.0) -> str:
    parts = [
        click.style('✓', fg='green'),
        "Saved order:",
        click.style(f'{moves} moves', fg='green'),
        f"for {tracks} tracks",
    ]
    if duration_seconds > 0:
        parts.append(f"in {duration_seconds:.2f}s")
    return " ".join(parts)


__all__ = ["log_progress", "format_load_summary", "format_writeback_summary"]
