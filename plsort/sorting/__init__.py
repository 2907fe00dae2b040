"""Sort & reorder engine public API."""

from .engine import sort_table, sort_rows, shuffle
from .separation import SeparationMetric, separation_metric, separate_artists

__all__ = [
    "sort_table",
    "sort_rows",
    "shuffle",
    "SeparationMetric",
    "separation_metric",
    "separate_artists",
]
