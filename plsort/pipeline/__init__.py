"""Aggregation pipeline public API."""

from .combinators import CancelToken, Outcome, gather_tolerant, map_bounded
from .aggregation import load_playlist

__all__ = ["CancelToken", "Outcome", "gather_tolerant", "map_bounded", "load_playlist"]
