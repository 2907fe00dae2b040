"""Provider clients public API.

Each client knows its own pagination or batching contract and raises the
errors declared in :mod:`plsort.errors`.
"""

from .base import HttpClient, Page
from .spotify import SpotifyAPIClient
from .bpm import BpmClient

__all__ = ["HttpClient", "Page", "SpotifyAPIClient", "BpmClient"]
