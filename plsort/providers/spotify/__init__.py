"""Spotify provider package.

- client.py: Web API client for playlist tracks, albums, audio features and reorders

Authentication lives in :mod:`plsort.auth`; the client only receives the
resulting Session.
"""

from .client import SpotifyAPIClient, parse_track, parse_features

__all__ = ["SpotifyAPIClient", "parse_track", "parse_features"]
