"""Fallback BPM provider."""

from .client import BpmClient

__all__ = ["BpmClient"]
