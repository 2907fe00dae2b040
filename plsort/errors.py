"""Exception taxonomy shared by auth, providers, pipeline and write-back.

Data-availability failures (:class:`ProviderUnavailable`, exhausted
:class:`TransientFetchError` on secondary sources) are absorbed by the
aggregation pipeline. Authentication and write failures always reach the
caller.
"""
from __future__ import annotations
from typing import Sequence, TYPE_CHECKING

if TYPE_CHECKING:
    from .services.writeback_service import RangeMove


class PlsortError(Exception):
    """Base class for all playlist-sorter errors."""


class AuthError(PlsortError):
    """Authorization denied, code exchange failed or verifier missing.

    Never retried automatically; the user has to log in again.
    """

    def __init__(self, message: str, error: str | None = None, description: str | None = None):
        super().__init__(message)
        self.error = error
        self.description = description


class AuthExpired(PlsortError):
    """Upstream rejected a previously valid token (HTTP 401)."""


class ProviderError(PlsortError):
    """Non-retryable failure talking to a data provider."""

    def __init__(self, message: str, provider: str = "", status: int | None = None):
        super().__init__(message)
        self.provider = provider
        self.status = status


class ProviderUnavailable(ProviderError):
    """Categorical rejection, e.g. access revoked for a deprecated endpoint."""


class TransientFetchError(ProviderError):
    """Network failure, timeout or rate limit; safe to retry."""

    def __init__(self, message: str, provider: str = "", status: int | None = None,
                 retry_after: float | None = None):
        super().__init__(message, provider=provider, status=status)
        self.retry_after = retry_after


class LoadFailed(PlsortError):
    """The primary track listing could not be fetched at all."""


class LoadCancelled(PlsortError):
    """A playlist load was abandoned before it finished."""


class WriteConflict(PlsortError):
    """A reorder operation was rejected part-way through a write-back.

    Attributes:
        applied_moves: Moves the upstream acknowledged before the failure
        last_known_order: Upstream track order after the last applied move
        snapshot_id: Revision token after the last applied move
        failed_move: The move that was rejected (None for verification failures)
    """

    def __init__(
        self,
        message: str,
        applied_moves: Sequence["RangeMove"] = (),
        last_known_order: Sequence[str] = (),
        snapshot_id: str | None = None,
        failed_move: "RangeMove | None" = None,
    ):
        super().__init__(message)
        self.applied_moves = list(applied_moves)
        self.last_known_order = list(last_known_order)
        self.snapshot_id = snapshot_id
        self.failed_move = failed_move


class OrderMismatch(PlsortError, ValueError):
    """A new order names tracks the upstream playlist does not hold."""


__all__ = [
    "PlsortError",
    "AuthError",
    "AuthExpired",
    "ProviderError",
    "ProviderUnavailable",
    "TransientFetchError",
    "LoadFailed",
    "LoadCancelled",
    "WriteConflict",
    "OrderMismatch",
]
