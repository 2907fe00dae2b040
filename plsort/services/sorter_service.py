"""Sorter service: the single orchestrating context.

Owns the auth state machine (and through it the Session) and the currently
loaded PlaylistTable. Provider clients are created per operation from the
live session, so no client ever holds a token the state machine has already
invalidated.
"""

from __future__ import annotations
import logging
import threading
from typing import Any, Callable

from ..auth import AuthStateMachine, TokenStore
from ..config_types import AppConfig
from ..errors import AuthError, LoadCancelled
from ..models import PlaylistTable, Session, SortSpec
from ..pipeline import CancelToken, load_playlist
from ..providers.bpm import BpmClient
from ..providers.spotify import SpotifyAPIClient
from ..sorting import sort_table
from .writeback_service import WriteBackResult, save_order

logger = logging.getLogger(__name__)

ClientFactory = Callable[[Session, Callable[[], None]], Any]


def build_auth(cfg: AppConfig) -> AuthStateMachine:
    """Build the auth state machine from config (session not yet restored)."""
    sp = cfg.spotify
    if not sp.client_id:
        raise AuthError("spotify.client_id not configured (set PLSORT__SPOTIFY__CLIENT_ID)")
    auth = AuthStateMachine(
        client_id=sp.client_id,
        redirect_uri=sp.redirect_uri,
        scope=sp.scope,
        store=TokenStore(cfg.state_dir),
        request_timeout=sp.request_timeout,
    )
    return auth


def build_bpm_client(cfg: AppConfig) -> BpmClient | None:
    bpm = cfg.bpm
    if not bpm.enabled:
        logger.debug("BPM fallback disabled (no bpm.api_key)")
        return None
    return BpmClient(
        api_key=bpm.api_key or "",
        base_url=bpm.base_url,
        min_similarity=bpm.min_similarity,
        timeout=bpm.timeout_seconds,
        max_attempts=bpm.max_attempts,
    )


class PlaylistSorter:
    """Load, reorder and save one playlist at a time.

    Args:
        auth: Auth state machine owning the session
        config: Typed application config
        client_factory: Builds a Spotify client from (session, on_auth_rejected)
        bpm_client: Optional fallback tempo provider
    """

    def __init__(
        self,
        auth: AuthStateMachine,
        config: AppConfig | None = None,
        client_factory: ClientFactory | None = None,
        bpm_client: BpmClient | None = None,
    ):
        self.auth = auth
        self.config = config or AppConfig()
        self._client_factory = client_factory or self._default_client
        self.bpm_client = bpm_client
        self.table: PlaylistTable | None = None
        self._lock = threading.Lock()
        self._active_load: CancelToken | None = None

    @classmethod
    def from_config(cls, cfg: AppConfig) -> "PlaylistSorter":
        auth = build_auth(cfg)
        auth.complete_from_redirect()
        return cls(auth, cfg, bpm_client=build_bpm_client(cfg))

    def _default_client(self, session: Session, on_auth_rejected: Callable[[], None]) -> SpotifyAPIClient:
        sp = self.config.spotify
        return SpotifyAPIClient(
            session,
            on_auth_rejected=on_auth_rejected,
            timeout=sp.request_timeout,
            max_attempts=sp.max_attempts,
            backoff_max=sp.backoff_max,
        )

    def client(self) -> Any:
        """Spotify client bound to the live session.

        Raises:
            AuthError: Not logged in
        """
        session = self.auth.session
        if session is None:
            raise AuthError("Not logged in to Spotify; run `plsort login`")
        return self._client_factory(session, self.auth.mark_rejected)

    # ---------------- Load -----------------

    def load(self, playlist_id: str) -> PlaylistTable:
        """Load ``playlist_id``, abandoning any load still in flight.

        Raises:
            LoadCancelled: A newer load or abandon() superseded this one
        """
        token = CancelToken()
        with self._lock:
            if self._active_load is not None:
                self._active_load.cancel()
            self._active_load = token
        client = self.client()
        table = load_playlist(
            client,
            playlist_id,
            bpm_client=self.bpm_client,
            cancel=token,
            stage_timeout=self.config.pipeline.stage_timeout,
            bpm_concurrency=self.config.bpm.max_concurrency,
        )
        with self._lock:
            if token.cancelled or self._active_load is not token:
                raise LoadCancelled(f"Load of {playlist_id} was superseded")
            self._active_load = None
            self.table = table
        return table

    def abandon(self) -> None:
        """Cancel the in-flight load, if any; its results are discarded."""
        with self._lock:
            if self._active_load is not None:
                self._active_load.cancel()
                self._active_load = None

    # ---------------- Sort / save -----------------

    def _require_table(self) -> PlaylistTable:
        if self.table is None:
            raise RuntimeError("No playlist loaded")
        return self.table

    def preview(self, spec: SortSpec) -> PlaylistTable:
        """Sorted copy of the loaded table; the loaded table is unchanged."""
        return sort_table(self._require_table(), spec)

    def commit(self, table: PlaylistTable) -> None:
        current = self._require_table()
        if table.playlist_id != current.playlist_id:
            raise ValueError("Cannot commit a table for a different playlist")
        self.table = current.with_rows(table.rows)

    def save(self, table: PlaylistTable | None = None) -> WriteBackResult:
        """Write the committed (or given) order upstream."""
        target = table if table is not None else self._require_table()
        return save_order(self.client(), target.playlist_id, target.track_ids())


__all__ = ["PlaylistSorter", "build_auth", "build_bpm_client"]
