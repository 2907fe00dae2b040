"""Authorization state machine for the Spotify PKCE flow.

States::

    LOGGED_OUT -> AWAITING_REDIRECT -> EXCHANGING_CODE -> LOGGED_IN -> (EXPIRED | LOGGED_OUT)

The machine owns the :class:`~plsort.models.Session`. Provider clients never
read tokens from ambient state; they receive the session explicitly and call
:meth:`AuthStateMachine.mark_rejected` when the upstream refuses it.

Also accepts the legacy implicit-grant redirect where the bearer token is
delivered in the URL fragment as ``access_token=...``.
"""
from __future__ import annotations
import logging
import threading
import time
import webbrowser
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping
from urllib.parse import urlencode, urlsplit, urlunsplit, parse_qs

import requests

from ..errors import AuthError
from ..models import PendingAuth, Session
from .pkce import derive_challenge, generate_state, generate_verifier
from .store import TokenStore

logger = logging.getLogger(__name__)

AUTH_URL = "https://accounts.spotify.com/authorize"
TOKEN_URL = "https://accounts.spotify.com/api/token"


class AuthState(str, Enum):
    LOGGED_OUT = "logged_out"
    AWAITING_REDIRECT = "awaiting_redirect"
    EXCHANGING_CODE = "exchanging_code"
    LOGGED_IN = "logged_in"
    EXPIRED = "expired"


@dataclass
class RedirectOutcome:
    """Result of handling one redirect / page load.

    ``action`` is one of: exchanged, legacy, restored, refreshed, in_progress,
    ignored, none.
    """
    state: AuthState
    action: str
    scrubbed_url: str | None = None


def scrub_url(url: str) -> str:
    """Drop query and fragment so a reload cannot replay the authorization code."""
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, '', ''))


def _single(params: Mapping[str, Any], key: str) -> str | None:
    value = params.get(key)
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    return value or None


class AuthStateMachine:
    def __init__(
        self,
        client_id: str,
        redirect_uri: str,
        scope: str,
        store: TokenStore,
        request_timeout: float = 30.0,
    ):
        if not client_id:
            raise ValueError("Spotify client_id is required")
        self.client_id = client_id
        self.redirect_uri = redirect_uri
        self.scope = scope
        self.store = store
        self.request_timeout = request_timeout
        self._state = AuthState.LOGGED_OUT
        self._session: Session | None = None
        self._exchange_lock = threading.Lock()
        self._consumed_codes: set[str] = set()

    # ---------------- Read side -----------------
    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def session(self) -> Session | None:
        return self._session if self._state is AuthState.LOGGED_IN else None

    def current_token(self) -> str | None:
        """Bearer token while logged in, otherwise None."""
        session = self.session
        return session.access_token if session else None

    # ---------------- Login -----------------
    def build_authorize_url(self, challenge: str, state: str | None = None) -> str:
        params = {
            "client_id": self.client_id,
            "response_type": "code",
            "redirect_uri": self.redirect_uri,
            "scope": self.scope,
            "code_challenge_method": "S256",
            "code_challenge": challenge,
        }
        if state:
            params["state"] = state
        return f"{AUTH_URL}?{urlencode(params)}"

    def begin_login(self, open_browser: bool = True) -> str:
        """Store a fresh PendingAuth and send the user to the authorize page.

        Returns:
            The authorization URL (also opened in the browser when requested)
        """
        if self._state not in (AuthState.LOGGED_OUT, AuthState.EXPIRED):
            raise AuthError(f"Cannot begin login while {self._state.value}")
        verifier = generate_verifier()
        pending = PendingAuth(code_verifier=verifier, state=generate_state())
        self.store.save_pending(pending)
        url = self.build_authorize_url(derive_challenge(verifier), pending.state)
        self._state = AuthState.AWAITING_REDIRECT
        logger.debug(f"Beginning auth flow. Redirect URI: {self.redirect_uri}")
        if open_browser:
            webbrowser.open(url)
        return url

    def complete_from_redirect(
        self,
        query: Mapping[str, Any] | None = None,
        fragment: str | None = None,
        current_url: str | None = None,
    ) -> RedirectOutcome:
        """Resolve the auth state for one page load / redirect.

        Args:
            query: Redirect query parameters (``code``/``state`` or ``error``)
            fragment: Raw URL fragment, checked for a legacy ``access_token``
            current_url: Location to scrub once a code has been consumed

        Raises:
            AuthError: Authorization denied or the code exchange failed
        """
        query = query or {}
        if self._state is AuthState.EXCHANGING_CODE:
            return RedirectOutcome(self._state, "in_progress")

        error = _single(query, "error")
        if error:
            description = _single(query, "error_description")
            self.store.clear_pending()
            self._state = AuthState.LOGGED_OUT
            logger.warning(f"Spotify authorization error: {error} {description or ''}".strip())
            raise AuthError(
                f"Spotify authorization error: {error} {description or ''}".strip(),
                error=error,
                description=description,
            )

        code = _single(query, "code")
        if code:
            return self._exchange(code, _single(query, "state"), current_url)

        legacy_token = self._legacy_token(fragment)
        if legacy_token is not None:
            self._set_session(legacy_token)
            logger.info("Accepted token from legacy redirect fragment")
            scrubbed = scrub_url(current_url) if current_url else None
            return RedirectOutcome(self._state, "legacy", scrubbed)

        return self._restore()

    # ---------------- Transitions -----------------
    def _exchange(self, code: str, state: str | None, current_url: str | None) -> RedirectOutcome:
        scrubbed = scrub_url(current_url) if current_url else None
        if code in self._consumed_codes:
            return RedirectOutcome(self._state, "ignored", scrubbed)
        if not self._exchange_lock.acquire(blocking=False):
            return RedirectOutcome(self._state, "in_progress")
        try:
            self._state = AuthState.EXCHANGING_CODE
            self._consumed_codes.add(code)
            pending = self.store.load_pending()
            try:
                if pending is None:
                    raise AuthError("Code exchange failed: missing PKCE verifier (start login again)")
                if pending.state and pending.state != state:
                    raise AuthError("Code exchange failed: state mismatch")
                payload = self._post_token({
                    "grant_type": "authorization_code",
                    "code": code,
                    "redirect_uri": self.redirect_uri,
                    "client_id": self.client_id,
                    "code_verifier": pending.code_verifier,
                })
                session = Session.from_token_response(payload)
            except Exception:
                self._state = AuthState.LOGGED_OUT
                raise
            finally:
                self.store.clear_pending()
            self._set_session(session)
            logger.debug(f"Token acquired (expires_at={session.expires_at})")
            return RedirectOutcome(self._state, "exchanged", scrubbed)
        finally:
            self._exchange_lock.release()

    def _restore(self) -> RedirectOutcome:
        if self._state is AuthState.LOGGED_IN and self._session is not None:
            if not self._session.is_expired():
                return RedirectOutcome(self._state, "restored")
        cached = self.store.load_session()
        if cached is None:
            if self._state is not AuthState.AWAITING_REDIRECT:
                self._state = AuthState.LOGGED_OUT
            return RedirectOutcome(self._state, "none")
        if not cached.is_expired():
            self._session = cached
            self._state = AuthState.LOGGED_IN
            return RedirectOutcome(self._state, "restored")
        self._state = AuthState.EXPIRED
        if cached.refresh_token:
            try:
                self.refresh(cached)
            except AuthError as e:
                logger.warning(f"Token refresh failed: {e}")
            else:
                return RedirectOutcome(self._state, "refreshed")
        self._invalidate()
        return RedirectOutcome(self._state, "none")

    def refresh(self, session: Session) -> Session:
        """Exchange refresh material for a new session."""
        payload = self._post_token({
            "grant_type": "refresh_token",
            "refresh_token": session.refresh_token,
            "client_id": self.client_id,
        })
        # Spotify does not always rotate the refresh token
        payload.setdefault("refresh_token", session.refresh_token)
        new_session = Session.from_token_response(payload)
        self._set_session(new_session)
        return new_session

    def mark_rejected(self) -> None:
        """Upstream refused the bearer token: expire and forget the session."""
        if self._state is AuthState.LOGGED_IN:
            logger.warning("Spotify rejected the access token; session invalidated")
        self._state = AuthState.EXPIRED
        self._invalidate()

    def logout(self) -> None:
        self.store.clear_pending()
        self._invalidate()

    def _invalidate(self) -> None:
        self._session = None
        self.store.clear_session()
        self._state = AuthState.LOGGED_OUT

    def _set_session(self, session: Session) -> None:
        self.store.save_session(session)
        self._session = session
        self._state = AuthState.LOGGED_IN

    # ---------------- Helpers -----------------
    def _legacy_token(self, fragment: str | None) -> Session | None:
        if not fragment:
            return None
        params = parse_qs(fragment.lstrip('#'))
        token = _single(params, "access_token")
        if not token:
            return None
        expires_in = _single(params, "expires_in")
        expires_at = time.time() + int(expires_in) if expires_in and expires_in.isdigit() else None
        return Session(access_token=token, expires_at=expires_at)

    def _post_token(self, data: Dict[str, Any]) -> Dict[str, Any]:
        try:
            resp = requests.post(TOKEN_URL, data=data, timeout=self.request_timeout)
        except requests.RequestException as e:
            raise AuthError(f"Token request failed: {e}") from e
        if not resp.ok:
            error = description = None
            try:
                body = resp.json()
            except ValueError:
                body = {}
            if isinstance(body, dict):
                error = body.get("error")
                description = body.get("error_description")
            detail = description or error or resp.reason or ""
            raise AuthError(
                f"Token request failed (HTTP {resp.status_code}): {detail}".rstrip(': '),
                error=error,
                description=description,
            )
        try:
            payload = resp.json()
        except ValueError as e:
            raise AuthError("Token endpoint returned invalid JSON") from e
        if not payload.get("access_token"):
            raise AuthError("Token endpoint response lacks access_token")
        return payload


__all__ = ["AuthStateMachine", "AuthState", "RedirectOutcome", "scrub_url", "AUTH_URL", "TOKEN_URL"]
