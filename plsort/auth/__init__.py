"""Authentication: PKCE helpers, token persistence and the auth state machine."""

from .pkce import generate_verifier, derive_challenge
from .store import TokenStore
from .state_machine import AuthStateMachine, AuthState, RedirectOutcome

__all__ = [
    "generate_verifier",
    "derive_challenge",
    "TokenStore",
    "AuthStateMachine",
    "AuthState",
    "RedirectOutcome",
]
