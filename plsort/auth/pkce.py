"""PKCE verifier/challenge helpers (RFC 7636)."""
from __future__ import annotations
import base64
import hashlib
import secrets
import string

# RFC 3986 unreserved characters
VERIFIER_ALPHABET = string.ascii_letters + string.digits + "-._~"
VERIFIER_LENGTH = 64


def generate_verifier(length: int = VERIFIER_LENGTH) -> str:
    """Random code verifier drawn from the unreserved URL alphabet.

    Uses :mod:`secrets`; the PKCE binding is worthless with a predictable source.
    """
    if not 43 <= length <= 128:
        raise ValueError(f"PKCE verifier length must be 43-128, got {length}")
    return ''.join(secrets.choice(VERIFIER_ALPHABET) for _ in range(length))


def derive_challenge(verifier: str) -> str:
    """S256 challenge: base64url(SHA-256(verifier)) without padding."""
    digest = hashlib.sha256(verifier.encode('ascii')).digest()
    return base64.urlsafe_b64encode(digest).decode('ascii').rstrip('=')


def generate_state() -> str:
    return secrets.token_urlsafe(12)


__all__ = ["generate_verifier", "derive_challenge", "generate_state", "VERIFIER_ALPHABET"]
