import base64
import hashlib

import pytest

from plsort.auth.pkce import VERIFIER_ALPHABET, derive_challenge, generate_state, generate_verifier


def test_verifier_uses_unreserved_alphabet_and_length():
    verifier = generate_verifier()
    assert len(verifier) == 64
    assert set(verifier) <= set(VERIFIER_ALPHABET)


def test_verifiers_are_not_repeated():
    assert len({generate_verifier() for _ in range(50)}) == 50


def test_verifier_length_bounds():
    assert len(generate_verifier(43)) == 43
    assert len(generate_verifier(128)) == 128
    with pytest.raises(ValueError):
        generate_verifier(42)
    with pytest.raises(ValueError):
        generate_verifier(129)


def test_challenge_is_unpadded_base64url_sha256():
    verifier = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"
    # Example from RFC 7636 appendix B
    assert derive_challenge(verifier) == "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"
    expected = base64.urlsafe_b64encode(hashlib.sha256(verifier.encode()).digest()).decode().rstrip("=")
    assert derive_challenge(verifier) == expected
    assert "=" not in derive_challenge(generate_verifier())


def test_challenge_is_deterministic():
    v = generate_verifier()
    assert derive_challenge(v) == derive_challenge(v)


def test_state_is_random():
    assert generate_state() != generate_state()
