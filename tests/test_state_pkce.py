from __future__ import annotations

import re

import pytest

from signin.auth.pkce import generate_code_verifier, pkce_challenge
from signin.auth.state import decode_state, generate_state, origin_of, resolve_redirect_target

# RFC 7636 section 4.1: 43..128 chars of [A-Z] / [a-z] / [0-9] / "-" / "." / "_" / "~".
VERIFIER_RE = re.compile(r"^[A-Za-z0-9\-._~]{43,128}$")

BASE = "https://auth.example.com"


def test_redirect_target_prefers_explicit_callback() -> None:
    assert resolve_redirect_target("https://app.example.com/done", "https://other.example.com/page?x=1", BASE) == (
        "https://app.example.com/done"
    )


def test_redirect_target_falls_back_to_current_page_origin() -> None:
    assert resolve_redirect_target(None, "https://app.example.com:8443/settings?tab=2", BASE) == (
        "https://app.example.com:8443"
    )
    assert resolve_redirect_target("", "http://localhost:3000/login", BASE) == "http://localhost:3000"


def test_redirect_target_falls_back_to_base_url() -> None:
    assert resolve_redirect_target(None, None, BASE) == BASE
    # A current URL without an origin does not count as supplied.
    assert resolve_redirect_target(None, "/relative/path", BASE) == BASE


@pytest.mark.parametrize(
    "url,expected",
    [
        ("https://a.example.com/x/y", "https://a.example.com"),
        ("http://a.example.com:8080/", "http://a.example.com:8080"),
        ("https://user:pw@a.example.com/", "https://a.example.com"),
        ("ftp://files.example.com/", None),
        ("not a url", None),
        ("http://host:notaport/", None),
        (None, None),
    ],
)
def test_origin_of(url, expected) -> None:
    assert origin_of(url) == expected


def test_state_carries_redirect_target_and_random_binder() -> None:
    s = generate_state(None, "https://app.example.com/page", base_url=BASE)
    assert s.redirect_target == "https://app.example.com"
    assert s.state.startswith(s.binder + ".")
    # 24 random bytes, base64url without padding.
    assert len(s.binder) == 32

    binder, target, current = decode_state(s.state)
    assert binder == s.binder
    assert target == "https://app.example.com"
    assert current == "https://app.example.com/page"


def test_states_are_unique_per_call() -> None:
    states = {generate_state("https://app.example.com", base_url=BASE).state for _ in range(200)}
    binders = {s.split(".", 1)[0] for s in states}
    assert len(states) == 200
    assert len(binders) == 200


@pytest.mark.parametrize("bad", ["", "nodot", "abc.", "abc.!!!notbase64"])
def test_decode_state_rejects_foreign_values(bad) -> None:
    with pytest.raises(ValueError):
        decode_state(bad)


def test_code_verifier_meets_rfc7636_alphabet_and_length() -> None:
    for _ in range(50):
        v = generate_code_verifier()
        assert VERIFIER_RE.match(v), v
        assert len(v) == 43


def test_code_verifiers_are_never_reused() -> None:
    assert len({generate_code_verifier() for _ in range(200)}) == 200


def test_pkce_challenge_matches_rfc7636_example() -> None:
    # RFC 7636 Appendix B.
    verifier = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"
    assert pkce_challenge(verifier) == "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"
