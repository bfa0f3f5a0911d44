from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from signin.auth.password import PasswordHasher


def test_hash_is_salted_argon2id(hasher) -> None:
    a = hasher.hash("correct horse battery staple")
    b = hasher.hash("correct horse battery staple")
    assert a.startswith("$argon2id$")
    assert a != b
    assert "correct horse" not in a


def test_verify_accepts_correct_password(hasher) -> None:
    digest = hasher.hash("s3cret!")
    assert hasher.verify(digest, "s3cret!") is True


def test_verify_rejects_wrong_password(hasher) -> None:
    digest = hasher.hash("s3cret!")
    assert hasher.verify(digest, "S3cret!") is False


@pytest.mark.parametrize(
    "digest",
    [
        "",
        "not-a-hash",
        "$argon2id$v=19$m=8,t=1,p=1$broken",
        # bcrypt digest: wrong algorithm family for this hasher.
        "$2b$12$KIXQJ8fC9w5n1s1s1s1s1uKIXQJ8fC9w5n1s1s1s1s1s1s1s1s1s1",
    ],
)
def test_verify_returns_false_for_malformed_digest(hasher, digest) -> None:
    assert hasher.verify(digest, "anything") is False


def test_dummy_verify_never_authenticates_and_reuses_digest(hasher) -> None:
    first = hasher._dummy_digest
    assert hasher.dummy_verify("whatever") is False
    hasher.dummy_verify("again")
    assert hasher._dummy_digest is first


def test_dummy_digest_is_ready_at_construction(cfg) -> None:
    fresh = PasswordHasher.from_config(cfg)
    assert fresh._dummy_digest.startswith("$argon2id$")

    # First use only verifies; no hashing on the request path.
    fresh._hasher = MagicMock(wraps=fresh._hasher)
    fresh.dummy_verify("first request")
    fresh._hasher.hash.assert_not_called()
    fresh._hasher.verify.assert_called_once()


def test_from_config_uses_configured_costs(cfg) -> None:
    digest = PasswordHasher.from_config(cfg).hash("pw")
    assert "m=8,t=1,p=1" in digest
