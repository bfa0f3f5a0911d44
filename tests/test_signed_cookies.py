from __future__ import annotations

import pytest
from starlette.responses import Response

from signin.auth.cookies import CookieOptions, SignedCookieJar, cookie_name, sign_value, unsign_value
from signin.auth.errors import CookieWriteError, InvalidSignature

SECRET = "cookie-test-secret"


def _set_cookie_headers(resp: Response) -> list[str]:
    return [v.decode("latin-1") for k, v in resp.raw_headers if k.decode("latin-1").lower() == "set-cookie"]


def test_wire_value_is_plaintext_dot_signature() -> None:
    wire = sign_value("hello", SECRET)
    plaintext, _, signature = wire.rpartition(".")
    assert plaintext == "hello"
    assert signature
    assert unsign_value(wire, SECRET) == "hello"


def test_get_returns_plaintext_for_valid_cookie() -> None:
    jar = SignedCookieJar({"c": sign_value("value.with.dots", SECRET)})
    assert jar.get("c", SECRET) == "value.with.dots"


def test_flipping_one_plaintext_byte_fails_with_invalid_signature() -> None:
    wire = sign_value("session-abc", SECRET)
    tampered = "S" + wire[1:]
    assert tampered != wire
    jar = SignedCookieJar({"c": tampered})
    with pytest.raises(InvalidSignature):
        jar.get("c", SECRET)


def test_wrong_secret_fails() -> None:
    jar = SignedCookieJar({"c": sign_value("x", SECRET)})
    with pytest.raises(InvalidSignature):
        jar.get("c", "another-secret")


@pytest.mark.parametrize("stored", [None, "", "no-separator", "plain.text"])
def test_missing_or_malformed_cookie_fails(stored) -> None:
    jar = SignedCookieJar({} if stored is None else {"c": stored})
    with pytest.raises(InvalidSignature):
        jar.get("c", SECRET)


def test_flush_writes_options_and_omits_max_age_when_absent() -> None:
    jar = SignedCookieJar()
    jar.set("remembered", "a", SECRET, CookieOptions(max_age=3600, secure=True))
    jar.set("browser_session", "b", SECRET, CookieOptions(max_age=None))
    resp = Response()
    jar.flush(resp)

    headers = _set_cookie_headers(resp)
    assert len(headers) == 2
    remembered = next(h for h in headers if h.startswith("remembered="))
    session_only = next(h for h in headers if h.startswith("browser_session="))

    assert "max-age=3600" in remembered.lower()
    assert "secure" in remembered.lower()
    assert "httponly" in remembered.lower()
    assert "samesite=lax" in remembered.lower()
    assert "path=/" in remembered.lower()

    assert "max-age" not in session_only.lower()
    assert "expires" not in session_only.lower()
    assert "httponly" in session_only.lower()


def test_set_after_flush_raises_cookie_write_error() -> None:
    jar = SignedCookieJar()
    jar.flush(Response())
    assert jar.closed
    with pytest.raises(CookieWriteError):
        jar.set("late", "x", SECRET, CookieOptions())


def test_nothing_is_written_until_flush() -> None:
    jar = SignedCookieJar()
    jar.set("a", "1", SECRET, CookieOptions())
    assert len(jar.pending) == 1
    resp = Response()
    assert _set_cookie_headers(resp) == []
    jar.flush(resp)
    assert len(_set_cookie_headers(resp)) == 1


def test_delete_expires_cookie() -> None:
    jar = SignedCookieJar()
    jar.delete("gone", CookieOptions(max_age=3600))
    resp = Response()
    jar.flush(resp)
    (header,) = _set_cookie_headers(resp)
    assert header.startswith("gone=")
    assert "max-age=0" in header.lower()


def test_cookie_name_uses_secure_prefix(cfg) -> None:
    from dataclasses import replace

    assert cookie_name(cfg, "session_token") == "signin.session_token"
    assert cookie_name(replace(cfg, cookie_secure=True), "session_token") == "__Secure-signin.session_token"
