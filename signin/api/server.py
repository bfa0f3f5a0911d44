"""
Sign-in HTTP server.

Exposes the OAuth2 initiation and email/password sign-in endpoints, plus the small session
surface a UI needs (current session, sign-out, provider listing).
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict, Optional

from email_validator import EmailNotValidError, validate_email
from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator

from signin.auth.config import API_PREFIX, AuthConfig, load_auth_config
from signin.auth.cookies import SignedCookieJar
from signin.auth.credential import CredentialAuthenticator
from signin.auth.errors import APIError, InternalError, StorageError, Unauthorized
from signin.auth.models import RequestContext
from signin.auth.oauth import OAuthInitiator
from signin.auth.password import PasswordHasher
from signin.auth.providers import ProviderRegistry, load_provider_registry
from signin.auth.session import SessionIssuer, read_current_session, read_session_id
from signin.storage.base import AuthStorage
from signin.storage.config import build_storage, load_storage_config

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthRuntime:
    """Process-wide, read-only collaborators built once at first use."""

    config: AuthConfig
    providers: ProviderRegistry
    storage: AuthStorage
    hasher: PasswordHasher

    @property
    def sessions(self) -> SessionIssuer:
        return SessionIssuer(self.config, self.storage)


@lru_cache(maxsize=1)
def get_runtime() -> AuthRuntime:
    cfg = load_auth_config()
    return AuthRuntime(
        config=cfg,
        providers=load_provider_registry(cfg),
        storage=build_storage(load_storage_config(), session_max_age=cfg.session_max_age),
        hasher=PasswordHasher.from_config(cfg),
    )


class OAuthSignInRequest(BaseModel):
    provider: str
    callback_url: Optional[str] = Field(default=None, alias="callbackURL")


class CredentialSignInRequest(BaseModel):
    email: str
    password: str
    callback_url: Optional[str] = Field(default=None, alias="callbackURL")
    dont_remember_me: Optional[bool] = Field(default=False, alias="dontRememberMe")

    @field_validator("email")
    @classmethod
    def _email_shape(cls, v: str) -> str:
        try:
            validate_email(v, check_deliverability=False)
        except EmailNotValidError as e:
            raise ValueError(f"Invalid email address: {e}") from e
        # Keep the address as typed; user lookup is an exact match.
        return v


def _request_context(request: Request, cfg: AuthConfig) -> RequestContext:
    ip = request.client.host if request.client else None
    if cfg.trust_proxy_headers:
        # Left-most entry is the original client as reported by the proxy chain.
        forwarded = (request.headers.get("x-forwarded-for") or "").split(",")[0].strip()
        ip = forwarded or ip
    return RequestContext(ip_address=ip or None, user_agent=request.headers.get("user-agent"))


def _json(content: Dict[str, Any], jar: Optional[SignedCookieJar] = None, status_code: int = 200) -> JSONResponse:
    resp = JSONResponse(status_code=status_code, content=content)
    resp.headers["Cache-Control"] = "no-store"
    if jar is not None:
        jar.flush(resp)
    return resp


app = FastAPI(title="Sign-in service")


@app.exception_handler(APIError)
async def _api_error_handler(_request: Request, exc: APIError) -> JSONResponse:
    # IMPORTANT: no `WWW-Authenticate` on 401; browsers would show a basic-auth modal.
    return _json(exc.to_dict(), status_code=exc.status_code)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all incoming HTTP requests."""
    start_time = time.time()
    try:
        response = await call_next(request)
    except Exception as e:
        process_time = time.time() - start_time
        logger.exception("%s %s - ERROR after %.3fs: %s", request.method, request.url.path, process_time, str(e))
        raise
    process_time = time.time() - start_time
    logger.debug("%s %s - %d (%.3fs)", request.method, request.url.path, response.status_code, process_time)
    return response


@app.get("/healthz")
def healthz() -> Dict[str, Any]:
    return {"ok": True}


@app.post(f"{API_PREFIX}/sign-in/oauth")
def sign_in_oauth(
    request: Request,
    body: OAuthSignInRequest,
    current_url: Optional[str] = Query(None, alias="currentURL"),
) -> JSONResponse:
    """Start an OAuth2 authorization-code flow (state + PKCE verifier in signed cookies)."""
    rt = get_runtime()
    jar = SignedCookieJar(request.cookies)
    result = OAuthInitiator(rt.config, rt.providers).initiate(
        jar,
        body.provider,
        callback_url=body.callback_url,
        current_url=current_url,
    )
    return _json(result, jar)


@app.post(f"{API_PREFIX}/sign-in/credential")
def sign_in_credential(request: Request, body: CredentialSignInRequest) -> JSONResponse:
    """
    Email/password sign-in.

    Plain `def`: Starlette runs it on its worker thread pool, keeping argon2 off the event loop.
    """
    rt = get_runtime()
    jar = SignedCookieJar(request.cookies)
    authenticator = CredentialAuthenticator(rt.config, rt.storage, rt.hasher, rt.sessions)
    try:
        result = authenticator.authenticate(
            jar,
            body.email,
            body.password,
            callback_url=body.callback_url,
            dont_remember_me=bool(body.dont_remember_me),
            ctx=_request_context(request, rt.config),
        )
    except StorageError as e:
        logger.error("Credential sign-in: storage failure: %s", e)
        raise InternalError() from e

    return _json(
        {
            "user": result["user"].to_dict(),
            "session": result["session"].to_dict(),
            "redirect": result["redirect"],
            "url": result["url"],
        },
        jar,
    )


@app.get(f"{API_PREFIX}/session")
def get_session(request: Request) -> JSONResponse:
    rt = get_runtime()
    jar = SignedCookieJar(request.cookies)
    try:
        current = read_current_session(rt.config, jar, rt.storage)
    except StorageError as e:
        logger.error("Session lookup: storage failure: %s", e)
        raise InternalError() from e
    if current is None:
        raise Unauthorized()
    session, user = current
    return _json({"user": user.to_dict(), "session": session.to_dict()})


@app.post(f"{API_PREFIX}/sign-out")
def sign_out(request: Request) -> JSONResponse:
    rt = get_runtime()
    jar = SignedCookieJar(request.cookies)
    session_id = read_session_id(rt.config, jar)
    if session_id:
        try:
            rt.storage.delete_session(session_id)
        except StorageError as e:
            # The cookie is cleared regardless; the row expires on its own.
            logger.warning("Sign-out: failed to delete session: %s", e)
    rt.sessions.clear_cookie(jar)
    return _json({"success": True}, jar)


@app.get(f"{API_PREFIX}/providers")
def list_providers() -> Dict[str, Any]:
    """
    Expose configured sign-in options so the UI can render them.
    This endpoint is intentionally public; it returns no secrets.
    """
    rt = get_runtime()
    return {
        "ok": True,
        "emailPasswordEnabled": rt.config.email_password_enabled,
        "providers": [{"id": p.id, "kind": p.kind.value} for p in rt.providers],
    }


def run(host: str = "0.0.0.0", port: int = 8080) -> None:
    import uvicorn

    # Configure logging for the application
    log_level = os.getenv("LOG_LEVEL", "info").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger.setLevel(getattr(logging, log_level, logging.INFO))

    # Map Python logging levels to uvicorn log levels
    uvicorn_log_level = (
        log_level.lower() if log_level.lower() in ["critical", "error", "warning", "info", "debug", "trace"] else "info"
    )

    # Fail fast on bad configuration instead of on the first request.
    rt = get_runtime()
    logger.info(
        "Starting sign-in server on %s:%d (log_level=%s, providers=%s, email_password=%s)",
        host,
        port,
        log_level,
        ",".join(rt.providers.ids()) or "-",
        rt.config.email_password_enabled,
    )
    uvicorn.run(app, host=host, port=port, log_level=uvicorn_log_level)
