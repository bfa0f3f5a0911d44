from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from signin.auth.config import AuthConfig
from signin.auth.cookies import (
    OAUTH_STATE,
    PKCE_CODE_VERIFIER,
    SignedCookieJar,
    cookie_name,
    oauth_cookie_options,
)
from signin.auth.errors import InternalError, NotFound
from signin.auth.pkce import generate_code_verifier
from signin.auth.providers import ProviderKind, ProviderRegistry, build_authorization_url
from signin.auth.state import generate_state

logger = logging.getLogger(__name__)


class OAuthInitiator:
    """
    Start an OAuth2 authorization-code flow.

    Lookup -> kind check -> state -> PKCE verifier -> signed cookies -> authorization URL.
    Unknown and non-OAuth2 providers are both reported as NotFound.
    """

    def __init__(self, cfg: AuthConfig, registry: ProviderRegistry):
        self._cfg = cfg
        self._registry = registry

    def initiate(
        self,
        jar: SignedCookieJar,
        provider_id: str,
        *,
        callback_url: Optional[str] = None,
        current_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        provider = self._registry.get(provider_id)
        if provider is None:
            logger.info("OAuth sign-in requested for unknown provider %r", provider_id)
            raise NotFound()
        if provider.kind is not ProviderKind.OAUTH2 or provider.client is None:
            logger.info("OAuth sign-in requested for non-OAuth2 provider %r", provider_id)
            raise NotFound()

        state = generate_state(callback_url, current_url, base_url=self._cfg.base_url)
        code_verifier = generate_code_verifier()

        options = oauth_cookie_options(self._cfg)
        try:
            jar.set(cookie_name(self._cfg, OAUTH_STATE), state.state, self._cfg.secret, options)
            jar.set(cookie_name(self._cfg, PKCE_CODE_VERIFIER), code_verifier, self._cfg.secret, options)
        except Exception as e:
            logger.error("OAuth sign-in (%s): failed to set flow cookies: %s", provider_id, e)
            raise InternalError() from e

        result = build_authorization_url(provider.client, state.state, code_verifier)
        if not result.ok:
            cause = result.cause
            logger.error(
                "OAuth sign-in (%s): authorization URL construction failed: %s: %s",
                provider_id,
                type(cause).__name__,
                cause,
            )
            raise InternalError()

        logger.debug("OAuth sign-in (%s): redirecting, target=%s", provider_id, state.redirect_target)
        return {
            "url": result.url,
            "state": state.state,
            "codeVerifier": code_verifier,
            "redirect": True,
        }
