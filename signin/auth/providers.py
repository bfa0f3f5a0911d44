from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Protocol, Tuple
from urllib.parse import urlencode

import requests
import yaml

from signin.auth.config import AuthConfig, ConfigError
from signin.auth.pkce import pkce_challenge

logger = logging.getLogger(__name__)

_discovery_cache: Dict[str, Tuple[float, Optional[Dict[str, Any]]]] = {}


class ProviderKind(str, Enum):
    OAUTH2 = "oauth2"
    OTHER = "other"


class AuthorizationURLBuilder(Protocol):
    def create_authorization_url(self, state: str, code_verifier: str) -> str:
        """Return the provider URL the user agent should be sent to."""


@dataclass(frozen=True)
class Provider:
    """
    Registered sign-in provider.

    `kind` is the tag: only OAUTH2 providers carry a `client` and can start a redirect flow.
    """

    id: str
    kind: ProviderKind
    client: Optional[AuthorizationURLBuilder] = None


@dataclass(frozen=True)
class AuthorizationURLResult:
    url: Optional[str] = None
    cause: Optional[BaseException] = None

    @classmethod
    def success(cls, url: str) -> "AuthorizationURLResult":
        return cls(url=url)

    @classmethod
    def construction_failed(cls, cause: BaseException) -> "AuthorizationURLResult":
        return cls(cause=cause)

    @property
    def ok(self) -> bool:
        return self.url is not None


def build_authorization_url(client: AuthorizationURLBuilder, state: str, code_verifier: str) -> AuthorizationURLResult:
    """Run a provider's URL builder, capturing any failure as a value."""
    try:
        url = client.create_authorization_url(state, code_verifier)
    except Exception as e:
        return AuthorizationURLResult.construction_failed(e)
    if not url:
        return AuthorizationURLResult.construction_failed(ValueError("empty authorization URL"))
    return AuthorizationURLResult.success(str(url))


def _get_discovery(discovery_url: str) -> Dict[str, Any]:
    """
    Fetch OIDC discovery document from provider.
    Caches result for 1 hour per discovery URL.
    """
    ts, cached = _discovery_cache.get(discovery_url, (0.0, None))
    now = time.time()
    if cached is not None and now - ts < 3600:
        return cached
    r = requests.get(discovery_url, timeout=10)
    r.raise_for_status()
    data = r.json()
    if not isinstance(data, dict):
        raise ValueError("Invalid OIDC discovery document")
    _discovery_cache[discovery_url] = (now, data)
    return data


@dataclass(frozen=True)
class OAuth2Client:
    """Authorization-code + PKCE (S256) request builder for one provider."""

    client_id: str
    redirect_uri: str
    scopes: Tuple[str, ...] = ()
    authorization_endpoint: Optional[str] = None
    discovery_url: Optional[str] = None
    extra_params: Tuple[Tuple[str, str], ...] = ()

    def _endpoint(self) -> str:
        if self.authorization_endpoint:
            return self.authorization_endpoint
        if not self.discovery_url:
            raise ValueError("OAuth2 provider has neither authorization_endpoint nor discovery_url")
        endpoint = str(_get_discovery(self.discovery_url).get("authorization_endpoint") or "")
        if not endpoint:
            raise ValueError("OIDC discovery missing authorization_endpoint")
        return endpoint

    def create_authorization_url(self, state: str, code_verifier: str) -> str:
        endpoint = self._endpoint()
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "state": state,
            "code_challenge": pkce_challenge(code_verifier),
            "code_challenge_method": "S256",
        }
        if self.scopes:
            params["scope"] = " ".join(self.scopes)
        params.update(dict(self.extra_params))
        sep = "&" if "?" in endpoint else "?"
        return f"{endpoint}{sep}{urlencode(params)}"


class ProviderRegistry:
    """Read-only lookup of configured providers by id."""

    def __init__(self, providers: Iterable[Provider] = ()):
        self._by_id: Dict[str, Provider] = {}
        for p in providers:
            if p.id in self._by_id:
                raise ConfigError(f"Duplicate provider id: {p.id}")
            self._by_id[p.id] = p

    def get(self, provider_id: str) -> Optional[Provider]:
        return self._by_id.get(provider_id)

    def ids(self) -> List[str]:
        return list(self._by_id)

    def __iter__(self) -> Iterator[Provider]:
        return iter(self._by_id.values())

    def __len__(self) -> int:
        return len(self._by_id)


def _parse_scopes(raw: Any) -> Tuple[str, ...]:
    if raw is None:
        return ()
    if isinstance(raw, str):
        return tuple(s for s in raw.replace(",", " ").split() if s)
    if isinstance(raw, list):
        return tuple(str(s).strip() for s in raw if str(s).strip())
    raise ConfigError("Provider scopes must be a string or a list")


def provider_from_dict(cfg: AuthConfig, item: Dict[str, Any]) -> Provider:
    provider_id = str(item.get("id") or "").strip()
    if not provider_id:
        raise ConfigError("Provider entry is missing 'id'")
    kind_raw = str(item.get("kind") or ProviderKind.OAUTH2.value).strip().lower()
    try:
        kind = ProviderKind(kind_raw)
    except ValueError:
        # Unknown kinds still register, but can never start a redirect flow.
        kind = ProviderKind.OTHER
    if kind is not ProviderKind.OAUTH2:
        return Provider(id=provider_id, kind=kind)

    client_id = str(item.get("client_id") or "").strip()
    endpoint = str(item.get("authorization_endpoint") or "").strip() or None
    discovery = str(item.get("discovery_url") or "").strip() or None
    if not client_id:
        raise ConfigError(f"OAuth2 provider {provider_id!r} is missing 'client_id'")
    if not endpoint and not discovery:
        raise ConfigError(f"OAuth2 provider {provider_id!r} needs 'authorization_endpoint' or 'discovery_url'")

    extra = item.get("params") or {}
    if not isinstance(extra, dict):
        raise ConfigError(f"OAuth2 provider {provider_id!r}: 'params' must be a mapping")

    client = OAuth2Client(
        client_id=client_id,
        redirect_uri=str(item.get("redirect_uri") or f"{cfg.callback_base}/{provider_id}"),
        scopes=_parse_scopes(item.get("scopes")),
        authorization_endpoint=endpoint,
        discovery_url=discovery,
        extra_params=tuple((str(k), str(v)) for k, v in extra.items()),
    )
    return Provider(id=provider_id, kind=kind, client=client)


def load_provider_registry(cfg: AuthConfig) -> ProviderRegistry:
    """
    Load the provider catalog from `cfg.providers_file`.

    A missing file means no providers; a present but invalid file is a configuration error.
    """
    if not cfg.providers_file:
        return ProviderRegistry()
    path = Path(cfg.providers_file)
    if not path.exists():
        logger.info("Provider catalog %s not found; OAuth sign-in has no providers", path)
        return ProviderRegistry()

    with open(path) as f:
        doc = yaml.safe_load(f) or {}
    items = doc.get("providers") if isinstance(doc, dict) else None
    if items is None:
        items = []
    if not isinstance(items, list):
        raise ConfigError(f"{path}: 'providers' must be a list")

    registry = ProviderRegistry(provider_from_dict(cfg, item) for item in items if isinstance(item, dict))
    logger.info("Loaded %d sign-in provider(s) from %s: %s", len(registry), path, ", ".join(registry.ids()))
    return registry
