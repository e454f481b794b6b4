"""OAuth provider domain types.

A provider is described twice: ``ProviderConfig`` is the persisted row an
administrator edits, and a ``ProviderDescriptor`` is the runtime form built
from it on every authentication attempt. Descriptors are a tagged variant:

- ``StandardOAuth2Descriptor`` follows the generic authorization-code grant
  with a bearer-token userinfo call.
- ``CustomEndpointOAuth2Descriptor`` covers providers with bespoke token and
  userinfo request shapes (credentials in the query string, an extra id
  returned by the token call, non-standard response envelopes).

Both carry their endpoints and a ``ProfileMapping`` that turns the
provider's profile payload into a ``NormalizedProfile``.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel


class ProviderConfig(BaseModel):
    """Persisted identity-provider configuration."""

    id: UUID
    name: str
    display_name: str
    client_id: str | None = None
    client_secret: str | None = None
    enabled: bool = False
    order: int = 0
    icon: str | None = None
    color: str | None = None
    created_at: datetime
    updated_at: datetime | None = None

    @property
    def has_credentials(self) -> bool:
        """Whether both client id and secret are set."""
        return bool(self.client_id) and bool(self.client_secret)


class ProviderUpdate(BaseModel):
    """Create-or-update request for a provider, keyed by name.

    Fields left as None keep their stored value on update.
    """

    name: str
    display_name: str | None = None
    client_id: str | None = None
    client_secret: str | None = None
    enabled: bool | None = None
    order: int | None = None
    icon: str | None = None
    color: str | None = None


class ProviderAdminView(BaseModel):
    """Provider fields returned by privileged write endpoints (no secret)."""

    id: UUID
    name: str
    display_name: str
    client_id: str | None = None
    has_client_secret: bool = False
    enabled: bool
    order: int
    icon: str | None = None
    color: str | None = None
    created_at: datetime
    updated_at: datetime | None = None

    @classmethod
    def from_config(cls, config: ProviderConfig) -> "ProviderAdminView":
        """Build the view, replacing the secret with a presence flag."""
        return cls(
            id=config.id,
            name=config.name,
            display_name=config.display_name,
            client_id=config.client_id,
            has_client_secret=bool(config.client_secret),
            enabled=config.enabled,
            order=config.order,
            icon=config.icon,
            color=config.color,
            created_at=config.created_at,
            updated_at=config.updated_at,
        )


class PublicProvider(BaseModel):
    """Secret-stripped provider descriptor for untrusted callers."""

    name: str
    display_name: str
    icon: str | None = None
    color: str | None = None
    order: int = 0


class NormalizedProfile(BaseModel):
    """Canonical profile produced from any provider's userinfo payload."""

    external_id: str
    email: str | None = None
    display_name: str | None = None
    avatar: str | None = None


class ProviderTokens(BaseModel):
    """Tokens returned by a provider's token endpoint."""

    access_token: str
    refresh_token: str | None = None
    expires_in: int | None = None
    extra: dict[str, Any] = {}


@dataclass(frozen=True)
class ProfileMapping:
    """Field paths used to build a NormalizedProfile.

    Each entry lists candidate keys in priority order; the first non-empty
    value wins. A dotted key reads a nested object.

    An email is kept only when the provider vouches for it: either every
    address it returns is verified (``email_always_verified``) or the
    payload carries a true ``email_verified`` claim. Anything else is
    dropped, because accounts are matched by email.
    """

    external_id: tuple[str, ...]
    email: tuple[str, ...] = ()
    display_name: tuple[str, ...] = ()
    avatar: tuple[str, ...] = ()
    email_verified: tuple[str, ...] = ()
    email_always_verified: bool = False

    def apply(self, payload: dict[str, Any]) -> NormalizedProfile:
        """Map a provider profile payload to the canonical shape.

        Raises:
            ValueError: If no external id can be found.
        """
        external_id = _first(payload, self.external_id)
        if external_id is None:
            raise ValueError("Profile payload has no external id")
        email = _first(payload, self.email) if self._email_is_verified(payload) else None
        return NormalizedProfile(
            external_id=str(external_id),
            email=str(email).strip().lower() if email else None,
            display_name=_first(payload, self.display_name),
            avatar=_first(payload, self.avatar),
        )

    def _email_is_verified(self, payload: dict[str, Any]) -> bool:
        if self.email_always_verified:
            return True
        claim = _first(payload, self.email_verified)
        return claim is True or str(claim).lower() == "true"


def _first(payload: dict[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        value: Any = payload
        for part in key.split("."):
            if not isinstance(value, dict):
                value = None
                break
            value = value.get(part)
        if value not in (None, ""):
            return value
    return None


@dataclass(frozen=True)
class ProviderEndpoints:
    """Endpoint URLs and scopes for one provider."""

    authorization_url: str
    token_url: str
    userinfo_url: str
    scopes: tuple[str, ...] = ()
    scope_separator: str = " "


@dataclass(frozen=True)
class StandardOAuth2Descriptor:
    """Provider using the standard authorization-code + bearer userinfo flow."""

    name: str
    display_name: str
    client_id: str
    client_secret: str
    endpoints: ProviderEndpoints
    mapping: ProfileMapping
    order: int = 0
    icon: str | None = None
    color: str | None = None
    userinfo_headers: dict[str, str] = field(default_factory=dict)
    kind: Literal["standard"] = "standard"

    def to_public(self) -> PublicProvider:
        """Strip credentials."""
        return PublicProvider(
            name=self.name,
            display_name=self.display_name,
            icon=self.icon,
            color=self.color,
            order=self.order,
        )


@dataclass(frozen=True)
class CustomEndpointOAuth2Descriptor:
    """Provider with bespoke authorization, token and userinfo requests.

    The three builder callables receive the descriptor and request values
    and return the query (GET) or form (POST) parameters for the
    corresponding HTTP call; the unwrap callables pull the useful object
    out of the provider's response envelope and raise ValueError on a
    provider-level error payload.
    """

    name: str
    display_name: str
    client_id: str
    client_secret: str
    endpoints: ProviderEndpoints
    mapping: ProfileMapping
    authorization_params: Callable[["CustomEndpointOAuth2Descriptor", str, str], dict[str, str]]
    token_request: Callable[["CustomEndpointOAuth2Descriptor", str, str], dict[str, str]]
    userinfo_request: Callable[
        ["CustomEndpointOAuth2Descriptor", ProviderTokens], dict[str, str]
    ]
    unwrap_token: Callable[[dict[str, Any]], dict[str, Any]] = lambda data: data
    unwrap_profile: Callable[[dict[str, Any]], dict[str, Any]] = lambda data: data
    token_method: Literal["GET", "POST"] = "GET"
    userinfo_method: Literal["GET", "POST"] = "GET"
    authorization_fragment: str = ""
    order: int = 0
    icon: str | None = None
    color: str | None = None
    kind: Literal["custom"] = "custom"

    def to_public(self) -> PublicProvider:
        """Strip credentials."""
        return PublicProvider(
            name=self.name,
            display_name=self.display_name,
            icon=self.icon,
            color=self.color,
            order=self.order,
        )


ProviderDescriptor = StandardOAuth2Descriptor | CustomEndpointOAuth2Descriptor
