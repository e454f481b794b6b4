"""OAuth authorization-code flow orchestration.

Handles the two halves of a delegated sign-in:
1. Build the provider authorization URL with a single-use ``state``
2. Consume the ``state``, exchange the code for tokens and fetch the
   profile, normalized to a ``NormalizedProfile``

Every provider goes through the same code path; the descriptor built by the
registry decides what the HTTP requests look like.
"""

from collections.abc import Iterable
from typing import Any
from urllib.parse import urlencode
from uuid import UUID

import httpx
import structlog
from pydantic import BaseModel

from knolib_identity.core.exceptions import (
    InvalidOAuthState,
    InvalidRedirect,
    ProviderUnavailable,
)
from knolib_identity.core.oauth.registry import ProviderRegistry
from knolib_identity.core.oauth.state import InMemoryOAuthStateStore, OAuthStateStore
from knolib_identity.core.oauth.types import (
    CustomEndpointOAuth2Descriptor,
    NormalizedProfile,
    ProviderDescriptor,
    ProviderTokens,
)
from knolib_identity.safety.validators import DEFAULT_ALLOWED_REDIRECT_DOMAINS, validate_redirect

logger = structlog.get_logger()

DEFAULT_HTTP_TIMEOUT_SECONDS = 10.0

_TOKEN_FIELDS = ("access_token", "refresh_token", "expires_in")


class AuthorizationResult(BaseModel):
    """Outcome of a completed authorization."""

    provider_name: str
    profile: NormalizedProfile
    tokens: ProviderTokens
    redirect_uri: str


class OAuthFlow:
    """Drives the authorization-code grant against any registered provider."""

    def __init__(
        self,
        registry: ProviderRegistry,
        state_store: OAuthStateStore | None = None,
        allowed_redirect_domains: Iterable[str] = DEFAULT_ALLOWED_REDIRECT_DOMAINS,
        development: bool = False,
        timeout_seconds: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize the flow.

        Args:
            registry: Provider registry, consulted on every call.
            state_store: Pending-authorization store.
            allowed_redirect_domains: Redirect allowlist.
            development: Accept localhost redirects.
            timeout_seconds: Timeout for each provider HTTP call.
        """
        self._registry = registry
        self._states = state_store if state_store is not None else InMemoryOAuthStateStore()
        self._allowed_domains = tuple(allowed_redirect_domains)
        self._development = development
        self._timeout = timeout_seconds

    async def begin_authorization(
        self, provider_name: str, redirect_uri: str, link_user_id: UUID | None = None
    ) -> str:
        """Build the authorization URL to send the user to.

        Args:
            provider_name: Registered provider name.
            redirect_uri: Callback URL on an allowlisted host.
            link_user_id: Signed-in user adding this provider to their
                account. None for a sign-in.

        Returns:
            Provider authorization URL carrying a fresh ``state``.

        Raises:
            ProviderNotFound: Unknown provider.
            ProviderDisabled: Provider disabled or not configured.
            InvalidRedirect: ``redirect_uri`` is not allowlisted.
        """
        descriptor = await self._registry.get_enabled_provider(provider_name)

        if not validate_redirect(redirect_uri, self._allowed_domains, self._development):
            logger.warning("oauth_redirect_rejected", provider=provider_name)
            raise InvalidRedirect()

        state = self._states.issue(descriptor.name, redirect_uri, link_user_id=link_user_id)
        url = self._authorization_url(descriptor, redirect_uri, state)
        logger.info(
            "oauth_authorization_started",
            provider=descriptor.name,
            purpose="link" if link_user_id else "sign_in",
        )
        return url

    def _authorization_url(
        self, descriptor: ProviderDescriptor, redirect_uri: str, state: str
    ) -> str:
        endpoints = descriptor.endpoints
        if isinstance(descriptor, CustomEndpointOAuth2Descriptor):
            params = descriptor.authorization_params(descriptor, redirect_uri, state)
            url = f"{endpoints.authorization_url}?{urlencode(params)}"
            if descriptor.authorization_fragment:
                url = f"{url}#{descriptor.authorization_fragment}"
            return url

        params = {
            "response_type": "code",
            "client_id": descriptor.client_id,
            "redirect_uri": redirect_uri,
            "scope": endpoints.scope_separator.join(endpoints.scopes),
            "state": state,
        }
        return f"{endpoints.authorization_url}?{urlencode(params)}"

    async def complete_authorization(
        self,
        provider_name: str,
        code: str,
        state: str,
        link_user_id: UUID | None = None,
    ) -> AuthorizationResult:
        """Finish the flow started by ``begin_authorization``.

        Args:
            provider_name: Provider named in the callback route.
            code: Authorization code from the provider.
            state: State returned by the provider.
            link_user_id: Must equal the value the flow was started with,
                so a sign-in state cannot complete a link and a link state
                only completes for the user who started it.

        Returns:
            Normalized profile plus the provider tokens.

        Raises:
            InvalidOAuthState: State unknown, expired, reused, issued for
                another provider, or started for another purpose or user.
            ProviderNotFound: Unknown provider.
            ProviderDisabled: Provider disabled since the flow began.
            ProviderUnavailable: Token or profile call failed.
        """
        pending = self._states.consume(state)
        if (
            pending is None
            or pending.provider_name != provider_name
            or pending.link_user_id != link_user_id
        ):
            logger.warning("oauth_state_rejected", provider=provider_name)
            raise InvalidOAuthState()

        descriptor = await self._registry.get_enabled_provider(provider_name)

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                tokens = await self._exchange_code(client, descriptor, code, pending.redirect_uri)
                payload = await self._fetch_profile(client, descriptor, tokens)
            profile = descriptor.mapping.apply(payload)
        except httpx.TimeoutException:
            logger.warning("oauth_provider_timeout", provider=provider_name)
            raise ProviderUnavailable() from None
        except httpx.HTTPStatusError as e:
            logger.warning(
                "oauth_provider_error_status",
                provider=provider_name,
                status_code=e.response.status_code,
            )
            raise ProviderUnavailable() from None
        except httpx.HTTPError as e:
            logger.warning("oauth_provider_transport_error", provider=provider_name, error=str(e))
            raise ProviderUnavailable() from None
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(
                "oauth_provider_malformed_response", provider=provider_name, error=str(e)
            )
            raise ProviderUnavailable() from None

        logger.info("oauth_authorization_completed", provider=provider_name)
        return AuthorizationResult(
            provider_name=provider_name,
            profile=profile,
            tokens=tokens,
            redirect_uri=pending.redirect_uri,
        )

    async def _exchange_code(
        self,
        client: httpx.AsyncClient,
        descriptor: ProviderDescriptor,
        code: str,
        redirect_uri: str,
    ) -> ProviderTokens:
        url = descriptor.endpoints.token_url
        headers = {"Accept": "application/json"}

        if isinstance(descriptor, CustomEndpointOAuth2Descriptor):
            params = descriptor.token_request(descriptor, code, redirect_uri)
            response = await _send(client, descriptor.token_method, url, params, headers)
            data = descriptor.unwrap_token(_json_object(response))
        else:
            response = await client.request(
                "POST",
                url,
                data={
                    "grant_type": "authorization_code",
                    "code": code,
                    "redirect_uri": redirect_uri,
                    "client_id": descriptor.client_id,
                    "client_secret": descriptor.client_secret,
                },
                headers=headers,
            )
            response.raise_for_status()
            data = _json_object(response)

        access_token = data.get("access_token")
        if not access_token:
            raise ValueError(str(data.get("error") or "token response has no access_token"))

        expires_in = data.get("expires_in")
        return ProviderTokens(
            access_token=str(access_token),
            refresh_token=data.get("refresh_token"),
            expires_in=int(expires_in) if expires_in is not None else None,
            extra={k: v for k, v in data.items() if k not in _TOKEN_FIELDS},
        )

    async def _fetch_profile(
        self,
        client: httpx.AsyncClient,
        descriptor: ProviderDescriptor,
        tokens: ProviderTokens,
    ) -> dict[str, Any]:
        url = descriptor.endpoints.userinfo_url

        if isinstance(descriptor, CustomEndpointOAuth2Descriptor):
            params = descriptor.userinfo_request(descriptor, tokens)
            response = await _send(
                client, descriptor.userinfo_method, url, params, {"Accept": "application/json"}
            )
            return descriptor.unwrap_profile(_json_object(response))

        headers = {
            "Accept": "application/json",
            "Authorization": f"Bearer {tokens.access_token}",
            **descriptor.userinfo_headers,
        }
        response = await client.request("GET", url, headers=headers)
        response.raise_for_status()
        return _json_object(response)


async def _send(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    params: dict[str, str],
    headers: dict[str, str],
) -> httpx.Response:
    if method == "POST":
        response = await client.request("POST", url, data=params, headers=headers)
    else:
        response = await client.request("GET", url, params=params, headers=headers)
    response.raise_for_status()
    return response


def _json_object(response: httpx.Response) -> dict[str, Any]:
    data = response.json()
    if not isinstance(data, dict):
        raise ValueError("provider response is not a JSON object")
    return data
