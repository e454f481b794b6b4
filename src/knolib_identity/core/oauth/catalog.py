"""Built-in endpoint and profile-mapping table for supported providers.

The persisted ProviderConfig says whether a provider is enabled and holds
its credentials; this table says how to talk to it. Adding a provider means
adding an entry here, nothing else in the flow changes.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from knolib_identity.core.oauth.types import (
    CustomEndpointOAuth2Descriptor,
    ProfileMapping,
    ProviderConfig,
    ProviderDescriptor,
    ProviderEndpoints,
    ProviderTokens,
    StandardOAuth2Descriptor,
)


@dataclass(frozen=True)
class CatalogEntry:
    """Static facts about one provider type."""

    name: str
    display_name: str
    icon: str
    color: str
    order: int
    kind: str  # "standard" or "custom"
    endpoints: ProviderEndpoints
    mapping: ProfileMapping


GOOGLE = CatalogEntry(
    name="google",
    display_name="Google",
    icon="🔍",
    color="#db4437",
    order=1,
    kind="standard",
    endpoints=ProviderEndpoints(
        authorization_url="https://accounts.google.com/o/oauth2/v2/auth",
        token_url="https://oauth2.googleapis.com/token",
        userinfo_url="https://openidconnect.googleapis.com/v1/userinfo",
        scopes=("openid", "email", "profile"),
    ),
    mapping=ProfileMapping(
        external_id=("sub",),
        email=("email",),
        email_verified=("email_verified",),
        display_name=("name",),
        avatar=("picture",),
    ),
)

GITHUB = CatalogEntry(
    name="github",
    display_name="GitHub",
    icon="🐙",
    color="#333",
    order=2,
    kind="standard",
    endpoints=ProviderEndpoints(
        authorization_url="https://github.com/login/oauth/authorize",
        token_url="https://github.com/login/oauth/access_token",
        userinfo_url="https://api.github.com/user",
        scopes=("read:user", "user:email"),
    ),
    mapping=ProfileMapping(
        external_id=("id",),
        email=("email",),
        # The public profile email can only be set to a verified address
        email_always_verified=True,
        display_name=("name", "login"),
        avatar=("avatar_url",),
    ),
)

# Microsoft Graph has no verification claim and ``mail`` is set by the
# tenant, so Microsoft sign-ins never carry an email.
MICROSOFT = CatalogEntry(
    name="microsoft",
    display_name="Microsoft",
    icon="🪟",
    color="#0078d4",
    order=3,
    kind="standard",
    endpoints=ProviderEndpoints(
        authorization_url="https://login.microsoftonline.com/common/oauth2/v2.0/authorize",
        token_url="https://login.microsoftonline.com/common/oauth2/v2.0/token",
        userinfo_url="https://graph.microsoft.com/v1.0/me",
        scopes=("openid", "profile", "email", "User.Read"),
    ),
    mapping=ProfileMapping(
        external_id=("id",),
        display_name=("displayName",),
    ),
)

# WeChat never returns an email.
WECHAT = CatalogEntry(
    name="wechat",
    display_name="微信",
    icon="💬",
    color="#07c160",
    order=4,
    kind="custom",
    endpoints=ProviderEndpoints(
        authorization_url="https://open.weixin.qq.com/connect/qrconnect",
        token_url="https://api.weixin.qq.com/sns/oauth2/access_token",
        userinfo_url="https://api.weixin.qq.com/sns/userinfo",
        scopes=("snsapi_login",),
        scope_separator=",",
    ),
    mapping=ProfileMapping(
        external_id=("unionid", "openid"),
        display_name=("nickname",),
        avatar=("headimgurl",),
    ),
)

# Alipay never returns an email. Requests to the open-API gateway are
# RSA2-signed with the application private key stored as client_secret.
ALIPAY = CatalogEntry(
    name="alipay",
    display_name="支付宝",
    icon="💰",
    color="#1677ff",
    order=5,
    kind="custom",
    endpoints=ProviderEndpoints(
        authorization_url="https://openauth.alipay.com/oauth2/publicAppAuthorize.htm",
        token_url="https://openapi.alipay.com/gateway.do",
        userinfo_url="https://openapi.alipay.com/gateway.do",
        scopes=("auth_user",),
    ),
    mapping=ProfileMapping(
        external_id=("user_id", "open_id"),
        display_name=("nick_name",),
        avatar=("avatar",),
    ),
)

CATALOG: dict[str, CatalogEntry] = {
    entry.name: entry for entry in (GOOGLE, GITHUB, MICROSOFT, WECHAT, ALIPAY)
}


# WeChat


def _wechat_authorization_params(
    descriptor: CustomEndpointOAuth2Descriptor, redirect_uri: str, state: str
) -> dict[str, str]:
    return {
        "appid": descriptor.client_id,
        "redirect_uri": redirect_uri,
        "response_type": "code",
        "scope": descriptor.endpoints.scope_separator.join(descriptor.endpoints.scopes),
        "state": state,
    }


def _wechat_token_request(
    descriptor: CustomEndpointOAuth2Descriptor, code: str, redirect_uri: str
) -> dict[str, str]:
    return {
        "appid": descriptor.client_id,
        "secret": descriptor.client_secret,
        "code": code,
        "grant_type": "authorization_code",
    }


def _wechat_userinfo_request(
    descriptor: CustomEndpointOAuth2Descriptor, tokens: ProviderTokens
) -> dict[str, str]:
    return {
        "access_token": tokens.access_token,
        "openid": str(tokens.extra.get("openid", "")),
    }


def _wechat_unwrap(data: dict[str, Any]) -> dict[str, Any]:
    if data.get("errcode"):
        raise ValueError(f"wechat error {data.get('errcode')}: {data.get('errmsg')}")
    return data


# Alipay

_ALIPAY_TZ = timezone(timedelta(hours=8))


def sign_alipay_params(params: dict[str, str], private_key_pem: str) -> str:
    """Compute the RSA2 signature of gateway parameters.

    Parameters are sorted by key and joined as ``k=v`` pairs with ``&``;
    empty values and the ``sign`` key itself are excluded.

    Args:
        params: Request parameters.
        private_key_pem: PEM-encoded RSA private key.

    Returns:
        Base64-encoded SHA256withRSA signature.
    """
    content = "&".join(
        f"{key}={params[key]}" for key in sorted(params) if key != "sign" and params[key] != ""
    )
    key = serialization.load_pem_private_key(private_key_pem.encode("utf-8"), password=None)
    if not isinstance(key, rsa.RSAPrivateKey):
        raise ValueError("Alipay signing key must be an RSA private key")
    signature = key.sign(content.encode("utf-8"), padding.PKCS1v15(), hashes.SHA256())
    return base64.b64encode(signature).decode("ascii")


def _alipay_gateway_params(
    descriptor: CustomEndpointOAuth2Descriptor, method: str, extra: dict[str, str]
) -> dict[str, str]:
    params = {
        "app_id": descriptor.client_id,
        "method": method,
        "format": "JSON",
        "charset": "utf-8",
        "sign_type": "RSA2",
        "timestamp": datetime.now(_ALIPAY_TZ).strftime("%Y-%m-%d %H:%M:%S"),
        "version": "1.0",
        **extra,
    }
    params["sign"] = sign_alipay_params(params, descriptor.client_secret)
    return params


def _alipay_authorization_params(
    descriptor: CustomEndpointOAuth2Descriptor, redirect_uri: str, state: str
) -> dict[str, str]:
    return {
        "app_id": descriptor.client_id,
        "scope": descriptor.endpoints.scope_separator.join(descriptor.endpoints.scopes),
        "redirect_uri": redirect_uri,
        "state": state,
    }


def _alipay_token_request(
    descriptor: CustomEndpointOAuth2Descriptor, code: str, redirect_uri: str
) -> dict[str, str]:
    return _alipay_gateway_params(
        descriptor,
        "alipay.system.oauth.token",
        {"grant_type": "authorization_code", "code": code},
    )


def _alipay_userinfo_request(
    descriptor: CustomEndpointOAuth2Descriptor, tokens: ProviderTokens
) -> dict[str, str]:
    return _alipay_gateway_params(
        descriptor, "alipay.user.info.share", {"auth_token": tokens.access_token}
    )


def _alipay_unwrap(key: str) -> Any:
    def unwrap(data: dict[str, Any]) -> dict[str, Any]:
        if "error_response" in data:
            error = data["error_response"]
            raise ValueError(f"alipay error {error.get('code')}: {error.get('sub_msg')}")
        body = data.get(key)
        if not isinstance(body, dict):
            raise ValueError(f"alipay response missing {key}")
        if body.get("code") not in (None, "10000"):
            raise ValueError(f"alipay error {body.get('code')}: {body.get('sub_msg')}")
        return body

    return unwrap


def build_descriptor(config: ProviderConfig) -> ProviderDescriptor | None:
    """Build the runtime descriptor for a persisted provider config.

    Args:
        config: Stored provider configuration with credentials.

    Returns:
        The descriptor, or None if the provider name has no catalog entry.
    """
    entry = CATALOG.get(config.name)
    if entry is None:
        return None

    client_id = config.client_id or ""
    client_secret = config.client_secret or ""
    icon = config.icon or entry.icon
    color = config.color or entry.color

    if entry.name == "wechat":
        return CustomEndpointOAuth2Descriptor(
            name=config.name,
            display_name=config.display_name,
            client_id=client_id,
            client_secret=client_secret,
            endpoints=entry.endpoints,
            mapping=entry.mapping,
            authorization_params=_wechat_authorization_params,
            token_request=_wechat_token_request,
            userinfo_request=_wechat_userinfo_request,
            unwrap_token=_wechat_unwrap,
            unwrap_profile=_wechat_unwrap,
            authorization_fragment="wechat_redirect",
            order=config.order,
            icon=icon,
            color=color,
        )

    if entry.name == "alipay":
        return CustomEndpointOAuth2Descriptor(
            name=config.name,
            display_name=config.display_name,
            client_id=client_id,
            client_secret=client_secret,
            endpoints=entry.endpoints,
            mapping=entry.mapping,
            authorization_params=_alipay_authorization_params,
            token_request=_alipay_token_request,
            userinfo_request=_alipay_userinfo_request,
            unwrap_token=_alipay_unwrap("alipay_system_oauth_token_response"),
            unwrap_profile=_alipay_unwrap("alipay_user_info_share_response"),
            token_method="POST",
            userinfo_method="POST",
            order=config.order,
            icon=icon,
            color=color,
        )

    return StandardOAuth2Descriptor(
        name=config.name,
        display_name=config.display_name,
        client_id=client_id,
        client_secret=client_secret,
        endpoints=entry.endpoints,
        mapping=entry.mapping,
        order=config.order,
        icon=icon,
        color=color,
    )
