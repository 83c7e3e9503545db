"""
auth/oauth.py -- Authlib OAuth/OIDC provider configuration.

Reads core.config.get_settings() at module load to decide which providers are
active. Only providers with both client ID and secret configured get
registered.

Security notes:
  Email verification is mandatory. get_oauth_user_info() raises ValueError if
  the provider does not confirm the email is verified. sign_in_social() links
  accounts by email, so an unverified address could hand a victim's account
  to whoever typed it into their provider profile.

  The OAuth state parameter is stored by authlib in the Starlette session
  (SessionMiddleware) between the authorization redirect and the callback.

Supported providers:
  github -- Authorization code flow; static endpoints.
  google -- Authorization code flow; OIDC discovery.

Layer rule: no imports from api/ or web/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging

from authlib.integrations.starlette_client import OAuth

from core.config import get_settings

logger = logging.getLogger("meetai.auth.oauth")

# ---------------------------------------------------------------------------
# Authlib OAuth registry
# ---------------------------------------------------------------------------

oauth = OAuth()

_cfg = get_settings()

# GitHub -- static endpoints (no OIDC discovery document)
if _cfg.github_client_id and _cfg.github_client_secret:
    oauth.register(
        name="github",
        client_id=_cfg.github_client_id,
        client_secret=_cfg.github_client_secret,
        access_token_url="https://github.com/login/oauth/access_token",  # noqa: S106 -- URL, not a password
        authorize_url="https://github.com/login/oauth/authorize",
        api_base_url="https://api.github.com/",
        client_kwargs={"scope": "read:user user:email"},
    )
    logger.info("GitHub OAuth provider registered")

# Google -- OIDC discovery
if _cfg.google_client_id and _cfg.google_client_secret:
    oauth.register(
        name="google",
        client_id=_cfg.google_client_id,
        client_secret=_cfg.google_client_secret,
        server_metadata_url="https://accounts.google.com/.well-known/openid-configuration",
        client_kwargs={"scope": "openid email profile"},
    )
    logger.info("Google OAuth provider registered")


# ---------------------------------------------------------------------------
# Provider metadata
# ---------------------------------------------------------------------------


def get_enabled_providers() -> list[dict]:
    """Return {"name", "label"} for every provider with credentials configured."""
    return get_settings().enabled_social_providers()


# ---------------------------------------------------------------------------
# Profile extraction -- provider-specific normalization
# ---------------------------------------------------------------------------


async def get_oauth_user_info(client, provider: str, token: dict) -> dict:
    """Extract the verified identity from a provider token response.

    Returns {"email", "subject", "name", "image"}; email and subject are
    always present.

    Raises:
        ValueError: If a verified email cannot be confirmed, or the provider
            is unknown. The callback treats this as a failed sign-in.
        httpx.HTTPError: If a provider API call fails or answers non-2xx.
    """
    if provider == "github":
        return await _get_github_user_info(client, token)
    elif provider == "google":
        return _get_oidc_user_info(token, provider)
    else:
        raise ValueError(f"Unknown OAuth provider: {provider!r}")


async def _get_github_user_info(client, token: dict) -> dict:
    """GitHub does not put the email in the token. Two API calls are required:

      1. GET /user -- numeric user ID (stable subject), display name, avatar.
      2. GET /user/emails -- the primary verified email.
    """
    resp = await client.get("user", token=token)
    resp.raise_for_status()
    profile = resp.json()

    emails_resp = await client.get("user/emails", token=token)
    emails_resp.raise_for_status()

    email: str | None = None
    for entry in emails_resp.json():
        if entry.get("primary") and entry.get("verified"):
            email = entry["email"]
            break

    if not email:
        raise ValueError(
            "GitHub OAuth: no primary verified email found. "
            "The user must verify their email address on GitHub before signing in."
        )

    return {
        "email": email,
        "subject": str(profile["id"]),
        "name": profile.get("name") or profile.get("login"),
        "image": profile.get("avatar_url"),
    }


def _get_oidc_user_info(token: dict, provider: str) -> dict:
    """Read email, email_verified and sub from the id_token claims.

    Some providers omit email_verified entirely -- that counts as unverified.
    """
    userinfo = token.get("userinfo")
    if not userinfo:
        raise ValueError(f"{provider} OAuth: no userinfo in token response")

    if not userinfo.get("email_verified", False):
        raise ValueError(f"{provider} OAuth: email is not verified.")

    email = userinfo.get("email")
    subject = userinfo.get("sub")
    if not email or not subject:
        raise ValueError(f"{provider} OAuth: missing email or sub claim in userinfo")

    return {
        "email": email,
        "subject": str(subject),
        "name": userinfo.get("name"),
        "image": userinfo.get("picture"),
    }
