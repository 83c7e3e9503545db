"""
tests/test_oauth.py -- Unit tests for provider profile extraction (auth/oauth.py).

get_oauth_user_info() is a coroutine; tests drive it with asyncio.run() and a
mocked authlib client, so no provider is contacted.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from auth.oauth import get_enabled_providers, get_oauth_user_info
from core.config import get_settings


def _json_response(body) -> MagicMock:
    resp = MagicMock()
    resp.json.return_value = body
    return resp


def _github_client(profile: dict, emails: list[dict]) -> MagicMock:
    client = MagicMock()
    client.get = AsyncMock(side_effect=[_json_response(profile), _json_response(emails)])
    return client


class TestGitHub:
    def test_primary_verified_email(self) -> None:
        client = _github_client(
            {"id": 583231, "login": "octocat", "name": None, "avatar_url": "https://avatars/octo.png"},
            [
                {"email": "old@example.com", "primary": False, "verified": True},
                {"email": "octo@example.com", "primary": True, "verified": True},
            ],
        )
        info = asyncio.run(get_oauth_user_info(client, "github", {"access_token": "t"}))
        assert info == {
            "email": "octo@example.com",
            "subject": "583231",
            "name": "octocat",
            "image": "https://avatars/octo.png",
        }

    def test_unverified_primary_rejected(self) -> None:
        client = _github_client(
            {"id": 1, "login": "octocat"},
            [{"email": "octo@example.com", "primary": True, "verified": False}],
        )
        with pytest.raises(ValueError, match="verified"):
            asyncio.run(get_oauth_user_info(client, "github", {"access_token": "t"}))


class TestGoogle:
    def test_verified_userinfo(self) -> None:
        token = {
            "userinfo": {
                "sub": "1098",
                "email": "g@example.com",
                "email_verified": True,
                "name": "G User",
                "picture": "https://lh3/g.png",
            }
        }
        info = asyncio.run(get_oauth_user_info(MagicMock(), "google", token))
        assert info == {"email": "g@example.com", "subject": "1098", "name": "G User", "image": "https://lh3/g.png"}

    @pytest.mark.parametrize(
        "userinfo",
        [
            None,
            {"sub": "1", "email": "g@example.com"},
            {"sub": "1", "email": "g@example.com", "email_verified": False},
            {"email_verified": True, "email": "g@example.com"},
        ],
    )
    def test_rejected_userinfo(self, userinfo) -> None:
        with pytest.raises(ValueError):
            asyncio.run(get_oauth_user_info(MagicMock(), "google", {"userinfo": userinfo}))


def test_unknown_provider() -> None:
    with pytest.raises(ValueError, match="Unknown OAuth provider"):
        asyncio.run(get_oauth_user_info(MagicMock(), "myspace", {}))


def test_enabled_providers_follow_configuration() -> None:
    cfg = get_settings().model_copy(
        update={
            "github_client_id": "id",
            "github_client_secret": "secret",
            "google_client_id": "",
            "google_client_secret": "",
        }
    )
    with patch("auth.oauth.get_settings", return_value=cfg):
        assert get_enabled_providers() == [{"name": "github", "label": "GitHub"}]
