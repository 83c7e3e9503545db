"""
tests/test_sign_in_view.py -- Web route tests for the sign-in page.

The auth client is replaced by the mock_auth_client fixture; each test decides
the outcome by calling on_success or on_error from a side_effect, the same
way the real client reports results.

Coverage:
  - Page renders the form, social buttons and sign-up link
  - Unconfigured or unknown provider: the button returns to /sign-in with a message
  - Cross-site POSTs (untrusted Origin) are refused before the auth client
  - Invalid email / missing password: inline messages, no auth call
  - Success: exactly one call, one 303 to /, session cookie set
  - Failure: server message shown in the alert, email kept, password dropped
  - ?error= codes map to whitelisted messages only
  - Page shell logs once per process
"""

from __future__ import annotations

import logging
from unittest.mock import MagicMock

from fastapi.testclient import TestClient

from web.auth_client import AuthClientError, ErrorContext, SuccessContext
from web.routes import _announce_page


def _succeed(credentials, on_success=None, on_error=None, **kwargs):
    on_success(SuccessContext(data={"token": "signed-session", "user": {"name": "Ada"}}, response=None))


def _fail_with(message: str, status: int = 401):
    def side_effect(credentials, on_success=None, on_error=None, **kwargs):
        on_error(ErrorContext(error=AuthClientError(message, status=status)))

    return side_effect


class TestSignInPage:
    def test_renders_form(self, web_client: TestClient, mock_auth_client: MagicMock) -> None:
        resp = web_client.get("/sign-in")
        assert resp.status_code == 200
        html = resp.text
        assert "Welcome back" in html
        assert 'name="email"' in html
        assert 'name="password"' in html
        assert ">Sign in</button>" in html
        assert ">Google</button>" in html
        assert ">GitHub</button>" in html
        assert 'href="/sign-up"' in html
        assert "Invalid email" not in html

    def test_oauth_error_code_shows_message(self, web_client: TestClient, mock_auth_client: MagicMock) -> None:
        resp = web_client.get("/sign-in?error=oauth_failed")
        assert "Social sign-in failed. Please try again." in resp.text

    def test_unknown_error_code_is_not_rendered(self, web_client: TestClient, mock_auth_client: MagicMock) -> None:
        resp = web_client.get("/sign-in?error=<script>alert(1)</script>")
        assert "<script>alert(1)</script>" not in resp.text
        assert 'role="alert"' not in resp.text


class TestSignInValidation:
    def test_invalid_email_blocks_call(self, web_client: TestClient, mock_auth_client: MagicMock) -> None:
        resp = web_client.post("/sign-in", data={"email": "not-an-email", "password": "secret"})

        assert resp.status_code == 200
        assert "Invalid email" in resp.text
        mock_auth_client.sign_in.email.assert_not_called()

    def test_missing_password_blocks_call(self, web_client: TestClient, mock_auth_client: MagicMock) -> None:
        resp = web_client.post("/sign-in", data={"email": "ada@example.com", "password": ""})

        assert "Password is required" in resp.text
        assert 'value="ada@example.com"' in resp.text
        mock_auth_client.sign_in.email.assert_not_called()

    def test_empty_form_shows_both_messages(self, web_client: TestClient, mock_auth_client: MagicMock) -> None:
        resp = web_client.post("/sign-in", data={})
        assert "Invalid email" in resp.text
        assert "Password is required" in resp.text
        mock_auth_client.sign_in.email.assert_not_called()


class TestSignInSubmit:
    def test_success_redirects_home_once(self, web_client: TestClient, mock_auth_client: MagicMock) -> None:
        mock_auth_client.sign_in.email.side_effect = _succeed

        resp = web_client.post("/sign-in", data={"email": "ada@example.com", "password": "secret"})

        assert resp.status_code == 303
        assert resp.headers["location"] == "/"
        assert "session_token=signed-session" in resp.headers["set-cookie"]
        mock_auth_client.sign_in.email.assert_called_once()
        credentials = mock_auth_client.sign_in.email.call_args.args[0]
        assert credentials == {"email": "ada@example.com", "password": "secret"}
        kwargs = mock_auth_client.sign_in.email.call_args.kwargs
        assert callable(kwargs["on_success"])
        assert callable(kwargs["on_error"])
        assert kwargs["client_ip"] == "testclient"

    def test_error_message_shown_inline(self, web_client: TestClient, mock_auth_client: MagicMock) -> None:
        mock_auth_client.sign_in.email.side_effect = _fail_with("Invalid email or password")

        resp = web_client.post("/sign-in", data={"email": "ada@example.com", "password": "wrong-secret"})

        assert resp.status_code == 200
        assert "Invalid email or password" in resp.text
        assert 'value="ada@example.com"' in resp.text
        assert "wrong-secret" not in resp.text
        assert "set-cookie" not in resp.headers
        mock_auth_client.sign_in.email.assert_called_once()

    def test_transport_error_shown_inline(self, web_client: TestClient, mock_auth_client: MagicMock) -> None:
        mock_auth_client.sign_in.email.side_effect = _fail_with("Unable to reach the authentication service.", 0)
        resp = web_client.post("/sign-in", data={"email": "ada@example.com", "password": "secret"})
        assert "Unable to reach the authentication service." in resp.text

    def test_no_callback_rerenders_form(self, web_client: TestClient, mock_auth_client: MagicMock) -> None:
        resp = web_client.post("/sign-in", data={"email": "ada@example.com", "password": "secret"})
        assert resp.status_code == 200
        assert "Welcome back" in resp.text


class TestSocialButtons:
    def test_button_redirects_to_provider(
        self, web_client: TestClient, mock_auth_client: MagicMock, social_configured
    ) -> None:
        target = "http://localhost:3000/api/auth/sign-in/social/github?callbackURL=%2F"
        mock_auth_client.sign_in.social.return_value = target

        resp = web_client.post("/social/github")

        assert resp.status_code == 303
        assert resp.headers["location"] == target
        mock_auth_client.sign_in.social.assert_called_once_with(provider="github", callback_url="/")

    def test_unconfigured_provider_returns_to_sign_in(
        self, web_client: TestClient, mock_auth_client: MagicMock
    ) -> None:
        resp = web_client.post("/social/github")

        assert resp.status_code == 303
        assert resp.headers["location"] == "/sign-in?error=oauth_failed"
        mock_auth_client.sign_in.social.assert_not_called()

        follow = web_client.get(resp.headers["location"])
        assert "Social sign-in failed. Please try again." in follow.text
        assert ">GitHub</button>" in follow.text

    def test_unknown_provider_returns_to_sign_in(
        self, web_client: TestClient, mock_auth_client: MagicMock, social_configured
    ) -> None:
        resp = web_client.post("/social/myspace")

        assert resp.headers["location"] == "/sign-in?error=oauth_failed"
        mock_auth_client.sign_in.social.assert_not_called()


class TestCrossSiteForms:
    def test_untrusted_origin_sign_in_refused(self, web_client: TestClient, mock_auth_client: MagicMock) -> None:
        mock_auth_client.sign_in.email.side_effect = _succeed

        resp = web_client.post(
            "/sign-in",
            data={"email": "ada@example.com", "password": "secret"},
            headers={"Origin": "https://evil.example"},
        )

        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "INVALID_ORIGIN"
        assert "set-cookie" not in resp.headers
        mock_auth_client.sign_in.email.assert_not_called()

    def test_untrusted_origin_sign_out_refused(self, web_client: TestClient, mock_auth_client: MagicMock) -> None:
        resp = web_client.post("/sign-out", headers={"Origin": "https://evil.example"})
        assert resp.status_code == 403
        mock_auth_client.sign_out.assert_not_called()

    def test_untrusted_origin_social_refused(
        self, web_client: TestClient, mock_auth_client: MagicMock, social_configured
    ) -> None:
        resp = web_client.post("/social/github", headers={"Origin": "https://evil.example"})
        assert resp.status_code == 403
        mock_auth_client.sign_in.social.assert_not_called()

    def test_trusted_origin_sign_in_allowed(self, web_client: TestClient, mock_auth_client: MagicMock) -> None:
        mock_auth_client.sign_in.email.side_effect = _succeed

        resp = web_client.post(
            "/sign-in",
            data={"email": "ada@example.com", "password": "secret"},
            headers={"Origin": "http://localhost:3000"},
        )

        assert resp.status_code == 303
        mock_auth_client.sign_in.email.assert_called_once()


def test_sign_in_page_logs_once(web_client: TestClient, mock_auth_client: MagicMock, caplog) -> None:
    _announce_page.cache_clear()
    caplog.set_level(logging.INFO, logger="meetai.web")

    web_client.get("/sign-in")
    web_client.get("/sign-in")

    messages = [r.getMessage() for r in caplog.records if r.name == "meetai.web"]
    assert messages.count("Sign In page") == 1
