"""Tests for the authentication module."""

from __future__ import annotations

from pathlib import Path
from urllib.parse import parse_qs

import httpx
import pytest
import yaml
from pytest_httpx import HTTPXMock

from pysharefile.api import (
    AuthClient,
    AuthError,
    ConfigError,
    NotAuthenticatedError,
    Session,
    authenticate,
)
from pysharefile.api.auth import (
    CONFIG_FILE_MODE,
    DEFAULT_CONFIG_NAME,
    XDG_CONFIG_NAME,
    _get_default_config_path,
)

TOKEN_URL = "https://acme.sharefile.com/oauth/token"


@pytest.fixture
def token_response() -> dict:
    """Sample token endpoint response."""
    return {
        "access_token": "tok-123",
        "refresh_token": "ref-456",
        "token_type": "bearer",
        "expires_in": 28800,
        "appcp": "sharefile.com",
        "apicp": "sharefile.com",
        "subdomain": "acme",
    }


class TestSession:
    """Tests for the Session model."""

    def test_hostname(self) -> None:
        """Test hostname is derived from the subdomain."""
        session = Session(access_token="tok", subdomain="acme")
        assert session.hostname == "acme.sf-api.com"

    def test_authorization_header(self) -> None:
        """Test bearer header is derived from the access token."""
        session = Session(access_token="tok", subdomain="acme")
        assert session.authorization_header == "Bearer tok"

    def test_empty_token_rejected(self) -> None:
        """Test a Session cannot be built with an empty token."""
        with pytest.raises(ValueError):
            Session(access_token="", subdomain="acme")


class TestAuthenticate:
    """Tests for the authenticate function."""

    def test_success(self, httpx_mock: HTTPXMock, token_response: dict) -> None:
        """Test successful authentication returns a usable Session."""
        httpx_mock.add_response(url=TOKEN_URL, method="POST", json=token_response)

        session = authenticate(
            "acme.sharefile.com", "cid", "csecret", "me@acme.com", "pw"
        )

        assert session.access_token == "tok-123"
        assert session.subdomain == "acme"
        assert session.hostname == "acme.sf-api.com"
        assert session.authorization_header == "Bearer tok-123"

    def test_sends_password_grant_form(
        self, httpx_mock: HTTPXMock, token_response: dict
    ) -> None:
        """Test the token request is a form-encoded password grant."""
        httpx_mock.add_response(url=TOKEN_URL, method="POST", json=token_response)

        authenticate("https://acme.sharefile.com", "cid", "csecret", "me", "pw")

        request = httpx_mock.get_request()
        assert request is not None
        assert request.headers["Content-Type"] == "application/x-www-form-urlencoded"
        form = parse_qs(request.content.decode())
        assert form == {
            "grant_type": ["password"],
            "client_id": ["cid"],
            "client_secret": ["csecret"],
            "username": ["me"],
            "password": ["pw"],
        }

    def test_transport_failure(self, httpx_mock: HTTPXMock) -> None:
        """Test a network failure raises AuthError."""
        httpx_mock.add_exception(httpx.ConnectError("connection refused"))

        with pytest.raises(AuthError, match="HTTP error"):
            authenticate("acme.sharefile.com", "cid", "csecret", "me", "pw")

    def test_rejected_credentials(self, httpx_mock: HTTPXMock) -> None:
        """Test a non-2xx token response raises AuthError."""
        httpx_mock.add_response(
            url=TOKEN_URL,
            method="POST",
            status_code=400,
            json={"error": "invalid_grant"},
        )

        with pytest.raises(AuthError, match="400"):
            authenticate("acme.sharefile.com", "cid", "csecret", "me", "bad")

    def test_missing_subdomain(self, httpx_mock: HTTPXMock) -> None:
        """Test a token response without subdomain raises AuthError."""
        httpx_mock.add_response(
            url=TOKEN_URL, method="POST", json={"access_token": "tok"}
        )

        with pytest.raises(AuthError, match="Unusable"):
            authenticate("acme.sharefile.com", "cid", "csecret", "me", "pw")

    def test_non_json_body(self, httpx_mock: HTTPXMock) -> None:
        """Test a non-JSON token response raises AuthError."""
        httpx_mock.add_response(url=TOKEN_URL, method="POST", text="<html></html>")

        with pytest.raises(AuthError, match="Unusable"):
            authenticate("acme.sharefile.com", "cid", "csecret", "me", "pw")


class TestAuthClientSession:
    """Tests for AuthClient session handling."""

    def test_require_session_before_authentication(self, tmp_path: Path) -> None:
        """Test accessors fail before any Session exists."""
        client = AuthClient(config_path=tmp_path / ".sharefile")

        with pytest.raises(NotAuthenticatedError):
            client.require_session()
        with pytest.raises(NotAuthenticatedError):
            client.get_authorization_header()
        with pytest.raises(NotAuthenticatedError):
            client.get_hostname()

    def test_not_authenticated_is_auth_error(self) -> None:
        """Test NotAuthenticatedError can be caught as AuthError."""
        assert issubclass(NotAuthenticatedError, AuthError)

    def test_authenticate_stores_session(
        self, tmp_path: Path, httpx_mock: HTTPXMock, token_response: dict
    ) -> None:
        """Test authenticate makes the Session current."""
        httpx_mock.add_response(url=TOKEN_URL, method="POST", json=token_response)

        client = AuthClient(config_path=tmp_path / ".sharefile")
        client.authenticate("acme.sharefile.com", "cid", "csecret", "me", "pw")

        assert client.get_hostname() == "acme.sf-api.com"
        assert client.get_authorization_header() == "Bearer tok-123"

    def test_authenticate_replaces_session(
        self, tmp_path: Path, httpx_mock: HTTPXMock, token_response: dict
    ) -> None:
        """Test re-authentication replaces an existing Session."""
        httpx_mock.add_response(url=TOKEN_URL, method="POST", json=token_response)

        old = Session(access_token="old", subdomain="old")
        client = AuthClient(config_path=tmp_path / ".sharefile", session=old)
        client.authenticate("acme.sharefile.com", "cid", "csecret", "me", "pw")

        assert client.session is not None
        assert client.session.access_token == "tok-123"

    def test_failed_authenticate_keeps_previous_session(
        self, tmp_path: Path, httpx_mock: HTTPXMock
    ) -> None:
        """Test a failed authentication leaves the previous Session in place."""
        httpx_mock.add_response(url=TOKEN_URL, method="POST", status_code=401)

        old = Session(access_token="old", subdomain="old")
        client = AuthClient(config_path=tmp_path / ".sharefile", session=old)

        with pytest.raises(AuthError):
            client.authenticate("acme.sharefile.com", "cid", "csecret", "me", "pw")
        assert client.session == old


class TestAuthClientConfig:
    """Tests for AuthClient session persistence."""

    def test_default_config_path(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test default config path falls back to the home directory."""
        monkeypatch.delenv("SHAREFILE_CONFIG", raising=False)
        monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
        monkeypatch.setattr(Path, "home", lambda: tmp_path)
        assert _get_default_config_path() == tmp_path / DEFAULT_CONFIG_NAME

    def test_env_config_path(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test config path from environment variable."""
        env_path = tmp_path / "env_config"
        monkeypatch.setenv("SHAREFILE_CONFIG", str(env_path))
        client = AuthClient()
        assert client.config_path == env_path

    def test_xdg_config_path(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test an existing XDG config file is picked up."""
        monkeypatch.delenv("SHAREFILE_CONFIG", raising=False)
        monkeypatch.setattr(Path, "home", lambda: tmp_path / "home")
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
        xdg_config = tmp_path / "xdg" / XDG_CONFIG_NAME
        xdg_config.parent.mkdir(parents=True)
        xdg_config.write_text("")

        assert _get_default_config_path() == xdg_config

    def test_load_session_file_not_exists(self, tmp_path: Path) -> None:
        """Test loading when the session file doesn't exist."""
        client = AuthClient(config_path=tmp_path / "nonexistent")
        assert client.load_session() is None
        assert client.session is None

    def test_load_session_empty_file(self, tmp_path: Path) -> None:
        """Test loading from an empty session file."""
        config_file = tmp_path / ".sharefile"
        config_file.write_text("")

        client = AuthClient(config_path=config_file)
        assert client.load_session() is None

    def test_load_session_invalid_yaml(self, tmp_path: Path) -> None:
        """Test loading from an invalid YAML file."""
        config_file = tmp_path / ".sharefile"
        config_file.write_text("invalid: yaml: content:")

        client = AuthClient(config_path=config_file)
        with pytest.raises(ConfigError, match="Failed to parse config"):
            client.load_session()

    def test_load_session_missing_fields(self, tmp_path: Path) -> None:
        """Test loading a file without the required session fields."""
        config_file = tmp_path / ".sharefile"
        config_file.write_text(yaml.safe_dump({"access_token": "tok"}))

        client = AuthClient(config_path=config_file)
        with pytest.raises(ConfigError, match="Invalid session"):
            client.load_session()

    def test_save_and_load_session(self, tmp_path: Path) -> None:
        """Test a saved Session is restored by from_config."""
        config_file = tmp_path / "nested" / ".sharefile"
        session = Session(access_token="tok", subdomain="acme", expires_in=3600)

        AuthClient(config_path=config_file).save_session(session)

        assert config_file.stat().st_mode & 0o777 == CONFIG_FILE_MODE
        content = yaml.safe_load(config_file.read_text())
        assert content["access_token"] == "tok"
        assert content["subdomain"] == "acme"

        restored = AuthClient.from_config(config_file)
        assert restored.session == session

    def test_save_session_no_session_error(self, tmp_path: Path) -> None:
        """Test save_session fails when there is nothing to save."""
        client = AuthClient(config_path=tmp_path / ".sharefile")
        with pytest.raises(ConfigError, match="No session to save"):
            client.save_session()

    def test_clear_session(self, tmp_path: Path) -> None:
        """Test clear_session forgets the Session and removes the file."""
        config_file = tmp_path / ".sharefile"
        client = AuthClient(config_path=config_file)
        client.save_session(Session(access_token="tok", subdomain="acme"))

        client.clear_session()

        assert client.session is None
        assert not config_file.exists()
