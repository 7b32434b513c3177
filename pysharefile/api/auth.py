"""Authentication for the ShareFile REST API.

Authentication Flow:
1. Client POSTs the OAuth password grant to ``{hostname}/oauth/token``
2. The response carries an access token and the account subdomain
3. Every API call goes to ``https://{subdomain}.sf-api.com`` with the
   access token as a bearer credential

The resulting Session can be persisted so later processes skip step 1.
There is no token refresh: an expired Session has to be replaced by
authenticating again.
"""

from __future__ import annotations

import logging
import os
import stat
import threading
from pathlib import Path
from typing import TYPE_CHECKING

import httpx
import yaml
from pydantic import ValidationError

from .models import Session

if TYPE_CHECKING:
    from typing import Self

logger = logging.getLogger(__name__)

TOKEN_PATH = "/oauth/token"

# Default config locations
DEFAULT_CONFIG_NAME = ".sharefile"
XDG_CONFIG_NAME = "sharefile/sharefile.conf"
CONFIG_ENV_VAR = "SHAREFILE_CONFIG"

# File permissions (owner read/write only)
CONFIG_FILE_MODE = stat.S_IRUSR | stat.S_IWUSR  # 0o600

# HTTP client settings
DEFAULT_TIMEOUT = 30.0


class AuthError(Exception):
    """Base exception for authentication errors."""

    pass


class NotAuthenticatedError(AuthError):
    """Raised when an authorized call is attempted without a Session."""

    pass


class ConfigError(AuthError):
    """Raised when session loading/saving fails."""

    pass


def _get_default_config_path() -> Path:
    """Determine the default session file path.

    Checks in order:
    1. SHAREFILE_CONFIG environment variable
    2. ~/.sharefile (home directory)
    3. ~/.config/sharefile/sharefile.conf (XDG config)

    Returns:
        Path to the session file.
    """
    env_config = os.environ.get(CONFIG_ENV_VAR)
    if env_config:
        return Path(env_config).expanduser()

    home_config = Path.home() / DEFAULT_CONFIG_NAME
    if home_config.exists():
        return home_config

    xdg_config_home = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config_home:
        xdg_config = Path(xdg_config_home) / XDG_CONFIG_NAME
    else:
        xdg_config = Path.home() / ".config" / XDG_CONFIG_NAME

    if xdg_config.exists():
        return xdg_config

    return home_config


def _token_url(hostname: str) -> str:
    """Build the token endpoint URL, defaulting to https for a bare host."""
    hostname = hostname.rstrip("/")
    if "://" not in hostname:
        hostname = f"https://{hostname}"
    return f"{hostname}{TOKEN_PATH}"


def authenticate(
    hostname: str,
    client_id: str,
    client_secret: str,
    username: str,
    password: str,
    *,
    timeout: float = DEFAULT_TIMEOUT,
) -> Session:
    """Exchange user credentials for a Session.

    Args:
        hostname: Account login host, e.g. ``acme.sharefile.com``.
        client_id: OAuth client id.
        client_secret: OAuth client secret.
        username: Account user name (email).
        password: Account password.
        timeout: Request timeout in seconds.

    Returns:
        The new Session.

    Raises:
        AuthError: If the request fails or the response is unusable.
    """
    form = {
        "grant_type": "password",
        "client_id": client_id,
        "client_secret": client_secret,
        "username": username,
        "password": password,
    }
    url = _token_url(hostname)
    logger.debug("POST %s", url)

    try:
        with httpx.Client(timeout=timeout) as client:
            response = client.post(url, data=form)
    except httpx.HTTPError as e:
        raise AuthError(f"HTTP error during authentication: {e}") from e

    if not response.is_success:
        raise AuthError(
            f"Authentication failed: {response.status_code} - {response.text}"
        )

    try:
        return Session.model_validate(response.json())
    except ValueError as e:
        # ValidationError is a ValueError, as is JSONDecodeError
        raise AuthError(f"Unusable token response: {e}") from e


class AuthClient:
    """Holder of the current Session.

    Handles authentication, session persistence and the precondition check
    every authorized call goes through.

    Example:
        >>> auth = AuthClient()
        >>> auth.authenticate("acme.sharefile.com", "id", "secret", "me", "pw")
        >>> auth.save_session()
        >>> auth.get_hostname()
        'acme.sf-api.com'

    Attributes:
        config_path: Path to the session file.
    """

    def __init__(
        self,
        config_path: str | Path | None = None,
        session: Session | None = None,
    ) -> None:
        """Initialize the authentication client.

        Args:
            config_path: Path to session file. If None, uses default location.
            session: Already established Session, if any.
        """
        if config_path is None:
            self.config_path = _get_default_config_path()
        else:
            self.config_path = Path(config_path).expanduser()

        self._lock = threading.Lock()
        self._session = session

    @property
    def session(self) -> Session | None:
        """Current Session, or None before authentication."""
        with self._lock:
            return self._session

    def authenticate(
        self,
        hostname: str,
        client_id: str,
        client_secret: str,
        username: str,
        password: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> Session:
        """Authenticate and replace the current Session.

        On failure the previous Session, if any, is left untouched.

        Raises:
            AuthError: If authentication fails.
        """
        session = authenticate(
            hostname,
            client_id,
            client_secret,
            username,
            password,
            timeout=timeout,
        )
        with self._lock:
            self._session = session
        logger.info("Authenticated against %s", session.hostname)
        return session

    def require_session(self) -> Session:
        """Return the current Session.

        Raises:
            NotAuthenticatedError: If there is no Session or its token is empty.
        """
        session = self.session
        if session is None or not session.access_token:
            raise NotAuthenticatedError("Not authenticated. Call authenticate() first.")
        return session

    def get_authorization_header(self) -> str:
        """Get the bearer Authorization header value."""
        return self.require_session().authorization_header

    def get_hostname(self) -> str:
        """Get the API hostname for the authenticated account."""
        return self.require_session().hostname

    def load_session(self) -> Session | None:
        """Load a Session from the session file.

        Returns:
            Session if the file exists and is non-empty, None otherwise.

        Raises:
            ConfigError: If the file exists but cannot be parsed.
        """
        if not self.config_path.exists():
            return None

        try:
            data = yaml.safe_load(self.config_path.read_text())
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse config file: {e}") from e
        except OSError as e:
            raise ConfigError(f"Failed to load config: {e}") from e

        if not data:
            return None

        try:
            session = Session.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid session in config file: {e}") from e

        with self._lock:
            self._session = session
        return session

    def save_session(self, session: Session | None = None) -> None:
        """Save a Session to the session file.

        Args:
            session: Session to save. If None, saves the current Session.

        Raises:
            ConfigError: If there is nothing to save or writing fails.
        """
        session = session or self.session
        if session is None:
            raise ConfigError("No session to save")

        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            content = yaml.safe_dump(
                session.model_dump(exclude_none=True), default_flow_style=False
            )
            self.config_path.write_text(content)
            self.config_path.chmod(CONFIG_FILE_MODE)
        except OSError as e:
            raise ConfigError(f"Failed to save config: {e}") from e

        with self._lock:
            self._session = session

    def clear_session(self) -> None:
        """Forget the current Session and remove the session file."""
        with self._lock:
            self._session = None
        try:
            self.config_path.unlink(missing_ok=True)
        except OSError as e:
            raise ConfigError(f"Failed to remove config: {e}") from e

    @classmethod
    def from_config(cls, config_path: str | Path | None = None) -> Self:
        """Create an AuthClient and load an existing Session.

        Args:
            config_path: Path to session file. If None, uses default location.

        Returns:
            AuthClient with the Session loaded (if available).
        """
        client = cls(config_path)
        client.load_session()
        return client
