"""API client for ShareFile items and client users.

Operations:
- Get the root item, a single item, or a folder with a field projection
- List children of a folder
- Create, update and delete folders
- Download items
- Upload files (see ``upload``)
- List and create client users
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import TYPE_CHECKING, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from .auth import AuthClient
from .models import (
    ChildItem,
    ChildList,
    ClientList,
    ClientUser,
    FolderRequest,
    Item,
    Session,
    UserCreateRequest,
)

if TYPE_CHECKING:
    from typing import Self

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

# API paths (relative to the account API host)
ROOT_PATH = "/sf/v3/Items(allshared)"
ITEM_PATH = "/sf/v3/Items({item_id})"
CHILDREN_PATH = "/sf/v3/Items({item_id})/Children"
FOLDER_PATH = "/sf/v3/Items({item_id})/Folder"
DOWNLOAD_PATH = "/sf/v3/Items({item_id})/Download"
CLIENTS_PATH = "/sf/v3/Accounts/Clients"
USERS_PATH = "/sf/v3/Users"

EXPAND_CHILDREN = "$expand=Children"
FOLDER_PROJECTION = (
    "$expand=Children&$select=Id,Name,Children/Id,Children/Name,Children/CreationDate"
)

JSON_CONTENT_TYPE = "application/json"

# HTTP client settings
DEFAULT_TIMEOUT = 30.0
TRANSFER_TIMEOUT = 300.0  # 5 minutes for uploads and downloads
DOWNLOAD_CHUNK_SIZE = 64 * 1024


class ShareFileError(Exception):
    """Base exception for ShareFile API errors."""

    pass


class TransportError(ShareFileError):
    """Raised when the request could not be completed at the network level."""

    pass


class HttpError(ShareFileError):
    """Raised when the API answers with an unexpected status."""

    def __init__(self, status_code: int, message: str = "") -> None:
        detail = f": {message}" if message else ""
        super().__init__(f"HTTP {status_code}{detail}")
        self.status_code = status_code
        self.message = message


class MalformedResponseError(ShareFileError):
    """Raised when a response body does not decode into the expected shape."""

    pass


class DownloadError(ShareFileError):
    """Raised when a download cannot be written locally."""

    pass


class ShareFileClient:
    """Client for the ShareFile v3 REST API.

    Every call resolves the current Session first, so calling anything before
    authentication raises NotAuthenticatedError without touching the network.

    Example:
        >>> auth = AuthClient.from_config()
        >>> sf = ShareFileClient(auth)
        >>> root = sf.get_root(children=True)
        >>> sf.create_folder(root.id, "Reports", "Quarterly reports")

    Attributes:
        auth_client: Holder of the Session used for authorization.
        timeout: Timeout in seconds for ordinary API calls.
        transfer_timeout: Timeout in seconds for uploads and downloads.
    """

    def __init__(
        self,
        auth_client: AuthClient,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        transfer_timeout: float = TRANSFER_TIMEOUT,
    ) -> None:
        """Initialize the client.

        Args:
            auth_client: AuthClient holding (or about to hold) a Session.
            timeout: Timeout in seconds for ordinary API calls.
            transfer_timeout: Timeout in seconds for uploads and downloads.
        """
        self.auth_client = auth_client
        self.timeout = timeout
        self.transfer_timeout = transfer_timeout

    # =========================
    # Request pipeline
    # =========================

    def _get_url(self, path: str) -> str:
        """Build the absolute URL for an API path."""
        return f"https://{self.auth_client.get_hostname()}{path}"

    def _get_auth_headers(self) -> dict[str, str]:
        """Get authorization headers for the current Session."""
        return {"Authorization": self.auth_client.get_authorization_header()}

    def build_request(
        self,
        client: httpx.Client,
        method: str,
        url: str,
        *,
        content: bytes | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Request:
        """Build an authorized request for an absolute URL.

        Args:
            client: HTTP client the request will be sent with.
            method: HTTP method.
            url: Absolute URL.
            content: Optional request body.
            headers: Extra headers, e.g. Content-Type for a body.

        Raises:
            NotAuthenticatedError: If there is no Session.
        """
        request_headers = self._get_auth_headers()
        if headers:
            request_headers.update(headers)
        return client.build_request(
            method, url, content=content, headers=request_headers
        )

    def send(
        self,
        method: str,
        url: str,
        *,
        content: bytes | None = None,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        """Send an authorized request and return the fully read response.

        Raises:
            NotAuthenticatedError: If there is no Session.
            TransportError: On network failure.
            HttpError: If the response status is not 2xx.
        """
        timeout = self.timeout if timeout is None else timeout
        with httpx.Client(timeout=timeout) as client:
            request = self.build_request(
                client, method, url, content=content, headers=headers
            )
            logger.debug("%s %s", method, url)
            try:
                response = client.send(request)
            except httpx.HTTPError as e:
                raise TransportError(f"HTTP error during {method} {url}: {e}") from e

        logger.debug("%s %s -> %s", method, url, response.status_code)
        if not response.is_success:
            raise HttpError(response.status_code, response.text)
        return response

    def request(
        self,
        method: str,
        path: str,
        *,
        content: bytes | None = None,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        """Send an authorized request to an API path.

        Args:
            method: HTTP method.
            path: API path, including any query string.
            content: Optional request body.
            headers: Extra headers.
            timeout: Override for the default timeout.

        Returns:
            The response; decoding the body is up to the caller.

        Raises:
            NotAuthenticatedError: If there is no Session.
            TransportError: On network failure.
            HttpError: If the response status is not 2xx.
        """
        return self.send(
            method,
            self._get_url(path),
            content=content,
            headers=headers,
            timeout=timeout,
        )

    def _request_json(
        self, method: str, path: str, body: BaseModel | None = None
    ) -> httpx.Response:
        """Send a request with an optional JSON body."""
        if body is None:
            return self.request(method, path)
        return self.request(
            method,
            path,
            content=body.model_dump_json(by_alias=True).encode(),
            headers={"Content-Type": JSON_CONTENT_TYPE},
        )

    @staticmethod
    def decode(response: httpx.Response, model: type[ModelT]) -> ModelT:
        """Decode a JSON response body into a model.

        Raises:
            MalformedResponseError: If the body is not valid JSON for the model.
        """
        try:
            return model.model_validate_json(response.content)
        except ValidationError as e:
            raise MalformedResponseError(
                f"Unexpected {model.__name__} response: {e}"
            ) from e

    # =========================
    # Items
    # =========================

    def get_root(self, children: bool = False) -> Item:
        """Get the root item for the authenticated user.

        Args:
            children: If True, expands the root's children.
        """
        path = ROOT_PATH
        if children:
            path = f"{path}?{EXPAND_CHILDREN}"
        return self.decode(self.request("GET", path), Item)

    def get_item(self, item_id: str) -> Item:
        """Get a single item by id."""
        path = ITEM_PATH.format(item_id=item_id)
        return self.decode(self.request("GET", path), Item)

    def get_folder_with_query_parameters(self, item_id: str) -> Item:
        """Get a folder and its children, restricted to id, name and date fields.

        Uses ``$expand=Children`` and
        ``$select=Id,Name,Children/Id,Children/Name,Children/CreationDate``.
        """
        path = f"{ITEM_PATH.format(item_id=item_id)}?{FOLDER_PROJECTION}"
        return self.decode(self.request("GET", path), Item)

    def get_children(self, item_id: str) -> list[ChildItem]:
        """List the children of a folder."""
        path = CHILDREN_PATH.format(item_id=item_id)
        return self.decode(self.request("GET", path), ChildList).value

    def create_folder(
        self, parent_id: str, name: str, description: str = ""
    ) -> Item:
        """Create a folder.

        Args:
            parent_id: Id of the parent folder.
            name: Folder name.
            description: Folder description.

        Returns:
            The created folder.
        """
        body = FolderRequest(name=name, description=description)
        path = FOLDER_PATH.format(item_id=parent_id)
        item = self.decode(self._request_json("POST", path, body), Item)
        logger.info("Created folder %s", item.id)
        return item

    def update_item(self, item_id: str, name: str, description: str = "") -> Item:
        """Update the name and description of an item.

        Returns:
            The updated item.
        """
        body = FolderRequest(name=name, description=description)
        path = FOLDER_PATH.format(item_id=item_id)
        return self.decode(self._request_json("PATCH", path, body), Item)

    def delete_item(self, item_id: str) -> None:
        """Delete an item.

        Raises:
            HttpError: If the service does not answer 204 No Content.
        """
        path = ITEM_PATH.format(item_id=item_id)
        response = self.request("DELETE", path)
        if response.status_code != httpx.codes.NO_CONTENT:
            raise HttpError(response.status_code, "expected 204 No Content")

    def download_item(self, item_id: str, output_path: str | Path) -> Path:
        """Download an item, streaming its content to a local file.

        Folders are delivered as zip archives; give ``output_path`` a ``.zip``
        suffix for them. The file is created or truncated.

        Args:
            item_id: Id of the item to download.
            output_path: Destination path.

        Returns:
            Path to the downloaded file.

        Raises:
            TransportError: On network failure.
            HttpError: If the response status is not 2xx.
            DownloadError: If the destination cannot be written.
        """
        output_path = Path(output_path)
        url = self._get_url(DOWNLOAD_PATH.format(item_id=item_id))

        with httpx.Client(
            timeout=self.transfer_timeout, follow_redirects=True
        ) as client:
            request = self.build_request(client, "GET", url)
            logger.debug("GET %s", url)
            try:
                response = client.send(request, stream=True)
            except httpx.HTTPError as e:
                raise TransportError(f"HTTP error during download: {e}") from e

            try:
                if not response.is_success:
                    response.read()
                    raise HttpError(response.status_code, response.text)

                try:
                    output_path.parent.mkdir(parents=True, exist_ok=True)
                    with output_path.open("wb") as out:
                        for chunk in response.iter_bytes(DOWNLOAD_CHUNK_SIZE):
                            out.write(chunk)
                except OSError as e:
                    raise DownloadError(f"Failed to write {output_path}: {e}") from e
                except httpx.HTTPError as e:
                    raise TransportError(f"HTTP error during download: {e}") from e
            finally:
                response.close()

        logger.info("Downloaded %s to %s", item_id, output_path)
        return output_path

    # =========================
    # Client users
    # =========================

    def get_clients(self) -> list[ClientUser]:
        """List the client users of the account."""
        return self.decode(self.request("GET", CLIENTS_PATH), ClientList).value

    def create_client(self, user: UserCreateRequest) -> ClientUser:
        """Create a client user.

        Returns:
            The created user.
        """
        created = self.decode(self._request_json("POST", USERS_PATH, user), ClientUser)
        logger.info("Created client %s", created.id)
        return created

    @classmethod
    def from_session(cls, session: Session, **kwargs: float) -> Self:
        """Create a client bound to an existing Session."""
        return cls(AuthClient(session=session), **kwargs)

    @classmethod
    def from_config(cls, config_path: str | Path | None = None) -> Self:
        """Create a client using the persisted Session.

        Args:
            config_path: Path to session file. If None, uses default location.
        """
        return cls(AuthClient.from_config(config_path))
