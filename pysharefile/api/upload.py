"""Standard (single request) uploads to ShareFile.

Upload Flow:
1. GET ``Items(folder)/Upload`` returns an upload specification whose
   ``ChunkUri`` is a short-lived endpoint for the file bytes
2. The file is read into memory and wrapped in a ``multipart/form-data``
   body with a single ``File1`` part
3. The body is POSTed to the chunk URI

The whole file is buffered, so memory use grows with file size. Large files
should be split client-side before upload.
"""

from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass
from pathlib import Path

from .client import (
    HttpError,
    MalformedResponseError,
    ShareFileClient,
    ShareFileError,
    TransportError,
)
from .models import UploadConfig

logger = logging.getLogger(__name__)

UPLOAD_PATH = "/sf/v3/Items({item_id})/Upload"

# Multipart form field the service reads the file from
FILE_FIELD = "File1"
DEFAULT_CONTENT_TYPE = "application/octet-stream"

# Leading bytes handed to libmagic for content sniffing
SNIFF_LENGTH = 2048

CRLF = b"\r\n"


class UploadError(ShareFileError):
    """Raised when an upload fails.

    Attributes:
        status_code: HTTP status of the failed upload, None for transport
            and local failures.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class UploadNegotiationError(UploadError):
    """Raised when the service grants no chunk upload URI."""

    pass


class FileReadError(UploadError):
    """Raised when the local file cannot be read."""

    pass


def detect_content_type(data: bytes) -> str:
    """Sniff the MIME type of file content from its leading bytes.

    Detection failures are not fatal: anything libmagic cannot classify,
    including a missing libmagic installation, is reported as
    ``application/octet-stream``.
    """
    try:
        import magic

        content_type = magic.from_buffer(data[:SNIFF_LENGTH], mime=True)
    except Exception as e:
        logger.warning(
            "Content type detection failed, using %s: %s", DEFAULT_CONTENT_TYPE, e
        )
        return DEFAULT_CONTENT_TYPE

    return content_type or DEFAULT_CONTENT_TYPE


def make_boundary() -> str:
    """Generate a multipart boundary from the clock and a random token."""
    return f"----------{int(time.time())}{secrets.token_hex(16)}"


@dataclass(frozen=True)
class MultipartPayload:
    """An encoded ``multipart/form-data`` request body."""

    body: bytes
    boundary: str

    @property
    def content_type(self) -> str:
        return f"multipart/form-data; boundary={self.boundary}"

    @property
    def content_length(self) -> int:
        return len(self.body)

    @property
    def headers(self) -> dict[str, str]:
        """Content headers to send with the body."""
        return {
            "Content-Type": self.content_type,
            "Content-Length": str(self.content_length),
        }


def encode_multipart(
    filename: str,
    content: bytes,
    content_type: str = DEFAULT_CONTENT_TYPE,
    boundary: str | None = None,
) -> MultipartPayload:
    """Encode file content as a single-part ``multipart/form-data`` body.

    Args:
        filename: Value of the part's ``filename`` parameter.
        content: Raw file bytes, embedded unmodified.
        content_type: Content-Type of the part.
        boundary: Boundary to use. Generated if omitted; a generated boundary
            is regenerated until it does not occur in ``content``.

    Returns:
        The encoded payload.

    Raises:
        ValueError: If an explicit boundary occurs in ``content``, or the
            filename contains a line break.
    """
    if boundary is None:
        boundary = make_boundary()
        while boundary.encode() in content:
            boundary = make_boundary()
    elif boundary.encode() in content:
        raise ValueError("Multipart boundary occurs in file content")

    if "\r" in filename or "\n" in filename:
        raise ValueError("Multipart filename contains a line break")
    quoted = filename.replace("\\", "\\\\").replace('"', '\\"')

    delimiter = f"--{boundary}".encode()
    disposition = (
        f'Content-Disposition: form-data; name="{FILE_FIELD}"; filename="{quoted}"'
    )

    # CRLF framing is part of the wire format
    body = b"".join(
        [
            delimiter + CRLF,
            disposition.encode() + CRLF,
            f"Content-Type: {content_type}".encode() + CRLF,
            CRLF,
            content,
            CRLF + delimiter + b"--" + CRLF,
        ]
    )
    return MultipartPayload(body=body, boundary=boundary)


class Uploader:
    """Uploads local files into ShareFile folders.

    Example:
        >>> sf = ShareFileClient.from_config()
        >>> Uploader(sf).upload_file("report.pdf", folder_id)
        200
    """

    def __init__(self, client: ShareFileClient) -> None:
        """Initialize the uploader.

        Args:
            client: API client whose Session authorizes the upload.
        """
        self.client = client

    def get_upload_config(self, folder_id: str) -> UploadConfig:
        """Request the upload specification for a folder.

        Raises:
            NotAuthenticatedError: If there is no Session.
            TransportError: On network failure.
            HttpError: If the response status is not 2xx.
            MalformedResponseError: If the body is not a JSON object.
        """
        self.client.auth_client.require_session()
        path = UPLOAD_PATH.format(item_id=folder_id)
        response = self.client.request("GET", path)
        return self.client.decode(response, UploadConfig)

    def begin_upload(self, folder_id: str) -> str:
        """Negotiate an upload into a folder and return the chunk URI.

        Raises:
            NotAuthenticatedError: If there is no Session.
            UploadNegotiationError: If no chunk URI is granted.
        """
        try:
            config = self.get_upload_config(folder_id)
        except (TransportError, HttpError, MalformedResponseError) as e:
            status = e.status_code if isinstance(e, HttpError) else None
            raise UploadNegotiationError(
                f"Upload negotiation failed: {e}", status_code=status
            ) from e

        if not config.chunk_uri:
            raise UploadNegotiationError("No upload URL received")
        return config.chunk_uri

    def upload_file(
        self,
        local_path: str | Path,
        folder_id: str,
        filename: str | None = None,
    ) -> int:
        """Upload a file into a folder.

        Args:
            local_path: File to upload.
            folder_id: Id of the destination folder.
            filename: Name to upload as. Defaults to the file's base name.

        Returns:
            HTTP status code of the upload.

        Raises:
            NotAuthenticatedError: If there is no Session.
            UploadNegotiationError: If no chunk URI is granted.
            FileReadError: If the local file cannot be read.
            UploadError: If the file cannot be encoded or sending it fails.
        """
        local_path = Path(local_path)
        chunk_uri = self.begin_upload(folder_id)

        try:
            content = local_path.read_bytes()
        except OSError as e:
            raise FileReadError(f"Failed to read {local_path}: {e}") from e

        try:
            payload = encode_multipart(
                filename or local_path.name,
                content,
                detect_content_type(content),
            )
        except ValueError as e:
            raise UploadError(f"Cannot encode upload: {e}") from e

        try:
            response = self.client.send(
                "POST",
                chunk_uri,
                content=payload.body,
                headers=payload.headers,
                timeout=self.client.transfer_timeout,
            )
        except HttpError as e:
            raise UploadError(
                f"Upload failed: {e}", status_code=e.status_code
            ) from e
        except TransportError as e:
            raise UploadError(f"Upload failed: {e}") from e

        logger.info(
            "Uploaded %s (%d bytes) to %s", local_path.name, len(content), folder_id
        )
        return response.status_code


def upload_file(
    client: ShareFileClient,
    local_path: str | Path,
    folder_id: str,
    filename: str | None = None,
) -> int:
    """Upload a file into a folder using ``client``'s Session."""
    return Uploader(client).upload_file(local_path, folder_id, filename)
