"""Python client for the ShareFile v3 REST API."""

from .auth import (
    AuthClient,
    AuthError,
    ConfigError,
    NotAuthenticatedError,
    authenticate,
)
from .client import (
    DownloadError,
    HttpError,
    MalformedResponseError,
    ShareFileClient,
    ShareFileError,
    TransportError,
)
from .models import (
    ChildItem,
    ClientList,
    ClientUser,
    FolderRequest,
    Item,
    Session,
    UploadConfig,
    UserCreateRequest,
)
from .upload import (
    FileReadError,
    MultipartPayload,
    Uploader,
    UploadError,
    UploadNegotiationError,
    encode_multipart,
    upload_file,
)

__all__ = [
    # Auth
    "AuthClient",
    "AuthError",
    "ConfigError",
    "NotAuthenticatedError",
    "Session",
    "authenticate",
    # Items and users
    "ChildItem",
    "ClientList",
    "ClientUser",
    "DownloadError",
    "FolderRequest",
    "HttpError",
    "Item",
    "MalformedResponseError",
    "ShareFileClient",
    "ShareFileError",
    "TransportError",
    "UserCreateRequest",
    # Upload
    "FileReadError",
    "MultipartPayload",
    "UploadConfig",
    "UploadError",
    "UploadNegotiationError",
    "Uploader",
    "encode_multipart",
    "upload_file",
]
