"""Pydantic models for the ShareFile REST API."""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, Field

# Hostname suffix for the per-account API domain
API_DOMAIN = "sf-api.com"


class Session(BaseModel):
    """Authenticated context returned by the OAuth token endpoint.

    Every authorized API call needs one. Stored in the session file in YAML
    format so later invocations can reuse it.
    """

    access_token: str = Field(..., min_length=1, description="Bearer token")
    subdomain: str = Field(..., min_length=1, description="Account subdomain")
    refresh_token: str = Field(default="", description="OAuth refresh token")
    token_type: str = Field(default="bearer", description="OAuth token type")
    expires_in: int | None = Field(
        default=None, description="Token lifetime in seconds"
    )
    apicp: str = Field(default="", description="API control plane domain")
    appcp: str = Field(default="", description="Web app control plane domain")

    @property
    def hostname(self) -> str:
        """Host serving the API for this account."""
        return f"{self.subdomain}.{API_DOMAIN}"

    @property
    def authorization_header(self) -> str:
        """Value for the Authorization header."""
        return f"Bearer {self.access_token}"


class ChildItem(BaseModel):
    """Reduced projection of an Item, as listed in ``Children``."""

    id: str = Field(
        ...,
        validation_alias=AliasChoices("Id", "id"),
        serialization_alias="Id",
    )
    creation_date: str = Field(
        default="",
        validation_alias=AliasChoices("CreationDate", "creationDate"),
        serialization_alias="CreationDate",
    )
    name: str = Field(
        default="",
        validation_alias=AliasChoices("Name", "name"),
        serialization_alias="Name",
    )

    model_config = {"populate_by_name": True}


class Item(BaseModel):
    """A file or folder in ShareFile storage.

    ``children`` is only populated when the request asked for
    ``$expand=Children``.
    """

    id: str = Field(
        ...,
        validation_alias=AliasChoices("Id", "id"),
        serialization_alias="Id",
    )
    creation_date: str = Field(
        default="",
        validation_alias=AliasChoices("CreationDate", "creationDate"),
        serialization_alias="CreationDate",
    )
    name: str = Field(
        default="",
        validation_alias=AliasChoices("Name", "name"),
        serialization_alias="Name",
    )
    description: str = Field(
        default="",
        validation_alias=AliasChoices("Description", "description"),
        serialization_alias="Description",
    )
    file_size_bytes: int | None = Field(
        default=None,
        validation_alias=AliasChoices("FileSizeBytes", "fileSizeBytes"),
        serialization_alias="FileSizeBytes",
    )
    odata_type: str = Field(
        default="",
        validation_alias=AliasChoices("odata.type", "odataType"),
        serialization_alias="odata.type",
        description="Concrete item type, e.g. ShareFile.Api.Models.Folder",
    )
    children: list[ChildItem] = Field(
        default_factory=list,
        validation_alias=AliasChoices("Children", "children"),
        serialization_alias="Children",
    )

    model_config = {"populate_by_name": True}

    @property
    def is_folder(self) -> bool:
        """Check if this item is a folder.

        Folders download as zip archives, so callers should give the
        destination a ``.zip`` suffix.
        """
        return self.odata_type.endswith(".Folder")


class FolderRequest(BaseModel):
    """Request body for creating or updating a folder."""

    name: str = Field(..., alias="Name")
    description: str = Field(default="", alias="Description")

    model_config = {"populate_by_name": True}


class UserCreateRequest(BaseModel):
    """Request body for creating a client user."""

    email: str = Field(..., alias="Email")
    first_name: str = Field(..., alias="FirstName")
    last_name: str = Field(..., alias="LastName")
    company: str = Field(default="", alias="Company")
    client_password: str = Field(..., alias="ClientPassword")
    can_reset_password: bool = Field(default=True, alias="CanResetPassword")
    can_view_my_settings: bool = Field(default=True, alias="CanViewMySettings")

    model_config = {"populate_by_name": True}


class ClientUser(BaseModel):
    """A client user of the account."""

    id: str = Field(
        ...,
        validation_alias=AliasChoices("Id", "id"),
        serialization_alias="Id",
    )
    email: str = Field(
        default="",
        validation_alias=AliasChoices("Email", "email"),
        serialization_alias="Email",
    )

    model_config = {"populate_by_name": True}


class ClientList(BaseModel):
    """Envelope returned by the client listing endpoint."""

    value: list[ClientUser] = Field(default_factory=list)


class ChildList(BaseModel):
    """Envelope returned by the Children navigation endpoint."""

    value: list[ChildItem] = Field(default_factory=list)


class UploadConfig(BaseModel):
    """Upload specification returned by ``Items(id)/Upload``.

    Only ``ChunkUri`` is interpreted. The other fields are passed through
    untyped, and unknown keys are kept as extras.
    """

    chunk_uri: str | None = Field(default=None, alias="ChunkUri")
    method: Any = Field(default=None, alias="Method")
    prepare_uri: Any = Field(default=None, alias="PrepareUri")
    finish_uri: Any = Field(default=None, alias="FinishUri")
    is_resume: Any = Field(default=None, alias="IsResume")

    model_config = {"populate_by_name": True, "extra": "allow"}
