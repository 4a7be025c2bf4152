"""Value types returned by blob storage operations."""

import datetime

import pydantic


class BlobMetadata(pydantic.BaseModel):
    """Result of a backend head query, never cached."""

    model_config = pydantic.ConfigDict(frozen=True)

    key: str
    exists: bool
    content_length: int = pydantic.Field(default=0, ge=0)
    content_type: str | None = None
    etag: str | None = None
    last_modified: datetime.datetime | None = None


class StoredObject(pydantic.BaseModel):
    """A byte payload and the MIME type supplied by the caller."""

    model_config = pydantic.ConfigDict(frozen=True)

    data: bytes
    mime_type: str = 'application/octet-stream'

    @property
    def size(self) -> int:
        return len(self.data)


class PresignedUploadGrant(pydantic.BaseModel):
    """A time-limited URL authorizing a single PUT to one key."""

    model_config = pydantic.ConfigDict(frozen=True)

    key: str
    url: str
    nonce: str
    expires_in: datetime.timedelta
    issued_at: datetime.datetime = pydantic.Field(
        default_factory=lambda: datetime.datetime.now(datetime.UTC)
    )

    @pydantic.computed_field  # type: ignore[prop-decorator]
    @property
    def expires_at(self) -> datetime.datetime:
        """Moment after which the URL is no longer accepted."""
        return self.issued_at + self.expires_in
