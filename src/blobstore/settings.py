import pydantic
import pydantic_settings

from blobstore import keys

_FIVE_MB = 5 * 1024 * 1024


class Storage(pydantic_settings.BaseSettings):
    """S3 object storage settings."""

    model_config = pydantic_settings.SettingsConfigDict(
        env_prefix='BLOBSTORE_',
        case_sensitive=False,
        env_file='.env',
        env_file_encoding='utf-8',
        extra='ignore',
    )

    bucket_name: str = pydantic.Field(min_length=1)
    region: str = pydantic.Field(min_length=1)
    access_key: str | None = None
    secret_key: str | None = None
    endpoint_url: str | None = None
    path_prefix: str = 'documents/'
    path_style_access: bool = False

    # Timeouts in seconds
    connection_timeout: float = pydantic.Field(default=30.0, gt=0)
    socket_timeout: float = pydantic.Field(default=30.0, gt=0)
    operation_timeout: float | None = pydantic.Field(default=None, gt=0)
    max_retries: int = pydantic.Field(default=3, ge=0)

    # Backend-side hints, passed through on writes
    enable_encryption: bool = True
    kms_key_id: str | None = None
    storage_class: str | None = 'STANDARD'

    # Multipart uploads fall back to a single PutObject
    enable_multipart: bool = True
    multipart_threshold: int = pydantic.Field(default=_FIVE_MB, gt=0)
    multipart_part_size: int = pydantic.Field(default=_FIVE_MB, gt=0)

    chunk_size: int = pydantic.Field(default=8192, gt=0)
    create_bucket_on_init: bool = False

    @pydantic.field_validator('path_prefix', mode='before')
    @classmethod
    def normalize_path_prefix(cls, value: str | None) -> str:
        """Ensure a non-empty prefix always ends with a slash."""
        return keys.normalize_prefix(value)

    @property
    def has_static_credentials(self) -> bool:
        """Return True when both halves of the static key pair are set."""
        return bool(self.access_key and self.secret_key)
