"""S3 client singleton for blob storage operations."""

import asyncio
import collections.abc
import contextlib
import datetime
import logging
import math
import typing
import urllib.parse
import uuid

import aioboto3
from aiobotocore import config as aioconfig
from botocore import exceptions as botocore_exceptions

from blobstore import digests, errors, keys, models, settings

LOGGER = logging.getLogger(__name__)

_NOT_FOUND_CODES = frozenset({'NoSuchKey', 'NotFound', '404'})
_INVALID_RANGE_CODES = frozenset({'InvalidRange', '416'})

# SigV4 presigned URLs are capped at seven days
MAX_PRESIGN_TTL = datetime.timedelta(days=7)

# Signed query parameter making each presigned URL distinct
NONCE_PARAMETER = 'blobstore-nonce'

Chunks = typing.AsyncIterable[bytes] | typing.Iterable[bytes]


class StorageClient:
    """Singleton S3 client for blob storage operations.

    Uses aioboto3 for native async S3 operations. Supports both
    real AWS S3 and S3-compatible services like LocalStack or MinIO.

    Identifier-based operations derive the object key as
    ``path_prefix + str(identifier)``; the ``*_by_path`` variants use
    the caller's key as-is. Nothing is cached: every call goes to the
    backend.

    """

    _instance: typing.ClassVar[typing.Optional['StorageClient']] = None
    _lock: typing.ClassVar[asyncio.Lock] = asyncio.Lock()

    def __init__(
        self,
        storage_settings: settings.Storage | None = None,
    ) -> None:
        self._settings = storage_settings or settings.Storage()
        credentials: dict[str, str | None] = {}
        if self._settings.has_static_credentials:
            credentials = {
                'aws_access_key_id': self._settings.access_key,
                'aws_secret_access_key': self._settings.secret_key,
            }
        self._session = aioboto3.Session(
            region_name=self._settings.region,
            **credentials,
        )
        self._initialized = False

    @classmethod
    def get_instance(cls) -> 'StorageClient':
        """Get the singleton StorageClient instance.

        Returns:
            The singleton StorageClient instance.

        """
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    async def initialize(self) -> None:
        """Initialize the storage client, creating the bucket if asked to.

        Raises:
            StorageError: If the bucket check or creation fails.

        """
        if self._initialized:
            return

        async with self._lock:
            if self._initialized:
                return

            if self._settings.create_bucket_on_init:
                await self._ensure_bucket()

            self._initialized = True
            LOGGER.info(
                'Storage client initialized with bucket %s',
                self._settings.bucket_name,
            )

    async def aclose(self) -> None:
        """Clean up storage client resources."""
        async with self._lock:
            self._initialized = False
            LOGGER.debug('Storage client closed')

    def object_key(self, identifier: typing.Any) -> str:
        """Return the object key for an identifier."""
        return keys.object_key(self._settings.path_prefix, identifier)

    async def store(
        self,
        identifier: typing.Any,
        data: bytes,
        mime_type: str,
    ) -> str:
        """Store bytes under the key derived from the identifier.

        Args:
            identifier: Caller-supplied identifier
            data: Content as bytes
            mime_type: MIME type of the content

        Returns:
            The object key the content was stored under

        """
        key = self.object_key(identifier)
        await self._put(key, data, mime_type)
        LOGGER.debug(
            'Stored content for %s (%d bytes) at %s',
            identifier,
            len(data),
            key,
        )
        return key

    async def store_stream(
        self,
        identifier: typing.Any,
        chunks: Chunks,
        mime_type: str,
        known_length: int | None = None,
    ) -> str:
        """Drain a chunk sequence and store it as a single object.

        The whole input is buffered in memory before the write is
        issued. Chunk order is preserved in the stored object.

        Args:
            identifier: Caller-supplied identifier
            chunks: Async or sync iterable of byte chunks
            mime_type: MIME type of the content
            known_length: Declared total length, checked after draining

        Returns:
            The object key the content was stored under

        Raises:
            StreamReadError: If producing a chunk fails or the drained
                size differs from ``known_length``.

        """
        key = self.object_key(identifier)
        data = await _drain(chunks, key)
        if known_length is not None and known_length != len(data):
            LOGGER.error(
                'Stream for %s produced %d bytes, expected %d',
                key,
                len(data),
                known_length,
            )
            raise errors.StreamReadError(
                f'Stream produced {len(data)} bytes but '
                f'{known_length} were declared',
                key,
            )
        await self._put(key, data, mime_type)
        LOGGER.debug(
            'Stored streamed content for %s (%d bytes) at %s',
            identifier,
            len(data),
            key,
        )
        return key

    async def get(self, identifier: typing.Any) -> bytes:
        """Download the full content for an identifier."""
        return await self.get_by_path(self.object_key(identifier))

    async def get_by_path(self, key: str) -> bytes:
        """Download the full content stored at a literal key.

        Args:
            key: S3 object key

        Returns:
            Object content as bytes

        Raises:
            NotFound: If no object exists at the key.

        """
        async with self._backend_call('get', key):
            async with self._s3_client() as s3:
                response = await s3.get_object(
                    Bucket=self._settings.bucket_name,
                    Key=key,
                )
                async with response['Body'] as body:
                    data: bytes = await body.read()
        LOGGER.debug('Downloaded %s (%d bytes)', key, len(data))
        return data

    async def get_range(
        self,
        identifier: typing.Any,
        start: int,
        end: int,
    ) -> bytes:
        """Download the bytes between two inclusive offsets.

        Args:
            identifier: Caller-supplied identifier
            start: First byte offset, inclusive
            end: Last byte offset, inclusive

        Returns:
            The ``end - start + 1`` bytes of the requested range

        Raises:
            InvalidRange: If ``start > end``, an offset is negative, or
                the range extends past the end of the object.
            NotFound: If no object exists at the derived key.

        """
        key = self.object_key(identifier)
        if start < 0 or end < start:
            raise errors.InvalidRange(
                f'Invalid byte range {start}-{end} for {key}',
                key,
            )
        async with self._backend_call('get range of', key):
            async with self._s3_client() as s3:
                response = await s3.get_object(
                    Bucket=self._settings.bucket_name,
                    Key=key,
                    Range=f'bytes={start}-{end}',
                )
                async with response['Body'] as body:
                    data: bytes = await body.read()
            if len(data) != end - start + 1:
                raise errors.InvalidRange(
                    f'Byte range {start}-{end} extends past the end of '
                    f'{key}',
                    key,
                )
        LOGGER.debug(
            'Downloaded range %d-%d of %s (%d bytes)',
            start,
            end,
            key,
            len(data),
        )
        return data

    def get_stream(
        self,
        identifier: typing.Any,
    ) -> typing.AsyncIterator[bytes]:
        """Stream the content for an identifier in chunks.

        Nothing is requested from the backend until the first chunk is
        awaited.

        """
        return self.get_stream_by_path(self.object_key(identifier))

    async def get_stream_by_path(
        self,
        key: str,
    ) -> typing.AsyncIterator[bytes]:
        """Stream the content stored at a literal key in chunks.

        Chunks are at most ``chunk_size`` bytes. The response body is
        released when the stream is exhausted, fails, or is closed
        early. A backend error mid-stream ends the stream with the
        translated error; chunks already yielded stay delivered.

        Args:
            key: S3 object key

        Yields:
            Byte chunks whose concatenation is the full object

        """
        total = 0
        async with self._backend_call('stream', key, timed=False):
            async with self._s3_client() as s3:
                response = await s3.get_object(
                    Bucket=self._settings.bucket_name,
                    Key=key,
                )
                async with response['Body'] as body:
                    while True:
                        chunk = await body.read(self._settings.chunk_size)
                        if not chunk:
                            break
                        total += len(chunk)
                        yield chunk
        LOGGER.debug('Completed streaming %s (%d bytes)', key, total)

    async def exists(self, identifier: typing.Any) -> bool:
        """Check whether an object exists for an identifier.

        Only a not-found answer maps to False. Any other backend error,
        including access denied, is raised.

        """
        key = self.object_key(identifier)
        try:
            await self._head(key)
        except errors.NotFound:
            return False
        return True

    async def metadata(self, identifier: typing.Any) -> models.BlobMetadata:
        """Fetch object metadata from the backend.

        Returns:
            Metadata with ``exists`` False when there is no object.

        """
        key = self.object_key(identifier)
        try:
            response = await self._head(key)
        except errors.NotFound:
            return models.BlobMetadata(key=key, exists=False)
        return models.BlobMetadata(
            key=key,
            exists=True,
            content_length=response.get('ContentLength', 0),
            content_type=response.get('ContentType'),
            etag=response.get('ETag'),
            last_modified=response.get('LastModified'),
        )

    async def size(self, identifier: typing.Any) -> int:
        """Return the content length in bytes for an identifier.

        Raises:
            NotFound: If no object exists at the derived key.

        """
        key = self.object_key(identifier)
        response = await self._head(key)
        content_length: int = response['ContentLength']
        LOGGER.debug('Content size for %s: %d bytes', key, content_length)
        return content_length

    async def delete(self, identifier: typing.Any) -> None:
        """Delete the object for an identifier.

        Deleting an absent object is not an error.

        """
        await self.delete_by_path(self.object_key(identifier))

    async def delete_by_path(self, key: str) -> None:
        """Delete an object from S3.

        Args:
            key: S3 object key

        """
        async with self._backend_call('delete', key):
            async with self._s3_client() as s3:
                await s3.delete_object(
                    Bucket=self._settings.bucket_name,
                    Key=key,
                )
        LOGGER.debug('Deleted %s', key)

    async def checksum(
        self,
        identifier: typing.Any,
        algorithm: str = digests.DEFAULT_ALGORITHM,
    ) -> str:
        """Compute the hex digest of the full object content.

        The whole object is downloaded into memory before hashing.

        Raises:
            UnsupportedAlgorithm: If the algorithm is not available.
            NotFound: If no object exists at the derived key.

        """
        digests.normalize_algorithm(algorithm)
        data = await self.get(identifier)
        value = digests.hexdigest(data, algorithm)
        LOGGER.debug(
            'Calculated %s checksum for %s: %s',
            algorithm,
            identifier,
            value,
        )
        return value

    async def checksum_stream(
        self,
        identifier: typing.Any,
        algorithm: str = digests.DEFAULT_ALGORITHM,
    ) -> str:
        """Compute the hex digest while streaming the object.

        Same result as :meth:`checksum`, holding one chunk in memory at
        a time instead of the whole object.

        """
        digests.normalize_algorithm(algorithm)
        return await digests.hexdigest_chunks(
            self.get_stream(identifier),
            algorithm,
        )

    async def verify_checksum(
        self,
        identifier: typing.Any,
        expected: str,
        algorithm: str = digests.DEFAULT_ALGORITHM,
    ) -> bool:
        """Compare the object's digest with an expected hex digest.

        The comparison ignores case.

        """
        actual = await self.checksum(identifier, algorithm)
        result = digests.matches(expected, actual)
        LOGGER.debug('Checksum verification for %s: %s', identifier, result)
        return result

    async def presign_upload(
        self,
        identifier: typing.Any,
        ttl: datetime.timedelta | int | float,
    ) -> models.PresignedUploadGrant:
        """Generate a presigned PUT URL for the identifier's key.

        No content type or length constraint is signed into the URL. A
        random nonce is added as a signed query parameter so every call
        yields a distinct URL, even for the same key within the same
        second.

        Args:
            identifier: Caller-supplied identifier
            ttl: Validity as a timedelta or a number of seconds, rounded
                down to whole seconds

        Returns:
            The URL, its nonce, and its validity window

        Raises:
            ValueError: If the ttl is under one second or exceeds 7 days.

        """
        key = self.object_key(identifier)
        expires_in = _presign_seconds(ttl)
        nonce = uuid.uuid4().hex

        async with self._backend_call('presign upload for', key):
            async with self._s3_client() as s3:
                s3.meta.events.register(
                    'before-sign.s3.PutObject',
                    _nonce_handler(nonce),
                )
                url: str = await s3.generate_presigned_url(
                    'put_object',
                    Params={
                        'Bucket': self._settings.bucket_name,
                        'Key': key,
                    },
                    ExpiresIn=expires_in,
                )
        LOGGER.debug(
            'Generated upload URL for %s (expires in %d seconds)',
            key,
            expires_in,
        )
        return models.PresignedUploadGrant(
            key=key,
            url=url,
            nonce=nonce,
            expires_in=datetime.timedelta(seconds=expires_in),
        )

    async def store_object(
        self,
        identifier: typing.Any,
        stored: models.StoredObject,
    ) -> str:
        """Store a payload and its MIME type for an identifier."""
        return await self.store(identifier, stored.data, stored.mime_type)

    async def _put(self, key: str, data: bytes, mime_type: str) -> None:
        if (
            self._settings.enable_multipart
            and len(data) > self._settings.multipart_threshold
        ):
            await self._put_multipart(key, data, mime_type)
        else:
            await self._put_single(key, data, mime_type)

    async def _put_single(
        self,
        key: str,
        data: bytes,
        mime_type: str,
    ) -> None:
        async with self._backend_call('store', key):
            async with self._s3_client() as s3:
                await s3.put_object(
                    Bucket=self._settings.bucket_name,
                    Key=key,
                    Body=data,
                    ContentType=mime_type or 'application/octet-stream',
                    **self._write_options(),
                )
        LOGGER.debug('Uploaded %s (%d bytes)', key, len(data))

    async def _put_multipart(
        self,
        key: str,
        data: bytes,
        mime_type: str,
    ) -> None:
        # Part splitting is not implemented; large payloads are one write
        LOGGER.debug(
            '%s is %d bytes, above the multipart threshold of %d; '
            'storing with a single PutObject',
            key,
            len(data),
            self._settings.multipart_threshold,
        )
        await self._put_single(key, data, mime_type)

    async def _head(self, key: str) -> dict[str, typing.Any]:
        async with self._backend_call('head', key):
            async with self._s3_client() as s3:
                response: dict[str, typing.Any] = await s3.head_object(
                    Bucket=self._settings.bucket_name,
                    Key=key,
                )
        return response

    def _write_options(self) -> dict[str, str]:
        """Return the encryption and storage class hints for writes."""
        options: dict[str, str] = {}
        if self._settings.enable_encryption:
            if self._settings.kms_key_id:
                options['ServerSideEncryption'] = 'aws:kms'
                options['SSEKMSKeyId'] = self._settings.kms_key_id
            else:
                options['ServerSideEncryption'] = 'AES256'
        if self._settings.storage_class:
            options['StorageClass'] = self._settings.storage_class
        return options

    @contextlib.asynccontextmanager
    async def _backend_call(
        self,
        operation: str,
        key: str,
        timed: bool = True,
    ) -> typing.AsyncIterator[None]:
        """Translate SDK failures into storage errors.

        Applies ``operation_timeout`` as a deadline unless ``timed`` is
        False. Cancellation is never translated.

        """
        deadline = self._settings.operation_timeout if timed else None
        try:
            async with asyncio.timeout(deadline):
                yield
        except errors.StorageError:
            raise
        except botocore_exceptions.ClientError as error:
            raise _translate_client_error(error, operation, key) from error
        except (botocore_exceptions.BotoCoreError, OSError) as error:
            LOGGER.error('Failed to %s %s: %s', operation, key, error)
            raise errors.BackendUnavailable(
                f'Failed to {operation} {key}: {error}',
                key,
            ) from error

    def _s3_client(self) -> typing.Any:
        """Create an S3 client context manager.

        Returns:
            Async context manager yielding an S3 client.

        """
        kwargs: dict[str, typing.Any] = {'config': self._client_config()}
        if self._settings.endpoint_url:
            kwargs['endpoint_url'] = self._settings.endpoint_url
        return self._session.client('s3', **kwargs)

    def _client_config(self) -> aioconfig.AioConfig:
        s3_options: dict[str, str] = {}
        if self._settings.path_style_access:
            s3_options['addressing_style'] = 'path'
        return aioconfig.AioConfig(
            connect_timeout=self._settings.connection_timeout,
            read_timeout=self._settings.socket_timeout,
            retries={
                'max_attempts': self._settings.max_retries,
                'mode': 'standard',
            },
            s3=s3_options or None,
        )

    async def _ensure_bucket(self) -> None:
        """Create the S3 bucket if it does not exist."""
        bucket = self._settings.bucket_name
        async with self._backend_call('ensure bucket', bucket):
            async with self._s3_client() as s3:
                try:
                    await s3.head_bucket(Bucket=bucket)
                    LOGGER.debug('Bucket %s already exists', bucket)
                except botocore_exceptions.ClientError:
                    params: dict[str, typing.Any] = {'Bucket': bucket}
                    if (
                        self._settings.region
                        and self._settings.region != 'us-east-1'
                    ):
                        params['CreateBucketConfiguration'] = {
                            'LocationConstraint': self._settings.region,
                        }
                    await s3.create_bucket(**params)
                    LOGGER.info('Created bucket %s', bucket)


def _translate_client_error(
    error: botocore_exceptions.ClientError,
    operation: str,
    key: str,
) -> errors.StorageError:
    """Map a botocore ClientError onto the storage error taxonomy."""
    code = str(error.response.get('Error', {}).get('Code', ''))
    if code in _NOT_FOUND_CODES:
        LOGGER.debug('No object at %s (%s)', key, operation)
        return errors.NotFound(f'No object found at {key}', key)
    if code in _INVALID_RANGE_CODES:
        LOGGER.debug('Unsatisfiable range for %s', key)
        return errors.InvalidRange(f'Unsatisfiable range for {key}', key)
    LOGGER.error('Failed to %s %s: %s', operation, key, error)
    return errors.BackendRejected(
        f'Failed to {operation} {key}: {error}',
        key,
        code or None,
    )


async def _drain(chunks: Chunks, key: str) -> bytes:
    """Concatenate every chunk of an async or sync iterable."""
    if isinstance(chunks, (bytes, bytearray, memoryview)):
        return bytes(chunks)
    buffer = bytearray()
    try:
        if isinstance(chunks, collections.abc.AsyncIterable):
            async for chunk in chunks:
                buffer.extend(chunk)
        else:
            for chunk in chunks:
                buffer.extend(chunk)
    except Exception as error:
        LOGGER.error('Failed to read input stream for %s: %s', key, error)
        raise errors.StreamReadError(
            f'Failed to read input stream for {key}: {error}',
            key,
        ) from error
    return bytes(buffer)


def _presign_seconds(ttl: datetime.timedelta | int | float) -> int:
    """Return the ttl as whole seconds, rounded down.

    Raises:
        ValueError: If the ttl is under one second or exceeds 7 days.

    """
    try:
        if isinstance(ttl, datetime.timedelta):
            seconds = ttl.total_seconds()
        else:
            seconds = float(ttl)
    except OverflowError as error:
        raise ValueError(f'ttl must not exceed {MAX_PRESIGN_TTL}') from error
    if not math.isfinite(seconds):
        raise ValueError(f'ttl must be a finite duration, got {ttl}')
    if seconds > MAX_PRESIGN_TTL.total_seconds():
        raise ValueError(f'ttl must not exceed {MAX_PRESIGN_TTL}')
    if seconds < 1:
        raise ValueError(f'ttl must be at least one second, got {ttl}')
    return int(seconds)


def _nonce_handler(nonce: str) -> typing.Callable[..., None]:
    """Return a before-sign hook appending the nonce to the query string.

    The hook runs before signing, so the nonce is covered by the
    signature. Only the query string changes; no header is signed.

    """

    def add_nonce(request: typing.Any, **_kwargs: typing.Any) -> None:
        query = urllib.parse.urlsplit(request.url).query
        separator = '&' if query else '?'
        request.url = f'{request.url}{separator}{NONCE_PARAMETER}={nonce}'

    return add_nonce
