"""Blob storage for document content.

Provides S3-compatible object storage keyed by caller-supplied
identifiers: store, fetch, stream, range, existence, size, checksum,
delete, and presigned upload URLs.
"""

import datetime
import logging
import typing

from . import client, digests, errors, models

LOGGER = logging.getLogger(__name__)

version = '1.0.0'

__all__ = [
    'aclose',
    'checksum',
    'checksum_stream',
    'delete',
    'delete_by_path',
    'errors',
    'exists',
    'get',
    'get_by_path',
    'get_range',
    'get_stream',
    'get_stream_by_path',
    'initialize',
    'metadata',
    'models',
    'presign_upload',
    'size',
    'store',
    'store_object',
    'store_stream',
    'verify_checksum',
    'version',
]


async def initialize() -> None:
    """Initialize the storage module.

    Creates the StorageClient singleton and, when configured, ensures
    the S3 bucket exists.

    """
    LOGGER.info('Initializing storage module')
    storage_client = client.StorageClient.get_instance()
    await storage_client.initialize()
    LOGGER.info('Storage module initialized')


async def aclose() -> None:
    """Clean up storage module resources."""
    LOGGER.info('Closing storage module')
    if client.StorageClient._instance is not None:
        await client.StorageClient._instance.aclose()
    client.StorageClient._instance = None
    LOGGER.info('Storage module closed')


async def store(
    identifier: typing.Any,
    data: bytes,
    mime_type: str,
) -> str:
    """Store bytes for an identifier.

    Args:
        identifier: Caller-supplied identifier
        data: Content as bytes
        mime_type: MIME type of the content

    Returns:
        The object key the content was stored under

    """
    storage_client = client.StorageClient.get_instance()
    return await storage_client.store(identifier, data, mime_type)


async def store_object(
    identifier: typing.Any,
    stored: models.StoredObject,
) -> str:
    """Store a payload and its MIME type for an identifier."""
    storage_client = client.StorageClient.get_instance()
    return await storage_client.store_object(identifier, stored)


async def store_stream(
    identifier: typing.Any,
    chunks: client.Chunks,
    mime_type: str,
    known_length: int | None = None,
) -> str:
    """Drain a chunk sequence and store it for an identifier."""
    storage_client = client.StorageClient.get_instance()
    return await storage_client.store_stream(
        identifier,
        chunks,
        mime_type,
        known_length,
    )


async def get(identifier: typing.Any) -> bytes:
    """Download the full content for an identifier."""
    storage_client = client.StorageClient.get_instance()
    return await storage_client.get(identifier)


async def get_by_path(key: str) -> bytes:
    """Download the full content stored at a literal key."""
    storage_client = client.StorageClient.get_instance()
    return await storage_client.get_by_path(key)


async def get_range(identifier: typing.Any, start: int, end: int) -> bytes:
    """Download an inclusive byte range for an identifier."""
    storage_client = client.StorageClient.get_instance()
    return await storage_client.get_range(identifier, start, end)


def get_stream(identifier: typing.Any) -> typing.AsyncIterator[bytes]:
    """Stream the content for an identifier in chunks."""
    storage_client = client.StorageClient.get_instance()
    return storage_client.get_stream(identifier)


def get_stream_by_path(key: str) -> typing.AsyncIterator[bytes]:
    """Stream the content stored at a literal key in chunks."""
    storage_client = client.StorageClient.get_instance()
    return storage_client.get_stream_by_path(key)


async def exists(identifier: typing.Any) -> bool:
    """Check whether content exists for an identifier."""
    storage_client = client.StorageClient.get_instance()
    return await storage_client.exists(identifier)


async def metadata(identifier: typing.Any) -> models.BlobMetadata:
    """Fetch object metadata for an identifier."""
    storage_client = client.StorageClient.get_instance()
    return await storage_client.metadata(identifier)


async def size(identifier: typing.Any) -> int:
    """Return the content length in bytes for an identifier."""
    storage_client = client.StorageClient.get_instance()
    return await storage_client.size(identifier)


async def delete(identifier: typing.Any) -> None:
    """Delete the content for an identifier."""
    storage_client = client.StorageClient.get_instance()
    await storage_client.delete(identifier)


async def delete_by_path(key: str) -> None:
    """Delete the object stored at a literal key."""
    storage_client = client.StorageClient.get_instance()
    await storage_client.delete_by_path(key)


async def checksum(
    identifier: typing.Any,
    algorithm: str = digests.DEFAULT_ALGORITHM,
) -> str:
    """Return the lowercase hex digest of an identifier's content."""
    storage_client = client.StorageClient.get_instance()
    return await storage_client.checksum(identifier, algorithm)


async def checksum_stream(
    identifier: typing.Any,
    algorithm: str = digests.DEFAULT_ALGORITHM,
) -> str:
    """Return the hex digest computed while streaming the content."""
    storage_client = client.StorageClient.get_instance()
    return await storage_client.checksum_stream(identifier, algorithm)


async def verify_checksum(
    identifier: typing.Any,
    expected: str,
    algorithm: str = digests.DEFAULT_ALGORITHM,
) -> bool:
    """Compare an identifier's digest with an expected hex digest."""
    storage_client = client.StorageClient.get_instance()
    return await storage_client.verify_checksum(
        identifier,
        expected,
        algorithm,
    )


async def presign_upload(
    identifier: typing.Any,
    ttl: datetime.timedelta | int | float,
) -> models.PresignedUploadGrant:
    """Generate a presigned PUT URL for an identifier.

    Args:
        identifier: Caller-supplied identifier
        ttl: Validity as a timedelta or a number of seconds

    Returns:
        The URL and its validity window

    """
    storage_client = client.StorageClient.get_instance()
    return await storage_client.presign_upload(identifier, ttl)
