"""Content digests for integrity checks."""

import hashlib
import typing

from blobstore import errors

DEFAULT_ALGORITHM = 'SHA-256'


def normalize_algorithm(algorithm: str) -> str:
    """Map an algorithm name to its hashlib spelling.

    Accepts both ``SHA-256`` and ``sha256`` style names, ignoring case.

    Raises:
        UnsupportedAlgorithm: If hashlib does not provide the algorithm.

    """
    if not algorithm or not algorithm.strip():
        raise errors.UnsupportedAlgorithm(algorithm)
    name = algorithm.strip().lower()
    if name.startswith('sha3-'):
        name = f'sha3_{name[5:]}'
    else:
        name = name.replace('-', '')
    if name not in hashlib.algorithms_available:
        raise errors.UnsupportedAlgorithm(algorithm)
    return name


def new_digest(algorithm: str) -> typing.Any:
    """Return a fresh hashlib object for the algorithm."""
    name = normalize_algorithm(algorithm)
    try:
        return hashlib.new(name)
    except ValueError as error:
        raise errors.UnsupportedAlgorithm(algorithm) from error


def hexdigest(data: bytes, algorithm: str = DEFAULT_ALGORITHM) -> str:
    """Return the lowercase hex digest of a whole payload."""
    digest = new_digest(algorithm)
    digest.update(data)
    return _hex(digest)


async def hexdigest_chunks(
    chunks: typing.AsyncIterable[bytes],
    algorithm: str = DEFAULT_ALGORITHM,
) -> str:
    """Return the lowercase hex digest of a chunk sequence.

    The digest is fed incrementally, so only one chunk is held in
    memory at a time.

    """
    digest = new_digest(algorithm)
    async for chunk in chunks:
        digest.update(chunk)
    return _hex(digest)


def matches(expected: str, actual: str) -> bool:
    """Compare two hex digests, ignoring case and surrounding space."""
    return expected.strip().lower() == actual.lower()


def _hex(digest: typing.Any) -> str:
    # SHAKE digests need an explicit output length
    if digest.name.startswith('shake_'):
        length = 32 if digest.name == 'shake_128' else 64
        return str(digest.hexdigest(length))
    return str(digest.hexdigest())
