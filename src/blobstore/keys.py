"""Object key derivation.

Every identifier-based operation maps its identifier to a backend key
with :func:`object_key`, so the same identifier always resolves to the
same object regardless of which operation is called.
"""

import typing


def normalize_prefix(prefix: str | None) -> str:
    """Return the prefix with a trailing slash, or an empty string.

    Args:
        prefix: Configured key prefix, may be None or empty

    Returns:
        The normalized prefix

    """
    if not prefix:
        return ''
    if not prefix.endswith('/'):
        return f'{prefix}/'
    return prefix


def object_key(prefix: str | None, identifier: typing.Any) -> str:
    """Build the backend key for an identifier.

    Args:
        prefix: Key prefix, normalized before use
        identifier: Opaque caller identifier (a UUID or a string)

    Returns:
        The object key, ``prefix + str(identifier)``

    Raises:
        ValueError: If the identifier is None or empty.

    """
    if identifier is None:
        raise ValueError('identifier must not be None')
    value = str(identifier)
    if not value:
        raise ValueError('identifier must not be empty')
    return f'{normalize_prefix(prefix)}{value}'
