"""Tests for content digest helpers."""

import hashlib
import typing
import unittest

from blobstore import digests, errors


class NormalizeAlgorithmTestCase(unittest.TestCase):
    """Test cases for algorithm name normalization."""

    def test_jca_names(self) -> None:
        """Test that hyphenated upper-case names are accepted."""
        for name, expected in (
            ('SHA-256', 'sha256'),
            ('SHA-1', 'sha1'),
            ('SHA-512', 'sha512'),
            ('MD5', 'md5'),
            ('SHA3-256', 'sha3_256'),
        ):
            with self.subTest(name=name):
                self.assertEqual(digests.normalize_algorithm(name), expected)

    def test_hashlib_names(self) -> None:
        self.assertEqual(digests.normalize_algorithm('sha256'), 'sha256')
        self.assertEqual(digests.normalize_algorithm(' Sha256 '), 'sha256')

    def test_unsupported(self) -> None:
        for name in ('CRC-99', '', '   '):
            with self.subTest(name=name):
                with self.assertRaises(errors.UnsupportedAlgorithm):
                    digests.normalize_algorithm(name)

    def test_unsupported_is_value_error(self) -> None:
        with self.assertRaises(ValueError):
            digests.normalize_algorithm('nope')


class HexdigestTestCase(unittest.TestCase):

    def test_sha256_lowercase_hex(self) -> None:
        result = digests.hexdigest(b'hello', 'SHA-256')
        self.assertEqual(result, hashlib.sha256(b'hello').hexdigest())
        self.assertEqual(result, result.lower())

    def test_default_algorithm_is_sha256(self) -> None:
        self.assertEqual(
            digests.hexdigest(b''),
            hashlib.sha256(b'').hexdigest(),
        )

    def test_matches_ignores_case(self) -> None:
        actual = digests.hexdigest(b'hello')
        self.assertTrue(digests.matches(actual.upper(), actual))
        self.assertFalse(digests.matches('0' * 64, actual))


class HexdigestChunksTestCase(unittest.IsolatedAsyncioTestCase):

    async def test_matches_whole_payload_digest(self) -> None:
        async def chunks() -> typing.AsyncIterator[bytes]:
            for chunk in (b'hel', b'lo', b''):
                yield chunk

        result = await digests.hexdigest_chunks(chunks(), 'SHA-256')

        self.assertEqual(result, digests.hexdigest(b'hello', 'SHA-256'))
