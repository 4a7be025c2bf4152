import unittest
import uuid

from blobstore import keys


class NormalizePrefixTestCase(unittest.TestCase):

    def test_appends_trailing_slash(self) -> None:
        self.assertEqual(keys.normalize_prefix('documents'), 'documents/')

    def test_keeps_existing_trailing_slash(self) -> None:
        self.assertEqual(keys.normalize_prefix('documents/'), 'documents/')

    def test_empty_and_none(self) -> None:
        self.assertEqual(keys.normalize_prefix(''), '')
        self.assertEqual(keys.normalize_prefix(None), '')


class ObjectKeyTestCase(unittest.TestCase):

    def test_prefix_plus_identifier(self) -> None:
        self.assertEqual(
            keys.object_key('documents/', 'doc-1'),
            'documents/doc-1',
        )

    def test_prefix_without_slash(self) -> None:
        self.assertEqual(
            keys.object_key('documents', 'doc-1'),
            'documents/doc-1',
        )

    def test_no_prefix(self) -> None:
        self.assertEqual(keys.object_key('', 'doc-1'), 'doc-1')
        self.assertEqual(keys.object_key(None, 'doc-1'), 'doc-1')

    def test_uuid_identifier(self) -> None:
        identifier = uuid.uuid4()
        self.assertEqual(
            keys.object_key('documents/', identifier),
            f'documents/{identifier}',
        )

    def test_derivation_is_pure(self) -> None:
        first = keys.object_key('p/', 'same')
        second = keys.object_key('p/', 'same')
        self.assertEqual(first, second)

    def test_rejects_missing_identifier(self) -> None:
        with self.assertRaises(ValueError):
            keys.object_key('documents/', None)
        with self.assertRaises(ValueError):
            keys.object_key('documents/', '')
