import os
import unittest
from unittest import mock

import pydantic

from blobstore import settings


class StorageSettingsTestCase(unittest.TestCase):
    """Test cases for Storage settings."""

    def setUp(self) -> None:
        patcher = mock.patch.dict(os.environ, {}, clear=True)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_defaults(self) -> None:
        storage = settings.Storage(bucket_name='docs', region='us-east-1')
        self.assertEqual(storage.path_prefix, 'documents/')
        self.assertFalse(storage.path_style_access)
        self.assertEqual(storage.connection_timeout, 30.0)
        self.assertEqual(storage.socket_timeout, 30.0)
        self.assertIsNone(storage.operation_timeout)
        self.assertEqual(storage.max_retries, 3)
        self.assertTrue(storage.enable_encryption)
        self.assertIsNone(storage.kms_key_id)
        self.assertEqual(storage.storage_class, 'STANDARD')
        self.assertTrue(storage.enable_multipart)
        self.assertEqual(storage.multipart_threshold, 5 * 1024 * 1024)
        self.assertEqual(storage.multipart_part_size, 5 * 1024 * 1024)
        self.assertEqual(storage.chunk_size, 8192)
        self.assertFalse(storage.has_static_credentials)

    def test_bucket_and_region_required(self) -> None:
        with self.assertRaises(pydantic.ValidationError):
            settings.Storage(region='us-east-1')
        with self.assertRaises(pydantic.ValidationError):
            settings.Storage(bucket_name='docs')
        with self.assertRaises(pydantic.ValidationError):
            settings.Storage(bucket_name='', region='us-east-1')

    def test_prefix_normalized(self) -> None:
        storage = settings.Storage(
            bucket_name='docs',
            region='us-east-1',
            path_prefix='files',
        )
        self.assertEqual(storage.path_prefix, 'files/')

    def test_empty_prefix(self) -> None:
        storage = settings.Storage(
            bucket_name='docs',
            region='us-east-1',
            path_prefix='',
        )
        self.assertEqual(storage.path_prefix, '')

    def test_from_environment(self) -> None:
        with mock.patch.dict(
            os.environ,
            {
                'BLOBSTORE_BUCKET_NAME': 'env-docs',
                'BLOBSTORE_REGION': 'eu-central-1',
                'BLOBSTORE_ENDPOINT_URL': 'http://localhost:9000',
                'BLOBSTORE_PATH_STYLE_ACCESS': 'true',
                'BLOBSTORE_ACCESS_KEY': 'minio',
                'BLOBSTORE_SECRET_KEY': 'minio123',
                'BLOBSTORE_PATH_PREFIX': 'tenant-a',
            },
        ):
            storage = settings.Storage()
        self.assertEqual(storage.bucket_name, 'env-docs')
        self.assertEqual(storage.region, 'eu-central-1')
        self.assertEqual(storage.endpoint_url, 'http://localhost:9000')
        self.assertTrue(storage.path_style_access)
        self.assertTrue(storage.has_static_credentials)
        self.assertEqual(storage.path_prefix, 'tenant-a/')

    def test_invalid_timeouts(self) -> None:
        with self.assertRaises(pydantic.ValidationError):
            settings.Storage(
                bucket_name='docs',
                region='us-east-1',
                connection_timeout=0,
            )
        with self.assertRaises(pydantic.ValidationError):
            settings.Storage(
                bucket_name='docs',
                region='us-east-1',
                max_retries=-1,
            )

    def test_versioning_is_not_a_setting(self) -> None:
        storage = settings.Storage(
            bucket_name='docs',
            region='us-east-1',
            enable_versioning=False,
        )
        self.assertNotIn('enable_versioning', storage.model_dump())
