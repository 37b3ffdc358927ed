"""
Test suite for the Storage module
Tests: object migrator, store configuration, provider clients, URL rewriting, migrate_objects command
"""
import io
import json
import os
import threading
import time
from unittest import mock

import requests
from azure.core.exceptions import HttpResponseError, ResourceNotFoundError
from botocore.exceptions import ClientError
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import SimpleTestCase, TestCase
from tenacity import wait_none

from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory
from backend.storage.clients import (
    AzureBlobObjectStore, ObjectInfo, ObjectStore, S3ObjectStore, StoredObject, SupabaseObjectStore, build_store,
)
from backend.storage.config import MigrationConfig, StoreConfig
from backend.storage.exceptions import ConfigurationError, ObjectNotFound, StorageError, TransferError
from backend.storage.migrator import MigrationReport, ObjectMigrator, guess_content_type
from backend.storage.rewrite import rewrite_image_urls


class MemoryStore(ObjectStore):
    """In-memory object store used to drive the migrator"""

    name = 'memory'

    def __init__(self, objects=None, page_size=2, fail_put=(), fail_get=(), fail_list_after=None,
                 put_delay=0.0, on_get=None, fail_delete=()):
        super().__init__(page_size=page_size)
        self.objects = {}
        for key, value in (objects or {}).items():
            body, content_type = value if isinstance(value, tuple) else (value, 'image/jpeg')
            self.objects[key] = (body, content_type)
        self.fail_put = set(fail_put)
        self.fail_get = set(fail_get)
        self.fail_delete = set(fail_delete)
        self.fail_list_after = fail_list_after
        self.put_delay = put_delay
        self.on_get = on_get
        self.lock = threading.Lock()
        self.gets = []
        self.puts = []
        self.deletes = []
        self.listed = 0

    def list(self, prefix=''):
        keys = sorted(k for k in self.objects if k.startswith(prefix))
        for start in range(0, len(keys), self.page_size):
            for key in keys[start:start + self.page_size]:
                if self.fail_list_after is not None and self.listed >= self.fail_list_after:
                    raise StorageError('listing broke')
                self.listed += 1
                yield ObjectInfo(key=key, size=len(self.objects[key][0]))

    def head(self, key):
        with self.lock:
            if key not in self.objects:
                raise ObjectNotFound(f'{key} missing', key=key)
            body, content_type = self.objects[key]
        return ObjectInfo(key=key, size=len(body), content_type=content_type)

    def get(self, key):
        with self.lock:
            self.gets.append(key)
        if self.on_get:
            self.on_get(key)
        if key in self.fail_get:
            raise StorageError(f'cannot read {key}', key=key)
        body, content_type = self.objects[key]
        return StoredObject(key=key, body=body, content_type=content_type)

    def put(self, key, body, content_type, metadata=None):
        if self.put_delay:
            time.sleep(self.put_delay)
        if key in self.fail_put:
            raise StorageError(f'write refused for {key}', key=key)
        with self.lock:
            self.objects[key] = (body, content_type)
            self.puts.append(key)

    def delete(self, key):
        if key in self.fail_delete:
            raise StorageError(f'delete refused for {key}', key=key)
        with self.lock:
            if key not in self.objects:
                raise ObjectNotFound(f'{key} missing', key=key)
            del self.objects[key]
            self.deletes.append(key)


class ObjectMigratorTests(SimpleTestCase):
    """Test copy/skip/fail bookkeeping of the migrator"""

    def test_copies_then_skips_on_second_run(self):
        source = MemoryStore({'a.jpg': b'aaa', 'b.jpg': b'bbb'})
        destination = MemoryStore()

        first = ObjectMigrator(source, destination, workers=1).migrate()
        self.assertEqual(first.as_dict()['copied'], ['a.jpg', 'b.jpg'])
        self.assertEqual(first.as_dict()['skipped'], [])
        self.assertEqual(first.as_dict()['failed'], [])

        second = ObjectMigrator(source, destination, workers=1).migrate()
        self.assertEqual(second.as_dict()['copied'], [])
        self.assertEqual(second.as_dict()['skipped'], ['a.jpg', 'b.jpg'])
        self.assertEqual(destination.objects['a.jpg'][0], b'aaa')
        self.assertEqual(sorted(destination.puts), ['a.jpg', 'b.jpg'])

    def test_failed_write_is_isolated(self):
        source = MemoryStore({f'img{i}.jpg': b'x' * i for i in range(1, 6)})
        destination = MemoryStore(fail_put={'img3.jpg'})

        report = ObjectMigrator(source, destination, workers=3).migrate()
        self.assertEqual(report.failed_keys, ['img3.jpg'])
        self.assertEqual(sorted(report.copied), ['img1.jpg', 'img2.jpg', 'img4.jpg', 'img5.jpg'])
        self.assertFalse(report.ok)
        error = report.failed[0]
        self.assertIn('write refused', error.message)
        self.assertEqual(error.error_type, 'StorageError')

    def test_failed_read_is_recorded(self):
        source = MemoryStore({'a.jpg': b'a', 'b.jpg': b'b'}, fail_get={'a.jpg'})
        report = ObjectMigrator(source, MemoryStore(), workers=1).migrate()
        self.assertEqual(report.failed_keys, ['a.jpg'])
        self.assertEqual(report.copied, ['b.jpg'])

    def test_unexpected_error_is_recorded(self):
        source = MemoryStore({'a.jpg': b'a'})
        destination = MemoryStore()
        destination.put = mock.Mock(side_effect=RuntimeError('boom'))
        report = ObjectMigrator(source, destination, workers=1).migrate()
        self.assertEqual(report.failed[0].error_type, 'RuntimeError')

    def test_parallel_run_matches_sequential(self):
        objects = {f'k{i:03d}.png': b'p' * (i + 1) for i in range(40)}
        sequential = ObjectMigrator(MemoryStore(objects), MemoryStore({'k005.png': b'pppppp'}),
                                    workers=1).migrate()
        parallel = ObjectMigrator(MemoryStore(objects), MemoryStore({'k005.png': b'pppppp'}),
                                  workers=6).migrate()
        for name in ('copied', 'skipped', 'failed', 'not_attempted'):
            self.assertEqual(sequential.as_dict()[name], parallel.as_dict()[name])
        self.assertEqual(parallel.as_dict()['skipped'], ['k005.png'])
        self.assertEqual(parallel.total, 40)

    def test_listing_consumed_with_bounded_backlog(self):
        workers = 2
        source = MemoryStore({f'f{i:03d}.jpg': b'z' for i in range(30)}, page_size=5)
        destination = MemoryStore(put_delay=0.005)
        backlog = []
        original_list = source.list

        def tracking_list(prefix=''):
            for info in original_list(prefix):
                with destination.lock:
                    backlog.append(source.listed - len(destination.puts))
                yield info

        source.list = tracking_list
        report = ObjectMigrator(source, destination, workers=workers).migrate()
        self.assertEqual(len(report.copied), 30)
        self.assertLessEqual(max(backlog), workers * 2 + 1)

    def test_size_mismatch_is_recopied(self):
        source = MemoryStore({'a.jpg': b'complete-image'})
        destination = MemoryStore({'a.jpg': b'trunc'})

        report = ObjectMigrator(source, destination, workers=1).migrate()
        self.assertEqual(report.copied, ['a.jpg'])
        self.assertEqual(report.replaced, ['a.jpg'])
        self.assertEqual(destination.objects['a.jpg'][0], b'complete-image')

    def test_size_mismatch_ignored_without_verification(self):
        source = MemoryStore({'a.jpg': b'complete-image'})
        destination = MemoryStore({'a.jpg': b'trunc'})
        report = ObjectMigrator(source, destination, workers=1, verify_size=False).migrate()
        self.assertEqual(report.skipped, ['a.jpg'])
        self.assertEqual(destination.objects['a.jpg'][0], b'trunc')

    def test_dry_run_writes_nothing(self):
        source = MemoryStore({'a.jpg': b'a', 'b.jpg': b'b'})
        destination = MemoryStore({'b.jpg': b'b'})
        report = ObjectMigrator(source, destination, workers=1, dry_run=True).migrate()
        self.assertEqual(report.copied, ['a.jpg'])
        self.assertEqual(report.skipped, ['b.jpg'])
        self.assertTrue(report.dry_run)
        self.assertEqual(source.gets, [])
        self.assertNotIn('a.jpg', destination.objects)

    def test_prefix(self):
        source = MemoryStore({'products/a.jpg': b'a', 'slides/b.jpg': b'b'})
        report = ObjectMigrator(source, MemoryStore(), workers=1).migrate('products/')
        self.assertEqual(report.copied, ['products/a.jpg'])

    def test_cancelled_before_start(self):
        source = MemoryStore({'a.jpg': b'a', 'b.jpg': b'b'})
        cancel = threading.Event()
        cancel.set()
        report = ObjectMigrator(source, MemoryStore(), workers=2, cancel_event=cancel).migrate()
        self.assertEqual(sorted(report.not_attempted), ['a.jpg', 'b.jpg'])
        self.assertTrue(report.cancelled)
        self.assertEqual(source.gets, [])

    def test_cancel_mid_run_leaves_rest_not_attempted(self):
        cancel = threading.Event()
        source = MemoryStore({'a.jpg': b'a', 'b.jpg': b'b', 'c.jpg': b'c'},
                             on_get=lambda key: cancel.set())
        destination = MemoryStore()
        report = ObjectMigrator(source, destination, workers=1, cancel_event=cancel).migrate()
        self.assertEqual(report.copied, ['a.jpg'])
        self.assertEqual(report.not_attempted, ['b.jpg', 'c.jpg'])
        self.assertTrue(report.cancelled)
        self.assertEqual(list(destination.objects), ['a.jpg'])

    def test_expired_deadline(self):
        source = MemoryStore({'a.jpg': b'a'})
        report = ObjectMigrator(source, MemoryStore(), workers=1, deadline=time.monotonic() - 1).migrate()
        self.assertEqual(report.not_attempted, ['a.jpg'])
        self.assertTrue(report.cancelled)

    def test_listing_failure_attaches_partial_report(self):
        source = MemoryStore({'a.jpg': b'a', 'b.jpg': b'b', 'c.jpg': b'c'}, fail_list_after=2)
        with self.assertRaises(StorageError) as ctx:
            ObjectMigrator(source, MemoryStore(), workers=1).migrate()
        report = ctx.exception.report
        self.assertEqual(report.copied, ['a.jpg', 'b.jpg'])
        self.assertIsNotNone(report.finished_at)

    def test_listing_failure_in_pool_waits_for_in_flight(self):
        source = MemoryStore({f'{c}.jpg': b'x' for c in 'abcdef'}, fail_list_after=4)
        with self.assertRaises(StorageError) as ctx:
            ObjectMigrator(source, MemoryStore(put_delay=0.01), workers=3).migrate()
        self.assertEqual(sorted(ctx.exception.report.copied), ['a.jpg', 'b.jpg', 'c.jpg', 'd.jpg'])

    def test_content_type_falls_back_to_extension(self):
        source = MemoryStore({
            'a.png': (b'png', None),
            'b.webp': (b'webp', 'application/octet-stream'),
            'c.unknownext': (b'???', None),
            'd.jpg': (b'jpg', 'image/jpeg'),
        })
        destination = MemoryStore()
        ObjectMigrator(source, destination, workers=1).migrate()
        self.assertEqual(destination.objects['a.png'][1], 'image/png')
        self.assertEqual(destination.objects['c.unknownext'][1], 'application/octet-stream')
        self.assertEqual(destination.objects['d.jpg'][1], 'image/jpeg')

    def test_guess_content_type(self):
        self.assertEqual(guess_content_type('x.gif'), 'image/gif')
        self.assertEqual(guess_content_type('x.gif', 'image/custom'), 'image/custom')
        self.assertEqual(guess_content_type('noext'), 'application/octet-stream')

    def test_invalid_workers(self):
        with self.assertRaises(ValueError):
            ObjectMigrator(MemoryStore(), MemoryStore(), workers=0)

    def test_delete_source_removes_only_copied_objects(self):
        source = MemoryStore({'a.jpg': b'a', 'b.jpg': b'b', 'c.jpg': b'c'})
        destination = MemoryStore({'b.jpg': b'b'}, fail_put={'c.jpg'})

        report = ObjectMigrator(source, destination, workers=2, delete_source=True).migrate()
        self.assertEqual(report.deleted, ['a.jpg'])
        self.assertEqual(source.deletes, ['a.jpg'])
        self.assertEqual(sorted(source.objects), ['b.jpg', 'c.jpg'])
        self.assertEqual(report.failed_keys, ['c.jpg'])

    def test_delete_waits_for_the_listing(self):
        source = MemoryStore({f'k{i}.jpg': b'x' for i in range(5)}, page_size=2)
        deleted_while_listing = []
        original_delete = source.delete

        def tracking_delete(key):
            deleted_while_listing.append(source.listed < 5)
            original_delete(key)

        source.delete = tracking_delete
        report = ObjectMigrator(source, MemoryStore(), workers=1, delete_source=True).migrate()
        self.assertEqual(len(report.deleted), 5)
        self.assertNotIn(True, deleted_while_listing)
        self.assertEqual(source.objects, {})

    def test_failed_delete_keeps_object_migrated(self):
        source = MemoryStore({'a.jpg': b'a', 'b.jpg': b'b'}, fail_delete={'a.jpg'})
        report = ObjectMigrator(source, MemoryStore(), workers=1, delete_source=True).migrate()
        self.assertEqual(sorted(report.copied), ['a.jpg', 'b.jpg'])
        self.assertEqual(report.deleted, ['b.jpg'])
        self.assertEqual([e.key for e in report.delete_failed], ['a.jpg'])
        self.assertIn('a.jpg', report.migrated_keys)
        self.assertIn('a.jpg', source.objects)
        self.assertFalse(report.ok)
        self.assertEqual(report.as_dict()['counts']['delete_failed'], 1)

    def test_dry_run_never_deletes(self):
        source = MemoryStore({'a.jpg': b'a'})
        report = ObjectMigrator(source, MemoryStore(), workers=1, dry_run=True, delete_source=True).migrate()
        self.assertEqual(report.deleted, [])
        self.assertEqual(source.deletes, [])

    def test_listing_failure_deletes_nothing(self):
        source = MemoryStore({'a.jpg': b'a', 'b.jpg': b'b', 'c.jpg': b'c'}, fail_list_after=2)
        with self.assertRaises(StorageError):
            ObjectMigrator(source, MemoryStore(), workers=1, delete_source=True).migrate()
        self.assertEqual(source.deletes, [])


class MigrationReportTests(SimpleTestCase):
    """Test report serialization"""

    def test_as_dict_is_sorted_and_counted(self):
        report = MigrationReport(
            copied=['b', 'a'],
            skipped=['c'],
            failed=[TransferError('z', 'bad'), TransferError('y', 'worse', 'RuntimeError')],
        )
        data = report.as_dict()
        self.assertEqual(data['copied'], ['a', 'b'])
        self.assertEqual([f['key'] for f in data['failed']], ['y', 'z'])
        self.assertEqual(data['counts']['failed'], 2)
        self.assertEqual(report.total, 5)
        self.assertEqual(report.migrated_keys, {'a', 'b', 'c'})
        json.dumps(data)


class MigrationConfigTests(SimpleTestCase):
    """Test environment parsing of both stores"""

    ENV = {
        'MIGRATION_SOURCE_ENDPOINT_URL': 'https://proj.supabase.co',
        'MIGRATION_SOURCE_SERVICE_KEY': 'service-key',
        'MIGRATION_DEST_ACCESS_KEY_ID': 'key-id',
        'MIGRATION_DEST_SECRET_ACCESS_KEY': 'secret',
        'MIGRATION_DEST_ACCOUNT_ID': 'acc123',
        'MIGRATION_DEST_PUBLIC_URL': 'https://cdn.example.com',
    }

    def test_defaults_supabase_to_r2(self):
        config = MigrationConfig.from_env(self.ENV)
        self.assertEqual(config.source.backend, 'supabase')
        self.assertEqual(config.source.bucket, 'products')
        self.assertEqual(config.destination.backend, 'r2')
        self.assertEqual(config.destination.endpoint_url, 'https://acc123.r2.cloudflarestorage.com')
        self.assertEqual(config.destination.region, 'auto')
        self.assertEqual(config.destination.timeout, 30.0)

    def test_public_base_urls(self):
        config = MigrationConfig.from_env(self.ENV)
        self.assertEqual(config.source.public_base_url,
                         'https://proj.supabase.co/storage/v1/object/public/products/')
        self.assertEqual(config.destination.public_base_url, 'https://cdn.example.com/')

    def test_every_missing_variable_is_reported(self):
        with self.assertRaises(ConfigurationError) as ctx:
            MigrationConfig.from_env({})
        self.assertEqual(ctx.exception.missing, [
            'MIGRATION_SOURCE_ENDPOINT_URL',
            'MIGRATION_SOURCE_SERVICE_KEY',
            'MIGRATION_DEST_ACCESS_KEY_ID',
            'MIGRATION_DEST_SECRET_ACCESS_KEY',
            'MIGRATION_DEST_ACCOUNT_ID',
        ])
        self.assertIn('MIGRATION_DEST_ACCOUNT_ID', str(ctx.exception))

    def test_blank_values_count_as_missing(self):
        env = dict(self.ENV, MIGRATION_SOURCE_SERVICE_KEY='  ')
        with self.assertRaises(ConfigurationError) as ctx:
            MigrationConfig.from_env(env)
        self.assertEqual(ctx.exception.missing, ['MIGRATION_SOURCE_SERVICE_KEY'])

    def test_invalid_backend_and_timeout(self):
        env = dict(self.ENV, MIGRATION_SOURCE_BACKEND='ftp', MIGRATION_DEST_TIMEOUT='soon')
        with self.assertRaises(ConfigurationError) as ctx:
            MigrationConfig.from_env(env)
        self.assertEqual(len(ctx.exception.invalid), 2)

    def test_azure_connection_string(self):
        env = dict(self.ENV, MIGRATION_DEST_BACKEND='azure', MIGRATION_DEST_CONNECTION_STRING='UseDevelopmentStorage=true',
                   MIGRATION_DEST_BUCKET='images')
        config = MigrationConfig.from_env(env)
        self.assertEqual(config.destination.backend, 'azure')
        self.assertEqual(config.destination.bucket, 'images')

    def test_azure_needs_account_without_connection_string(self):
        env = dict(self.ENV, MIGRATION_DEST_BACKEND='azure', MIGRATION_DEST_ACCOUNT_NAME='acct')
        with self.assertRaises(ConfigurationError) as ctx:
            MigrationConfig.from_env(env)
        self.assertEqual(ctx.exception.missing, ['MIGRATION_DEST_ACCOUNT_KEY'])


def client_error(code, status_code, operation='HeadObject'):
    return ClientError({'Error': {'Code': code, 'Message': code},
                        'ResponseMetadata': {'HTTPStatusCode': status_code}}, operation)


class S3ObjectStoreTests(SimpleTestCase):
    """Test the S3/R2 client against a mocked boto3 client"""

    def setUp(self):
        self.client = mock.MagicMock()
        self.store = S3ObjectStore('products', client=self.client, page_size=2, retry_wait=wait_none())

    def test_list_follows_continuation_tokens(self):
        self.client.list_objects_v2.side_effect = [
            {'Contents': [{'Key': 'a.jpg', 'Size': 1, 'ETag': '"e1"'}, {'Key': 'b.jpg', 'Size': 2}],
             'IsTruncated': True, 'NextContinuationToken': 'tok'},
            {'Contents': [{'Key': 'c.jpg', 'Size': 3}], 'IsTruncated': False},
        ]
        infos = list(self.store.list('pre'))
        self.assertEqual([i.key for i in infos], ['a.jpg', 'b.jpg', 'c.jpg'])
        self.assertEqual(infos[0].etag, 'e1')
        second_call = self.client.list_objects_v2.call_args_list[1]
        self.assertEqual(second_call.kwargs['ContinuationToken'], 'tok')
        self.assertEqual(second_call.kwargs['MaxKeys'], 2)

    def test_head_not_found(self):
        self.client.head_object.side_effect = client_error('404', 404)
        with self.assertRaises(ObjectNotFound):
            self.store.head('missing.jpg')
        self.assertEqual(self.client.head_object.call_count, 1)

    def test_transient_error_is_retried(self):
        self.client.head_object.side_effect = [
            client_error('ServiceUnavailable', 503),
            {'ContentLength': 10, 'ContentType': 'image/png', 'ETag': '"abc"'},
        ]
        info = self.store.head('a.png')
        self.assertEqual(info.size, 10)
        self.assertEqual(self.client.head_object.call_count, 2)

    def test_retries_exhausted(self):
        self.client.put_object.side_effect = client_error('InternalError', 500, 'PutObject')
        with self.assertRaises(StorageError) as ctx:
            self.store.put('a.png', b'x', 'image/png')
        self.assertNotIsInstance(ctx.exception, ObjectNotFound)
        self.assertEqual(self.client.put_object.call_count, 3)

    def test_access_denied_not_retried(self):
        self.client.get_object.side_effect = client_error('AccessDenied', 403, 'GetObject')
        with self.assertRaises(StorageError):
            self.store.get('a.png')
        self.assertEqual(self.client.get_object.call_count, 1)

    def test_get_and_put(self):
        self.client.get_object.return_value = {'Body': io.BytesIO(b'data'), 'ContentType': 'image/jpeg'}
        obj = self.store.get('a.jpg')
        self.assertEqual((obj.body, obj.content_type), (b'data', 'image/jpeg'))

        self.store.put('a.jpg', b'data', 'image/jpeg', metadata={'origin': 'supabase'})
        self.client.put_object.assert_called_once_with(
            Bucket='products', Key='a.jpg', Body=b'data', ContentType='image/jpeg', Metadata={'origin': 'supabase'})

    def test_delete(self):
        self.store.delete('a.jpg')
        self.client.delete_object.assert_called_once_with(Bucket='products', Key='a.jpg')

    def test_build_store_for_r2(self):
        config = StoreConfig(backend='r2', bucket='media', endpoint_url='https://acc.r2.cloudflarestorage.com',
                             region='auto', access_key_id='id', secret_access_key='secret', timeout=5)
        with mock.patch('backend.storage.clients.boto3.client') as boto_client:
            store = build_store(config, page_size=50)
        self.assertIsInstance(store, S3ObjectStore)
        self.assertEqual(store.page_size, 50)
        kwargs = boto_client.call_args.kwargs
        self.assertEqual(kwargs['endpoint_url'], 'https://acc.r2.cloudflarestorage.com')
        self.assertEqual(kwargs['region_name'], 'auto')


def http_response(status_code, json_data=None, content=b'', headers=None):
    response = requests.Response()
    response.status_code = status_code
    response._content = json.dumps(json_data).encode() if json_data is not None else content
    response.headers.update(headers or {})
    return response


class SupabaseObjectStoreTests(SimpleTestCase):
    """Test the Supabase Storage client against a mocked requests session"""

    def setUp(self):
        self.session = mock.MagicMock()
        self.session.headers = {}
        self.store = SupabaseObjectStore('https://proj.supabase.co/', 'products', 'service-key',
                                         session=self.session, page_size=100, retry_wait=wait_none())

    def test_auth_headers(self):
        self.assertEqual(self.session.headers['Authorization'], 'Bearer service-key')
        self.assertEqual(self.session.headers['apikey'], 'service-key')

    def test_list_recurses_into_folders(self):
        self.session.request.side_effect = [
            http_response(200, [
                {'name': '.emptyFolderPlaceholder', 'id': 'p'},
                {'name': 'banner.jpg', 'id': '1', 'metadata': {'size': 3, 'mimetype': 'image/jpeg'}},
                {'name': 'products', 'id': None},
            ]),
            http_response(200, [
                {'name': 'shoe.png', 'id': '2', 'metadata': {'size': 5, 'mimetype': 'image/png'}},
            ]),
        ]
        infos = list(self.store.list())
        self.assertEqual([i.key for i in infos], ['banner.jpg', 'products/shoe.png'])
        self.assertEqual(infos[1].size, 5)

        method, url = self.session.request.call_args_list[1].args
        self.assertEqual((method, url), ('POST', 'https://proj.supabase.co/storage/v1/object/list/products'))
        self.assertEqual(self.session.request.call_args_list[1].kwargs['json']['prefix'], 'products')

    def test_list_pages_with_offset(self):
        store = SupabaseObjectStore('https://proj.supabase.co', 'products', 'k',
                                    session=self.session, page_size=2, retry_wait=wait_none())
        self.session.request.side_effect = [
            http_response(200, [{'name': 'a.jpg', 'id': '1'}, {'name': 'b.jpg', 'id': '2'}]),
            http_response(200, [{'name': 'c.jpg', 'id': '3'}]),
        ]
        self.assertEqual([i.key for i in store.list()], ['a.jpg', 'b.jpg', 'c.jpg'])
        self.assertEqual(self.session.request.call_args_list[1].kwargs['json']['offset'], 2)

    def test_list_prefix_filters_names(self):
        self.session.request.side_effect = [
            http_response(200, [{'name': 'shoe.png', 'id': '1'}, {'name': 'hat.png', 'id': '2'}]),
        ]
        self.assertEqual([i.key for i in self.store.list('products/sh')], ['products/shoe.png'])

    def test_head_missing(self):
        self.session.request.return_value = http_response(400, {'statusCode': '404', 'error': 'not_found'})
        with self.assertRaises(ObjectNotFound):
            self.store.head('nope.jpg')

    def test_get_retries_server_errors(self):
        self.session.request.side_effect = [
            http_response(502),
            http_response(200, content=b'img', headers={'Content-Type': 'image/png', 'Content-Length': '3'}),
        ]
        obj = self.store.get('dir/a b.png')
        self.assertEqual(obj.body, b'img')
        self.assertEqual(obj.content_type, 'image/png')
        self.assertEqual(self.session.request.call_args.args[1],
                         'https://proj.supabase.co/storage/v1/object/products/dir/a%20b.png')

    def test_connection_error_becomes_storage_error(self):
        self.session.request.side_effect = requests.exceptions.ConnectionError('down')
        with self.assertRaises(StorageError):
            self.store.get('a.png')
        self.assertEqual(self.session.request.call_count, 3)

    def test_put_upserts(self):
        self.session.request.return_value = http_response(200, {'Key': 'products/a.png'})
        self.store.put('a.png', b'img', 'image/png')
        kwargs = self.session.request.call_args.kwargs
        self.assertEqual(kwargs['headers'], {'Content-Type': 'image/png', 'x-upsert': 'true'})
        self.assertEqual(kwargs['data'], b'img')

    def test_put_rejected(self):
        self.session.request.return_value = http_response(403, {'error': 'Unauthorized'})
        with self.assertRaises(StorageError):
            self.store.put('a.png', b'img', 'image/png')

    def test_delete(self):
        self.session.request.return_value = http_response(200, [{'name': 'dir/a.png'}])
        self.store.delete('dir/a.png')
        self.assertEqual(self.session.request.call_args.args[:2],
                         ('DELETE', 'https://proj.supabase.co/storage/v1/object/products/dir/a.png'))

    def test_delete_missing(self):
        self.session.request.return_value = http_response(404, {'error': 'not_found'})
        with self.assertRaises(ObjectNotFound):
            self.store.delete('gone.png')


class AzureBlobObjectStoreTests(SimpleTestCase):
    """Test the Azure Blob client against a mocked container client"""

    def setUp(self):
        self.container = mock.MagicMock()
        self.store = AzureBlobObjectStore('products', container_client=self.container,
                                          page_size=10, retry_wait=wait_none())

    def blob(self, name, size, content_type='image/jpeg'):
        blob = mock.MagicMock()
        blob.name = name
        blob.size = size
        blob.content_settings.content_type = content_type
        blob.etag = '"0x1"'
        blob.metadata = {}
        return blob

    def test_list_by_page(self):
        pages = iter([iter([self.blob('a.jpg', 1)]), iter([self.blob('b.jpg', 2)])])
        self.container.list_blobs.return_value.by_page.return_value = pages
        infos = list(self.store.list('pre'))
        self.assertEqual([(i.key, i.size) for i in infos], [('a.jpg', 1), ('b.jpg', 2)])
        self.container.list_blobs.assert_called_once_with(name_starts_with='pre', results_per_page=10)

    def test_head_missing(self):
        self.container.get_blob_client.return_value.get_blob_properties.side_effect = \
            ResourceNotFoundError('BlobNotFound')
        with self.assertRaises(ObjectNotFound):
            self.store.head('missing.jpg')

    def test_head(self):
        self.container.get_blob_client.return_value.get_blob_properties.return_value = self.blob('a.jpg', 7)
        info = self.store.head('a.jpg')
        self.assertEqual((info.size, info.content_type, info.etag), (7, 'image/jpeg', '0x1'))

    def test_server_error_retried_then_raised(self):
        error = HttpResponseError('server busy')
        error.status_code = 503
        self.container.get_blob_client.return_value.upload_blob.side_effect = error
        with self.assertRaises(StorageError):
            self.store.put('a.jpg', b'x', 'image/jpeg')
        self.assertEqual(self.container.get_blob_client.return_value.upload_blob.call_count, 3)

    def test_put_sets_content_type(self):
        self.store.put('a.jpg', b'x', 'image/jpeg')
        kwargs = self.container.get_blob_client.return_value.upload_blob.call_args.kwargs
        self.assertTrue(kwargs['overwrite'])
        self.assertEqual(kwargs['content_settings'].content_type, 'image/jpeg')

    def test_delete_missing(self):
        self.container.get_blob_client.return_value.delete_blob.side_effect = ResourceNotFoundError('BlobNotFound')
        with self.assertRaises(ObjectNotFound):
            self.store.delete('missing.jpg')
        self.container.get_blob_client.assert_called_with('missing.jpg')


SOURCE_BASE = 'https://proj.supabase.co/storage/v1/object/public/products/'
DEST_BASE = 'https://cdn.example.com/'


class RewriteImageUrlTests(TestCase):
    """Test rewriting stored image URLs after a migration"""

    def setUp(self):
        self.slide = TestDataFactory.create_hero_slide(image_url=SOURCE_BASE + 'slides/a.jpg')
        self.failed_slide = TestDataFactory.create_hero_slide(image_url=SOURCE_BASE + 'slides/broken.jpg')
        self.other_slide = TestDataFactory.create_hero_slide(image_url='https://elsewhere.test/x.jpg')
        self.category = TestDataFactory.create_category(image_url=SOURCE_BASE + 'cats/b.png')
        self.section = TestDataFactory.create_homepage_section(config=TestDataFactory.section_config(
            banner={'enabled': True, 'image_url': SOURCE_BASE + 'banners/c.webp', 'position': 'left'}))
        self.report = MigrationReport(
            copied=['slides/a.jpg', 'banners/c.webp'],
            skipped=['cats/b.png'],
            failed=[TransferError('slides/broken.jpg', 'boom')],
        )

    def test_rewrites_only_migrated_keys(self):
        counts = rewrite_image_urls(self.report, SOURCE_BASE, DEST_BASE.rstrip('/'))
        self.assertEqual(counts, {'HeroSlide': 1, 'Category': 1, 'HomepageSection': 1})

        self.slide.refresh_from_db()
        self.failed_slide.refresh_from_db()
        self.other_slide.refresh_from_db()
        self.category.refresh_from_db()
        self.section.refresh_from_db()
        self.assertEqual(self.slide.image_url, DEST_BASE + 'slides/a.jpg')
        self.assertEqual(self.failed_slide.image_url, SOURCE_BASE + 'slides/broken.jpg')
        self.assertEqual(self.other_slide.image_url, 'https://elsewhere.test/x.jpg')
        self.assertEqual(self.category.image_url, DEST_BASE + 'cats/b.png')
        self.assertEqual(self.section.config['banner']['image_url'], DEST_BASE + 'banners/c.webp')
        self.assertEqual(AuditLog.objects.filter(action='url_rewrite').count(), 3)

    def test_second_run_changes_nothing(self):
        rewrite_image_urls(self.report, SOURCE_BASE, DEST_BASE)
        counts = rewrite_image_urls(self.report, SOURCE_BASE, DEST_BASE)
        self.assertEqual(sum(counts.values()), 0)

    def test_dry_run_report_rejected(self):
        with self.assertRaises(ValueError):
            rewrite_image_urls(MigrationReport(dry_run=True), SOURCE_BASE, DEST_BASE)


COMMAND_ENV = {
    'MIGRATION_SOURCE_ENDPOINT_URL': 'https://proj.supabase.co',
    'MIGRATION_SOURCE_SERVICE_KEY': 'service-key',
    'MIGRATION_DEST_ACCESS_KEY_ID': 'key-id',
    'MIGRATION_DEST_SECRET_ACCESS_KEY': 'secret',
    'MIGRATION_DEST_ACCOUNT_ID': 'acc123',
    'MIGRATION_DEST_PUBLIC_URL': DEST_BASE,
}


class MigrateObjectsCommandTests(TestCase):
    """Test the migrate_objects management command"""

    def run_command(self, source, destination, *args, env=None):
        stores = iter([source, destination])
        out = io.StringIO()
        with mock.patch.dict(os.environ, env if env is not None else COMMAND_ENV, clear=True), \
                mock.patch('backend.storage.management.commands.migrate_objects.build_store',
                           side_effect=lambda config, page_size: next(stores)) as build:
            try:
                call_command('migrate_objects', *args, stdout=out, stderr=io.StringIO())
            finally:
                self.build_calls = build.call_count
        return out.getvalue()

    def test_missing_environment_fails_before_touching_stores(self):
        with self.assertRaises(CommandError) as ctx:
            self.run_command(MemoryStore(), MemoryStore(), env={})
        self.assertIn('MIGRATION_SOURCE_SERVICE_KEY', str(ctx.exception))
        self.assertEqual(self.build_calls, 0)

    def test_successful_run(self):
        destination = MemoryStore({'b.jpg': b'b'})
        output = self.run_command(MemoryStore({'a.jpg': b'a', 'b.jpg': b'b'}), destination, '--workers', '2')
        self.assertIn('Copied: 1', output)
        self.assertIn('Skipped (already present): 1', output)
        self.assertIn('a.jpg', destination.objects)

    def test_json_output(self):
        output = self.run_command(MemoryStore({'a.jpg': b'a'}), MemoryStore(), '--json', '--workers', '1')
        data = json.loads(output)
        self.assertEqual(data['copied'], ['a.jpg'])
        self.assertEqual(data['failed'], [])

    def test_failures_exit_non_zero(self):
        with self.assertRaises(CommandError) as ctx:
            self.run_command(MemoryStore({'a.jpg': b'a', 'b.jpg': b'b'}), MemoryStore(fail_put={'b.jpg'}))
        self.assertIn('1 object(s) failed', str(ctx.exception))

    def test_expired_deadline_exits_non_zero(self):
        with self.assertRaises(CommandError) as ctx:
            self.run_command(MemoryStore({'a.jpg': b'a'}), MemoryStore(), '--deadline', '0')
        self.assertIn('cancelled', str(ctx.exception))

    def test_dry_run(self):
        destination = MemoryStore()
        output = self.run_command(MemoryStore({'a.jpg': b'a'}), destination, '--dry-run')
        self.assertIn('DRY RUN', output)
        self.assertEqual(destination.objects, {})

    def test_rewrite_urls(self):
        category = TestDataFactory.create_category(image_url=SOURCE_BASE + 'cats/a.jpg')
        output = self.run_command(MemoryStore({'cats/a.jpg': b'a'}), MemoryStore(), '--rewrite-urls')
        self.assertIn('Category: 1', output)
        category.refresh_from_db()
        self.assertEqual(category.image_url, DEST_BASE + 'cats/a.jpg')

    def test_invalid_workers(self):
        with self.assertRaises(CommandError):
            self.run_command(MemoryStore(), MemoryStore(), '--workers', '0')

    def test_delete_source(self):
        source = MemoryStore({'a.jpg': b'a', 'b.jpg': b'b'})
        destination = MemoryStore({'b.jpg': b'b'})
        output = self.run_command(source, destination, '--delete-source')
        self.assertIn('Deleted from source: 1', output)
        self.assertEqual(sorted(source.objects), ['b.jpg'])
        self.assertIn('a.jpg', destination.objects)

    def test_source_kept_without_delete_flag(self):
        source = MemoryStore({'a.jpg': b'a'})
        self.run_command(source, MemoryStore())
        self.assertEqual(source.deletes, [])

    def test_failed_delete_exits_non_zero(self):
        source = MemoryStore({'a.jpg': b'a'}, fail_delete={'a.jpg'})
        with self.assertRaises(CommandError) as ctx:
            self.run_command(source, MemoryStore(), '--delete-source', '--workers', '1')
        self.assertIn('could not be deleted', str(ctx.exception))
