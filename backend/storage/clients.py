"""
Object store clients used by the migrator.

Every client exposes the same calls (list, head, get, put, delete), translates
the provider's "not found" into ObjectNotFound and any other failure into
StorageError. Transient failures (connection errors, timeouts, 5xx) are
retried with tenacity before they surface.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Iterator, Optional
from urllib.parse import quote

import boto3
import requests
from azure.core.exceptions import (
    AzureError, HttpResponseError, ResourceNotFoundError, ServiceRequestError, ServiceResponseError,
)
from azure.storage.blob import BlobServiceClient, ContentSettings
from botocore.config import Config as BotoConfig
from botocore.exceptions import (
    BotoCoreError, ClientError, ConnectionClosedError, ConnectTimeoutError, EndpointConnectionError,
    ReadTimeoutError,
)
from tenacity import Retrying, before_sleep_log, retry_if_exception, stop_after_attempt, wait_exponential

from .exceptions import ObjectNotFound, StorageError

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 1000
RETRY_ATTEMPTS = 3


@dataclass
class ObjectInfo:
    key: str
    size: Optional[int] = None
    content_type: Optional[str] = None
    etag: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)


@dataclass
class StoredObject:
    key: str
    body: bytes
    content_type: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)

    @property
    def size(self):
        return len(self.body)


class ObjectStore(ABC):
    """Capability set shared by every backing provider"""

    name = 'store'

    def __init__(self, page_size=DEFAULT_PAGE_SIZE, retry_attempts=RETRY_ATTEMPTS, retry_wait=None):
        if page_size < 1:
            raise ValueError('page_size must be at least 1')
        self.page_size = page_size
        self.retry_attempts = retry_attempts
        self.retry_wait = retry_wait or wait_exponential(multiplier=1, min=2, max=10)

    def __repr__(self):
        return f'<{type(self).__name__} {self.name}>'

    @abstractmethod
    def list(self, prefix='') -> Iterator[ObjectInfo]:
        """Yield every object under prefix, fetching one page at a time"""

    @abstractmethod
    def head(self, key) -> ObjectInfo:
        """Metadata of one object; raises ObjectNotFound"""

    @abstractmethod
    def get(self, key) -> StoredObject:
        """Payload of one object; raises ObjectNotFound"""

    @abstractmethod
    def put(self, key, body, content_type, metadata=None) -> None:
        """Write (or overwrite) one object"""

    @abstractmethod
    def delete(self, key) -> None:
        """Remove one object (providers may raise ObjectNotFound for a missing key)"""

    def is_transient(self, exc):
        return False

    def with_retry(self, fn, *args, **kwargs):
        """Call fn, retrying while it raises a transient provider error"""
        retrying = Retrying(
            stop=stop_after_attempt(self.retry_attempts),
            wait=self.retry_wait,
            retry=retry_if_exception(self.is_transient),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        return retrying(fn, *args, **kwargs)


class S3ObjectStore(ObjectStore):
    """
    Any S3-compatible bucket, including Cloudflare R2.

    For R2 the endpoint is https://<account>.r2.cloudflarestorage.com and
    the region is "auto".
    """

    NOT_FOUND_CODES = ('404', 'NoSuchKey', 'NotFound')
    TRANSIENT_CODES = ('SlowDown', 'RequestTimeout', 'InternalError', 'ServiceUnavailable', 'Throttling')

    def __init__(self, bucket, client=None, *, endpoint_url=None, region=None,
                 access_key_id=None, secret_access_key=None, timeout=30, **kwargs):
        super().__init__(**kwargs)
        self.bucket = bucket
        self.name = f's3://{bucket}'
        self.client = client or boto3.client(
            's3',
            endpoint_url=endpoint_url,
            region_name=region,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            config=BotoConfig(connect_timeout=timeout, read_timeout=timeout),
        )

    def is_transient(self, exc):
        if isinstance(exc, (EndpointConnectionError, ConnectionClosedError, ConnectTimeoutError, ReadTimeoutError)):
            return True
        if isinstance(exc, ClientError):
            status = exc.response.get('ResponseMetadata', {}).get('HTTPStatusCode') or 0
            code = exc.response.get('Error', {}).get('Code')
            return status >= 500 or code in self.TRANSIENT_CODES
        return False

    def _call(self, operation, key, fn, *args, **kwargs):
        try:
            return self.with_retry(fn, *args, **kwargs)
        except ClientError as e:
            code = str(e.response.get('Error', {}).get('Code'))
            if code in self.NOT_FOUND_CODES:
                raise ObjectNotFound(f'{key} not found in {self.name}', key=key) from e
            raise StorageError(f'{operation} failed for {key or self.name}: {e}', key=key) from e
        except BotoCoreError as e:
            raise StorageError(f'{operation} failed for {key or self.name}: {e}', key=key) from e

    def list(self, prefix=''):
        token = None
        while True:
            params = {'Bucket': self.bucket, 'Prefix': prefix, 'MaxKeys': self.page_size}
            if token:
                params['ContinuationToken'] = token
            page = self._call('list_objects_v2', prefix, self.client.list_objects_v2, **params)
            for item in page.get('Contents', []):
                yield ObjectInfo(
                    key=item['Key'],
                    size=item.get('Size'),
                    etag=(item.get('ETag') or '').strip('"') or None,
                )
            token = page.get('NextContinuationToken')
            if not page.get('IsTruncated') or not token:
                break

    def head(self, key):
        response = self._call('head_object', key, self.client.head_object, Bucket=self.bucket, Key=key)
        return ObjectInfo(
            key=key,
            size=response.get('ContentLength'),
            content_type=response.get('ContentType'),
            etag=(response.get('ETag') or '').strip('"') or None,
            metadata=response.get('Metadata') or {},
        )

    def _fetch(self, key):
        # Body is read inside the retried call so a dropped stream is retried too
        response = self.client.get_object(Bucket=self.bucket, Key=key)
        return response, response['Body'].read()

    def get(self, key):
        response, body = self._call('get_object', key, self._fetch, key)
        return StoredObject(
            key=key,
            body=body,
            content_type=response.get('ContentType'),
            metadata=response.get('Metadata') or {},
        )

    def put(self, key, body, content_type, metadata=None):
        params = {'Bucket': self.bucket, 'Key': key, 'Body': body, 'ContentType': content_type}
        if metadata:
            params['Metadata'] = metadata
        self._call('put_object', key, self.client.put_object, **params)

    def delete(self, key):
        # S3 answers 204 for missing keys too
        self._call('delete_object', key, self.client.delete_object, Bucket=self.bucket, Key=key)


class AzureBlobObjectStore(ObjectStore):
    """Azure Blob Storage container"""

    def __init__(self, container, container_client=None, *, connection_string=None, account_name=None,
                 account_key=None, endpoint_url=None, timeout=30, **kwargs):
        super().__init__(**kwargs)
        self.container = container
        self.name = f'azure://{container}'
        if container_client is None:
            if connection_string:
                service = BlobServiceClient.from_connection_string(
                    connection_string, connection_timeout=timeout, read_timeout=timeout)
            else:
                account_url = endpoint_url or f'https://{account_name}.blob.core.windows.net'
                service = BlobServiceClient(
                    account_url=account_url,
                    credential={'account_name': account_name, 'account_key': account_key},
                    connection_timeout=timeout,
                    read_timeout=timeout,
                )
            container_client = service.get_container_client(container)
        self.container_client = container_client

    def is_transient(self, exc):
        if isinstance(exc, (ServiceRequestError, ServiceResponseError)):
            return True
        return isinstance(exc, HttpResponseError) and (exc.status_code or 0) >= 500

    def _call(self, operation, key, fn, *args, **kwargs):
        try:
            return self.with_retry(fn, *args, **kwargs)
        except ResourceNotFoundError as e:
            raise ObjectNotFound(f'{key} not found in {self.name}', key=key) from e
        except AzureError as e:
            raise StorageError(f'{operation} failed for {key or self.name}: {e}', key=key) from e

    @staticmethod
    def _info(key, properties):
        content_settings = getattr(properties, 'content_settings', None)
        return ObjectInfo(
            key=key,
            size=getattr(properties, 'size', None),
            content_type=content_settings.content_type if content_settings else None,
            etag=(getattr(properties, 'etag', None) or '').strip('"') or None,
            metadata=dict(getattr(properties, 'metadata', None) or {}),
        )

    def list(self, prefix=''):
        pages = self.container_client.list_blobs(
            name_starts_with=prefix or None,
            results_per_page=self.page_size,
        ).by_page()
        while True:
            # A failed page fetch leaves the continuation token in place, so next() can be retried
            page = self._call('list_blobs', prefix, next, pages, None)
            if page is None:
                break
            for blob in page:
                yield self._info(blob.name, blob)

    def head(self, key):
        blob_client = self.container_client.get_blob_client(key)
        properties = self._call('get_blob_properties', key, blob_client.get_blob_properties)
        return self._info(key, properties)

    def _fetch(self, key):
        downloader = self.container_client.get_blob_client(key).download_blob()
        return downloader.properties, downloader.readall()

    def get(self, key):
        properties, body = self._call('download_blob', key, self._fetch, key)
        info = self._info(key, properties)
        return StoredObject(key=key, body=body, content_type=info.content_type, metadata=info.metadata)

    def put(self, key, body, content_type, metadata=None):
        blob_client = self.container_client.get_blob_client(key)
        self._call(
            'upload_blob', key, blob_client.upload_blob, body,
            overwrite=True,
            content_settings=ContentSettings(content_type=content_type),
            metadata=metadata or None,
        )

    def delete(self, key):
        blob_client = self.container_client.get_blob_client(key)
        self._call('delete_blob', key, blob_client.delete_blob)


class SupabaseObjectStore(ObjectStore):
    """
    Supabase Storage bucket over its REST API.

    Listing is folder based: POST /storage/v1/object/list/{bucket} returns
    files and folders (id is null) of one folder, paged with limit/offset.
    """

    PLACEHOLDER = '.emptyFolderPlaceholder'

    def __init__(self, url, bucket, service_key, session=None, *, timeout=30, **kwargs):
        super().__init__(**kwargs)
        self.base_url = f"{url.rstrip('/')}/storage/v1"
        self.bucket = bucket
        self.name = f'supabase://{bucket}'
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            'Authorization': f'Bearer {service_key}',
            'apikey': service_key,
        })

    def is_transient(self, exc):
        if isinstance(exc, (requests.exceptions.ConnectionError, requests.exceptions.Timeout)):
            return True
        return (isinstance(exc, requests.exceptions.HTTPError)
                and exc.response is not None and exc.response.status_code >= 500)

    def _object_path(self, key):
        return f'/object/{self.bucket}/{quote(key, safe="/")}'

    def _request(self, method, path, key=None, **kwargs):
        def send():
            response = self.session.request(method, f'{self.base_url}{path}', timeout=self.timeout, **kwargs)
            if response.status_code >= 500:
                response.raise_for_status()
            return response

        try:
            response = self.with_retry(send)
        except requests.exceptions.RequestException as e:
            raise StorageError(f'{method} {path} failed: {e}', key=key) from e

        # Storage answers 400 with a not_found body for missing objects
        if response.status_code == 404 or (response.status_code == 400 and method in ('HEAD', 'GET')):
            raise ObjectNotFound(f'{key} not found in {self.name}', key=key)
        if response.status_code >= 400:
            raise StorageError(f'{method} {path} failed: {response.status_code} {response.text[:200]}', key=key)
        return response

    def list(self, prefix=''):
        folder, _, partial = prefix.rpartition('/')
        yield from self._walk(folder, partial)

    def _walk(self, folder, partial=''):
        offset = 0
        while True:
            body = {
                'prefix': folder,
                'limit': self.page_size,
                'offset': offset,
                'sortBy': {'column': 'name', 'order': 'asc'},
            }
            entries = self._request('POST', f'/object/list/{self.bucket}', key=folder, json=body).json()
            for entry in entries:
                name = entry.get('name')
                if not name or name == self.PLACEHOLDER or not name.startswith(partial):
                    continue
                key = f'{folder}/{name}' if folder else name
                if entry.get('id') is None:
                    yield from self._walk(key)
                    continue
                meta = entry.get('metadata') or {}
                yield ObjectInfo(
                    key=key,
                    size=meta.get('size'),
                    content_type=meta.get('mimetype'),
                    etag=(meta.get('eTag') or '').strip('"') or None,
                )
            if len(entries) < self.page_size:
                break
            offset += self.page_size

    @staticmethod
    def _info(key, response):
        length = response.headers.get('Content-Length')
        return ObjectInfo(
            key=key,
            size=int(length) if length and length.isdigit() else None,
            content_type=response.headers.get('Content-Type'),
            etag=(response.headers.get('ETag') or '').strip('"') or None,
        )

    def head(self, key):
        return self._info(key, self._request('HEAD', self._object_path(key), key=key))

    def get(self, key):
        response = self._request('GET', self._object_path(key), key=key)
        info = self._info(key, response)
        return StoredObject(key=key, body=response.content, content_type=info.content_type)

    def put(self, key, body, content_type, metadata=None):
        self._request(
            'POST', self._object_path(key), key=key,
            data=body,
            headers={'Content-Type': content_type, 'x-upsert': 'true'},
        )

    def delete(self, key):
        self._request('DELETE', self._object_path(key), key=key)


def build_store(config, page_size=DEFAULT_PAGE_SIZE):
    """Create the client for one StoreConfig"""
    if config.backend in ('s3', 'r2'):
        return S3ObjectStore(
            config.bucket,
            endpoint_url=config.endpoint_url,
            region=config.region,
            access_key_id=config.access_key_id,
            secret_access_key=config.secret_access_key,
            timeout=config.timeout,
            page_size=page_size,
        )
    if config.backend == 'azure':
        return AzureBlobObjectStore(
            config.bucket,
            connection_string=config.connection_string,
            account_name=config.account_name,
            account_key=config.account_key,
            endpoint_url=config.endpoint_url,
            timeout=config.timeout,
            page_size=page_size,
        )
    if config.backend == 'supabase':
        return SupabaseObjectStore(
            config.endpoint_url,
            config.bucket,
            config.service_key,
            timeout=config.timeout,
            page_size=page_size,
        )
    raise ValueError(f'Unknown storage backend: {config.backend}')
