"""
Object store configuration for the migration command.

Both sides are read once from prefixed environment variables
(MIGRATION_SOURCE_* and MIGRATION_DEST_*) and passed explicitly to
build_store and ObjectMigrator.
"""
import os
from dataclasses import dataclass
from typing import Optional

from .exceptions import ConfigurationError

BACKENDS = ('supabase', 's3', 'r2', 'azure')

SOURCE_PREFIX = 'MIGRATION_SOURCE'
DEST_PREFIX = 'MIGRATION_DEST'

DEFAULT_BUCKET = 'products'
DEFAULT_TIMEOUT = 30.0


@dataclass(frozen=True)
class StoreConfig:
    backend: str
    bucket: str = DEFAULT_BUCKET
    endpoint_url: Optional[str] = None
    region: Optional[str] = None
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    account_id: Optional[str] = None
    service_key: Optional[str] = None
    connection_string: Optional[str] = None
    account_name: Optional[str] = None
    account_key: Optional[str] = None
    public_url: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT

    @property
    def public_base_url(self):
        """Base URL that public object URLs start with, always ending in '/'"""
        if self.public_url:
            return self.public_url.rstrip('/') + '/'
        if self.backend == 'supabase' and self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/storage/v1/object/public/{self.bucket}/"
        return None

    @classmethod
    def from_env(cls, prefix, environ, default_backend):
        """
        Build one side's config.

        Returns (config, missing, invalid); config is None when anything is
        missing or invalid so the caller can report both sides at once.
        """
        def read(name):
            value = environ.get(f'{prefix}_{name}')
            if value is None:
                return None
            return value.strip() or None

        missing = []
        invalid = []

        backend = (read('BACKEND') or default_backend).lower()
        if backend not in BACKENDS:
            invalid.append(f"{prefix}_BACKEND={backend!r} (expected one of {', '.join(BACKENDS)})")

        timeout = DEFAULT_TIMEOUT
        raw_timeout = read('TIMEOUT')
        if raw_timeout is not None:
            try:
                timeout = float(raw_timeout)
            except ValueError:
                timeout = None
            if timeout is None or timeout <= 0:
                invalid.append(f'{prefix}_TIMEOUT={raw_timeout!r} (expected a positive number of seconds)')

        values = {
            'endpoint_url': read('ENDPOINT_URL'),
            'region': read('REGION'),
            'access_key_id': read('ACCESS_KEY_ID'),
            'secret_access_key': read('SECRET_ACCESS_KEY'),
            'account_id': read('ACCOUNT_ID'),
            'service_key': read('SERVICE_KEY'),
            'connection_string': read('CONNECTION_STRING'),
            'account_name': read('ACCOUNT_NAME'),
            'account_key': read('ACCOUNT_KEY'),
            'public_url': read('PUBLIC_URL'),
        }

        def require(*names):
            for name in names:
                if not values[name.lower()]:
                    missing.append(f'{prefix}_{name}')

        if backend == 'supabase':
            require('ENDPOINT_URL', 'SERVICE_KEY')
        elif backend in ('s3', 'r2'):
            require('ACCESS_KEY_ID', 'SECRET_ACCESS_KEY')
            if backend == 'r2':
                if not values['endpoint_url']:
                    require('ACCOUNT_ID')
                    if values['account_id']:
                        values['endpoint_url'] = f"https://{values['account_id']}.r2.cloudflarestorage.com"
                values['region'] = values['region'] or 'auto'
        elif backend == 'azure':
            if not values['connection_string']:
                require('ACCOUNT_NAME', 'ACCOUNT_KEY')

        if missing or invalid:
            return None, missing, invalid
        return cls(backend=backend, bucket=read('BUCKET') or DEFAULT_BUCKET, timeout=timeout, **values), [], []


@dataclass(frozen=True)
class MigrationConfig:
    source: StoreConfig
    destination: StoreConfig

    @classmethod
    def from_env(cls, environ=None):
        """
        Read both stores from the environment.

        Raises:
            ConfigurationError: listing every missing or invalid variable of both sides
        """
        environ = os.environ if environ is None else environ
        source, source_missing, source_invalid = StoreConfig.from_env(SOURCE_PREFIX, environ, 'supabase')
        destination, dest_missing, dest_invalid = StoreConfig.from_env(DEST_PREFIX, environ, 'r2')

        missing = source_missing + dest_missing
        invalid = source_invalid + dest_invalid
        if missing or invalid:
            raise ConfigurationError(missing=missing, invalid=invalid)
        return cls(source=source, destination=destination)
