"""
Media Storage Service for Signage CMS.

Stores uploaded media objects and hands out time-limited URLs for them.

Backends:
- S3Storage: objects in an S3 bucket, URLs are boto3 presigned GETs
- LocalStorage: objects under UPLOADS_PATH, URLs point at the media
  blueprint's download route (development and tests)

Object keys look like ``<folder_prefix>/<epoch_ms>-<sanitized-name>``.
"""

import logging
import os
import re
import time
import unicodedata
from pathlib import Path
from typing import Iterable, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from flask import current_app, url_for
from werkzeug.routing import BuildError
from werkzeug.security import safe_join


logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when the storage backend rejects an operation."""
    pass


def sanitize_segment(value: str) -> str:
    """
    Make a string safe for use inside an object key.

    Drops characters that are not word characters, whitespace, dots or
    dashes, turns runs of whitespace into single dashes and lower-cases.
    """
    value = unicodedata.normalize('NFKD', str(value or ''))
    value = re.sub(r'[^\w\s.-]', '', value, flags=re.ASCII)
    value = re.sub(r'\s+', '-', value.strip())
    return value.lower()


def folder_prefix(folder_name: str) -> str:
    """Key prefix for a folder: non-alphanumerics become underscores."""
    return re.sub(r'[^A-Za-z0-9]', '_', folder_name or '') or 'folder'


def build_object_key(folder_name: str, filename: str, now_ms: Optional[int] = None) -> str:
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    safe_name = sanitize_segment(filename) or 'upload'
    return f'{folder_prefix(folder_name)}/{now_ms}-{safe_name}'


class StorageBackend:
    """Interface shared by the storage backends."""

    def save(self, key: str, stream, content_type: Optional[str] = None) -> str:
        raise NotImplementedError

    def url(self, key: str) -> str:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def delete_many(self, keys: Iterable[str]) -> None:
        for key in keys:
            self.delete(key)


class LocalStorage(StorageBackend):
    """Filesystem backend rooted at a directory."""

    def __init__(self, root):
        self.root = Path(root)

    def path_for(self, key: str) -> Path:
        joined = safe_join(str(self.root), key)
        if joined is None:
            raise StorageError(f'Invalid object key: {key}')
        return Path(joined)

    def save(self, key, stream, content_type=None):
        path = self.path_for(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            if hasattr(stream, 'save'):
                stream.save(str(path))
            else:
                with open(path, 'wb') as fh:
                    fh.write(stream.read() if hasattr(stream, 'read') else stream)
        except OSError as e:
            raise StorageError(f'Failed to store {key}: {e}') from e
        return key

    def url(self, key):
        try:
            return url_for('media.download_file', key=key, _external=True)
        except (RuntimeError, BuildError) as e:
            raise StorageError(f'Cannot build a download URL for {key}: {e}') from e

    def delete(self, key):
        path = self.path_for(key)
        try:
            os.remove(path)
        except FileNotFoundError:
            logger.debug(f"Object {key} already absent")
        except OSError as e:
            raise StorageError(f'Failed to delete {key}: {e}') from e


class S3Storage(StorageBackend):
    """S3 backend using boto3."""

    def __init__(self, bucket: str, region: Optional[str] = None, url_ttl: int = 604800, client=None):
        if not bucket:
            raise StorageError('AWS_S3_BUCKET_NAME is not configured')
        self.bucket = bucket
        self.url_ttl = url_ttl
        if client is None:
            client = boto3.client('s3', region_name=region) if region else boto3.client('s3')
        self.client = client

    def save(self, key, stream, content_type=None):
        params = {'Bucket': self.bucket, 'Key': key, 'Body': stream}
        if content_type:
            params['ContentType'] = content_type
        try:
            self.client.put_object(**params)
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f'Failed to upload {key}: {e}') from e
        return key

    def url(self, key):
        try:
            return self.client.generate_presigned_url(
                'get_object',
                Params={'Bucket': self.bucket, 'Key': key},
                ExpiresIn=self.url_ttl,
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f'Failed to sign {key}: {e}') from e

    def delete(self, key):
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f'Failed to delete {key}: {e}') from e

    def delete_many(self, keys):
        keys: List[str] = [k for k in keys if k]
        if not keys:
            return
        # delete_objects accepts at most 1000 keys per call
        for start in range(0, len(keys), 1000):
            chunk = keys[start:start + 1000]
            try:
                self.client.delete_objects(
                    Bucket=self.bucket,
                    Delete={'Objects': [{'Key': k} for k in chunk]},
                )
            except (BotoCoreError, ClientError) as e:
                raise StorageError(f'Failed to delete {len(chunk)} objects: {e}') from e


def create_storage(config) -> StorageBackend:
    """Build the backend named by STORAGE_BACKEND."""
    backend = (config.get('STORAGE_BACKEND') or 'local').lower()
    if backend == 's3':
        return S3Storage(
            bucket=config.get('AWS_S3_BUCKET_NAME'),
            region=config.get('AWS_REGION'),
            url_ttl=int(config.get('SIGNED_URL_TTL_SECONDS', 604800)),
        )
    if backend == 'local':
        return LocalStorage(config.get('UPLOADS_PATH'))
    raise StorageError(f'Unknown storage backend: {backend}')


def get_storage() -> StorageBackend:
    """Return the storage backend bound to the current app."""
    storage = current_app.extensions.get('signage_storage')
    if storage is None:
        storage = create_storage(current_app.config)
        current_app.extensions['signage_storage'] = storage
    return storage


def signed_url(key: Optional[str]) -> Optional[str]:
    """Signed URL for a key, or None for empty keys or signing failures."""
    if not key:
        return None
    try:
        return get_storage().url(key)
    except StorageError as e:
        current_app.logger.warning(f"Could not sign URL for {key}: {e}")
        return None
