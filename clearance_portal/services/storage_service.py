"""
Object store for submission documents and source logos
"""

import os
import time
import uuid
from abc import ABC, abstractmethod
from typing import Iterable

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from flask import current_app

from clearance_portal.utils.exceptions import FileUploadError, ValidationError
from clearance_portal.utils.helpers import ensure_directory_exists, log_error, log_info
from clearance_portal.utils.validators import validate_file_extension, validate_file_size

LOGO_CONTENT_TYPES = {'image/png', 'image/jpeg', 'image/jpg', 'image/webp', 'image/svg+xml'}


class ObjectStore(ABC):
    """put/delete interface shared by the S3 and local stores"""

    @abstractmethod
    def put(self, data: bytes, content_type: str, key: str) -> str:
        """Store data under key and return its URL"""

    @abstractmethod
    def delete(self, url: str) -> None:
        """Remove the object a previous put() returned"""


class S3ObjectStore(ObjectStore):
    """AWS S3 bucket; objects are addressed by their public URL"""

    def __init__(self, bucket_name: str, region: str, access_key_id=None, secret_access_key=None):
        self.bucket_name = bucket_name
        self.region = region
        self._access_key_id = access_key_id
        self._secret_access_key = secret_access_key
        self._client = None

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client(
                's3',
                aws_access_key_id=self._access_key_id,
                aws_secret_access_key=self._secret_access_key,
                region_name=self.region
            )
        return self._client

    @property
    def base_url(self) -> str:
        return f"https://{self.bucket_name}.s3.amazonaws.com/"

    def put(self, data: bytes, content_type: str, key: str) -> str:
        try:
            self.client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=data,
                ContentType=content_type
            )
        except (ClientError, BotoCoreError) as e:
            log_error("S3 upload error", e)
            raise FileUploadError("Failed to store file") from e
        log_info(f"Stored s3://{self.bucket_name}/{key}")
        return self.base_url + key

    def delete(self, url: str) -> None:
        if not url.startswith(self.base_url):
            raise FileUploadError(f"URL does not belong to bucket {self.bucket_name}")
        key = url[len(self.base_url):]
        try:
            self.client.delete_object(Bucket=self.bucket_name, Key=key)
        except (ClientError, BotoCoreError) as e:
            log_error("S3 delete error", e)
            raise FileUploadError("Failed to delete file") from e


class LocalObjectStore(ObjectStore):
    """Upload folder on disk, served under /uploads/"""

    url_prefix = '/uploads/'

    def __init__(self, root: str):
        self.root = os.path.abspath(root)

    def _path_for(self, key: str) -> str:
        path = os.path.abspath(os.path.join(self.root, key))
        if not path.startswith(self.root + os.sep):
            raise FileUploadError("Invalid object key")
        return path

    def put(self, data: bytes, content_type: str, key: str) -> str:
        path = self._path_for(key)
        ensure_directory_exists(os.path.dirname(path))
        try:
            with open(path, 'wb') as handle:
                handle.write(data)
        except OSError as e:
            log_error("Local upload error", e)
            raise FileUploadError("Failed to store file") from e
        return self.url_prefix + key

    def delete(self, url: str) -> None:
        if not url.startswith(self.url_prefix):
            raise FileUploadError("URL does not belong to the local upload folder")
        path = self._path_for(url[len(self.url_prefix):])
        if os.path.exists(path):
            os.remove(path)


def create_object_store(config) -> ObjectStore:
    """Build the store selected by OBJECT_STORE"""
    if config.get('OBJECT_STORE') == 'local':
        return LocalObjectStore(config['UPLOAD_FOLDER'])
    return S3ObjectStore(
        bucket_name=config['S3_BUCKET_NAME'],
        region=config['AWS_REGION'],
        access_key_id=config.get('AWS_ACCESS_KEY_ID'),
        secret_access_key=config.get('AWS_SECRET_ACCESS_KEY')
    )


def get_object_store() -> ObjectStore:
    return current_app.extensions['object_store']


def build_object_key(folder: str, owner_id, filename: str) -> str:
    """folder/<owner>_<millis>_<rand>.<ext>"""
    extension = filename.rsplit('.', 1)[1].lower() if filename and '.' in filename else 'bin'
    owner = str(owner_id).replace('/', '_')
    return f"{folder}/{owner}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}.{extension}"


def validate_logo_file(filename: str, content_type: str, data: bytes, max_bytes: int) -> None:
    """
    Validate a source logo before upload

    Raises:
        ValidationError: Unsupported format or file above max_bytes
    """
    if (content_type or '').lower() not in LOGO_CONTENT_TYPES:
        raise ValidationError("Invalid file format. Supported formats: PNG, JPG, WEBP, SVG")
    validate_file_size(data, max_bytes, 'Logo')


def validate_submission_file(filename: str, content_type: str, data: bytes,
                             allowed_extensions: Iterable[str], max_bytes: int) -> None:
    """
    Validate a requirement document before upload

    Raises:
        ValidationError: Missing content type, extension not allowed or file too large
    """
    if not content_type:
        raise ValidationError("File content type is required")
    if not validate_file_extension(filename, allowed_extensions):
        allowed = ', '.join(sorted(allowed_extensions))
        raise ValidationError(f"File type not allowed. Allowed types: {allowed}")
    validate_file_size(data, max_bytes)
