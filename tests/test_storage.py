import os
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from clearance_portal.services.storage_service import (
    LocalObjectStore, ObjectStore, S3ObjectStore, build_object_key, create_object_store,
    validate_logo_file, validate_submission_file
)
from clearance_portal.utils.exceptions import FileUploadError, ValidationError

ALLOWED = {'pdf', 'png', 'jpg'}


def test_object_keys():
    key = build_object_key("logos/offices", 12, "Seal.PNG")
    folder, name = key.rsplit('/', 1)
    assert folder == "logos/offices"
    assert name.startswith("12_")
    assert name.endswith(".png")
    assert build_object_key("x", "a/b", "noext").endswith(".bin")
    assert build_object_key("x", 1, "a.pdf") != build_object_key("x", 1, "a.pdf")


def test_local_store_round_trip(tmp_path):
    store = LocalObjectStore(str(tmp_path))
    url = store.put(b"hello", "text/plain", "submissions/1/file.pdf")
    assert url == "/uploads/submissions/1/file.pdf"
    assert (tmp_path / "submissions" / "1" / "file.pdf").read_bytes() == b"hello"

    store.delete(url)
    assert not (tmp_path / "submissions" / "1" / "file.pdf").exists()
    store.delete(url)


def test_local_store_rejects_escaping_keys(tmp_path):
    store = LocalObjectStore(str(tmp_path / "root"))
    with pytest.raises(FileUploadError):
        store.put(b"x", "text/plain", "../outside.txt")
    with pytest.raises(FileUploadError):
        store.delete("https://elsewhere.example/file.pdf")


def test_s3_store(app):
    store = S3ObjectStore("portal-files", "ap-southeast-2")
    store._client = MagicMock()

    url = store.put(b"data", "application/pdf", "submissions/1/a.pdf")
    assert url == "https://portal-files.s3.amazonaws.com/submissions/1/a.pdf"
    store._client.put_object.assert_called_once_with(
        Bucket="portal-files", Key="submissions/1/a.pdf", Body=b"data", ContentType="application/pdf")

    store.delete(url)
    store._client.delete_object.assert_called_once_with(Bucket="portal-files", Key="submissions/1/a.pdf")

    with pytest.raises(FileUploadError):
        store.delete("https://other-bucket.s3.amazonaws.com/a.pdf")


def test_s3_errors_become_upload_errors(app):
    store = S3ObjectStore("portal-files", "ap-southeast-2")
    store._client = MagicMock()
    store._client.put_object.side_effect = ClientError(
        {'Error': {'Code': 'AccessDenied', 'Message': 'denied'}}, 'PutObject')
    with pytest.raises(FileUploadError):
        store.put(b"data", "application/pdf", "a.pdf")


def test_store_selection(tmp_path):
    local = create_object_store({'OBJECT_STORE': 'local', 'UPLOAD_FOLDER': str(tmp_path)})
    assert isinstance(local, LocalObjectStore)
    s3 = create_object_store({'OBJECT_STORE': 's3', 'S3_BUCKET_NAME': 'b', 'AWS_REGION': 'us-east-1'})
    assert isinstance(s3, S3ObjectStore)
    assert s3.bucket_name == 'b'


def test_submission_file_rules():
    validate_submission_file("scan.PDF", "application/pdf", b"x", ALLOWED, 10)
    with pytest.raises(ValidationError):
        validate_submission_file("scan.docx", "application/msword", b"x", ALLOWED, 10)
    with pytest.raises(ValidationError):
        validate_submission_file("scan.pdf", None, b"x", ALLOWED, 10)
    with pytest.raises(ValidationError):
        validate_submission_file("scan.pdf", "application/pdf", b"x" * 11, ALLOWED, 10)


def test_logo_rules():
    validate_logo_file("seal.svg", "image/svg+xml", b"<svg/>", 1024)
    with pytest.raises(ValidationError):
        validate_logo_file("seal.gif", "image/gif", b"GIF89a", 1024)
    with pytest.raises(ValidationError):
        validate_logo_file("seal.png", "image/png", b"x" * 1025, 1024)


def test_incomplete_store_cannot_be_built():
    class WriteOnlyStore(ObjectStore):
        def put(self, data, content_type, key):
            return key

    with pytest.raises(TypeError):
        WriteOnlyStore()
