import hashlib
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from app.errors import InvalidInput, StoreUnavailable
from app.services import storage
from app.services.storage import ImageStore


def _client_error(code="500", operation="PutObject"):
    return ClientError({"Error": {"Code": code, "Message": "boom"}}, operation)


@pytest.fixture
def s3():
    client = MagicMock()
    client.generate_presigned_url.return_value = "http://minio.test/crop-images/signed"
    return client


def _store(s3, **kwargs):
    return ImageStore("minio:9000", "key", "secret", "crop-images", max_bytes=1024, client=s3, **kwargs)


def test_upload_uses_content_hash_key(s3):
    data = b"\x89PNG fake image bytes"
    store = _store(s3)

    ref = store.upload(data, "image/png")

    digest = hashlib.sha256(data).hexdigest()
    assert ref.public_id == f"crops/{digest}.png"
    assert ref.size == len(data)
    assert ref.mime_type == "image/png"
    assert ref.url == "http://minio.test/crop-images/signed"
    _, bucket, key = s3.upload_fileobj.call_args.args
    assert (bucket, key) == ("crop-images", ref.public_id)
    assert s3.upload_fileobj.call_args.kwargs["ExtraArgs"] == {"ContentType": "image/png"}


def test_same_bytes_map_to_same_object(s3):
    store = _store(s3)

    assert store.upload(b"abc", "image/jpeg").public_id == store.upload(b"abc", "image/jpeg").public_id


def test_public_url_skips_presigning(s3):
    store = _store(s3, public_url="https://cdn.test/")

    ref = store.upload(b"abc", "image/webp")

    assert ref.url.startswith("https://cdn.test/crop-images/crops/")
    assert ref.url.endswith(".webp")
    s3.generate_presigned_url.assert_not_called()


def test_empty_buffer(s3):
    with pytest.raises(InvalidInput, match="File buffer empty"):
        _store(s3).upload(b"", "image/png")
    s3.upload_fileobj.assert_not_called()


def test_oversize_buffer(s3):
    with pytest.raises(InvalidInput) as excinfo:
        _store(s3).upload(b"x" * 2048, "image/png")

    assert excinfo.value.retryable is False


def test_upload_failure_is_retryable(s3):
    s3.upload_fileobj.side_effect = _client_error()

    with pytest.raises(StoreUnavailable) as excinfo:
        _store(s3).upload(b"abc", "image/png")

    assert excinfo.value.retryable is True


def test_missing_bucket_is_created_once(s3):
    s3.head_bucket.side_effect = _client_error("404", "HeadBucket")
    store = _store(s3)

    store.upload(b"abc", "image/png")
    store.upload(b"def", "image/png")

    s3.create_bucket.assert_called_once_with(Bucket="crop-images")


def test_unreachable_store(s3):
    s3.head_bucket.side_effect = EndpointConnectionError(endpoint_url="http://minio:9000")

    with pytest.raises(StoreUnavailable):
        _store(s3).upload(b"abc", "image/png")
    assert _store(s3).ping() is False


def test_client_calls_are_time_bounded(monkeypatch):
    boto_client = MagicMock()
    monkeypatch.setattr(storage.boto3, "client", boto_client)

    ImageStore("minio:9000", "key", "secret", "crop-images", timeout=3.0)

    config = boto_client.call_args.kwargs["config"]
    assert boto_client.call_args.kwargs["endpoint_url"] == "http://minio:9000"
    assert config.connect_timeout == 3.0
    assert config.read_timeout == 3.0
    assert config.retries == {"max_attempts": 1, "mode": "standard"}
