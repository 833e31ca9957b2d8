"""Tests for mini_cloudinary.storage.s3 with a mocked boto3 client."""

import io
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError
from botocore.response import StreamingBody

from mini_cloudinary.core.config import Settings
from mini_cloudinary.core.errors import (
    RemoteDeleteFailed,
    RemoteReadFailed,
    RemoteReadNotFound,
    RemoteWriteFailed,
)
from mini_cloudinary.storage.s3 import S3Store


def _client_error(code: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


@pytest.fixture
def s3():
    return MagicMock()


@pytest.fixture
def store(s3):
    return S3Store(bucket="assets", cdn_base_url="https://assets.example.com", client=s3, chunk_size=3)


@pytest.mark.asyncio
async def test_put_object_streams_file(store, s3, tmp_path):
    local = tmp_path / "cat.png"
    local.write_bytes(b"png-bytes")
    bodies = []
    s3.put_object.side_effect = lambda **kw: bodies.append(kw["Body"].read())

    key = await store.put(local, "alice/cat.png", "image/png")

    assert key == "alice/cat.png"
    kwargs = s3.put_object.call_args.kwargs
    assert kwargs["Bucket"] == "assets"
    assert kwargs["Key"] == "alice/cat.png"
    assert kwargs["ContentType"] == "image/png"
    assert bodies == [b"png-bytes"]


@pytest.mark.asyncio
async def test_put_client_error_raises(store, s3, tmp_path):
    local = tmp_path / "cat.png"
    local.write_bytes(b"x")
    s3.put_object.side_effect = _client_error("AccessDenied", "PutObject")

    with pytest.raises(RemoteWriteFailed):
        await store.put(local, "alice/cat.png", "image/png")


@pytest.mark.asyncio
async def test_get_iterates_body(store, s3):
    data = b"abcdefgh"
    s3.get_object.return_value = {"Body": StreamingBody(io.BytesIO(data), len(data))}

    chunks = [chunk async for chunk in store.get("alice/cat.png")]

    assert b"".join(chunks) == data
    s3.get_object.assert_called_once_with(Bucket="assets", Key="alice/cat.png")


@pytest.mark.asyncio
async def test_get_missing_key(store, s3):
    s3.get_object.side_effect = _client_error("NoSuchKey", "GetObject")

    with pytest.raises(RemoteReadNotFound):
        async for _ in store.get("alice/missing.png"):
            pass


@pytest.mark.asyncio
async def test_get_connection_error(store, s3):
    s3.get_object.side_effect = EndpointConnectionError(endpoint_url="https://s3.test")

    with pytest.raises(RemoteReadFailed):
        async for _ in store.get("alice/cat.png"):
            pass


@pytest.mark.asyncio
async def test_delete_missing_is_success(store, s3):
    s3.delete_object.side_effect = _client_error("NoSuchKey", "DeleteObject")
    await store.delete("alice/gone.png")


@pytest.mark.asyncio
async def test_delete_denied_raises(store, s3):
    s3.delete_object.side_effect = _client_error("AccessDenied", "DeleteObject")

    with pytest.raises(RemoteDeleteFailed):
        await store.delete("alice/cat.png")


def test_cdn_base_url_defaults_to_bucket_endpoint():
    settings = Settings(_env_file=None, storage_backend="s3", aws_s3_bucket_name="assets", aws_region="eu-west-1")
    assert settings.cdn_base_url == "https://assets.s3.eu-west-1.amazonaws.com"
