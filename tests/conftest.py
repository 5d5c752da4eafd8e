"""
Shared test fixtures.

The S3 fake below keeps objects in a dict and speaks just enough of the
boto3 client surface for the backend: put/get/delete object, head/create
bucket and presigned URLs. Failures are scripted by queueing botocore
ClientErrors, so retry behaviour can be tested without a network.
"""

import io
from typing import Any

import pytest
from botocore.exceptions import ClientError
from botocore.response import StreamingBody

from blobstore.config.settings import get_settings
from blobstore.core.storage.models import ProviderConfig, StorageBackend


def client_error(code: str, operation: str = "PutObject", message: str = "") -> ClientError:
    """Build a botocore ClientError the way the SDK raises it."""
    return ClientError(
        {"Error": {"Code": code, "Message": message or code}},
        operation,
    )


class FakeS3Client:
    """In-memory stand-in for a boto3 S3 client."""

    def __init__(self, bucket_exists: bool = True) -> None:
        self.objects: dict[tuple[str, str], bytes] = {}
        self.buckets: set[str] = set()
        self.bucket_exists = bucket_exists
        self.put_calls: list[dict[str, Any]] = []
        self.put_failures: list[Exception] = []
        self.get_failures: list[Exception] = []
        self.create_bucket_calls: list[dict[str, Any]] = []

    def put_object(self, **params: Any) -> dict[str, Any]:
        self.put_calls.append(params)
        if self.put_failures:
            raise self.put_failures.pop(0)
        body = params["Body"]
        if isinstance(body, str):
            body = body.encode("utf-8")
        self.objects[(params["Bucket"], params["Key"])] = bytes(body)
        return {"ETag": '"etag"'}

    def get_object(self, Bucket: str, Key: str) -> dict[str, Any]:
        if self.get_failures:
            raise self.get_failures.pop(0)
        try:
            data = self.objects[(Bucket, Key)]
        except KeyError:
            raise client_error("NoSuchKey", "GetObject", "The specified key does not exist.")
        return {"Body": StreamingBody(io.BytesIO(data), len(data))}

    def delete_object(self, Bucket: str, Key: str) -> dict[str, Any]:
        self.objects.pop((Bucket, Key), None)
        return {}

    def head_bucket(self, Bucket: str) -> dict[str, Any]:
        if not self.bucket_exists and Bucket not in self.buckets:
            raise client_error("404", "HeadBucket", "Not Found")
        return {}

    def create_bucket(self, **params: Any) -> dict[str, Any]:
        self.create_bucket_calls.append(params)
        self.buckets.add(params["Bucket"])
        return {}

    def generate_presigned_url(
        self,
        ClientMethod: str,
        Params: dict[str, str],
        ExpiresIn: int,
    ) -> str:
        return (
            f"https://signed.example.com/{Params['Bucket']}/{Params['Key']}"
            f"?X-Amz-Expires={ExpiresIn}"
        )


class SleepRecorder:
    """Async sleep replacement that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def make_s3_config(**overrides: Any) -> ProviderConfig:
    values: dict[str, Any] = {
        "backend": StorageBackend.S3,
        "bucket_name": "test-bucket",
        "endpoint": "http://localhost:9000",
        "object_access_key": "minioadmin",
    }
    values.update(overrides)
    return ProviderConfig(**values)


@pytest.fixture
def fake_s3() -> FakeS3Client:
    return FakeS3Client()


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def s3_config() -> ProviderConfig:
    return make_s3_config()


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Settings are cached per process; reset around every test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def storage_env(monkeypatch, tmp_path):
    """Strip storage variables from the environment so tests start clean."""
    for key in (
        "STORAGE_TYPE",
        "S3_ENDPOINT",
        "S3_REGION",
        "S3_ACCESS_KEY",
        "S3_SECRET_KEY",
        "S3_BUCKET_NAME",
        "S3_SECURE_URL_ENABLE",
        "S3_SIGN_URL_EXPIRATION",
        "S3_CUSTOM_DOMAIN",
        "S3_OBJECT_ACCESS_KEY",
        "S3_MINIO_COMPATIBILITY",
        "AZURE_STORAGE_ACCOUNT",
        "AZURE_STORAGE_ACCESS_KEY",
        "EMULATED",
        "PROVISION_CONTAINERS",
        "HEALTH_CHECK_CONTAINER",
    ):
        monkeypatch.delenv(key, raising=False)
    # Keep a developer's .env file out of the tests
    monkeypatch.chdir(tmp_path)
    return monkeypatch


@pytest.fixture
def make_client_error():
    return client_error


@pytest.fixture
def make_config():
    return make_s3_config
