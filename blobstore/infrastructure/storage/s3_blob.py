"""
S3-compatible blob storage backend.

Works against AWS S3 and self-hosted S3-compatible servers (MinIO and
friends). Containers are emulated as key prefixes inside a single
bucket: the object key for (container, blob_id) is "container/blob_id".

Self-hosted servers are only partially S3-compatible, so this backend
carries its own reliability layer on top of boto3:
- uploads are retried with exponential backoff (see core.storage.retry)
- a checksum mismatch on a small first upload is retried once with the
  body sent as text, which some servers validate differently
- the health check recreates its marker blob on first run

boto3 is synchronous. Every SDK call goes through asyncio.to_thread so
a slow request never blocks other coroutines, and backoff waits use
asyncio.sleep for the same reason.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from botocore.exceptions import BotoCoreError, ClientError

from ...core.storage.errors import ErrorCode, StorageError, wrap_error
from ...core.storage.models import (
    HEALTH_BLOB_CONTENT,
    HEALTH_BLOB_ID,
    BlobContent,
    ProviderConfig,
    to_bytes,
)
from ...core.storage.retry import RetryPolicy, UploadState, UploadStateMachine

logger = logging.getLogger(__name__)

CHECKSUM_MISMATCH_CODE = "XAmzContentSHA256Mismatch"
NOT_FOUND_CODES = ("NoSuchKey", "404", "NotFound")
MISSING_BUCKET_CODES = ("404", "NotFound", "NoSuchBucket")
BUCKET_OWNED_CODES = ("BucketAlreadyOwnedByYou", "BucketAlreadyExists")

EMPTY_HISTORY = b"[]"

Sleep = Callable[[float], Awaitable[Any]]


def _error_code(error: Exception) -> str:
    """Native S3 error code from a botocore ClientError, or ''."""
    if isinstance(error, ClientError):
        return error.response.get("Error", {}).get("Code", "")
    return ""


def _is_not_found(error: Exception) -> bool:
    return _error_code(error) in NOT_FOUND_CODES


class S3CompatibleBackend:
    """
    BlobStorageProvider backed by an S3-compatible bucket.

    The boto3 client is built by the StorageFactory with whatever
    compatibility flags the deployment needs. This class only knows the
    bucket layout and the reliability rules.
    """

    BACKEND_NAME = "S3"

    def __init__(
        self,
        s3_client: Any,
        config: ProviderConfig,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._client = s3_client
        self._config = config
        self._bucket = config.bucket_name
        self._retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep

    @property
    def bucket_name(self) -> str:
        return self._bucket

    def _object_key(self, container: str, blob_id: str) -> str:
        return f"{container}/{blob_id}"

    def _handle_error(self, error: Exception, operation: str) -> StorageError:
        logger.error(
            f"S3 {operation} error",
            extra={"operation": operation, "error": str(error)},
        )
        return wrap_error(
            error,
            operation,
            self.BACKEND_NAME,
            not_found=_is_not_found(error),
        )

    # -----------------------------------------------------------------------
    # Upload
    # -----------------------------------------------------------------------

    def _put_params(self, key: str, body: Any) -> dict[str, Any]:
        """
        Minimal put_object parameters.

        ContentLength, ContentType and ContentMD5 are left out on purpose:
        some self-hosted servers compute the payload hash differently when
        they are present and reject the request.
        """
        params: dict[str, Any] = {
            "Bucket": self._bucket,
            "Key": key,
            "Body": body,
        }
        if not self._config.secure_url_enabled:
            params["ACL"] = "public-read"
        return params

    async def _put_object(self, key: str, body: Any) -> None:
        await asyncio.to_thread(self._client.put_object, **self._put_params(key, body))

    async def upload_blob(
        self,
        container: str,
        blob_id: str,
        content: BlobContent,
        content_length: Optional[int] = None,
    ) -> None:
        """
        Upload with bounded retries.

        Up to RetryPolicy.max_attempts primary attempts with exponential
        backoff between them. A checksum mismatch on the first attempt of
        a small payload triggers one extra request with a text body before
        any backoff; that request doesn't count against the budget.
        """
        body = to_bytes(content)
        key = self._object_key(container, blob_id)
        machine = UploadStateMachine(self._retry_policy, payload_size=len(body))

        logger.info(
            "Uploading blob",
            extra={
                "container": container,
                "blob_id": blob_id,
                "size_bytes": content_length or len(body),
            },
        )

        while not machine.done:
            if machine.state is UploadState.FALLBACK_ATTEMPT:
                await self._attempt_text_upload(machine, key, body)
            else:
                await self._attempt_upload(machine, key, body)

            if machine.state is UploadState.ATTEMPTING:
                delay = machine.next_delay()
                logger.info(
                    "Retrying upload after backoff",
                    extra={"key": key, "attempt": machine.attempt, "delay_seconds": delay},
                )
                await self._sleep(delay)

        if machine.state is UploadState.EXHAUSTED:
            error = machine.last_error
            logger.error(
                "Upload failed after all attempts",
                extra={"key": key, "attempts": machine.attempt, "error": str(error)},
            )
            raise self._handle_error(error, "upload") from error

        logger.info("Uploaded blob", extra={"key": key, "attempts": machine.attempt})

    async def _attempt_upload(
        self,
        machine: UploadStateMachine,
        key: str,
        body: bytes,
    ) -> None:
        attempt = machine.start_attempt()
        logger.debug(
            "Upload attempt",
            extra={"key": key, "attempt": attempt, "max_attempts": self._retry_policy.max_attempts},
        )
        try:
            await self._put_object(key, body)
        except (ClientError, BotoCoreError) as e:
            mismatch = _error_code(e) == CHECKSUM_MISMATCH_CODE
            if mismatch:
                logger.warning(
                    "SHA256 mismatch on upload",
                    extra={"key": key, "attempt": attempt, "size_bytes": len(body)},
                )
            else:
                logger.warning(
                    "Upload attempt failed",
                    extra={"key": key, "attempt": attempt, "error": str(e)},
                )
            machine.fail(e, fallback_eligible=mismatch and _as_text(body) is not None)
        else:
            machine.succeed()

    async def _attempt_text_upload(
        self,
        machine: UploadStateMachine,
        key: str,
        body: bytes,
    ) -> None:
        logger.info("Trying text-encoded upload for small payload", extra={"key": key})
        try:
            await self._put_object(key, _as_text(body))
        except (ClientError, BotoCoreError) as e:
            logger.warning(
                "Text-encoded upload failed",
                extra={"key": key, "error": str(e)},
            )
            machine.fallback_failed()
        else:
            machine.succeed()

    # -----------------------------------------------------------------------
    # Download / delete
    # -----------------------------------------------------------------------

    async def download_blob(self, container: str, blob_id: str) -> bytes:
        """
        Fetch a blob and join its stream into one buffer.

        A missing key in the package history container is the normal
        "no history yet" state and returns an empty JSON array.
        """
        key = self._object_key(container, blob_id)

        def _get() -> bytes:
            response = self._client.get_object(Bucket=self._bucket, Key=key)
            stream = response.get("Body")
            if stream is None:
                raise StorageError(ErrorCode.OTHER, "S3 download failed: Empty response body")
            return b"".join(stream.iter_chunks())

        try:
            return await asyncio.to_thread(_get)
        except StorageError:
            raise
        except (ClientError, BotoCoreError) as e:
            if _is_not_found(e) and container == self._config.history_container:
                logger.info(
                    "History blob not found, returning empty array",
                    extra={"container": container, "blob_id": blob_id},
                )
                return EMPTY_HISTORY
            raise self._handle_error(e, "download") from e

    async def delete_blob(self, container: str, blob_id: str) -> None:
        key = self._object_key(container, blob_id)
        try:
            await asyncio.to_thread(
                self._client.delete_object,
                Bucket=self._bucket,
                Key=key,
            )
        except (ClientError, BotoCoreError) as e:
            raise self._handle_error(e, "delete") from e

    # -----------------------------------------------------------------------
    # URLs
    # -----------------------------------------------------------------------

    async def get_blob_url(self, container: str, blob_id: str) -> str:
        """
        Resolve a URL for the blob.

        Checked in order:
        1. secure URLs enabled -> presigned GET URL
        2. custom domain configured -> {domain}/{key}
        3. otherwise -> public path-style URL on the endpoint
        """
        key = self._object_key(container, blob_id)

        if self._config.secure_url_enabled:
            try:
                return await asyncio.to_thread(
                    self._client.generate_presigned_url,
                    "get_object",
                    Params={"Bucket": self._bucket, "Key": key},
                    ExpiresIn=self._config.sign_url_expiration,
                )
            except (ClientError, BotoCoreError) as e:
                raise self._handle_error(e, "presign") from e

        if self._config.has_custom_domain:
            return f"{self._config.custom_domain}/{key}"

        return (
            f"{self._config.public_endpoint}/"
            f"{self._config.object_access_key}:{self._bucket}/{key}"
        )

    # -----------------------------------------------------------------------
    # Provisioning
    # -----------------------------------------------------------------------

    def _ensure_bucket_exists_sync(self) -> bool:
        """Create the bucket if it's missing. Returns True if it was created."""
        try:
            self._client.head_bucket(Bucket=self._bucket)
            return False
        except ClientError as e:
            if _error_code(e) not in MISSING_BUCKET_CODES:
                raise

        params: dict[str, Any] = {"Bucket": self._bucket}
        # us-east-1 rejects an explicit location constraint
        if self._config.region and self._config.region != "us-east-1":
            params["CreateBucketConfiguration"] = {
                "LocationConstraint": self._config.region,
            }
        try:
            self._client.create_bucket(**params)
        except ClientError as e:
            if _error_code(e) in BUCKET_OWNED_CODES:
                return False
            raise
        return True

    async def ensure_bucket_exists(self) -> None:
        logger.info("Ensuring S3 bucket exists", extra={"bucket": self._bucket})
        try:
            created = await asyncio.to_thread(self._ensure_bucket_exists_sync)
        except (ClientError, BotoCoreError) as e:
            raise self._handle_error(e, "create bucket") from e

        if created:
            logger.info("Created S3 bucket", extra={"bucket": self._bucket})
        else:
            logger.info("S3 bucket already exists", extra={"bucket": self._bucket})

    async def create_container(
        self,
        container: str,
        options: Optional[dict[str, Any]] = None,
    ) -> None:
        """
        Make sure the bucket exists.

        Containers are key prefixes, so there is nothing else to create:
        the prefix appears with the first object written under it.
        """
        await self.ensure_bucket_exists()
        logger.info(
            "S3 container ready (no explicit creation needed)",
            extra={"container": container},
        )

    # -----------------------------------------------------------------------
    # Health
    # -----------------------------------------------------------------------

    async def check_health(self, container: str) -> None:
        """
        Read the health marker and compare it to the expected content.

        A missing marker means this container has never been checked
        before, not that the service is down: it is created and the
        check passes.
        """
        key = self._object_key(container, HEALTH_BLOB_ID)
        logger.debug("Checking S3 health", extra={"container": container})

        def _read_marker() -> bytes:
            response = self._client.get_object(Bucket=self._bucket, Key=key)
            return response["Body"].read()

        try:
            contents = await asyncio.to_thread(_read_marker)
        except (ClientError, BotoCoreError) as e:
            if not _is_not_found(e):
                raise self._handle_error(e, "health check") from e
            await self._create_health_marker(container)
            return

        if contents != HEALTH_BLOB_CONTENT:
            logger.error("S3 health marker mismatch", extra={"container": container})
            raise StorageError(
                ErrorCode.CONNECTION_FAILED,
                f"The S3 service failed the health check for {container}",
            )

        logger.debug("S3 health check passed", extra={"container": container})

    async def _create_health_marker(self, container: str) -> None:
        logger.info(
            "Health check file not found, creating it",
            extra={"container": container},
        )
        try:
            await self.upload_blob(
                container,
                HEALTH_BLOB_ID,
                HEALTH_BLOB_CONTENT,
                len(HEALTH_BLOB_CONTENT),
            )
        except StorageError as e:
            raise StorageError(
                ErrorCode.CONNECTION_FAILED,
                f"Failed to create health check file in S3: {e.message}",
            ) from e
        logger.info("Created health check file", extra={"container": container})


def _as_text(body: bytes) -> Optional[str]:
    """UTF-8 text for the fallback request, or None if the bytes aren't text."""
    try:
        return body.decode("utf-8")
    except UnicodeDecodeError:
        return None
