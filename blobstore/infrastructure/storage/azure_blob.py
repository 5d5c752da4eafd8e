"""
Azure Blob Storage backend.

A thin adapter: each operation maps onto one azure-storage-blob call.
Retries are whatever the Azure SDK pipeline already does; nothing is
added here. Unlike the S3 backend, the health check does not recreate
a missing marker blob.
"""

import asyncio
import logging
from typing import Any, Optional

from azure.core.exceptions import AzureError, ResourceExistsError, ResourceNotFoundError

from ...core.storage.errors import ErrorCode, StorageError, wrap_error
from ...core.storage.models import (
    HEALTH_BLOB_CONTENT,
    HEALTH_BLOB_ID,
    BlobContent,
    content_length as resolve_length,
    to_bytes,
)

logger = logging.getLogger(__name__)


class AzureBlobBackend:
    """BlobStorageProvider backed by an Azure BlobServiceClient."""

    BACKEND_NAME = "Azure"

    def __init__(self, blob_service: Any) -> None:
        self._blob_service = blob_service

    def _handle_error(self, error: AzureError, operation: str) -> StorageError:
        logger.error(
            f"Azure {operation} error",
            extra={"operation": operation, "error": str(error)},
        )
        return wrap_error(
            error,
            operation,
            self.BACKEND_NAME,
            not_found=isinstance(error, ResourceNotFoundError),
        )

    async def upload_blob(
        self,
        container: str,
        blob_id: str,
        content: BlobContent,
        content_length: Optional[int] = None,
    ) -> None:
        data = to_bytes(content)
        length = resolve_length(data, content_length)
        if length != len(data):
            # A character count for non-ASCII text undercounts the UTF-8 bytes
            logger.warning(
                "Declared content length does not match payload, using byte length",
                extra={"blob_id": blob_id, "declared": length, "actual": len(data)},
            )
            length = len(data)
        container_client = self._blob_service.get_container_client(container)
        try:
            await asyncio.to_thread(
                container_client.upload_blob,
                blob_id,
                data,
                length=length,
                overwrite=True,
            )
        except AzureError as e:
            raise self._handle_error(e, "upload") from e

    async def download_blob(self, container: str, blob_id: str) -> bytes:
        blob_client = self._blob_service.get_blob_client(container, blob_id)

        def _download() -> bytes:
            return blob_client.download_blob().readall()

        try:
            return await asyncio.to_thread(_download)
        except AzureError as e:
            raise self._handle_error(e, "download") from e

    async def delete_blob(self, container: str, blob_id: str) -> None:
        container_client = self._blob_service.get_container_client(container)
        try:
            await asyncio.to_thread(container_client.delete_blob, blob_id)
        except AzureError as e:
            raise self._handle_error(e, "delete") from e

    async def get_blob_url(self, container: str, blob_id: str) -> str:
        return self._blob_service.get_blob_client(container, blob_id).url

    async def create_container(
        self,
        container: str,
        options: Optional[dict[str, Any]] = None,
    ) -> None:
        """
        Create the container. An existing container is fine.

        `options` are passed through to BlobServiceClient.create_container
        (metadata, public_access, ...).
        """
        try:
            await asyncio.to_thread(
                self._blob_service.create_container,
                container,
                **(options or {}),
            )
            logger.info("Created Azure container", extra={"container": container})
        except ResourceExistsError:
            logger.debug("Azure container already exists", extra={"container": container})
        except AzureError as e:
            raise self._handle_error(e, "create container") from e

    async def check_health(self, container: str) -> None:
        """Download the health marker and compare it byte for byte."""
        contents = await self.download_blob(container, HEALTH_BLOB_ID)

        if contents != HEALTH_BLOB_CONTENT:
            raise StorageError(
                ErrorCode.CONNECTION_FAILED,
                f"The Azure Blobs service failed the health check for {container}",
            )
