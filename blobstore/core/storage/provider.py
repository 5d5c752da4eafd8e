"""
The capability contract every blob storage backend implements.
"""

from typing import Any, Optional, Protocol

from .models import BlobContent


class BlobStorageProvider(Protocol):
    """
    Interface for blob storage operations.

    Using a Protocol here means request handlers don't know or care
    whether blobs live in Azure or in an S3-compatible store. The
    StorageFactory picks one implementation at startup and everything
    else talks to it through these six operations.

    All failures surface as StorageError.
    """

    async def upload_blob(
        self,
        container: str,
        blob_id: str,
        content: BlobContent,
        content_length: Optional[int] = None,
    ) -> None:
        """Store content under (container, blob_id), overwriting any existing blob."""
        ...

    async def download_blob(self, container: str, blob_id: str) -> bytes:
        """Return the stored bytes."""
        ...

    async def delete_blob(self, container: str, blob_id: str) -> None:
        """
        Remove a blob.

        Callers should treat a not-found StorageError as success:
        deleting an absent key is not a hard failure.
        """
        ...

    async def get_blob_url(self, container: str, blob_id: str) -> str:
        """Return a URL the blob can be fetched from."""
        ...

    async def create_container(
        self,
        container: str,
        options: Optional[dict[str, Any]] = None,
    ) -> None:
        """Ensure the container exists. Idempotent."""
        ...

    async def check_health(self, container: str) -> None:
        """Verify the backend is reachable using the health marker blob."""
        ...
