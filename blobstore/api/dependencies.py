"""
FastAPI dependency injection.

The blob storage provider is created once in the application lifespan
and stored on app.state. Route handlers get it through get_blob_storage
instead of building their own, so every request shares the same
provider and tests can inject a fake one.
"""

import logging
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from ..config.settings import Settings, get_settings
from ..core.storage.provider import BlobStorageProvider

logger = logging.getLogger(__name__)


def get_blob_storage(request: Request) -> BlobStorageProvider:
    """
    Provide the shared blob storage provider.

    Raises 503 if the application started without one (startup failed
    or the lifespan didn't run).
    """
    storage = getattr(request.app.state, "blob_storage", None)
    if storage is None:
        logger.error("Blob storage requested before it was initialized")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Blob storage is not available",
        )
    return storage


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

BlobStorageDep = Annotated[BlobStorageProvider, Depends(get_blob_storage)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
