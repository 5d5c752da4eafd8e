"""
Health check endpoints.

We provide two endpoints:
- /health: Basic liveness check (is the process running?)
- /health/ready: Readiness check (is blob storage reachable and correct?)

The readiness check runs the provider's health check against the
configured health container. For S3 this creates the marker blob on
first run; for Azure the marker must already exist.
"""

import logging
from typing import Any

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ... import __version__
from ...core.storage.errors import StorageError
from ..dependencies import BlobStorageDep, SettingsDep

logger = logging.getLogger(__name__)

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    details: dict[str, Any] = {}


class ReadinessCheck(BaseModel):
    """Individual readiness check result."""
    name: str
    status: str  # "ok" or "error"
    error: str | None = None


class ReadinessResponse(BaseModel):
    """Readiness check response with details."""
    status: str  # "ready" or "not_ready"
    version: str
    checks: list[ReadinessCheck]


@router.get(
    "",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
    description="Returns 200 if the service is running. Does not check dependencies.",
)
async def health_check(settings: SettingsDep) -> HealthResponse:
    """Liveness check. Never touches storage."""
    return HealthResponse(
        status="ok",
        version=__version__,
        details={"storage_type": settings.storage_type.upper()},
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    status_code=status.HTTP_200_OK,
    summary="Readiness check",
    description="Returns 200 if blob storage passes its health check.",
    responses={
        503: {
            "description": "Service not ready",
            "model": ReadinessResponse,
        }
    },
)
async def readiness_check(
    settings: SettingsDep,
    storage: BlobStorageDep,
):
    """
    Readiness check - can we serve traffic?

    Returns 503 if configuration is incomplete or the storage health
    check fails, which tells load balancers not to route traffic here.
    """
    checks: list[ReadinessCheck] = []

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        checks.append(ReadinessCheck(
            name="configuration",
            status="error",
            error=f"Missing required fields: {', '.join(missing_fields)}",
        ))
    else:
        checks.append(ReadinessCheck(name="configuration", status="ok"))

    try:
        await storage.check_health(settings.health_check_container)
        checks.append(ReadinessCheck(name="blob_storage", status="ok"))
    except StorageError as e:
        logger.error(
            "Blob storage health check failed",
            extra={"code": e.code.name, "error": e.message},
        )
        checks.append(ReadinessCheck(
            name="blob_storage",
            status="error",
            error=f"{e.code.name}: {e.message}",
        ))

    all_ok = all(check.status == "ok" for check in checks)
    response = ReadinessResponse(
        status="ready" if all_ok else "not_ready",
        version=__version__,
        checks=checks,
    )

    if not all_ok:
        logger.warning(
            "Readiness check failed",
            extra={
                "checks": [
                    {"name": c.name, "status": c.status, "error": c.error}
                    for c in checks
                ]
            }
        )
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=response.model_dump(),
        )

    return response
