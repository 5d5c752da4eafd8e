"""
Storage factory: picks and assembles the blob storage backend.

Called once at startup. Reads Settings, turns them into an immutable
ProviderConfig, builds the SDK client with the flags the deployment
needs, and returns a single BlobStorageProvider for the process.

Backend modules and SDKs are imported lazily so an Azure deployment
never loads boto3 and vice versa.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Optional

from ...core.storage.errors import StorageConfigurationError
from ...core.storage.models import ProviderConfig, StorageBackend
from ...core.storage.provider import BlobStorageProvider

if TYPE_CHECKING:
    from ...config.settings import Settings

logger = logging.getLogger(__name__)

# Endpoint fragments that identify a local or self-hosted S3-compatible server
LOCAL_ENDPOINT_MARKERS = ("localhost", "127.0.0.1", "minio")

# Well-known Azurite development account (public, documented by Microsoft)
AZURITE_CONNECTION_STRING = (
    "DefaultEndpointsProtocol=http;"
    "AccountName=devstoreaccount1;"
    "AccountKey=Eby8vdM02xNOcqFlqUwJPLlmEtlCDXJ1OUzFT50uSRZ6IFsuFq2UVErCz4I6tq/K1SZFPTOtr/KBHBeksoGMGw==;"
    "BlobEndpoint=http://127.0.0.1:10000/devstoreaccount1;"
)


def is_local_endpoint(endpoint: Optional[str], minio_compatibility: bool = False) -> bool:
    """True for loopback/self-hosted endpoints or when compatibility is forced."""
    if minio_compatibility:
        return True
    if not endpoint:
        return False
    return any(marker in endpoint for marker in LOCAL_ENDPOINT_MARKERS)


class StorageFactory:
    """Factory for the process-wide blob storage provider."""

    @staticmethod
    def build_provider_config(settings: "Settings | None" = None) -> ProviderConfig:
        """
        Turn settings into a ProviderConfig.

        Pure: no clients are created. The local-deployment heuristic runs
        here, once, and its result is stored as the explicit
        `insecure_transport` flag.

        Raises:
            StorageConfigurationError: Unknown backend or missing credentials.
        """
        from ...config.settings import get_settings

        s = settings or get_settings()
        backend = StorageBackend.parse(s.storage_type)

        if backend is StorageBackend.S3:
            return ProviderConfig(
                backend=backend,
                bucket_name=s.s3_bucket_name,
                region=s.s3_region or "us-east-1",
                endpoint=s.s3_endpoint or None,
                access_key=s.s3_access_key,
                secret_key=s.s3_secret_key,
                secure_url_enabled=s.s3_secure_url_enable,
                sign_url_expiration=s.s3_sign_url_expiration,
                custom_domain=s.s3_custom_domain,
                object_access_key=s.s3_object_access_key,
                minio_compatibility=s.s3_minio_compatibility,
                insecure_transport=is_local_endpoint(
                    s.s3_endpoint, s.s3_minio_compatibility
                ),
                history_container=s.history_container,
            )

        return ProviderConfig(
            backend=backend,
            account_name=s.azure_storage_account or None,
            account_key=s.azure_storage_access_key or None,
            emulated=s.emulated,
            history_container=s.history_container,
        )

    @staticmethod
    def create_blob_storage_provider(settings: "Settings | None" = None) -> BlobStorageProvider:
        """
        Create the blob storage provider from settings.

        Args:
            settings: Application settings; if None, uses get_settings().

        Returns:
            AzureBlobBackend or S3CompatibleBackend.

        Raises:
            StorageConfigurationError: Unknown backend or missing config.
        """
        config = StorageFactory.build_provider_config(settings)
        return StorageFactory.create_from_config(config)

    @staticmethod
    def create_from_config(config: ProviderConfig) -> BlobStorageProvider:
        if config.backend is StorageBackend.S3:
            return _create_s3_backend(config)
        return _create_azure_backend(config)


def build_s3_client_kwargs(config: ProviderConfig) -> dict[str, Any]:
    """
    Keyword arguments for boto3.client("s3", ...).

    Path-style addressing is always on: self-hosted servers rarely have
    wildcard DNS for virtual-hosted buckets. The SDK makes a single HTTP
    attempt per call on every profile; the backend retries uploads itself.
    For local/self-hosted endpoints TLS verification is relaxed and
    checksums are only sent when an operation requires them.
    """
    from botocore.config import Config

    s3_options: dict[str, Any] = {"addressing_style": "path"}
    config_options: dict[str, Any] = {
        "region_name": config.region,
        "signature_version": "s3v4",
        "retries": {"total_max_attempts": 1, "mode": "standard"},
    }

    if config.insecure_transport:
        s3_options["use_arn_region"] = True
        config_options["request_checksum_calculation"] = "when_required"
        config_options["response_checksum_validation"] = "when_required"

    kwargs: dict[str, Any] = {
        "config": Config(s3=s3_options, **config_options),
        "region_name": config.region,
    }
    if config.endpoint:
        kwargs["endpoint_url"] = config.endpoint
    if config.access_key and config.secret_key:
        kwargs["aws_access_key_id"] = config.access_key
        kwargs["aws_secret_access_key"] = config.secret_key
    if config.insecure_transport:
        kwargs["verify"] = False

    return kwargs


def _create_s3_backend(config: ProviderConfig) -> BlobStorageProvider:
    try:
        import boto3
    except ImportError as e:
        raise StorageConfigurationError(
            "S3 backend requires boto3. Install with: pip install boto3"
        ) from e

    from .s3_blob import S3CompatibleBackend

    logger.info(
        "Using S3 for blob storage",
        extra={
            "endpoint": config.endpoint,
            "bucket": config.bucket_name,
            "region": config.region,
            "access_key": "set" if config.access_key else "not set",
            "secret_key": "set" if config.secret_key else "not set",
            "secure_urls": config.secure_url_enabled,
        },
    )
    if config.insecure_transport:
        logger.info("Using MinIO-compatible configuration", extra={"endpoint": config.endpoint})

    s3_client = boto3.client("s3", **build_s3_client_kwargs(config))
    return S3CompatibleBackend(s3_client, config)


def _create_azure_backend(config: ProviderConfig) -> BlobStorageProvider:
    try:
        from azure.storage.blob import BlobServiceClient
    except ImportError as e:
        raise StorageConfigurationError(
            "Azure backend requires azure-storage-blob. "
            "Install with: pip install azure-storage-blob"
        ) from e

    from .azure_blob import AzureBlobBackend

    if config.emulated:
        logger.info("Using emulated Azure storage")
        blob_service = BlobServiceClient.from_connection_string(AZURITE_CONNECTION_STRING)
    else:
        if not config.account_name or not config.account_key:
            raise StorageConfigurationError("Azure storage credentials not set")
        logger.info(
            "Using Azure for blob storage",
            extra={"account": config.account_name},
        )
        blob_service = BlobServiceClient(
            account_url=f"https://{config.account_name}.blob.core.windows.net",
            credential={
                "account_name": config.account_name,
                "account_key": config.account_key,
            },
        )

    return AzureBlobBackend(blob_service)
