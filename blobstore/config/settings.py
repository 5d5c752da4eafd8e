"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables with sensible defaults.
Using Pydantic's BaseSettings means we get:
- Type validation at startup (fail fast if config is wrong)
- Documentation of what's required vs optional
- Easy testing with different configurations

Settings are read once. The StorageFactory turns them into an immutable
ProviderConfig, so storage backends never look at the environment.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Field names map to upper-case environment variables
    (s3_bucket_name <- S3_BUCKET_NAME). For lists, use comma-separated
    values in env.
    """

    # API Configuration
    api_title: str = "Blob Storage Service"
    api_version: str = "v1"

    # Backend selection
    storage_type: str = Field(
        default="AZURE",
        description="Storage backend: AZURE (default) or S3."
    )

    # S3-compatible storage
    s3_endpoint: Optional[str] = Field(
        default=None,
        description="S3 endpoint URL. Leave unset for AWS; set for MinIO or other self-hosted stores."
    )
    s3_region: str = Field(
        default="us-east-1",
        description="S3 region"
    )
    s3_access_key: str = Field(
        default="",
        description="S3 access key ID"
    )
    s3_secret_key: str = Field(
        default="",
        description="S3 secret access key"
    )
    s3_bucket_name: str = Field(
        default="codepush-bucket",
        description="Bucket holding every container (containers are key prefixes)"
    )
    s3_secure_url_enable: bool = Field(
        default=False,
        description="Serve blobs through presigned URLs instead of public-read objects."
    )
    s3_sign_url_expiration: int = Field(
        default=3600,
        description="Presigned URL lifetime in seconds."
    )
    s3_custom_domain: str = Field(
        default="",
        description="Public domain in front of the bucket (CDN). Ignored if 5 characters or fewer."
    )
    s3_object_access_key: str = Field(
        default="",
        description="Access key segment of public path-style URLs."
    )
    s3_minio_compatibility: bool = Field(
        default=False,
        description="Force the self-hosted compatibility profile even if the endpoint doesn't look local."
    )

    # Azure storage
    azure_storage_account: str = Field(
        default="",
        description="Azure storage account name"
    )
    azure_storage_access_key: str = Field(
        default="",
        description="Azure storage account key"
    )
    emulated: bool = Field(
        default=False,
        description="Use the local Azure storage emulator (Azurite) instead of a real account."
    )

    # Containers
    history_container: str = Field(
        default="packagehistoryv1",
        description="Container whose missing blobs read as an empty history ([])."
    )
    health_check_container: str = Field(
        default="health",
        description="Container checked by the readiness endpoint."
    )
    provision_containers: str = Field(
        default="",
        description="Comma-separated containers to create at startup."
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def provision_containers_list(self) -> list[str]:
        """Parse comma-separated containers into a list."""
        return [c.strip() for c in self.provision_containers.split(",") if c.strip()]

    @property
    def uses_s3(self) -> bool:
        return self.storage_type.strip().upper() == "S3"

    def validate_required_fields(self) -> list[str]:
        """
        Validate that required fields are set for the selected backend.

        Returns list of missing required fields.
        This is separate from Pydantic validation because requirements
        depend on which backend is selected.
        """
        missing = []

        if self.uses_s3:
            if not self.s3_bucket_name:
                missing.append("S3_BUCKET_NAME")
            return missing

        # Azure is the default; the emulator needs no credentials
        if not self.emulated:
            if not self.azure_storage_account:
                missing.append("AZURE_STORAGE_ACCOUNT")
            if not self.azure_storage_access_key:
                missing.append("AZURE_STORAGE_ACCESS_KEY")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache means we only load settings once per process.
    For tests, you can call get_settings.cache_clear() to reset.
    """
    return Settings()
