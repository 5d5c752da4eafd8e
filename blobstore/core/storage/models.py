"""
Storage configuration and content value objects.

ProviderConfig is built once by the StorageFactory at startup and handed
to the backend constructors. Backends never read the environment
themselves, so everything they need to decide URL policy, provisioning
or compatibility behaviour lives here.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from .errors import StorageConfigurationError


BlobContent = Union[bytes, bytearray, memoryview, str]

HEALTH_BLOB_ID = "health"
HEALTH_BLOB_CONTENT = b"health"

DEFAULT_HISTORY_CONTAINER = "packagehistoryv1"
DEFAULT_S3_ENDPOINT = "http://localhost:9000"
DEFAULT_BUCKET_NAME = "codepush-bucket"
DEFAULT_REGION = "us-east-1"
DEFAULT_SIGN_URL_EXPIRATION = 3600

# A custom domain shorter than this is treated as unset
MIN_CUSTOM_DOMAIN_LENGTH = 6


class StorageBackend(Enum):
    """The two supported storage backends."""
    AZURE = "AZURE"
    S3 = "S3"

    @classmethod
    def parse(cls, value: Optional[str]) -> "StorageBackend":
        """Parse a STORAGE_TYPE value. Empty means Azure."""
        if not value:
            return cls.AZURE
        try:
            return cls(value.strip().upper())
        except ValueError:
            raise StorageConfigurationError(
                f"Unknown storage type: {value!r}. Supported: 'AZURE', 'S3'"
            )


@dataclass(frozen=True)
class ProviderConfig:
    """
    Immutable backend configuration.

    Only the fields for the selected backend are meaningful. Frozen so
    the single provider instance can be shared by every request handler
    without anyone changing its behaviour mid-flight.
    """
    backend: StorageBackend

    # S3-compatible
    bucket_name: str = DEFAULT_BUCKET_NAME
    region: str = DEFAULT_REGION
    endpoint: Optional[str] = None
    access_key: str = ""
    secret_key: str = ""
    secure_url_enabled: bool = False
    sign_url_expiration: int = DEFAULT_SIGN_URL_EXPIRATION
    custom_domain: str = ""
    object_access_key: str = ""
    minio_compatibility: bool = False
    insecure_transport: bool = False

    # Azure
    account_name: Optional[str] = None
    account_key: Optional[str] = None
    emulated: bool = False

    history_container: str = DEFAULT_HISTORY_CONTAINER

    def __post_init__(self) -> None:
        if self.sign_url_expiration <= 0:
            raise StorageConfigurationError("sign_url_expiration must be positive")
        if self.backend is StorageBackend.S3 and not self.bucket_name:
            raise StorageConfigurationError("S3_BUCKET_NAME required for S3 backend")
        if self.backend is StorageBackend.AZURE and not self.emulated:
            if not self.account_name or not self.account_key:
                raise StorageConfigurationError("Azure storage credentials not set")

    @property
    def public_endpoint(self) -> str:
        """Endpoint used to build public path-style URLs."""
        return self.endpoint or DEFAULT_S3_ENDPOINT

    @property
    def has_custom_domain(self) -> bool:
        return len(self.custom_domain or "") >= MIN_CUSTOM_DOMAIN_LENGTH


def to_bytes(content: BlobContent) -> bytes:
    """Normalize caller-supplied content to raw bytes (text is UTF-8)."""
    if isinstance(content, str):
        return content.encode("utf-8")
    if isinstance(content, bytes):
        return content
    if isinstance(content, (bytearray, memoryview)):
        return bytes(content)
    raise TypeError(f"Unsupported blob content type: {type(content).__name__}")


def content_length(content: BlobContent, declared: Optional[int] = None) -> int:
    """Declared length if the caller gave one, otherwise the byte length."""
    if declared:
        return declared
    return len(to_bytes(content))
