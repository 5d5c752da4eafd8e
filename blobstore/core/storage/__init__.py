"""
Blob storage contract, configuration and upload retry rules.
"""

from .errors import ErrorCode, StorageConfigurationError, StorageError
from .models import BlobContent, ProviderConfig, StorageBackend
from .provider import BlobStorageProvider
from .retry import RetryPolicy, UploadState, UploadStateMachine, backoff_delay

__all__ = [
    "BlobContent",
    "BlobStorageProvider",
    "ErrorCode",
    "ProviderConfig",
    "RetryPolicy",
    "StorageBackend",
    "StorageConfigurationError",
    "StorageError",
    "UploadState",
    "UploadStateMachine",
    "backoff_delay",
]
