"""
Blob storage backends.

Supports Azure Blob Storage and S3-compatible stores (AWS S3, MinIO).
The StorageFactory picks one at startup; backend modules are imported
lazily so only the selected SDK is loaded.
"""

from .factory import StorageFactory

__all__ = ["StorageFactory"]
