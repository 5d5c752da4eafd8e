"""
Blob storage abstraction layer.

One capability set (upload, download, delete, URL resolution, container
provisioning, health check) over interchangeable storage backends:
- core: the provider contract, errors, config and retry rules
- infrastructure: Azure and S3-compatible backends plus the factory
- api: FastAPI dependencies and health routes
- config: Application configuration
"""

__version__ = "0.1.0"
