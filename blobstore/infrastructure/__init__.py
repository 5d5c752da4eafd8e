"""
Infrastructure layer - external service integrations.

- storage: Azure Blob Storage and S3-compatible (AWS, MinIO) backends

These wrappers translate between SDK calls and errors and our storage
contract.
"""
