"""
Unit tests for storage errors, configuration and content helpers.
"""

import pytest

from blobstore.core.storage.errors import (
    ErrorCode,
    StorageConfigurationError,
    StorageError,
    wrap_error,
)
from blobstore.core.storage.models import (
    ProviderConfig,
    StorageBackend,
    content_length,
    to_bytes,
)


class TestStorageError:
    def test_carries_code_and_message(self):
        error = StorageError(ErrorCode.CONNECTION_FAILED, "unreachable")

        assert error.code is ErrorCode.CONNECTION_FAILED
        assert error.message == "unreachable"
        assert str(error) == "unreachable"
        assert error.not_found is False

    def test_wrap_error_labels_operation(self):
        error = wrap_error(RuntimeError("socket closed"), "download", "S3")

        assert error.code is ErrorCode.OTHER
        assert error.message == "S3 download failed: socket closed"

    def test_wrap_error_without_message(self):
        error = wrap_error(RuntimeError(), "upload", "Azure", not_found=True)

        assert error.message == "Azure upload failed: Unknown error"
        assert error.not_found is True


class TestContentNormalization:
    """Text and bytes both end up as bytes."""

    def test_text_is_utf8_encoded(self):
        assert to_bytes("größe") == "größe".encode("utf-8")

    def test_bytes_pass_through(self):
        data = b"\x00\x01"
        assert to_bytes(data) is data

    def test_bytearray_is_copied(self):
        data = bytearray(b"abc")
        result = to_bytes(data)
        data[0] = ord("z")

        assert result == b"abc"

    def test_rejects_other_types(self):
        with pytest.raises(TypeError):
            to_bytes(123)

    def test_declared_length_wins(self):
        assert content_length(b"abc", 10) == 10

    def test_length_defaults_to_byte_length(self):
        assert content_length("é") == 2


class TestStorageBackend:
    def test_empty_value_defaults_to_azure(self):
        assert StorageBackend.parse(None) is StorageBackend.AZURE
        assert StorageBackend.parse("") is StorageBackend.AZURE

    def test_parse_is_case_insensitive(self):
        assert StorageBackend.parse("s3") is StorageBackend.S3

    def test_unknown_backend_is_rejected(self):
        with pytest.raises(StorageConfigurationError, match="Unknown storage type"):
            StorageBackend.parse("ftp")


class TestProviderConfig:
    """Validation happens once, when the config is built."""

    def test_is_immutable(self):
        config = ProviderConfig(backend=StorageBackend.S3)

        with pytest.raises(AttributeError):
            config.bucket_name = "other"

    def test_azure_requires_credentials(self):
        with pytest.raises(StorageConfigurationError, match="credentials not set"):
            ProviderConfig(backend=StorageBackend.AZURE, account_name="acct")

    def test_emulated_azure_needs_no_credentials(self):
        config = ProviderConfig(backend=StorageBackend.AZURE, emulated=True)
        assert config.emulated

    def test_s3_requires_bucket(self):
        with pytest.raises(StorageConfigurationError):
            ProviderConfig(backend=StorageBackend.S3, bucket_name="")

    def test_expiration_must_be_positive(self):
        with pytest.raises(StorageConfigurationError):
            ProviderConfig(backend=StorageBackend.S3, sign_url_expiration=0)

    def test_public_endpoint_default(self):
        assert ProviderConfig(backend=StorageBackend.S3).public_endpoint == "http://localhost:9000"

    def test_custom_domain_needs_more_than_five_characters(self):
        assert not ProviderConfig(backend=StorageBackend.S3, custom_domain="a.com").has_custom_domain
        assert ProviderConfig(backend=StorageBackend.S3, custom_domain="ab.com").has_custom_domain
