# tests/unit/test_clients.py

"""
Unit tests for the S3Client wrapper in src/bucket_accessor/clients.py.

These tests ensure that our custom S3Client correctly drives the underlying
boto3 client: paginated listing, descriptor uploads with and without KMS,
and the translation of botocore failures into ListingError / PersistError.
"""

from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError, ProfileNotFound

from bucket_accessor.clients import S3Client, create_s3_client
from bucket_accessor.config import AccessorConfig
from bucket_accessor.exceptions import ConfigurationError, ListingError, PersistError
from bucket_accessor.schemas import ListedObject


def _client_error(code: str, message: str = "failure", operation: str = "Op") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


# -----------------------------------------------------------------------------
# Fixtures for setting up clients with mock dependencies
# -----------------------------------------------------------------------------


@pytest.fixture
def mock_boto_s3_client() -> MagicMock:
    """Yields a MagicMock for the boto3 S3 client."""
    return MagicMock()


@pytest.fixture
def s3_client(mock_boto_s3_client: MagicMock) -> S3Client:
    """Yields an instance of our S3Client wrapper without KMS."""
    return S3Client(s3_client=mock_boto_s3_client)


@pytest.fixture
def s3_client_with_kms(mock_boto_s3_client: MagicMock) -> S3Client:
    """Yields an instance of our S3Client wrapper with KMS enabled."""
    return S3Client(s3_client=mock_boto_s3_client, kms_key_id="test-kms-key")


def _set_pages(mock_boto_s3_client: MagicMock, pages) -> MagicMock:
    paginator = MagicMock()
    paginator.paginate.return_value = pages
    mock_boto_s3_client.get_paginator.return_value = paginator
    return paginator


# -----------------------------------------------------------------------------
# Listing
# -----------------------------------------------------------------------------


def test_iter_objects_flattens_pages_in_order(
    s3_client: S3Client, mock_boto_s3_client: MagicMock
):
    paginator = _set_pages(
        mock_boto_s3_client,
        [
            {
                "KeyCount": 2,
                "Contents": [{"Key": "a", "Size": 1}, {"Key": "b", "Size": 2}],
            },
            {"KeyCount": 1, "Contents": [{"Key": "c", "Size": 3}]},
        ],
    )

    objects = list(s3_client.iter_objects("test-bucket", page_size=2))

    assert objects == [ListedObject("a", 1), ListedObject("b", 2), ListedObject("c", 3)]
    mock_boto_s3_client.get_paginator.assert_called_once_with("list_objects_v2")
    paginator.paginate.assert_called_once_with(
        Bucket="test-bucket", PaginationConfig={"PageSize": 2}
    )


def test_iter_objects_handles_an_empty_bucket(
    s3_client: S3Client, mock_boto_s3_client: MagicMock
):
    _set_pages(mock_boto_s3_client, [{"KeyCount": 0}])
    assert list(s3_client.iter_objects("test-bucket")) == []


def test_iter_objects_raises_listing_error_on_page_failure(
    s3_client: S3Client, mock_boto_s3_client: MagicMock
):
    def pages():
        yield {"KeyCount": 1, "Contents": [{"Key": "a", "Size": 1}]}
        raise _client_error("SlowDown", "Reduce your request rate", "ListObjectsV2")

    _set_pages(mock_boto_s3_client, pages())
    received = []

    with pytest.raises(ListingError) as exc_info:
        for obj in s3_client.iter_objects("test-bucket"):
            received.append(obj)

    assert received == [ListedObject("a", 1)]
    error = exc_info.value
    assert error.context["page_number"] == 2
    assert error.context["aws_error_code"] == "SlowDown"
    assert error.retryable is True


def test_iter_objects_access_denied_is_not_retryable(
    s3_client: S3Client, mock_boto_s3_client: MagicMock
):
    def pages():
        raise _client_error("AccessDenied", "Access Denied", "ListObjectsV2")
        yield  # pragma: no cover

    _set_pages(mock_boto_s3_client, pages())

    with pytest.raises(ListingError) as exc_info:
        list(s3_client.iter_objects("test-bucket"))

    assert exc_info.value.context["page_number"] == 1
    assert exc_info.value.retryable is False


# -----------------------------------------------------------------------------
# Descriptor uploads
# -----------------------------------------------------------------------------


def test_put_object_writes_json(s3_client: S3Client, mock_boto_s3_client: MagicMock):
    location = s3_client.put_object("test-bucket", "m1/globalState-m1", b"{}")

    mock_boto_s3_client.put_object.assert_called_once_with(
        Bucket="test-bucket",
        Key="m1/globalState-m1",
        Body=b"{}",
        ContentType="application/json",
    )
    assert location == "s3://test-bucket/m1/globalState-m1"


def test_put_object_with_kms(
    s3_client_with_kms: S3Client, mock_boto_s3_client: MagicMock
):
    s3_client_with_kms.put_object("test-bucket", "key", b"{}")

    mock_boto_s3_client.put_object.assert_called_once_with(
        Bucket="test-bucket",
        Key="key",
        Body=b"{}",
        ContentType="application/json",
        ServerSideEncryption="aws:kms",
        SSEKMSKeyId="test-kms-key",
    )


def test_put_object_raises_persist_error(
    s3_client: S3Client, mock_boto_s3_client: MagicMock
):
    mock_boto_s3_client.put_object.side_effect = _client_error(
        "AccessDenied", "Access Denied", "PutObject"
    )

    with pytest.raises(PersistError) as exc_info:
        s3_client.put_object("test-bucket", "key", b"{}")

    assert exc_info.value.context["key"] == "key"
    assert exc_info.value.context["aws_error_code"] == "AccessDenied"
    assert exc_info.value.retryable is False


def test_put_object_connection_error_is_retryable(
    s3_client: S3Client, mock_boto_s3_client: MagicMock
):
    mock_boto_s3_client.put_object.side_effect = EndpointConnectionError(
        endpoint_url="https://s3.eu-west-1.amazonaws.com"
    )

    with pytest.raises(PersistError) as exc_info:
        s3_client.put_object("test-bucket", "key", b"{}")

    assert exc_info.value.retryable is True


# -----------------------------------------------------------------------------
# Client construction
# -----------------------------------------------------------------------------


@patch("bucket_accessor.clients.boto3.Session")
def test_create_s3_client_prefers_static_credentials(mock_session):
    config = AccessorConfig(
        region="eu-west-1",
        bucket_name="b",
        migration_id="m1",
        access_key="AKIAEXAMPLE",
        secret_key="secret",
        profile_name="ignored",
    )

    client = create_s3_client(config)

    mock_session.assert_called_once_with(
        aws_access_key_id="AKIAEXAMPLE",
        aws_secret_access_key="secret",
        region_name="eu-west-1",
    )
    mock_session.return_value.client.assert_called_once_with("s3")
    assert isinstance(client, S3Client)


@patch("bucket_accessor.clients.boto3.Session")
def test_create_s3_client_from_profile(mock_session):
    config = AccessorConfig(
        region="eu-west-1", bucket_name="b", migration_id="m1", profile_name="migration"
    )

    create_s3_client(config)

    mock_session.assert_called_once_with(profile_name="migration", region_name="eu-west-1")


@patch("bucket_accessor.clients.boto3.Session")
def test_create_s3_client_unknown_profile(mock_session):
    mock_session.side_effect = ProfileNotFound(profile="missing")
    config = AccessorConfig(
        region="eu-west-1", bucket_name="b", migration_id="m1", profile_name="missing"
    )

    with pytest.raises(ConfigurationError, match="profile missing"):
        create_s3_client(config)


def test_create_s3_client_without_credentials():
    config = AccessorConfig(region="eu-west-1", bucket_name="b", migration_id="m1")

    with pytest.raises(ConfigurationError):
        create_s3_client(config)
