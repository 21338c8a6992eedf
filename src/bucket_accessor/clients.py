# src/bucket_accessor/clients.py

"""
Client wrapper for the S3 bucket being cataloged.

The wrapper gives the core a small, typed interface over the raw boto3
client: a flat, page-by-page listing of (key, size) pairs and a plain
overwrite of small JSON documents. botocore errors are translated into the
accessor's own ListingError and PersistError.
"""

import logging
from typing import TYPE_CHECKING, Any, Iterator

import boto3
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    EndpointConnectionError,
    ProfileNotFound,
    ReadTimeoutError,
)

from .config import DEFAULT_PAGE_SIZE, AccessorConfig
from .exceptions import ConfigurationError, ListingError, PersistError
from .schemas import ListedObject

if TYPE_CHECKING:
    from mypy_boto3_s3.client import S3Client as S3ClientType

logger = logging.getLogger(__name__)

_RETRYABLE_ERROR_CODES = {
    "Throttling",
    "ThrottlingException",
    "RequestLimitExceeded",
    "SlowDown",
    "RequestTimeout",
    "RequestTimeoutException",
    "InternalError",
    "ServiceUnavailable",
}


def _describe_failure(e: Exception) -> tuple[str, dict[str, Any], bool]:
    """Returns (reason, context, retryable) for a botocore failure."""
    if isinstance(e, ClientError):
        error_code = e.response.get("Error", {}).get("Code", "Unknown")
        error_message = e.response.get("Error", {}).get("Message", str(e))
        context = {"aws_error_code": error_code, "aws_error_message": error_message}
        return error_message, context, error_code in _RETRYABLE_ERROR_CODES
    if isinstance(e, (ReadTimeoutError, EndpointConnectionError)):
        return str(e), {"connection_error": str(e)}, True
    return str(e), {}, False


class S3Client:
    """
    A wrapper for the S3 operations needed to catalog a migration bucket.
    """

    def __init__(self, s3_client: "S3ClientType", kms_key_id: str | None = None):
        """
        Initializes the S3Client.

        Args:
            s3_client: A typed boto3 S3 client.
            kms_key_id: Optional KMS key ID for server-side encryption of descriptors.
        """
        self._client = s3_client
        self._kms_key_id = kms_key_id or None
        if self._kms_key_id:
            logger.debug(
                "S3Client initialized with SSE-KMS enabled.",
                extra={"kms_key_id": self._kms_key_id},
            )

    def iter_objects(
        self, bucket: str, page_size: int = DEFAULT_PAGE_SIZE
    ) -> Iterator[ListedObject]:
        """
        Yields every object of *bucket* in listing order, fetching one page of
        at most *page_size* keys at a time. The next page is only requested
        once the caller has consumed the current one.

        Raises ListingError if any page cannot be fetched.
        """
        paginator = self._client.get_paginator("list_objects_v2")
        pages = iter(
            paginator.paginate(Bucket=bucket, PaginationConfig={"PageSize": page_size})
        )

        page_number = 0
        while True:
            page_number += 1
            try:
                page = next(pages)
            except StopIteration:
                return
            except (ClientError, BotoCoreError) as e:
                reason, context, retryable = _describe_failure(e)
                raise ListingError(
                    bucket=bucket,
                    page_number=page_number,
                    reason=reason,
                    context=context,
                    retryable=retryable,
                ) from e

            contents = page.get("Contents", [])
            logger.info(
                "Reading page",
                extra={
                    "page_number": page_number,
                    "key_count": page.get("KeyCount", len(contents)),
                },
            )
            for obj in contents:
                yield ListedObject(key=obj["Key"], size=obj["Size"])

    def put_object(
        self,
        bucket: str,
        key: str,
        body: bytes,
        content_type: str = "application/json",
    ) -> str:
        """
        Writes *body* to *bucket*/*key*, replacing any existing object, and
        returns the object's location. Raises PersistError on failure.
        """
        extra_args: dict[str, Any] = {"ContentType": content_type}
        if self._kms_key_id:
            extra_args.update(
                {"ServerSideEncryption": "aws:kms", "SSEKMSKeyId": self._kms_key_id}
            )

        try:
            self._client.put_object(Bucket=bucket, Key=key, Body=body, **extra_args)
        except (ClientError, BotoCoreError) as e:
            reason, context, retryable = _describe_failure(e)
            context["kms_enabled"] = bool(self._kms_key_id)
            raise PersistError(
                bucket=bucket,
                key=key,
                reason=reason,
                context=context,
                retryable=retryable,
            ) from e

        location = f"s3://{bucket}/{key}"
        logger.debug(
            "Upload (PUT) completed successfully",
            extra={"s3_location": location, "size_bytes": len(body)},
        )
        return location


def create_s3_client(config: AccessorConfig) -> S3Client:
    """
    Builds the S3 client from static credentials if both keys are set,
    otherwise from the named profile.
    """
    if config.uses_static_credentials:
        session = boto3.Session(
            aws_access_key_id=config.access_key,
            aws_secret_access_key=config.secret_key,
            region_name=config.region,
        )
    elif config.profile_name:
        try:
            session = boto3.Session(
                profile_name=config.profile_name, region_name=config.region
            )
        except ProfileNotFound as e:
            raise ConfigurationError(
                f"Unable to load s3 client from profile {config.profile_name} "
                f"for region {config.region}: {e}"
            ) from e
    else:
        raise ConfigurationError(
            "Neither static credentials nor profile were specified: "
            "please provide either option"
        )

    return S3Client(session.client("s3"), kms_key_id=config.kms_key_id)
