"""
Shared fixtures for unit tests.
"""

from __future__ import annotations

import os
import types
import uuid

import pytest

from bucket_accessor.config import AccessorConfig
from bucket_accessor.schemas import ListedObject


@pytest.fixture(scope="session", autouse=True)
def _env_vars():
    """
    Ensures a deterministic environment for every test run.
    Overwrite *only* the variables needed by the handler.
    """
    original = os.environ.copy()
    os.environ.setdefault("POWERTOOLS_SERVICE_NAME", "migration-bucket-accessor-test")
    os.environ.setdefault("POWERTOOLS_METRICS_NAMESPACE", "MigrationBucketAccessorTest")
    yield
    os.environ.clear()
    os.environ.update(original)


def component_key(
    keyspace: str,
    table: str,
    sstable_prefix: str,
    component: str,
    root: str = "backups/node1",
    snapshot: str = "snap1",
) -> str:
    """Key of one SSTable component file, laid out the way Cassandra snapshots are."""
    return f"{root}/{keyspace}/{table}-1a2b3c/snapshots/{snapshot}/{sstable_prefix}-{component}"


class InMemoryBucket:
    """
    Stand-in for the S3Client wrapper: lists a fixed sequence of objects and
    keeps every written descriptor, last write wins.
    """

    def __init__(self, objects=()):
        self.objects = [ListedObject(k, s) for k, s in objects]
        self.written: dict[str, bytes] = {}
        self.put_calls: list[str] = []
        self.events: list[str] = []

    def iter_objects(self, bucket, page_size=200):
        for obj in self.objects:
            self.events.append(f"list:{obj.key}")
            yield obj

    def put_object(self, bucket, key, body, content_type="application/json"):
        self.events.append(f"put:{key}")
        self.put_calls.append(key)
        self.written[key] = body
        return f"s3://{bucket}/{key}"


@pytest.fixture
def accessor_config() -> AccessorConfig:
    return AccessorConfig(
        region="eu-west-1",
        bucket_name="migration-bucket",
        migration_id="m1",
        profile_name="default",
    )


@pytest.fixture
def lambda_context():
    """A *very* small stand-in for the LambdaContext object."""
    return types.SimpleNamespace(
        function_name="migration-bucket-accessor",
        memory_limit_in_mb=256,
        aws_request_id="req-" + uuid.uuid4().hex,
        invoked_function_arn="arn:aws:lambda:eu-west-1:000000000000:function:dummy",
        get_remaining_time_in_millis=lambda: 30000,
    )


@pytest.fixture
def make_key():
    return component_key


@pytest.fixture
def make_bucket():
    return InMemoryBucket
