# src/bucket_accessor/descriptors.py

"""
Naming and persistence of the descriptor documents written back to the
migration bucket.

Layout, for migration id ``m1``::

    m1/SSTableDescriptors/<seq>/<sstable name prefix>-<seq>   one per SSTable
    m1/globalState-m1                                          one per run

Sequence numbers start at 0 and follow the order in which SSTables close,
so every SSTable of a run gets its own key. All writes are overwrites.
"""

import logging

from .clients import S3Client
from .schemas import MigrationGlobalState, SSTable

logger = logging.getLogger(__name__)


def sstable_descriptor_key(
    descriptor_key_prefix: str, sstable_name_prefix: str, sequence_number: int
) -> str:
    unique_name = f"{sstable_name_prefix}-{sequence_number}"
    return f"{descriptor_key_prefix}/{sequence_number}/{unique_name}"


def global_state_descriptor_key(migration_id: str) -> str:
    return f"{migration_id}/globalState-{migration_id}"


class DescriptorPersister:
    """Writes SSTable and global state descriptors to a single bucket."""

    def __init__(self, s3_client: S3Client, bucket: str):
        self._s3_client = s3_client
        self._bucket = bucket

    def persist_sstable(
        self, sstable: SSTable, sequence_number: int, descriptor_key_prefix: str
    ) -> str:
        """Persists one closed SSTable and returns its descriptor key."""
        key = sstable_descriptor_key(
            descriptor_key_prefix,
            sstable.entity_names.sstable_name_prefix,
            sequence_number,
        )
        location = self._s3_client.put_object(self._bucket, key, sstable.to_json())
        logger.info(
            "Persisted SSTable descriptor",
            extra={
                "descriptor_key": key,
                "s3_location": location,
                "sequence_number": sequence_number,
                "component_count": len(sstable.component_file_keys),
                "sstable_size": sstable.size,
            },
        )
        return key

    def persist_global_state(self, state: MigrationGlobalState) -> str:
        """Persists the migration global state and returns its descriptor key."""
        key = global_state_descriptor_key(state.migration_id)
        location = self._s3_client.put_object(self._bucket, key, state.to_json())
        logger.info(
            "Persisted migration global state descriptor",
            extra={"descriptor_key": key, "s3_location": location},
        )
        return key
