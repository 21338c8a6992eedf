# src/bucket_accessor/schemas.py

from typing import NamedTuple

from pydantic import BaseModel, ConfigDict, Field

DESCRIPTOR_FOLDER = "SSTableDescriptors"


class ListedObject(NamedTuple):
    """One entry of a bucket listing page."""

    key: str
    size: int


# --- Descriptor documents (camelCase on the wire) ---


class EntityNames(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    keyspace_name: str = Field(..., alias="keyspaceName")
    cql_table_name: str = Field(..., alias="cqlTableName")
    sstable_name_prefix: str = Field(..., alias="ssTableNamePrefix")


class SSTable(BaseModel):
    """
    A closed SSTable: every component file key found for one
    (key path, SSTable name prefix) group, and their total size.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    entity_names: EntityNames = Field(..., alias="entityNames")
    size: int = Field(..., ge=0)
    key_path: str = Field(..., alias="keyPath")
    component_file_keys: tuple[str, ...] = Field(
        ..., alias="componentFileKeys", min_length=1
    )

    def to_json(self) -> bytes:
        return self.model_dump_json(by_alias=True).encode("utf-8")


class MigrationGlobalState(BaseModel):
    """
    Run-wide counters. Immutable: every boundary produces a new state, and
    no counter ever goes down.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    migration_id: str = Field(..., alias="migrationId", min_length=1)
    keyspace_count: int = Field(0, alias="keyspaceCount", ge=0)
    cql_table_count: int = Field(0, alias="cqlTableCount", ge=0)
    sstable_count: int = Field(0, alias="ssTableCount", ge=0)
    data_size: int = Field(0, alias="dataSize", ge=0)
    sstable_descriptor_key_prefix: str = Field(..., alias="ssTableDescriptorKeyPrefix")

    @classmethod
    def initial(cls, migration_id: str) -> "MigrationGlobalState":
        return cls(
            migration_id=migration_id,
            sstable_descriptor_key_prefix=f"{migration_id}/{DESCRIPTOR_FOLDER}",
        )

    def apply_boundary(
        self,
        incr_keyspace: bool,
        incr_cql_table: bool,
        incr_sstable: bool,
        size_delta: int,
    ) -> "MigrationGlobalState":
        if size_delta < 0:
            raise ValueError(f"size_delta must not be negative, got {size_delta}")
        return self.model_copy(
            update={
                "keyspace_count": self.keyspace_count + int(incr_keyspace),
                "cql_table_count": self.cql_table_count + int(incr_cql_table),
                "sstable_count": self.sstable_count + int(incr_sstable),
                "data_size": self.data_size + size_delta,
            }
        )

    def to_json(self) -> bytes:
        return self.model_dump_json(by_alias=True).encode("utf-8")
