# src/bucket_accessor/core.py

"""
Core logic for rebuilding SSTables out of a flat bucket listing.

An SSTable is stored as several component files (Data.db, TOC.txt, ...)
that share a directory and a name prefix. This module walks the listing once,
in order, and groups consecutive component files into SSTables:

- `SSTableAccumulator` is the grouping state machine. It is fed one listed
  object at a time and reports a `Boundary` whenever an SSTable opens,
  closes, or both.
- `iter_boundaries` is the fold over a whole listing, including the final
  close at the end of the stream.
- `catalog_bucket` drives a complete run: listing, persisting every closed
  SSTable as soon as it closes, then the migration global state and the
  optional config map mirror.

Grouping only ever compares a key with the most recently opened SSTable. The
listing must therefore return the components of an SSTable next to each
other, which S3's lexicographic listing order does. Two runs of the same
(key path, name prefix) separated by another SSTable's files are cataloged
as two SSTables.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Iterator, NamedTuple

from .clients import S3Client
from .config import AccessorConfig, MalformedKeyPolicy
from .descriptors import DescriptorPersister
from .exceptions import KeyParseError
from .k8s import ConfigMapPublisher, config_map_entries
from .keys import (
    DEFAULT_COMPONENT_SUFFIXES,
    extract_key_path,
    is_component_file,
    parse_entity_names,
)
from .schemas import EntityNames, ListedObject, MigrationGlobalState, SSTable

logger = logging.getLogger(__name__)


class Boundary(NamedTuple):
    """
    A change of SSTable in the listing.

    ``closed`` is the SSTable that just ended, or None when the very first
    SSTable opens. The flags say which global counters the newly opened
    SSTable increments, and ``size_delta`` is the closed SSTable's size.
    """

    closed: SSTable | None
    new_keyspace: bool
    new_cql_table: bool
    new_sstable: bool
    size_delta: int


class _OpenSSTable:
    """The SSTable currently receiving component files."""

    __slots__ = ("entity_names", "key_path", "size", "component_file_keys")

    def __init__(self, entity_names: EntityNames, key_path: str):
        self.entity_names = entity_names
        self.key_path = key_path
        self.size = 0
        self.component_file_keys: list[str] = []

    def matches(self, key_path: str, sstable_name_prefix: str) -> bool:
        return (
            self.key_path == key_path
            and self.entity_names.sstable_name_prefix == sstable_name_prefix
        )

    def add(self, key: str, size: int) -> None:
        self.component_file_keys.append(key)
        self.size += size

    def close(self) -> SSTable:
        return SSTable(
            entity_names=self.entity_names,
            size=self.size,
            key_path=self.key_path,
            component_file_keys=tuple(self.component_file_keys),
        )


class SSTableAccumulator:
    """
    Groups consecutive component files into SSTables.

    Empty until the first component file is fed, then always holds exactly
    one open SSTable until `finish` closes it.
    """

    def __init__(
        self,
        component_suffixes: Iterable[str] = DEFAULT_COMPONENT_SUFFIXES,
        malformed_key_policy: MalformedKeyPolicy = MalformedKeyPolicy.FAIL,
    ):
        self._suffixes = frozenset(component_suffixes)
        self._malformed_key_policy = malformed_key_policy
        self._open: _OpenSSTable | None = None
        self.skipped_keys = 0

    @property
    def is_empty(self) -> bool:
        return self._open is None

    def feed(self, obj: ListedObject) -> Boundary | None:
        """
        Adds one listed object. Returns a Boundary if it opened a new
        SSTable, None if it was ignored or joined the open one.
        """
        if not is_component_file(obj.key, self._suffixes):
            logger.debug("Not an SSTable component", extra={"key": obj.key})
            return None

        try:
            entity_names = parse_entity_names(obj.key)
        except KeyParseError as e:
            if self._malformed_key_policy is MalformedKeyPolicy.FAIL:
                raise
            self.skipped_keys += 1
            logger.warning(
                "Skipping malformed SSTable component key",
                extra={"key": obj.key, "reason": e.reason},
            )
            return None

        key_path = extract_key_path(obj.key)
        current = self._open
        boundary = None

        if current is None:
            # The first SSTable of the run always opens a keyspace and a table.
            boundary = Boundary(None, True, True, True, 0)
        elif not current.matches(key_path, entity_names.sstable_name_prefix):
            closed = current.close()
            previous = closed.entity_names
            boundary = Boundary(
                closed,
                previous.keyspace_name != entity_names.keyspace_name,
                previous.cql_table_name != entity_names.cql_table_name,
                True,
                closed.size,
            )

        if boundary is not None:
            self._open = _OpenSSTable(entity_names, key_path)
        self._open.add(obj.key, obj.size)
        return boundary

    def finish(self) -> Boundary | None:
        """Closes the open SSTable, if any, at the end of the listing."""
        if self._open is None:
            return None
        closed = self._open.close()
        self._open = None
        return Boundary(closed, False, False, False, closed.size)


def iter_boundaries(
    objects: Iterable[ListedObject],
    accumulator: SSTableAccumulator | None = None,
) -> Iterator[Boundary]:
    """
    Folds a listing into its boundaries, lazily. Every closed SSTable is
    yielded before the next listed object is pulled from *objects*.
    """
    if accumulator is None:
        accumulator = SSTableAccumulator()
    for obj in objects:
        boundary = accumulator.feed(obj)
        if boundary is not None:
            yield boundary
    boundary = accumulator.finish()
    if boundary is not None:
        yield boundary


@dataclass(frozen=True, slots=True)
class CatalogResult:
    global_state: MigrationGlobalState
    global_state_descriptor_key: str
    sstable_descriptor_keys: list[str] = field(default_factory=list)
    config_map_entries: dict[str, str] = field(default_factory=dict)
    config_map_written: bool = False
    skipped_keys: int = 0


def format_size(size_in_bytes: int) -> str:
    """Human readable size, e.g. '1.50 MB'."""
    one_kb = 1024.0
    one_mb = one_kb * 1024
    one_gb = one_mb * 1024
    one_tb = one_gb * 1024

    if size_in_bytes < one_mb:
        return f"{size_in_bytes / one_kb:.2f} KB"
    if size_in_bytes < one_gb:
        return f"{size_in_bytes / one_mb:.2f} MB"
    if size_in_bytes < one_tb:
        return f"{size_in_bytes / one_gb:.2f} GB"
    return f"{size_in_bytes / one_tb:.2f} TB"


# --- High-Level Orchestrator ---
def catalog_bucket(
    s3_client: S3Client,
    config: AccessorConfig,
    publisher: ConfigMapPublisher | None = None,
) -> CatalogResult:
    """
    Catalogs every SSTable of the configured bucket and persists their
    descriptors, then the migration global state, then mirrors the summary
    into the config map when a publisher is given.

    Any error aborts the run. Descriptors written before the failure stay in
    the bucket; the global state descriptor is only written by a complete run.
    """
    state = MigrationGlobalState.initial(config.migration_id)
    persister = DescriptorPersister(s3_client, config.bucket_name)
    accumulator = SSTableAccumulator(
        component_suffixes=config.component_suffixes,
        malformed_key_policy=config.malformed_key_policy,
    )
    sstable_descriptor_keys: list[str] = []

    logger.info(
        "Starting SSTable catalog",
        extra={
            "bucket": config.bucket_name,
            "migration_id": config.migration_id,
            "page_size": config.page_size,
        },
    )

    objects = s3_client.iter_objects(config.bucket_name, page_size=config.page_size)
    for boundary in iter_boundaries(objects, accumulator):
        if boundary.closed is not None:
            sstable_descriptor_keys.append(
                persister.persist_sstable(
                    boundary.closed,
                    sequence_number=len(sstable_descriptor_keys),
                    descriptor_key_prefix=state.sstable_descriptor_key_prefix,
                )
            )
        state = state.apply_boundary(
            boundary.new_keyspace,
            boundary.new_cql_table,
            boundary.new_sstable,
            boundary.size_delta,
        )

    global_state_key = persister.persist_global_state(state)

    entries = config_map_entries(state)
    config_map_written = False
    if publisher is not None:
        publisher.publish(entries)
        config_map_written = True
    else:
        logger.info(
            "Disabled functionality that writes state to k8s configMap",
            extra={"migration_id": state.migration_id, "state_map": entries},
        )

    logger.info(
        "Descriptors created and persisted",
        extra={
            "keyspace_count": state.keyspace_count,
            "cql_table_count": state.cql_table_count,
            "sstable_count": state.sstable_count,
            "data_size": format_size(state.data_size),
            "skipped_keys": accumulator.skipped_keys,
        },
    )

    return CatalogResult(
        global_state=state,
        global_state_descriptor_key=global_state_key,
        sstable_descriptor_keys=sstable_descriptor_keys,
        config_map_entries=entries,
        config_map_written=config_map_written,
        skipped_keys=accumulator.skipped_keys,
    )
