# src/bucket_accessor/keys.py

"""
Classification and parsing of SSTable component file keys.

A Cassandra backup lays its files out as::

    <anything>/<keyspace>/<table>-<table id>/<x>/<y>/<sstable prefix>-<component>

The component (the text after the last ``-``) tells us whether the object is
part of an SSTable at all. The path segments counted from the end give the
keyspace, the table and the SSTable name prefix.
"""

from typing import Iterable

from .exceptions import KeyParseError
from .schemas import EntityNames

DEFAULT_COMPONENT_SUFFIXES: tuple[str, ...] = (
    "CompressionInfo.db",
    "Data.db",
    "Digest.crc32",
    "Filter.db",
    "Partitions.db",
    "Rows.db",
    "Statistics.db",
    "TOC.txt",
)

_MIN_KEY_SEGMENTS = 5


def is_component_file(
    key: str, suffixes: Iterable[str] = DEFAULT_COMPONENT_SUFFIXES
) -> bool:
    """True if the text after the last '-' of *key* is a known component suffix."""
    return key[key.rfind("-") + 1 :] in suffixes


def extract_key_path(key: str) -> str:
    """Returns everything up to the last slash of *key*, slash excluded."""
    return key.rpartition("/")[0]


def _strip_last_dash(key: str, segment: str, what: str) -> str:
    head, sep, _ = segment.rpartition("-")
    if not sep:
        raise KeyParseError(key, f"{what} segment '{segment}' contains no '-'")
    return head


def parse_entity_names(key: str) -> EntityNames:
    """
    Derives keyspace, CQL table and SSTable name prefix from *key*.

    Raises KeyParseError when the key has fewer than five path segments or
    when its table or file segment has no '-'.
    """
    segments = key.split("/")
    if len(segments) < _MIN_KEY_SEGMENTS:
        raise KeyParseError(
            key,
            f"expected at least {_MIN_KEY_SEGMENTS} path segments, got {len(segments)}",
        )

    return EntityNames(
        keyspace_name=segments[-5],
        cql_table_name=_strip_last_dash(key, segments[-4], "table"),
        sstable_name_prefix=_strip_last_dash(key, segments[-1], "file"),
    )
