"""Catalog the SSTables of a migration bucket into JSON descriptors."""

__version__ = "0.1.0"
