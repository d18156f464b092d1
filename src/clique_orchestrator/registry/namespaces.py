"""
Table definitions for registry storage.

Defines table names and schema constants for SQLite storage.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class NetworkNamespace:
    """
    Namespace for network records.

    One row per network. The record is stored as camelCase JSON so the
    database stays readable with the sqlite3 shell.
    """

    TABLE_NAME: str = "networks"
    """Table name for network records."""

    CREATE_TABLE: str = """
        CREATE TABLE IF NOT EXISTS networks (
            network_id TEXT PRIMARY KEY,
            status TEXT NOT NULL,
            data TEXT NOT NULL
        )
    """
    """SQL to create the networks table."""


NETWORKS = NetworkNamespace()

ALL_NAMESPACES = [NETWORKS]
"""All namespace definitions for schema initialization."""
