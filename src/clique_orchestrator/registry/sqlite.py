"""
SQLite registry.

Persists NetworkInfo records across orchestrator restarts. Each record is
stored as one JSON document produced by pydantic, keyed by network id.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

from clique_orchestrator.network.info import NetworkInfo

from .namespaces import ALL_NAMESPACES, NETWORKS


class SQLiteRegistry:
    """
    SQLite implementation of the NetworkRegistry protocol.

    Every read deserializes a fresh model, so callers never alias stored state.
    """

    def __init__(self, path: Path | str) -> None:
        """
        Open (or create) the registry.

        Args:
            path: Path to the SQLite file.
                  Use ":memory:" for an in-memory registry.
        """
        self._path = Path(path) if isinstance(path, str) else path
        if str(self._path) != ":memory:":
            self._path.parent.mkdir(parents=True, exist_ok=True)

        # The orchestrator runs on one event loop but the CLI may hand the
        # registry to worker threads. SQLite serializes writes internally.
        self._conn = sqlite3.connect(str(self._path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row

        self._init_schema()

    def _init_schema(self) -> None:
        """Create tables if they don't exist."""
        cursor = self._conn.cursor()
        for namespace in ALL_NAMESPACES:
            cursor.execute(namespace.CREATE_TABLE)
        self._conn.commit()

    def get(self, network_id: str) -> NetworkInfo | None:
        """Retrieve one network."""
        cursor = self._conn.cursor()
        cursor.execute(
            f"SELECT data FROM {NETWORKS.TABLE_NAME} WHERE network_id = ?",
            (network_id,),
        )
        row = cursor.fetchone()
        if row is None:
            return None
        return NetworkInfo.model_validate_json(row["data"])

    def list(self) -> list[NetworkInfo]:
        """Every network, ordered by id."""
        cursor = self._conn.cursor()
        cursor.execute(f"SELECT data FROM {NETWORKS.TABLE_NAME} ORDER BY network_id")
        return [NetworkInfo.model_validate_json(row["data"]) for row in cursor.fetchall()]

    def put(self, info: NetworkInfo) -> None:
        """Insert or replace one network."""
        cursor = self._conn.cursor()

        # The status column duplicates the JSON field so the table can be
        # inspected without parsing documents.
        cursor.execute(
            f"""
            INSERT OR REPLACE INTO {NETWORKS.TABLE_NAME} (network_id, status, data)
            VALUES (?, ?, ?)
            """,
            (info.network_id, info.status.value, info.model_dump_json(by_alias=True)),
        )
        self._conn.commit()

    def delete(self, network_id: str) -> bool:
        """Drop one network. Returns whether it existed."""
        cursor = self._conn.cursor()
        cursor.execute(
            f"DELETE FROM {NETWORKS.TABLE_NAME} WHERE network_id = ?",
            (network_id,),
        )
        self._conn.commit()
        return cursor.rowcount > 0

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    def __enter__(self) -> SQLiteRegistry:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()
