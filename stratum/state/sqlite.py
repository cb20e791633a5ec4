"""
Stratum State - SQLite store.

Persists one JSON document per node with aiosqlite. Each write is a
single-row upsert in its own transaction, so a crash mid-apply leaves
every completed node recorded and nothing half-written.
"""

from __future__ import annotations

import asyncio
import json
import sqlite3
from pathlib import Path

import aiosqlite
from loguru import logger

from stratum.core.exceptions import StateCorruptionError, StateError
from stratum.core.resilience import retry
from stratum.state.models import FORMAT_VERSION, StateRecord, parse_record
from stratum.utils.logger import log_prefix


class SQLiteStateStore:
    """
    SQLite-based state persistence.

    Stores one row per node in a local database file.
    """

    SCHEMA_VERSION = 1

    def __init__(self, db_path: Path) -> None:
        """
        Initialize the store.

        Args:
            db_path: Path to the SQLite database file.
        """
        self._db_path = Path(db_path)
        self._initialized = False
        self._lock = asyncio.Lock()

    @property
    def db_path(self) -> Path:
        """Get the database path."""
        return self._db_path

    async def initialize(self) -> None:
        """Create or migrate the schema."""
        if self._initialized:
            return

        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        async with aiosqlite.connect(self._db_path) as db:
            await db.execute("""
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY
                )
            """)

            cursor = await db.execute("SELECT version FROM schema_version LIMIT 1")
            row = await cursor.fetchone()
            current_version = row[0] if row else 0

            if current_version > self.SCHEMA_VERSION:
                raise StateError(
                    f"State database {self._db_path} uses schema {current_version}, "
                    f"this version supports {self.SCHEMA_VERSION}"
                )
            if current_version < self.SCHEMA_VERSION:
                await self._migrate(db, current_version)

            await db.commit()

        self._initialized = True
        logger.debug(f"{log_prefix('🗄️')} State store initialized at {self._db_path}")

    async def _migrate(self, db: aiosqlite.Connection, from_version: int) -> None:
        """Run database migrations."""
        if from_version < 1:
            await db.execute("""
                CREATE TABLE IF NOT EXISTS resources (
                    node_id TEXT PRIMARY KEY,
                    kind TEXT NOT NULL,
                    format_version INTEGER NOT NULL,
                    version INTEGER NOT NULL,
                    document TEXT NOT NULL,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)

        await db.execute("DELETE FROM schema_version")
        await db.execute(
            "INSERT INTO schema_version (version) VALUES (?)",
            (self.SCHEMA_VERSION,),
        )
        logger.info(f"Migrated state database to version {self.SCHEMA_VERSION}")

    async def read(self, node_id: str) -> StateRecord | None:
        """Read and validate the record of ``node_id``."""
        await self.initialize()

        async with aiosqlite.connect(self._db_path) as db:
            cursor = await db.execute(
                "SELECT document FROM resources WHERE node_id = ?",
                (node_id,),
            )
            row = await cursor.fetchone()

        if row is None:
            return None

        try:
            document = json.loads(row[0])
        except (TypeError, ValueError) as e:
            raise StateCorruptionError(node_id, f"invalid JSON: {e}") from e
        return parse_record(node_id, document)

    @retry(exceptions=(sqlite3.OperationalError,))
    async def write(self, node_id: str, record: StateRecord) -> None:
        """Upsert the record of ``node_id``."""
        if record.node_id != node_id:
            raise ValueError(f"Record for '{record.node_id}' written under '{node_id}'")
        await self.initialize()

        document = json.dumps(record.to_document(), sort_keys=True)
        async with self._lock, aiosqlite.connect(self._db_path) as db:
            await db.execute(
                """
                INSERT INTO resources (node_id, kind, format_version, version, document, updated_at)
                VALUES (?, ?, ?, ?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(node_id) DO UPDATE SET
                    kind = excluded.kind,
                    format_version = excluded.format_version,
                    version = excluded.version,
                    document = excluded.document,
                    updated_at = excluded.updated_at
                """,
                (node_id, record.kind, FORMAT_VERSION, record.version, document),
            )
            await db.commit()

    @retry(exceptions=(sqlite3.OperationalError,))
    async def delete(self, node_id: str) -> None:
        """Remove the record of ``node_id``."""
        await self.initialize()

        async with self._lock, aiosqlite.connect(self._db_path) as db:
            await db.execute("DELETE FROM resources WHERE node_id = ?", (node_id,))
            await db.commit()

    async def list_ids(self) -> list[str]:
        """All recorded node ids, sorted."""
        await self.initialize()

        async with aiosqlite.connect(self._db_path) as db:
            cursor = await db.execute("SELECT node_id FROM resources ORDER BY node_id")
            rows = await cursor.fetchall()

        return [row[0] for row in rows]
