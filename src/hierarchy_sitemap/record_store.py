"""Record store backed by an SQLite database."""

import asyncio
import json
import logging
import os
import re
from datetime import datetime
from typing import Any, Dict, Iterable, List, Tuple

import aiosqlite

from .exceptions import ConfigError
from .record_source import Collection, Filter, Order, Record
from .utils import create_directory_if_not_exists

logger = logging.getLogger(__name__)

PROPERTY_NAME_PATTERN = re.compile(r"^\w+$")

# Properties stored in their own columns rather than in the data document
COLUMN_PROPERTIES = {
    "id": "record_id",
    "obj_type": "obj_type",
    "master": "master",
}


class RecordStore:
    """Stores records in SQLite and serves them as a record source."""

    def __init__(self, database_path: str, hierarchical_types: Iterable[str] = ()):
        self.database_path = database_path
        self.hierarchical_types = set(hierarchical_types)
        self._ensure_database_directory()
        self._lock = asyncio.Lock()

    def _ensure_database_directory(self) -> None:
        """Ensure the database directory exists."""
        db_dir = os.path.dirname(self.database_path)
        if db_dir:
            create_directory_if_not_exists(db_dir)

    async def initialize(self) -> None:
        """Initialize database tables."""
        async with aiosqlite.connect(self.database_path) as db:
            # record_id and master have no declared type so ids keep theirs
            await db.execute("""
                CREATE TABLE IF NOT EXISTS records (
                    pk INTEGER PRIMARY KEY AUTOINCREMENT,
                    obj_type TEXT NOT NULL,
                    record_id NOT NULL,
                    master,
                    data TEXT NOT NULL DEFAULT '{}',
                    translations TEXT NOT NULL DEFAULT '{}',
                    active TEXT,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    UNIQUE (obj_type, record_id)
                )
            """)

            await db.execute("CREATE INDEX IF NOT EXISTS idx_records_type ON records (obj_type)")
            await db.execute("CREATE INDEX IF NOT EXISTS idx_records_master ON records (obj_type, master)")

            await db.commit()
            logger.info(f"Record store initialized at {self.database_path}")

    async def add_record(self, record: Record) -> None:
        """Insert a record, replacing the stored one with the same type and id."""
        await self.add_records_batch([record])

    async def add_records_batch(self, records: Iterable[Record]) -> int:
        """
        Insert or update multiple records.
        Returns number of records written.
        """
        rows = [self._to_row(record) for record in records]
        if not rows:
            return 0

        now = datetime.utcnow()

        async with self._lock:
            async with aiosqlite.connect(self.database_path) as db:
                await db.executemany("""
                    INSERT INTO records (
                        obj_type, record_id, master, data, translations, active, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT (obj_type, record_id) DO UPDATE SET
                        master = excluded.master,
                        data = excluded.data,
                        translations = excluded.translations,
                        active = excluded.active,
                        updated_at = excluded.updated_at
                """, [row + (now,) for row in rows])

                await db.commit()

        logger.info(f"Stored {len(rows)} records")
        return len(rows)

    def _to_row(self, record: Record) -> Tuple:
        active = None if record.active_routes is None else json.dumps(record.active_routes)
        return (
            record.obj_type,
            record.id,
            record.master,
            json.dumps(record.data),
            json.dumps(record.translations),
            active,
        )

    def collection(self) -> "SqliteCollection":
        return SqliteCollection(self)

    def is_hierarchical(self, record_type: str) -> bool:
        return record_type in self.hierarchical_types

    async def get_statistics(self) -> Dict[str, int]:
        """Number of stored records per type."""
        async with aiosqlite.connect(self.database_path) as db:
            cursor = await db.execute("""
                SELECT obj_type, COUNT(*)
                FROM records
                GROUP BY obj_type
                ORDER BY obj_type
            """)
            return dict(await cursor.fetchall())

    async def reset_database(self) -> None:
        """Reset database by dropping all tables."""
        async with self._lock:
            async with aiosqlite.connect(self.database_path) as db:
                await db.execute("DROP TABLE IF EXISTS records")
                await db.commit()
                logger.info("Database reset completed")

        await self.initialize()

    async def close(self) -> None:
        """Close database connections and cleanup."""
        # SQLite connections are closed automatically with context managers
        logger.debug("Record store closed")


def _property_expression(name: str) -> Tuple[str, List[Any]]:
    if name in COLUMN_PROPERTIES:
        return COLUMN_PROPERTIES[name], []
    if not PROPERTY_NAME_PATTERN.match(name):
        raise ConfigError(f"Invalid property name {name!r}")
    return "json_extract(data, ?)", [f'$."{name}"']


def _filter_clause(criterion: Filter) -> Tuple[str, List[Any]]:
    expression, params = _property_expression(criterion.property)
    operator = criterion.operator

    if operator in ("IS NULL", "IS NOT NULL"):
        return f"{expression} {operator}", params

    if operator in ("IN", "NOT IN"):
        values = list(criterion.val or [])
        if not values:
            return ("0" if operator == "IN" else "1"), []
        placeholders = ",".join("?" * len(values))
        return f"{expression} {operator} ({placeholders})", params + values

    return f"{expression} {operator} ?", params + [criterion.val]


def _order_clause(order: Order) -> Tuple[str, List[Any]]:
    expression, params = _property_expression(order.property)
    return f"{expression} {order.mode.upper()}", params


class SqliteCollection(Collection):
    """Collection over the records table."""

    def __init__(self, store: RecordStore):
        super().__init__()
        self.store = store

    def to_sql(self) -> Tuple[str, List[Any]]:
        if self.model is None:
            raise ConfigError("Collection model must be set before loading")

        where = ["obj_type = ?"]
        params: List[Any] = [self.model]
        for criterion in self.filters:
            clause, clause_params = _filter_clause(criterion)
            where.append(clause)
            params.extend(clause_params)

        order_by = []
        for order in self.orders:
            clause, clause_params = _order_clause(order)
            order_by.append(clause)
            params.extend(clause_params)
        order_by.append("pk ASC")

        sql = (
            "SELECT obj_type, record_id, master, data, translations, active FROM records "
            f"WHERE {' AND '.join(where)} ORDER BY {', '.join(order_by)}"
        )
        return sql, params

    async def load(self) -> List[Record]:
        sql, params = self.to_sql()

        async with aiosqlite.connect(self.store.database_path) as db:
            cursor = await db.execute(sql, params)

            records = []
            async for row in cursor:
                records.append(Record(
                    obj_type=row[0],
                    id=row[1],
                    master=row[2],
                    data=json.loads(row[3]) if row[3] else {},
                    translations=json.loads(row[4]) if row[4] else {},
                    active_routes=json.loads(row[5]) if row[5] else None,
                ))

        logger.debug(f"Loaded {len(records)} {self.model} records from {self.store.database_path}")
        return records
