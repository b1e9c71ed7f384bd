"""
Base Repository

Common row encoding/decoding and column-whitelisted INSERT/UPDATE helpers.
Concrete repositories inherit from this class and add domain-specific queries.
"""

import json
from typing import Any
from typing import Dict
from typing import FrozenSet
from typing import List
from typing import Optional
from typing import Tuple

from projectflow_api.workspace.db.pool import SCHEMA_NAME


class BaseRepository:
    """
    Base repository over one table of the workspace schema.

    Subclasses declare ``COLUMNS`` (every writable column) and ``JSON_COLUMNS``
    (JSONB columns, written with ``json.dumps`` and decoded on read).
    """

    COLUMNS: FrozenSet[str] = frozenset()
    JSON_COLUMNS: FrozenSet[str] = frozenset()

    def __init__(self, pool, table_name: str):
        """
        Initialize base repository.

        Args:
            pool: WorkspaceDBPool (or asyncpg.Pool); anything with ``acquire()``
            table_name: Database table name (without schema prefix)
        """
        self.pool = pool
        self.table = f"{SCHEMA_NAME}.{table_name}"

    def _encode(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        unknown = set(fields) - self.COLUMNS
        if unknown:
            raise ValueError(f"Unknown column(s) for {self.table}: {sorted(unknown)}")
        return {
            column: (json.dumps(value, default=str) if column in self.JSON_COLUMNS and value is not None else value)
            for column, value in fields.items()
        }

    def _decode(self, row) -> Optional[Dict[str, Any]]:
        if row is None:
            return None
        data = dict(row)
        for column in self.JSON_COLUMNS:
            if isinstance(data.get(column), str):
                data[column] = json.loads(data[column])
        return data

    def _decode_all(self, rows) -> List[Dict[str, Any]]:
        return [self._decode(row) for row in rows]

    @staticmethod
    def _assignments(fields: Dict[str, Any], start: int) -> Tuple[str, List[Any]]:
        """``col = $n`` list and its values, numbering from ``start``."""
        columns = list(fields)
        clause = ", ".join(f"{column} = ${start + i}" for i, column in enumerate(columns))
        return clause, [fields[column] for column in columns]

    async def _insert(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        encoded = self._encode(fields)
        columns = list(encoded)
        placeholders = ", ".join(f"${i + 1}" for i in range(len(columns)))
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"INSERT INTO {self.table} ({', '.join(columns)}) VALUES ({placeholders}) RETURNING *",
                *[encoded[column] for column in columns],
            )
        return self._decode(row)

    async def _update_where(self, where: Dict[str, Any], fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Update the row matching every ``where`` column; None when nothing matched."""
        if not fields:
            raise ValueError("No fields to update")
        encoded = self._encode(fields)
        where_clause = " AND ".join(f"{column} = ${i + 1}" for i, column in enumerate(where))
        set_clause, values = self._assignments(encoded, len(where) + 1)
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"UPDATE {self.table} SET {set_clause} WHERE {where_clause} RETURNING *",
                *where.values(),
                *values,
            )
        return self._decode(row)
