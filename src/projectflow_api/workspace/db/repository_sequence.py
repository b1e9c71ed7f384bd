"""
Identifier Sequence Repository

One counter per (tenant, identifier kind). Reserving a number is a single
upsert, so concurrent creations never receive the same suffix.
"""

from projectflow_api.workspace.db.repository_base import BaseRepository


class SequenceRepository(BaseRepository):
    """Per-tenant identifier counters."""

    def __init__(self, pool):
        super().__init__(pool, "id_sequences")

    async def next_value(self, company_name: str, kind: str, floor: int = 0) -> int:
        """
        Reserve the next number for ``kind`` in ``company_name``.

        Args:
            company_name: Tenant scope
            kind: SequenceKind value
            floor: Highest number already in use; the result is always above it

        Returns:
            The reserved number
        """
        async with self.pool.acquire() as conn:
            value = await conn.fetchval(
                f"""
                INSERT INTO {self.table} (company_name, kind, last_value)
                VALUES ($1, $2, $3 + 1)
                ON CONFLICT (company_name, kind)
                DO UPDATE SET last_value = GREATEST({self.table}.last_value + 1, EXCLUDED.last_value)
                RETURNING last_value
                """,
                company_name,
                kind,
                floor,
            )
        return int(value)
