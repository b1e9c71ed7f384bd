"""
Team Repository

Teams are unique by name within a tenant; lead and members are stored as
team member ids.
"""

from typing import Any
from typing import Dict
from typing import List
from typing import Optional
from uuid import uuid4

from projectflow_api.workspace.db.repository_base import BaseRepository


class TeamRepository(BaseRepository):
    """Repository for team operations."""

    COLUMNS = frozenset(
        {"team_id", "company_name", "team_name", "description", "team_lead", "members", "created_by"}
    )

    def __init__(self, pool):
        super().__init__(pool, "teams")

    async def create(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        return await self._insert({"team_id": uuid4(), **fields})

    async def get_by_name(self, company_name: str, team_name: str) -> Optional[Dict[str, Any]]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT * FROM {self.table} WHERE company_name = $1 AND team_name = $2",
                company_name,
                team_name,
            )
        return self._decode(row)

    async def list_by_company(self, company_name: str) -> List[Dict[str, Any]]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT * FROM {self.table} WHERE company_name = $1 ORDER BY created_at, team_name",
                company_name,
            )
        return self._decode_all(rows)

    async def list_led_by(self, company_name: str, team_member_id: str) -> List[Dict[str, Any]]:
        """Teams whose lead is ``team_member_id``."""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT * FROM {self.table} WHERE company_name = $1 AND team_lead = $2",
                company_name,
                team_member_id,
            )
        return self._decode_all(rows)

    async def update_fields(
        self, company_name: str, team_name: str, fields: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        return await self._update_where({"company_name": company_name, "team_name": team_name}, fields)

    async def delete(self, company_name: str, team_name: str) -> bool:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"DELETE FROM {self.table} WHERE company_name = $1 AND team_name = $2 RETURNING team_id",
                company_name,
                team_name,
            )
        return row is not None
