"""
Activity Repository

Append-only audit trail, read back newest first per tenant.
"""

from typing import Any
from typing import Dict
from typing import List
from typing import Optional
from uuid import uuid4

from projectflow_api.workspace.db.repository_base import BaseRepository


class ActivityRepository(BaseRepository):
    """Activity log repository (append-only)."""

    COLUMNS = frozenset(
        {"activity_id", "company_name", "entity_type", "action", "name", "description", "performed_by"}
    )

    def __init__(self, pool):
        super().__init__(pool, "activities")

    async def create(
        self,
        company_name: str,
        entity_type: str,
        action: str,
        name: str,
        performed_by: str,
        description: Optional[str] = None,
    ) -> Dict[str, Any]:
        return await self._insert(
            {
                "activity_id": uuid4(),
                "company_name": company_name,
                "entity_type": entity_type,
                "action": action,
                "name": name,
                "description": description,
                "performed_by": performed_by,
            }
        )

    async def list_recent(self, company_name: str, limit: int = 20) -> List[Dict[str, Any]]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT * FROM {self.table} WHERE company_name = $1 ORDER BY created_at DESC LIMIT $2",
                company_name,
                limit,
            )
        return self._decode_all(rows)
