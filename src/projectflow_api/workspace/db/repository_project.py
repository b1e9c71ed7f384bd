"""
Project Repository

One row per project aggregate; phases (with their subtasks and comments) are
a JSONB document. Aggregate writes are guarded by the ``version`` column.
"""

from datetime import datetime
from typing import Any
from typing import Dict
from typing import List
from typing import Optional

from projectflow_api.workspace.db.repository_base import BaseRepository


class ProjectRepository(BaseRepository):
    """Repository for project aggregates."""

    COLUMNS = frozenset(
        {
            "company_name",
            "project_id",
            "project_name",
            "client_name",
            "project_description",
            "start_date",
            "end_date",
            "project_status",
            "project_lead",
            "team_members",
            "team_name",
            "completion_note",
            "original_end_date",
            "phases",
            "deleted_at",
        }
    )
    JSON_COLUMNS = frozenset({"phases"})

    # Written by save(); the key columns and bookkeeping are left alone
    MUTABLE_COLUMNS = COLUMNS - {"company_name", "project_id"}

    def __init__(self, pool):
        super().__init__(pool, "projects")

    async def create(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        return await self._insert(fields)

    async def get(self, company_name: str, project_id: str) -> Optional[Dict[str, Any]]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT * FROM {self.table} WHERE company_name = $1 AND project_id = $2",
                company_name,
                project_id,
            )
        return self._decode(row)

    async def get_by_name(self, company_name: str, project_name: str) -> Optional[Dict[str, Any]]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                SELECT * FROM {self.table}
                WHERE company_name = $1 AND project_name = $2
                ORDER BY created_at LIMIT 1
                """,
                company_name,
                project_name,
            )
        return self._decode(row)

    async def list_by_company(self, company_name: str) -> List[Dict[str, Any]]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT * FROM {self.table} WHERE company_name = $1 ORDER BY created_at DESC", company_name
            )
        return self._decode_all(rows)

    async def list_for_member(self, company_name: str, team_member_id: str) -> List[Dict[str, Any]]:
        """Non-deleted projects where the member is lead or in the member set."""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT * FROM {self.table}
                WHERE company_name = $1
                  AND project_status <> 'deleted'
                  AND (project_lead = $2 OR $2 = ANY(team_members))
                ORDER BY created_at DESC
                """,
                company_name,
                team_member_id,
            )
        return self._decode_all(rows)

    async def project_ids(self, company_name: str) -> List[str]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(f"SELECT project_id FROM {self.table} WHERE company_name = $1", company_name)
        return [row["project_id"] for row in rows]

    async def count_phases(self, company_name: str) -> int:
        """Phases across every project of the tenant."""
        async with self.pool.acquire() as conn:
            total = await conn.fetchval(
                f"SELECT COALESCE(SUM(jsonb_array_length(phases)), 0) FROM {self.table} WHERE company_name = $1",
                company_name,
            )
        return int(total or 0)

    async def save(self, project: Dict[str, Any], expected_version: int) -> Optional[Dict[str, Any]]:
        """
        Write the aggregate if nobody else saved it since it was read.

        Args:
            project: Full project document (as produced by ``Project.model_dump``)
            expected_version: Version the caller loaded

        Returns:
            The stored row with its bumped version, or None when the version moved on
        """
        fields = self._encode({k: v for k, v in project.items() if k in self.MUTABLE_COLUMNS})
        set_clause, values = self._assignments(fields, 4)
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE {self.table}
                SET {set_clause}, version = version + 1, updated_at = NOW()
                WHERE company_name = $1 AND project_id = $2 AND version = $3
                RETURNING *
                """,
                project["company_name"],
                project["project_id"],
                expected_version,
                *values,
            )
        return self._decode(row)

    async def delete(self, company_name: str, project_id: str) -> Optional[Dict[str, Any]]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"DELETE FROM {self.table} WHERE company_name = $1 AND project_id = $2 RETURNING *",
                company_name,
                project_id,
            )
        return self._decode(row)

    async def list_purgeable(self, cutoff: datetime) -> List[Dict[str, Any]]:
        """Soft-deleted projects (all tenants) deleted at or before ``cutoff``."""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT * FROM {self.table}
                WHERE project_status = 'deleted' AND deleted_at <= $1
                ORDER BY deleted_at
                """,
                cutoff,
            )
        return self._decode_all(rows)

    async def delete_if_purgeable(
        self, company_name: str, project_id: str, cutoff: datetime
    ) -> Optional[Dict[str, Any]]:
        """Delete only while the project is still soft-deleted past the retention cutoff."""
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                DELETE FROM {self.table}
                WHERE company_name = $1 AND project_id = $2
                  AND project_status = 'deleted' AND deleted_at <= $3
                RETURNING *
                """,
                company_name,
                project_id,
                cutoff,
            )
        return self._decode(row)

    async def find_by_phase(self, company_name: str, phase_id: str) -> Optional[Dict[str, Any]]:
        """Project of the tenant that contains phase ``phase_id``."""
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                SELECT * FROM {self.table}
                WHERE company_name = $1
                  AND phases @> jsonb_build_array(jsonb_build_object('phase_id', $2::text))
                LIMIT 1
                """,
                company_name,
                phase_id,
            )
        return self._decode(row)

    async def find_by_subtask(self, company_name: str, subtask_id: str) -> Optional[Dict[str, Any]]:
        """Project of the tenant that contains subtask ``subtask_id`` in any phase."""
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                SELECT * FROM {self.table}
                WHERE company_name = $1
                  AND jsonb_path_exists(
                        phases,
                        '$[*].subtasks[*] ? (@.subtask_id == $id)',
                        jsonb_build_object('id', $2::text)
                      )
                LIMIT 1
                """,
                company_name,
                subtask_id,
            )
        return self._decode(row)
