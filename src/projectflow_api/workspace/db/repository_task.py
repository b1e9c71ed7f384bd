"""
Task Repository

Tasks are standalone rows keyed by (company_name, task_id). Comments are an
append-only JSONB array, extended in place with ``||``.
"""

import json
from typing import Any
from typing import Dict
from typing import List
from typing import Optional
from typing import Sequence

from projectflow_api.workspace.db.repository_base import BaseRepository


def _affected_rows(command_status: str) -> int:
    """Row count from an asyncpg command status such as ``UPDATE 3``."""
    try:
        return int(command_status.split()[-1])
    except (AttributeError, IndexError, ValueError):
        return 0


class TaskRepository(BaseRepository):
    """Repository for task operations."""

    COLUMNS = frozenset(
        {
            "company_name",
            "task_id",
            "title",
            "description",
            "status",
            "assigned_to",
            "assigned_by",
            "assigned_by_role",
            "project_id",
            "priority",
            "due_date",
            "deleted_reason",
            "deleted_at",
            "completed_at",
            "comments",
        }
    )
    JSON_COLUMNS = frozenset({"comments"})

    def __init__(self, pool):
        super().__init__(pool, "tasks")

    async def create(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        return await self._insert(fields)

    async def get(self, company_name: str, task_id: str) -> Optional[Dict[str, Any]]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT * FROM {self.table} WHERE company_name = $1 AND task_id = $2",
                company_name,
                task_id,
            )
        return self._decode(row)

    async def list_by_company(
        self,
        company_name: str,
        assigned_to: Optional[Sequence[str]] = None,
        statuses: Optional[Sequence[str]] = None,
        project_id: Optional[str] = None,
        exclude_deleted: bool = False,
    ) -> List[Dict[str, Any]]:
        """
        Tasks of a tenant, newest first.

        Args:
            company_name: Tenant scope
            assigned_to: Restrict to these assignees
            statuses: Restrict to these status values
            project_id: Restrict to one project
            exclude_deleted: Drop soft-deleted tasks
        """
        conditions = ["company_name = $1"]
        params: List[Any] = [company_name]
        if assigned_to is not None:
            params.append(list(assigned_to))
            conditions.append(f"assigned_to = ANY(${len(params)}::text[])")
        if statuses is not None:
            params.append(list(statuses))
            conditions.append(f"status = ANY(${len(params)}::text[])")
        if project_id is not None:
            params.append(project_id)
            conditions.append(f"project_id = ${len(params)}")
        if exclude_deleted:
            conditions.append("status <> 'deleted'")

        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT * FROM {self.table} WHERE {' AND '.join(conditions)} ORDER BY created_at DESC",
                *params,
            )
        return self._decode_all(rows)

    async def task_ids(self, company_name: str) -> List[str]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(f"SELECT task_id FROM {self.table} WHERE company_name = $1", company_name)
        return [row["task_id"] for row in rows]

    def _update_sql(self, fields: Dict[str, Any], comment: Optional[Dict[str, Any]], start: int):
        encoded = self._encode(fields)
        set_clause, values = self._assignments(encoded, start)
        clauses = [set_clause] if set_clause else []
        if comment is not None:
            values.append(json.dumps([comment], default=str))
            clauses.append(f"comments = comments || ${start + len(values) - 1}::jsonb")
        if not clauses:
            raise ValueError("No fields to update")
        return ", ".join(clauses), values

    async def update_fields(
        self,
        company_name: str,
        task_id: str,
        fields: Dict[str, Any],
        comment: Optional[Dict[str, Any]] = None,
    ) -> Optional[Dict[str, Any]]:
        """Update one non-deleted task, optionally appending a comment."""
        set_clause, values = self._update_sql(fields, comment, 3)
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE {self.table} SET {set_clause}
                WHERE company_name = $1 AND task_id = $2 AND status <> 'deleted'
                RETURNING *
                """,
                company_name,
                task_id,
                *values,
            )
        return self._decode(row)

    async def update_for_assignee(
        self,
        company_name: str,
        assigned_to: str,
        fields: Dict[str, Any],
        comment: Optional[Dict[str, Any]] = None,
        require_verification: bool = False,
    ) -> Optional[int]:
        """
        Batch update of every non-deleted task of one assignee.

        The batch is locked with ``FOR UPDATE`` inside a transaction. With
        ``require_verification`` the whole batch must still be in verification
        once locked, otherwise nothing is written.

        Returns:
            Number of updated tasks, or None when the verification guard failed
        """
        set_clause, values = self._update_sql(fields, comment, 3)
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                rows = await conn.fetch(
                    f"""
                    SELECT task_id, status FROM {self.table}
                    WHERE company_name = $1 AND assigned_to = $2 AND status <> 'deleted'
                    FOR UPDATE
                    """,
                    company_name,
                    assigned_to,
                )
                if require_verification and any(row["status"] != "verification" for row in rows):
                    return None
                result = await conn.execute(
                    f"""
                    UPDATE {self.table} SET {set_clause}
                    WHERE company_name = $1 AND assigned_to = $2 AND status <> 'deleted'
                    """,
                    company_name,
                    assigned_to,
                    *values,
                )
        return _affected_rows(result)

    async def delete_for_assignee(self, company_name: str, assigned_to: str) -> int:
        """Hard delete every task of one assignee; returns the number removed."""
        async with self.pool.acquire() as conn:
            result = await conn.execute(
                f"DELETE FROM {self.table} WHERE company_name = $1 AND assigned_to = $2",
                company_name,
                assigned_to,
            )
        return _affected_rows(result)
