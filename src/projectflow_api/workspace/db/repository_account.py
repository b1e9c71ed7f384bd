"""
Account Repositories

Owners and employees live in separate tables with overlapping credential,
OTP and two-factor columns. ``AccountRepository`` holds the shared queries.
"""

from datetime import datetime
from typing import Any
from typing import Dict
from typing import List
from typing import Optional
from uuid import UUID
from uuid import uuid4

from projectflow_api.workspace.db.repository_base import BaseRepository

SHARED_ACCOUNT_COLUMNS = frozenset(
    {
        "account_id",
        "email",
        "password_hash",
        "role",
        "phone_no",
        "company_name",
        "reset_otp",
        "reset_otp_expiry",
        "otp_verified_at",
        "two_factor_enabled",
        "two_factor_secret",
        "backup_codes",
        "trusted_devices",
        "settings",
        "last_login",
    }
)


class AccountRepository(BaseRepository):
    """Queries shared by both account tables."""

    JSON_COLUMNS = frozenset({"trusted_devices", "settings"})

    async def create(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Insert an account; ``account_id`` is generated when absent."""
        return await self._insert({"account_id": uuid4(), **fields})

    async def get_by_id(self, account_id: UUID) -> Optional[Dict[str, Any]]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(f"SELECT * FROM {self.table} WHERE account_id = $1", account_id)
        return self._decode(row)

    async def get_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        """Case-insensitive email lookup."""
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(f"SELECT * FROM {self.table} WHERE lower(email) = lower($1)", email)
        return self._decode(row)

    async def update_fields(self, account_id: UUID, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return await self._update_where({"account_id": account_id}, fields)

    async def consume_backup_code(self, account_id: UUID, code: str) -> bool:
        """
        Remove ``code`` from the account's backup codes.

        Single statement, so two concurrent logins cannot both spend the same code.

        Returns:
            True if the code was present and has been removed
        """
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE {self.table}
                SET backup_codes = array_remove(backup_codes, $2)
                WHERE account_id = $1 AND $2 = ANY(backup_codes)
                RETURNING account_id
                """,
                account_id,
                code,
            )
        return row is not None


class OwnerRepository(AccountRepository):
    """Company owner accounts (one per tenant)."""

    COLUMNS = SHARED_ACCOUNT_COLUMNS | {
        "first_name",
        "last_name",
        "company_domain",
        "company_id",
        "company_address",
        "founded_year",
        "website",
        "industry",
        "company_logo",
        "account_status",
        "account_type",
    }

    UNIQUE_FIELDS = ("email", "company_name", "company_domain", "company_id")

    def __init__(self, pool):
        super().__init__(pool, "owners")

    async def find_duplicate(self, values: Dict[str, str]) -> Optional[str]:
        """
        First unique field of ``values`` already taken by another owner.

        Args:
            values: Candidate values keyed by column (email, company_name, company_domain, company_id)

        Returns:
            Name of the conflicting column, or None
        """
        async with self.pool.acquire() as conn:
            for column in self.UNIQUE_FIELDS:
                value = values.get(column)
                if value is None:
                    continue
                taken = await conn.fetchval(
                    f"SELECT EXISTS (SELECT 1 FROM {self.table} WHERE lower({column}) = lower($1))", value
                )
                if taken:
                    return column
        return None

    async def get_by_company(self, company_name: str) -> Optional[Dict[str, Any]]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(f"SELECT * FROM {self.table} WHERE company_name = $1", company_name)
        return self._decode(row)


class EmployeeRepository(AccountRepository):
    """Employee accounts, addressed within a tenant by ``team_member_id``."""

    COLUMNS = SHARED_ACCOUNT_COLUMNS | {
        "name",
        "team_member_id",
        "designation",
        "location",
        "profile_logo",
        "must_change_password",
        "password_expires_at",
        "added_by",
    }

    def __init__(self, pool):
        super().__init__(pool, "employees")

    async def get_by_team_member_id(self, company_name: str, team_member_id: str) -> Optional[Dict[str, Any]]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT * FROM {self.table} WHERE company_name = $1 AND team_member_id = $2",
                company_name,
                team_member_id,
            )
        return self._decode(row)

    async def list_by_company(self, company_name: str, role: Optional[str] = None) -> List[Dict[str, Any]]:
        """Employees of a tenant, optionally filtered by role, in identifier order."""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT * FROM {self.table}
                WHERE company_name = $1 AND ($2::text IS NULL OR role = $2)
                ORDER BY created_at, team_member_id
                """,
                company_name,
                role,
            )
        return self._decode_all(rows)

    async def list_by_team_member_ids(self, company_name: str, team_member_ids: List[str]) -> List[Dict[str, Any]]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT * FROM {self.table} WHERE company_name = $1 AND team_member_id = ANY($2::text[])",
                company_name,
                team_member_ids,
            )
        return self._decode_all(rows)

    async def team_member_ids(self, company_name: str) -> List[str]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT team_member_id FROM {self.table} WHERE company_name = $1", company_name
            )
        return [row["team_member_id"] for row in rows]

    async def update_by_team_member_id(
        self, company_name: str, team_member_id: str, fields: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        return await self._update_where({"company_name": company_name, "team_member_id": team_member_id}, fields)

    async def delete(self, company_name: str, team_member_id: str) -> Optional[Dict[str, Any]]:
        """Delete an employee; returns the removed row or None."""
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"DELETE FROM {self.table} WHERE company_name = $1 AND team_member_id = $2 RETURNING *",
                company_name,
                team_member_id,
            )
        return self._decode(row)

    async def delete_expired(self, now: datetime) -> List[Dict[str, Any]]:
        """
        Remove employees whose temporary password expired before first login.

        The precondition is part of the DELETE, so an employee who completed
        first login in the meantime is never removed.
        """
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                DELETE FROM {self.table}
                WHERE must_change_password AND password_expires_at < $1
                RETURNING team_member_id, name, email, company_name
                """,
                now,
            )
        return [dict(row) for row in rows]
