"""
Notification Repository

Email outbox (append-only). Rows start PENDING and end SENT or FAILED.
"""

from typing import Optional
from uuid import UUID
from uuid import uuid4


class NotificationRepository:
    """Notification repository (append-only)."""

    def __init__(self, pool):
        self.pool = pool

    async def create(
        self,
        notification_type: str,
        recipient_email: str,
        subject: str,
        body: str,
        company_name: Optional[str] = None,
    ) -> UUID:
        """Create a new notification (PENDING status)."""
        notification_id = uuid4()

        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO projectflow.notifications
                    (notification_id, company_name, notification_type, recipient_email, subject, body,
                     status, created_at)
                VALUES ($1, $2, $3, $4, $5, $6, 'PENDING', NOW())
                """,
                notification_id,
                company_name,
                notification_type,
                recipient_email,
                subject,
                body,
            )

        return notification_id

    async def mark_sent(self, notification_id: UUID) -> None:
        """Mark notification as SENT."""
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                UPDATE projectflow.notifications
                SET status = 'SENT', sent_at = NOW()
                WHERE notification_id = $1
                """,
                notification_id,
            )

    async def mark_failed(self, notification_id: UUID, error_message: str) -> None:
        """Mark notification as FAILED."""
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                UPDATE projectflow.notifications
                SET status = 'FAILED', error_message = $2
                WHERE notification_id = $1
                """,
                notification_id,
                error_message,
            )
