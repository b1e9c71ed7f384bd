"""
Reaper

Background tasks started with the web app:

- project purge, daily at ``project_purge_hour`` (UTC): permanently removes
  projects soft-deleted more than ``project_retention_days`` ago, with their
  subtask images
- employee purge, every ``employee_purge_interval_seconds``: removes
  employees whose temporary password expired before first login

Every delete carries its precondition, so a record restored or completed by
a request between the read and the delete is left alone.
"""

import asyncio
from datetime import datetime
from datetime import timedelta
from typing import Any
from typing import Dict
from typing import List
from typing import Optional

from loguru import logger

from projectflow_api.settings import Settings
from projectflow_api.workspace.enums import ActivityAction
from projectflow_api.workspace.enums import EntityType
from projectflow_api.workspace.models.project import Project
from projectflow_api.workspace.orchestrator.common import record_activity
from projectflow_api.workspace.orchestrator.common import utcnow
from projectflow_api.workspace.orchestrator.project_flow import cleanup_images

SYSTEM_ACTOR = "system-cron"


def seconds_until_hour(hour: int, now: datetime) -> float:
    """Seconds from ``now`` to the next occurrence of ``hour``:00."""
    target = now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if target <= now:
        target += timedelta(days=1)
    return (target - now).total_seconds()


async def purge_deleted_projects(store, image_store, settings: Settings, now: Optional[datetime] = None) -> int:
    """
    Permanently delete projects past the retention window.

    A failure on one project is logged and the sweep moves on.

    Returns:
        Number of projects deleted
    """
    now = now or utcnow()
    cutoff = now - timedelta(days=settings.project_retention_days)
    candidates = await store.projects.list_purgeable(cutoff)
    logger.info("Project purge started", candidates=len(candidates), cutoff=cutoff.isoformat())

    purged = 0
    for candidate in candidates:
        company_name, project_id = candidate["company_name"], candidate["project_id"]
        try:
            row = await store.projects.delete_if_purgeable(company_name, project_id, cutoff)
            if row is None:
                logger.info("Project no longer purgeable, skipped", company_name=company_name, project_id=project_id)
                continue
            project = Project(**row)
            images = project.image_urls()
            await cleanup_images(image_store, images, project_id=project_id)
            await record_activity(
                store,
                company_name,
                EntityType.PROJECT,
                ActivityAction.PERMANENTLY_DELETE,
                project.project_name,
                SYSTEM_ACTOR,
                f"Auto-permanently deleted project {project.project_name} and {len(images)} associated images",
            )
            purged += 1
            logger.info("Project permanently deleted", company_name=company_name, project_id=project_id)
        except Exception as e:
            logger.error(f"Error purging project: {e}", company_name=company_name, project_id=project_id)

    logger.success(f"Project purge finished: {purged} deleted")
    return purged


async def purge_expired_employees(store, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    """Remove employees whose first-login window has elapsed. Returns the removed employees."""
    now = now or utcnow()
    removed = await store.employees.delete_expired(now)
    if removed:
        logger.info(
            f"Deleted {len(removed)} expired employee(s)",
            team_member_ids=[employee["team_member_id"] for employee in removed],
        )
    return removed


async def run_project_reaper(store, image_store, settings: Settings):
    """Sleep until the purge hour, sweep, repeat. Runs until cancelled."""
    logger.info("Project reaper started", purge_hour=settings.project_purge_hour)
    while True:
        await asyncio.sleep(seconds_until_hour(settings.project_purge_hour, utcnow()))
        try:
            await purge_deleted_projects(store, image_store, settings)
        except Exception as e:
            logger.error(f"Project purge failed: {e}")


async def run_employee_reaper(store, settings: Settings):
    """Sweep expired employees on a fixed interval. Runs until cancelled."""
    logger.info("Employee reaper started", interval_seconds=settings.employee_purge_interval_seconds)
    while True:
        try:
            await purge_expired_employees(store)
        except Exception as e:
            logger.error(f"Error deleting expired employees: {e}")
        await asyncio.sleep(settings.employee_purge_interval_seconds)
