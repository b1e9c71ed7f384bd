"""
Workspace Store

Groups the repositories behind one object that the HTTP layer installs on
``app.state.store``. Tests substitute an in-memory store with the same
attributes.
"""

from projectflow_api.workspace.db.pool import WorkspaceDBPool
from projectflow_api.workspace.db.repository_account import EmployeeRepository
from projectflow_api.workspace.db.repository_account import OwnerRepository
from projectflow_api.workspace.db.repository_activity import ActivityRepository
from projectflow_api.workspace.db.repository_notification import NotificationRepository
from projectflow_api.workspace.db.repository_project import ProjectRepository
from projectflow_api.workspace.db.repository_sequence import SequenceRepository
from projectflow_api.workspace.db.repository_task import TaskRepository
from projectflow_api.workspace.db.repository_team import TeamRepository


class WorkspaceStore:
    """All repositories over one connection pool."""

    def __init__(
        self,
        owners,
        employees,
        teams,
        projects,
        tasks,
        activities,
        sequences,
        notifications,
        pool=None,
    ):
        self.owners = owners
        self.employees = employees
        self.teams = teams
        self.projects = projects
        self.tasks = tasks
        self.activities = activities
        self.sequences = sequences
        self.notifications = notifications
        self.pool = pool

    @classmethod
    def from_pool(cls, pool: WorkspaceDBPool) -> "WorkspaceStore":
        return cls(
            owners=OwnerRepository(pool),
            employees=EmployeeRepository(pool),
            teams=TeamRepository(pool),
            projects=ProjectRepository(pool),
            tasks=TaskRepository(pool),
            activities=ActivityRepository(pool),
            sequences=SequenceRepository(pool),
            notifications=NotificationRepository(pool),
            pool=pool,
        )

    async def health_check(self) -> bool:
        if self.pool is None:
            return True
        return await self.pool.health_check()
