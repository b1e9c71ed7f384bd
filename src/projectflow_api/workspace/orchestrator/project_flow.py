"""
Projects and their embedded phases, subtasks and comments.

Every change to the phase hierarchy loads the ``Project`` aggregate, applies
one aggregate method and saves the whole document guarded by its version.
A lost race reloads and re-applies the change, up to ``MAX_SAVE_ATTEMPTS``.

Images are uploaded before the aggregate is saved and removed from the image
store after it is saved; removal is best effort and never fails the request.
"""

from typing import Any
from typing import Awaitable
from typing import Callable
from typing import Dict
from typing import List
from typing import Optional
from typing import Sequence
from typing import Tuple
from typing import TypeVar

from loguru import logger

from projectflow_api.settings import Settings
from projectflow_api.workspace.enums import UNASSIGNED_TEAM
from projectflow_api.workspace.enums import ActivityAction
from projectflow_api.workspace.enums import EntityType
from projectflow_api.workspace.enums import ProjectStatus
from projectflow_api.workspace.enums import Role
from projectflow_api.workspace.enums import SequenceKind
from projectflow_api.workspace.exceptions import Conflict
from projectflow_api.workspace.exceptions import NotFound
from projectflow_api.workspace.exceptions import ValidationFailed
from projectflow_api.workspace.models.principal import Principal
from projectflow_api.workspace.models.project import Phase
from projectflow_api.workspace.models.project import PhaseComment
from projectflow_api.workspace.models.project import Project
from projectflow_api.workspace.models.project import Subtask
from projectflow_api.workspace.orchestrator.common import record_activity
from projectflow_api.workspace.orchestrator.common import reserve_identifier
from projectflow_api.workspace.orchestrator.common import utcnow
from projectflow_api.workspace.rules.authorization import Permission
from projectflow_api.workspace.rules.authorization import require_permission
from projectflow_api.workspace.rules.authorization import require_self_or_permission
from projectflow_api.workspace.storage.image_store import upload_batch

MAX_SAVE_ATTEMPTS = 3

T = TypeVar("T")

ProjectLoader = Callable[[], Awaitable[Project]]


# ════════════════════════════════════════════════════════════════════════════
# Loading and saving the aggregate
# ════════════════════════════════════════════════════════════════════════════


def project_document(project: Project) -> Dict[str, Any]:
    """Column values of a project row (key and bookkeeping columns excluded by the repository)."""
    document = project.model_dump(exclude={"phases", "project_status", "created_at", "updated_at", "version"})
    document["project_status"] = project.project_status.value
    document["phases"] = [phase.model_dump(mode="json") for phase in project.phases]
    return document


async def load_project(
    store, company_name: str, project_id: Optional[str] = None, project_name: Optional[str] = None
) -> Project:
    """Look a project up by identifier, falling back to its name."""
    row = None
    if project_id:
        row = await store.projects.get(company_name, project_id)
    if row is None and project_name:
        row = await store.projects.get_by_name(company_name, project_name)
    if row is None:
        raise NotFound("Project not found")
    return Project(**row)


async def _load_by_phase(store, company_name: str, phase_id: str) -> Project:
    row = await store.projects.find_by_phase(company_name, phase_id)
    if row is None:
        raise NotFound("Phase not found")
    return Project(**row)


async def _load_by_subtask(store, company_name: str, subtask_id: str) -> Project:
    row = await store.projects.find_by_subtask(company_name, subtask_id)
    if row is None:
        raise NotFound("Subtask not found")
    return Project(**row)


async def _mutate(store, load: ProjectLoader, change: Callable[[Project], T]) -> Tuple[Project, T]:
    """
    Apply ``change`` to a freshly loaded aggregate and save it.

    Returns:
        The saved project and whatever ``change`` returned

    Raises
    ------
    Conflict
        When every attempt lost the race against a concurrent save.
    """
    for attempt in range(1, MAX_SAVE_ATTEMPTS + 1):
        project = await load()
        result = change(project)
        saved = await store.projects.save(project_document(project), project.version)
        if saved is not None:
            return Project(**saved), result
        logger.warning(
            "Concurrent project update, retrying",
            company_name=project.company_name,
            project_id=project.project_id,
            attempt=attempt,
        )
    raise Conflict("Project was modified by another request, please retry")


async def cleanup_images(image_store, urls: Sequence[str], **context) -> Dict[str, int]:
    """Best-effort removal; failures are counted and logged, never raised."""
    if not urls:
        return {"deleted_count": 0, "failed_count": 0}
    try:
        outcome = await image_store.delete_many(list(urls))
    except Exception as e:
        logger.error(f"Image cleanup failed: {e}", images=len(urls), **context)
        return {"deleted_count": 0, "failed_count": len(urls)}
    if outcome.get("failed_count"):
        logger.warning("Some images could not be deleted", **outcome, **context)
    return outcome


# ════════════════════════════════════════════════════════════════════════════
# Projects
# ════════════════════════════════════════════════════════════════════════════


async def _validate_lead(store, company_name: str, team_member_id: str) -> str:
    row = await store.employees.get_by_team_member_id(company_name, team_member_id)
    if row is None or row["role"] != Role.TEAM_LEAD.value:
        raise NotFound("Team Lead not found or invalid")
    return row["team_member_id"]


async def _validate_members(store, company_name: str, team_member_ids: Sequence[str], role: Optional[Role]) -> None:
    ids = set(team_member_ids)
    rows = await store.employees.list_by_team_member_ids(company_name, list(ids))
    found = {row["team_member_id"] for row in rows if role is None or row["role"] == role.value}
    if found != ids:
        raise ValidationFailed("One or more team members are invalid")


async def _validate_team(store, company_name: str, team_name: str) -> str:
    row = await store.teams.get_by_name(company_name, team_name)
    if row is None:
        raise NotFound("Team not found")
    return row["team_name"]


def _parse_project_status(value: str) -> ProjectStatus:
    try:
        status = ProjectStatus(value)
    except ValueError:
        status = None
    if status is None or status == ProjectStatus.DELETED:
        allowed = ", ".join(s.value for s in ProjectStatus if s != ProjectStatus.DELETED)
        raise ValidationFailed(f"Invalid project status. Must be one of: {allowed}")
    return status


async def create_project(store, principal: Principal, data: Dict[str, Any]) -> Project:
    """Create a project with a ``<initials>-Pr-<n>`` identifier."""
    require_permission(principal, Permission.MANAGE_PROJECTS)
    company_name = principal.company_name

    members = list(dict.fromkeys(data.get("team_members") or []))
    if not members:
        raise ValidationFailed("Team members are required")
    lead = await _validate_lead(store, company_name, data["project_lead"])
    await _validate_members(store, company_name, members, Role.TEAM_MEMBER)
    team_name = data.get("team_name")
    if team_name:
        team_name = await _validate_team(store, company_name, team_name)
    status = _parse_project_status(data.get("project_status") or ProjectStatus.ONGOING.value)

    project_id = await reserve_identifier(
        store, SequenceKind.PROJECT, company_name, await store.projects.project_ids(company_name)
    )
    row = await store.projects.create(
        {
            "company_name": company_name,
            "project_id": project_id,
            "project_name": data["project_name"],
            "client_name": data["client_name"],
            "project_description": data["project_description"],
            "start_date": data["start_date"],
            "end_date": data["end_date"],
            "project_status": status.value,
            "project_lead": lead,
            "team_members": members,
            "team_name": team_name,
            "phases": [],
        }
    )
    project = Project(**row)
    logger.info("Project created", company_name=company_name, project_id=project_id)
    await record_activity(
        store,
        company_name,
        EntityType.PROJECT,
        ActivityAction.ADD,
        project.project_name,
        principal.display_name,
        f"Created project {project.project_name}",
    )
    return project


async def get_project(store, principal: Principal, project_id: str) -> Project:
    require_permission(principal, Permission.VIEW_PROJECTS)
    return await load_project(store, principal.company_name, project_id)


async def list_projects(store, principal: Principal) -> List[Project]:
    require_permission(principal, Permission.VIEW_PROJECTS)
    return [Project(**row) for row in await store.projects.list_by_company(principal.company_name)]


async def projects_for_member(store, principal: Principal, team_member_id: str) -> List[Project]:
    """Non-deleted projects led by or including the member. Team members may only ask about themselves."""
    require_self_or_permission(principal, team_member_id, Permission.ASSIGN_TASKS)
    if await store.employees.get_by_team_member_id(principal.company_name, team_member_id) is None:
        raise NotFound("Employee not found")
    rows = await store.projects.list_for_member(principal.company_name, team_member_id)
    return [Project(**row) for row in rows]


async def update_project(store, principal: Principal, project_id: str, data: Dict[str, Any]) -> Project:
    """
    Edit project fields and membership.

    ``add_members`` and ``remove_members`` adjust the member set. Completing a
    project with an end date different from the planned one keeps the planned
    date in ``original_end_date`` and writes a completion note.
    """
    require_permission(principal, Permission.MANAGE_PROJECTS)
    company_name = principal.company_name

    add_members = list(dict.fromkeys(data.get("add_members") or []))
    remove_members = set(data.get("remove_members") or [])
    if add_members:
        await _validate_members(store, company_name, add_members, None)

    fields: Dict[str, Any] = {
        key: data[key]
        for key in ("project_name", "client_name", "project_description", "start_date", "end_date")
        if data.get(key) is not None
    }
    status = _parse_project_status(data["project_status"]) if data.get("project_status") else None
    if data.get("project_lead"):
        fields["project_lead"] = await _validate_lead(store, company_name, data["project_lead"])
    if data.get("team_name"):
        fields["team_name"] = await _validate_team(store, company_name, data["team_name"])

    def change(project: Project) -> None:
        if project.project_status == ProjectStatus.DELETED:
            raise Conflict("Deleted projects cannot be edited")
        members = [m for m in project.team_members if m not in remove_members]
        members.extend(m for m in add_members if m not in members)
        project.team_members = members

        new_end = fields.get("end_date")
        if status == ProjectStatus.COMPLETED and new_end and project.end_date and new_end != project.end_date:
            project.completion_note = (
                f"Original planned completion date was {project.end_date}, "
                f"but project was completed on {new_end}."
            )
            project.original_end_date = project.end_date
        for key, value in fields.items():
            setattr(project, key, value)
        if status is not None:
            project.project_status = status

    project, _ = await _mutate(store, lambda: load_project(store, company_name, project_id), change)
    await record_activity(
        store,
        company_name,
        EntityType.PROJECT,
        ActivityAction.EDIT,
        project.project_name,
        principal.display_name,
        f"Updated project {project.project_name}",
    )
    return project


async def soft_delete_project(store, principal: Principal, project_id: str) -> Project:
    """Mark a project deleted; the reaper removes it after the retention period."""
    require_permission(principal, Permission.MANAGE_PROJECTS)
    now = utcnow()

    def change(project: Project) -> None:
        project.project_status = ProjectStatus.DELETED
        project.deleted_at = now

    project, _ = await _mutate(store, lambda: load_project(store, principal.company_name, project_id), change)
    logger.info("Project soft deleted", company_name=principal.company_name, project_id=project_id)
    await record_activity(
        store,
        principal.company_name,
        EntityType.PROJECT,
        ActivityAction.DELETE,
        project.project_name,
        principal.display_name,
        f"Soft deleted project {project.project_name}",
    )
    return project


async def permanently_delete_project(store, principal: Principal, project_id: str, image_store) -> Dict[str, int]:
    """Remove a project now, then its subtask images (best effort)."""
    require_permission(principal, Permission.MANAGE_PROJECTS)
    row = await store.projects.delete(principal.company_name, project_id)
    if row is None:
        raise NotFound("Project not found")
    project = Project(**row)

    images = project.image_urls()
    outcome = await cleanup_images(image_store, images, project_id=project_id)
    logger.info("Project permanently deleted", company_name=principal.company_name, project_id=project_id, **outcome)
    await record_activity(
        store,
        principal.company_name,
        EntityType.PROJECT,
        ActivityAction.PERMANENTLY_DELETE,
        project.project_name,
        principal.display_name,
        f"Permanently deleted project {project.project_name} and {len(images)} associated images",
    )
    return {"deleted_images": len(images), **outcome}


# ════════════════════════════════════════════════════════════════════════════
# Phases
# ════════════════════════════════════════════════════════════════════════════


async def add_phase(
    store,
    principal: Principal,
    title: str,
    due_date: str,
    description: Optional[str] = None,
    project_id: Optional[str] = None,
    project_name: Optional[str] = None,
) -> Phase:
    """
    Append a phase with status Pending.

    Phase numbers run across all projects of the tenant (``<initials>-ph-<n>``).
    """
    require_permission(principal, Permission.MANAGE_PROJECT_STRUCTURE)
    company_name = principal.company_name
    await load_project(store, company_name, project_id, project_name)

    phase_id = await reserve_identifier(
        store, SequenceKind.PHASE, company_name, floor=await store.projects.count_phases(company_name)
    )
    _, phase = await _mutate(
        store,
        lambda: load_project(store, company_name, project_id, project_name),
        lambda project: project.add_phase(phase_id, title, due_date, description),
    )
    logger.info("Phase added", company_name=company_name, project_id=project_id, phase_id=phase_id)
    return phase


async def update_phase_status(
    store,
    principal: Principal,
    status: str,
    phase_id: Optional[str] = None,
    phase_title: Optional[str] = None,
    project_id: Optional[str] = None,
    project_name: Optional[str] = None,
) -> Phase:
    require_permission(principal, Permission.UPDATE_WORK_STATUS)
    if not phase_id and not phase_title:
        raise ValidationFailed("Phase ID or Title is required")
    _, phase = await _mutate(
        store,
        lambda: load_project(store, principal.company_name, project_id, project_name),
        lambda project: project.set_phase_status(status, phase_id, phase_title),
    )
    return phase


async def delete_phase(
    store,
    principal: Principal,
    image_store,
    phase_id: Optional[str] = None,
    title: Optional[str] = None,
    project_id: Optional[str] = None,
    project_name: Optional[str] = None,
) -> Phase:
    """Remove a phase with its subtasks and comments; its images are cleaned up afterwards."""
    require_permission(principal, Permission.MANAGE_PROJECT_STRUCTURE)
    if not project_id and not project_name:
        raise ValidationFailed("Project ID or Project Name is required")
    if not phase_id and not title:
        raise ValidationFailed("Phase ID or Title is required")

    _, phase = await _mutate(
        store,
        lambda: load_project(store, principal.company_name, project_id, project_name),
        lambda project: project.remove_phase(phase_id, title),
    )
    images = [url for subtask in phase.subtasks for url in subtask.images]
    await cleanup_images(image_store, images, phase_id=phase.phase_id)
    logger.info("Phase deleted", company_name=principal.company_name, phase_id=phase.phase_id)
    return phase


async def list_phases(store, principal: Principal, project_id: str) -> List[Phase]:
    project = await load_project(store, principal.company_name, project_id)
    return project.phases


# ════════════════════════════════════════════════════════════════════════════
# Subtasks
# ════════════════════════════════════════════════════════════════════════════


def _check_image_count(count: int, settings: Settings) -> None:
    if count > settings.max_subtask_images:
        raise ValidationFailed(f"A subtask can have at most {settings.max_subtask_images} images")


async def _upload_or_cleanup(image_store, images: Sequence[bytes]) -> List[str]:
    return await upload_batch(image_store, images) if images else []


async def add_subtask(
    store,
    principal: Principal,
    phase_id: str,
    subtask_title: str,
    settings: Settings,
    image_store,
    description: Optional[str] = None,
    assigned_team: Optional[str] = None,
    assigned_member: Optional[str] = None,
    images: Sequence[bytes] = (),
) -> Subtask:
    """
    Add a subtask to a phase, uploading its images first (all or nothing).

    The assigned team defaults to the project's team, then to ``unassigned``.
    """
    require_permission(principal, Permission.MANAGE_PROJECT_STRUCTURE)
    _check_image_count(len(images), settings)
    company_name = principal.company_name
    project = await _load_by_phase(store, company_name, phase_id)
    if assigned_member and await store.employees.get_by_team_member_id(company_name, assigned_member) is None:
        raise NotFound("Assigned member not found")
    team = assigned_team or project.team_name or UNASSIGNED_TEAM

    urls = await _upload_or_cleanup(image_store, images)
    now = utcnow()
    try:
        _, subtask = await _mutate(
            store,
            lambda: _load_by_phase(store, company_name, phase_id),
            lambda p: p.add_subtask(
                p.get_phase(phase_id),
                subtask_title,
                now,
                description=description,
                assigned_team=team,
                assigned_member=assigned_member,
                images=urls,
            ),
        )
    except Exception:
        await cleanup_images(image_store, urls, phase_id=phase_id)
        raise
    logger.info("Subtask added", company_name=company_name, subtask_id=subtask.subtask_id, images=len(urls))
    return subtask


async def edit_subtask(
    store,
    principal: Principal,
    subtask_id: str,
    settings: Settings,
    image_store,
    fields: Dict[str, Any],
    existing_images: Optional[List[str]] = None,
    images: Sequence[bytes] = (),
) -> Tuple[Subtask, Dict[str, int]]:
    """
    Merge the provided fields into a subtask and recompute its images.

    The final image list is the retained ``existing_images`` (all current
    images when omitted) followed by the new uploads. Images dropped from the
    list are deleted from the store after the save.

    Returns:
        The updated subtask and the image cleanup counts
    """
    require_permission(principal, Permission.MANAGE_PROJECT_STRUCTURE)
    company_name = principal.company_name
    updates = {
        key: value
        for key, value in fields.items()
        if key in ("subtask_title", "description", "assigned_team", "assigned_member") and value is not None
    }
    if not updates and existing_images is None and not images:
        raise ValidationFailed("No valid update fields provided")
    if updates.get("assigned_member"):
        if await store.employees.get_by_team_member_id(company_name, updates["assigned_member"]) is None:
            raise NotFound("Assigned member not found")

    def retained(subtask: Subtask) -> List[str]:
        if existing_images is None:
            return list(subtask.images)
        return [url for url in subtask.images if url in existing_images]

    project = await _load_by_subtask(store, company_name, subtask_id)
    _, current = project.get_subtask(subtask_id)
    _check_image_count(len(retained(current)) + len(images), settings)

    urls = await _upload_or_cleanup(image_store, images)
    now = utcnow()

    def change(p: Project) -> Tuple[Subtask, List[str]]:
        _, subtask = p.get_subtask(subtask_id)
        previous = list(subtask.images)
        final = retained(subtask) + urls
        _check_image_count(len(final), settings)
        for key, value in updates.items():
            setattr(subtask, key, value)
        subtask.images = final
        subtask.updated_at = now
        return subtask, [url for url in previous if url not in final]

    try:
        _, (subtask, removed) = await _mutate(store, lambda: _load_by_subtask(store, company_name, subtask_id), change)
    except Exception:
        await cleanup_images(image_store, urls, subtask_id=subtask_id)
        raise
    outcome = await cleanup_images(image_store, removed, subtask_id=subtask_id)
    logger.info("Subtask edited", company_name=company_name, subtask_id=subtask_id, added=len(urls), **outcome)
    return subtask, outcome


async def update_subtask_status(store, principal: Principal, subtask_id: str, status: str) -> Subtask:
    require_permission(principal, Permission.UPDATE_WORK_STATUS)
    now = utcnow()
    _, subtask = await _mutate(
        store,
        lambda: _load_by_subtask(store, principal.company_name, subtask_id),
        lambda project: project.set_subtask_status(subtask_id, status, now),
    )
    return subtask


async def delete_subtask(store, principal: Principal, subtask_id: str, image_store) -> Dict[str, int]:
    """Remove a subtask, then its images (best effort). Returns the image cleanup counts."""
    require_permission(principal, Permission.MANAGE_PROJECT_STRUCTURE)
    _, subtask = await _mutate(
        store,
        lambda: _load_by_subtask(store, principal.company_name, subtask_id),
        lambda project: project.remove_subtask(subtask_id),
    )
    outcome = await cleanup_images(image_store, subtask.images, subtask_id=subtask_id)
    logger.info("Subtask deleted", company_name=principal.company_name, subtask_id=subtask_id, **outcome)
    return outcome


async def list_subtasks(store, principal: Principal, project_id: str) -> List[Dict[str, Any]]:
    """All subtasks of a project, each tagged with its phase id and title."""
    project = await load_project(store, principal.company_name, project_id)
    return [
        {**subtask.model_dump(), "phase_id": phase.phase_id, "phase_title": phase.title}
        for phase in project.phases
        for subtask in phase.subtasks
    ]


# ════════════════════════════════════════════════════════════════════════════
# Phase comments
# ════════════════════════════════════════════════════════════════════════════


async def add_comment(store, principal: Principal, project_id: str, phase_id: str, text: str) -> PhaseComment:
    """Append a comment; the author's name is stored as written."""
    require_permission(principal, Permission.COMMENT)
    now = utcnow()
    _, comment = await _mutate(
        store,
        lambda: load_project(store, principal.company_name, project_id),
        lambda project: project.add_comment(
            project.get_phase(phase_id), text, principal.actor_ref, principal.display_name, now
        ),
    )
    return comment


async def list_comments(store, principal: Principal, project_id: str, phase_id: str) -> List[PhaseComment]:
    project = await load_project(store, principal.company_name, project_id)
    return project.get_phase(phase_id).comments
