import json
from typing import List
from typing import Optional

from fastapi import APIRouter
from fastapi import Depends
from fastapi import File
from fastapi import Form
from fastapi import Request
from fastapi import UploadFile
from fastapi import status
from loguru import logger

from projectflow_api.dependencies import get_current_principal
from projectflow_api.dependencies import get_image_store
from projectflow_api.dependencies import get_settings
from projectflow_api.dependencies import get_store
from projectflow_api.schemas.schemas import MessageResponse
from projectflow_api.schemas.schemas_work import CommentRequest
from projectflow_api.schemas.schemas_work import PhaseAddRequest
from projectflow_api.schemas.schemas_work import PhaseDeleteRequest
from projectflow_api.schemas.schemas_work import PhaseStatusRequest
from projectflow_api.schemas.schemas_work import ProjectCreateRequest
from projectflow_api.schemas.schemas_work import ProjectUpdateRequest
from projectflow_api.schemas.schemas_work import SubtaskDeleteRequest
from projectflow_api.schemas.schemas_work import SubtaskStatusRequest
from projectflow_api.settings import Settings
from projectflow_api.workspace.exceptions import ValidationFailed
from projectflow_api.workspace.models.principal import Principal
from projectflow_api.workspace.orchestrator import project_flow

ROUTER_PROJECT = APIRouter(tags=["Projects"])

PROJECT_NOT_FOUND = {
    "description": "Project not found",
    "content": {"application/json": {"example": {"detail": "Project not found"}}},
}


async def _read_images(images: Optional[List[UploadFile]], max_bytes: int) -> List[bytes]:
    """Bytes of the uploaded files, skipping empty parts sent by some clients."""
    payloads = []
    for upload in images or []:
        data = await upload.read(max_bytes + 1)
        if len(data) > max_bytes:
            raise ValidationFailed(f"Image {upload.filename} is larger than {max_bytes} bytes")
        if data:
            payloads.append(data)
    return payloads


def _parse_existing_images(raw: Optional[str]) -> Optional[List[str]]:
    """``existing_images`` arrives as a JSON array string; a bare URL is taken as a one-item list."""
    if raw is None:
        return None
    raw = raw.strip()
    if not raw:
        return []
    if not raw.startswith("["):
        return [raw]
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        raise ValidationFailed("existing_images must be a JSON array of image URLs") from None
    if not isinstance(value, list) or not all(isinstance(url, str) for url in value):
        raise ValidationFailed("existing_images must be a JSON array of image URLs")
    return value


# ════════════════════════════════════════════════════════════════════════════
# Projects
# ════════════════════════════════════════════════════════════════════════════


@ROUTER_PROJECT.post(
    "/projects",
    status_code=status.HTTP_201_CREATED,
    responses={
        status.HTTP_400_BAD_REQUEST: {
            "description": "Missing members or invalid status",
            "content": {"application/json": {"example": {"detail": "Team members are required"}}},
        },
        status.HTTP_404_NOT_FOUND: {
            "description": "Lead, member or team not found",
            "content": {"application/json": {"example": {"detail": "Team Lead not found or invalid"}}},
        },
    },
)
async def create_project(
    request: Request,
    payload: ProjectCreateRequest,
    store=Depends(get_store),
    principal: Principal = Depends(get_current_principal),
):
    """Create a project with a lead and members."""
    logger.info("Creating project", project_name=payload.project_name, method=request.method, path=request.url.path)
    project = await project_flow.create_project(store, principal, payload.model_dump())
    return {"message": "Project created successfully", "project": project}


##########################


@ROUTER_PROJECT.get("/projects")
async def list_projects(
    request: Request,
    store=Depends(get_store),
    principal: Principal = Depends(get_current_principal),
):
    """All projects of the caller's company, deleted ones included."""
    logger.info("Listing projects", method=request.method, path=request.url.path)
    projects = await project_flow.list_projects(store, principal)
    return {"count": len(projects), "projects": projects}


##########################


@ROUTER_PROJECT.get("/projects/member/{team_member_id}")
async def projects_for_member(
    request: Request,
    team_member_id: str,
    store=Depends(get_store),
    principal: Principal = Depends(get_current_principal),
):
    """Active projects the employee leads or belongs to."""
    logger.info(
        "Listing projects for member", team_member_id=team_member_id, method=request.method, path=request.url.path
    )
    projects = await project_flow.projects_for_member(store, principal, team_member_id)
    return {"count": len(projects), "projects": projects}


##########################


@ROUTER_PROJECT.get("/projects/{project_id}", responses={status.HTTP_404_NOT_FOUND: PROJECT_NOT_FOUND})
async def get_project(
    request: Request,
    project_id: str,
    store=Depends(get_store),
    principal: Principal = Depends(get_current_principal),
):
    logger.info("Getting project", project_id=project_id, method=request.method, path=request.url.path)
    return {"project": await project_flow.get_project(store, principal, project_id)}


##########################


@ROUTER_PROJECT.put(
    "/projects/{project_id}",
    responses={
        status.HTTP_404_NOT_FOUND: PROJECT_NOT_FOUND,
        status.HTTP_409_CONFLICT: {
            "description": "Project deleted or modified concurrently",
            "content": {"application/json": {"example": {"detail": "Deleted projects cannot be edited"}}},
        },
    },
)
async def update_project(
    request: Request,
    project_id: str,
    payload: ProjectUpdateRequest,
    store=Depends(get_store),
    principal: Principal = Depends(get_current_principal),
):
    """Edit project fields; ``add_members`` and ``remove_members`` adjust membership."""
    logger.info("Updating project", project_id=project_id, method=request.method, path=request.url.path)
    project = await project_flow.update_project(store, principal, project_id, payload.model_dump(exclude_none=True))
    return {"message": "Project updated successfully", "project": project}


##########################


@ROUTER_PROJECT.delete(
    "/projects/{project_id}",
    response_model=MessageResponse,
    responses={status.HTTP_404_NOT_FOUND: PROJECT_NOT_FOUND},
)
async def soft_delete_project(
    request: Request,
    project_id: str,
    store=Depends(get_store),
    principal: Principal = Depends(get_current_principal),
) -> MessageResponse:
    """Mark a project deleted; it is purged after the retention period."""
    logger.info("Soft deleting project", project_id=project_id, method=request.method, path=request.url.path)
    await project_flow.soft_delete_project(store, principal, project_id)
    return MessageResponse(message="Project moved to trash")


##########################


@ROUTER_PROJECT.delete(
    "/projects/{project_id}/permanent",
    responses={
        status.HTTP_200_OK: {
            "description": "Project removed; image cleanup counts reported",
            "content": {
                "application/json": {
                    "example": {
                        "message": "Project permanently deleted",
                        "deleted_images": 2,
                        "deleted_count": 2,
                        "failed_count": 0,
                    }
                }
            },
        },
        status.HTTP_404_NOT_FOUND: PROJECT_NOT_FOUND,
    },
)
async def permanently_delete_project(
    request: Request,
    project_id: str,
    store=Depends(get_store),
    image_store=Depends(get_image_store),
    principal: Principal = Depends(get_current_principal),
):
    logger.info("Permanently deleting project", project_id=project_id, method=request.method, path=request.url.path)
    outcome = await project_flow.permanently_delete_project(store, principal, project_id, image_store)
    return {"message": "Project permanently deleted", **outcome}


# ════════════════════════════════════════════════════════════════════════════
# Phases
# ════════════════════════════════════════════════════════════════════════════


@ROUTER_PROJECT.post("/projects/phases/add", status_code=status.HTTP_201_CREATED)
async def add_phase(
    request: Request,
    payload: PhaseAddRequest,
    store=Depends(get_store),
    principal: Principal = Depends(get_current_principal),
):
    """Append a phase to a project identified by id or name."""
    logger.info("Adding phase", project_id=payload.project_id, method=request.method, path=request.url.path)
    phase = await project_flow.add_phase(
        store,
        principal,
        payload.title,
        payload.due_date,
        description=payload.description,
        project_id=payload.project_id,
        project_name=payload.project_name,
    )
    return {"message": "Phase added successfully", "phase": phase}


##########################


@ROUTER_PROJECT.post("/projects/phases/update-status")
async def update_phase_status(
    request: Request,
    payload: PhaseStatusRequest,
    store=Depends(get_store),
    principal: Principal = Depends(get_current_principal),
):
    logger.info("Updating phase status", phase_id=payload.phase_id, method=request.method, path=request.url.path)
    phase = await project_flow.update_phase_status(
        store,
        principal,
        payload.status,
        phase_id=payload.phase_id,
        phase_title=payload.phase_title,
        project_id=payload.project_id,
        project_name=payload.project_name,
    )
    return {"message": "Phase status updated successfully", "phase": phase}


##########################


@ROUTER_PROJECT.post("/projects/phases/delete")
async def delete_phase(
    request: Request,
    payload: PhaseDeleteRequest,
    store=Depends(get_store),
    image_store=Depends(get_image_store),
    principal: Principal = Depends(get_current_principal),
):
    """Remove a phase with its subtasks and comments."""
    logger.info("Deleting phase", phase_id=payload.phase_id, method=request.method, path=request.url.path)
    phase = await project_flow.delete_phase(
        store,
        principal,
        image_store,
        phase_id=payload.phase_id,
        title=payload.title,
        project_id=payload.project_id,
        project_name=payload.project_name,
    )
    return {"message": "Phase deleted successfully", "phase_id": phase.phase_id}


##########################


@ROUTER_PROJECT.get("/projects/{project_id}/phases", responses={status.HTTP_404_NOT_FOUND: PROJECT_NOT_FOUND})
async def list_phases(
    request: Request,
    project_id: str,
    store=Depends(get_store),
    principal: Principal = Depends(get_current_principal),
):
    logger.info("Listing phases", project_id=project_id, method=request.method, path=request.url.path)
    return {"phases": await project_flow.list_phases(store, principal, project_id)}


# ════════════════════════════════════════════════════════════════════════════
# Subtasks
# ════════════════════════════════════════════════════════════════════════════


@ROUTER_PROJECT.post(
    "/projects/subtasks",
    status_code=status.HTTP_201_CREATED,
    responses={
        status.HTTP_400_BAD_REQUEST: {
            "description": "Too many or invalid images",
            "content": {"application/json": {"example": {"detail": "A subtask can have at most 2 images"}}},
        },
        status.HTTP_502_BAD_GATEWAY: {
            "description": "Image upload failed",
            "content": {"application/json": {"example": {"detail": "Image upload failed"}}},
        },
    },
)
async def add_subtask(
    request: Request,
    phase_id: str = Form(...),
    subtask_title: str = Form(...),
    description: Optional[str] = Form(None),
    assigned_team: Optional[str] = Form(None),
    assigned_member: Optional[str] = Form(None),
    images: Optional[List[UploadFile]] = File(None),
    store=Depends(get_store),
    settings: Settings = Depends(get_settings),
    image_store=Depends(get_image_store),
    principal: Principal = Depends(get_current_principal),
):
    """Add a subtask (multipart form, images optional)."""
    logger.info("Adding subtask", phase_id=phase_id, method=request.method, path=request.url.path)
    subtask = await project_flow.add_subtask(
        store,
        principal,
        phase_id,
        subtask_title,
        settings,
        image_store,
        description=description,
        assigned_team=assigned_team,
        assigned_member=assigned_member,
        images=await _read_images(images, settings.image_max_upload_bytes),
    )
    return {"message": "Subtask added successfully", "subtask": subtask}


##########################


@ROUTER_PROJECT.post("/projects/subtasks/edit")
async def edit_subtask(
    request: Request,
    subtask_id: str = Form(...),
    subtask_title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    assigned_team: Optional[str] = Form(None),
    assigned_member: Optional[str] = Form(None),
    existing_images: Optional[str] = Form(None),
    images: Optional[List[UploadFile]] = File(None),
    store=Depends(get_store),
    settings: Settings = Depends(get_settings),
    image_store=Depends(get_image_store),
    principal: Principal = Depends(get_current_principal),
):
    """
    Edit a subtask (multipart form).

    ``existing_images`` lists the current image URLs to keep; images left out
    are deleted. New uploads are appended.
    """
    logger.info("Editing subtask", subtask_id=subtask_id, method=request.method, path=request.url.path)
    subtask, outcome = await project_flow.edit_subtask(
        store,
        principal,
        subtask_id,
        settings,
        image_store,
        {
            "subtask_title": subtask_title,
            "description": description,
            "assigned_team": assigned_team,
            "assigned_member": assigned_member,
        },
        existing_images=_parse_existing_images(existing_images),
        images=await _read_images(images, settings.image_max_upload_bytes),
    )
    return {"message": "Subtask updated successfully", "subtask": subtask, "removed_images": outcome}


##########################


@ROUTER_PROJECT.post("/projects/subtasks/update-status")
async def update_subtask_status(
    request: Request,
    payload: SubtaskStatusRequest,
    store=Depends(get_store),
    principal: Principal = Depends(get_current_principal),
):
    logger.info(
        "Updating subtask status", subtask_id=payload.subtask_id, method=request.method, path=request.url.path
    )
    subtask = await project_flow.update_subtask_status(store, principal, payload.subtask_id, payload.status)
    return {"message": "Subtask status updated successfully", "subtask": subtask}


##########################


@ROUTER_PROJECT.post("/projects/subtasks/delete")
async def delete_subtask(
    request: Request,
    payload: SubtaskDeleteRequest,
    store=Depends(get_store),
    image_store=Depends(get_image_store),
    principal: Principal = Depends(get_current_principal),
):
    logger.info("Deleting subtask", subtask_id=payload.subtask_id, method=request.method, path=request.url.path)
    outcome = await project_flow.delete_subtask(store, principal, payload.subtask_id, image_store)
    return {"message": "Subtask deleted successfully", **outcome}


##########################


@ROUTER_PROJECT.get("/projects/{project_id}/subtasks", responses={status.HTTP_404_NOT_FOUND: PROJECT_NOT_FOUND})
async def list_subtasks(
    request: Request,
    project_id: str,
    store=Depends(get_store),
    principal: Principal = Depends(get_current_principal),
):
    logger.info("Listing subtasks", project_id=project_id, method=request.method, path=request.url.path)
    return {"subtasks": await project_flow.list_subtasks(store, principal, project_id)}


# ════════════════════════════════════════════════════════════════════════════
# Phase comments
# ════════════════════════════════════════════════════════════════════════════


@ROUTER_PROJECT.post("/projects/{project_id}/phases/{phase_id}/comments", status_code=status.HTTP_201_CREATED)
async def add_comment(
    request: Request,
    project_id: str,
    phase_id: str,
    payload: CommentRequest,
    store=Depends(get_store),
    principal: Principal = Depends(get_current_principal),
):
    logger.info("Adding comment", project_id=project_id, phase_id=phase_id, method=request.method, path=request.url.path)
    comment = await project_flow.add_comment(store, principal, project_id, phase_id, payload.text)
    return {"message": "Comment added successfully", "comment": comment}


@ROUTER_PROJECT.get("/projects/{project_id}/phases/{phase_id}/comments")
async def list_comments(
    request: Request,
    project_id: str,
    phase_id: str,
    store=Depends(get_store),
    principal: Principal = Depends(get_current_principal),
):
    logger.info(
        "Listing comments", project_id=project_id, phase_id=phase_id, method=request.method, path=request.url.path
    )
    return {"comments": await project_flow.list_comments(store, principal, project_id, phase_id)}
