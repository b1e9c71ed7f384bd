from typing import Optional

from fastapi import APIRouter
from fastapi import Body
from fastapi import Depends
from fastapi import Query
from fastapi import Request
from fastapi import status
from loguru import logger

from projectflow_api.dependencies import get_current_principal
from projectflow_api.dependencies import get_store
from projectflow_api.schemas.schemas_work import TaskBatchUpdateRequest
from projectflow_api.schemas.schemas_work import TaskCreateRequest
from projectflow_api.schemas.schemas_work import TaskDeleteRequest
from projectflow_api.schemas.schemas_work import TaskUpdateRequest
from projectflow_api.workspace.models.principal import Principal
from projectflow_api.workspace.orchestrator import task_flow

ROUTER_TASK = APIRouter(tags=["Tasks"])

TASK_NOT_FOUND = {
    "description": "Task not found",
    "content": {"application/json": {"example": {"detail": "Task not found with the given task_id."}}},
}


def _listing(tasks) -> dict:
    return {"count": len(tasks), "tasks": tasks}


@ROUTER_TASK.post(
    "/tasks",
    status_code=status.HTTP_201_CREATED,
    responses={
        status.HTTP_400_BAD_REQUEST: {
            "description": "Required field missing or invalid priority",
            "content": {"application/json": {"example": {"detail": "Title is required."}}},
        },
        status.HTTP_403_FORBIDDEN: {
            "description": "Caller may not assign this task",
            "content": {"application/json": {"example": {"detail": "You cannot assign task to yourself."}}},
        },
        status.HTTP_404_NOT_FOUND: {
            "description": "Project or assignee not found",
            "content": {"application/json": {"example": {"detail": "Employee with this teamMemberId not found."}}},
        },
    },
)
async def create_task(
    request: Request,
    payload: TaskCreateRequest,
    store=Depends(get_store),
    principal: Principal = Depends(get_current_principal),
):
    """Assign a task to an employee."""
    logger.info("Creating task", assigned_to=payload.assigned_to, method=request.method, path=request.url.path)
    task = await task_flow.create_task(store, principal, payload.model_dump())
    return {"message": "Task created successfully", "task": task}


##########################


@ROUTER_TASK.get("/tasks/my-tasks")
async def my_tasks(
    request: Request,
    store=Depends(get_store),
    principal: Principal = Depends(get_current_principal),
):
    """Tasks assigned to the caller."""
    logger.info("Listing own tasks", method=request.method, path=request.url.path)
    return _listing(await task_flow.my_tasks(store, principal))


@ROUTER_TASK.get("/tasks/all")
async def all_tasks(
    request: Request,
    store=Depends(get_store),
    principal: Principal = Depends(get_current_principal),
):
    """Tasks visible to the caller's role; team leads see the tasks of the teams they lead."""
    logger.info("Listing all tasks", method=request.method, path=request.url.path)
    return _listing(await task_flow.all_tasks(store, principal))


@ROUTER_TASK.get("/tasks/ongoing")
async def ongoing_tasks(
    request: Request,
    team_member_id: Optional[str] = Query(None, description="Restrict to one assignee"),
    store=Depends(get_store),
    principal: Principal = Depends(get_current_principal),
):
    logger.info("Listing ongoing tasks", team_member_id=team_member_id, method=request.method, path=request.url.path)
    return _listing(await task_flow.ongoing_tasks(store, principal, team_member_id))


@ROUTER_TASK.get("/tasks/history/{team_member_id}")
async def task_history(
    request: Request,
    team_member_id: str,
    store=Depends(get_store),
    principal: Principal = Depends(get_current_principal),
):
    """Completed and deleted tasks of one assignee."""
    logger.info("Listing task history", team_member_id=team_member_id, method=request.method, path=request.url.path)
    return _listing(await task_flow.task_history(store, principal, team_member_id))


@ROUTER_TASK.get(
    "/tasks/{team_member_id}/project/{project_id}",
    responses={
        status.HTTP_404_NOT_FOUND: {
            "description": "Employee, project or tasks not found",
            "content": {
                "application/json": {"example": {"detail": "No tasks found for this employee in this project."}}
            },
        },
    },
)
async def tasks_by_member_in_project(
    request: Request,
    team_member_id: str,
    project_id: str,
    store=Depends(get_store),
    principal: Principal = Depends(get_current_principal),
):
    logger.info(
        "Listing member tasks in project",
        team_member_id=team_member_id,
        project_id=project_id,
        method=request.method,
        path=request.url.path,
    )
    return _listing(await task_flow.tasks_by_member_in_project(store, principal, team_member_id, project_id))


##########################


@ROUTER_TASK.put(
    "/tasks/{task_id}",
    responses={
        status.HTTP_403_FORBIDDEN: {
            "description": "Caller may not make this change",
            "content": {
                "application/json": {"example": {"detail": "Team members can only update the status field."}}
            },
        },
        status.HTTP_404_NOT_FOUND: TASK_NOT_FOUND,
    },
)
async def update_task(
    request: Request,
    task_id: str,
    payload: TaskUpdateRequest,
    store=Depends(get_store),
    principal: Principal = Depends(get_current_principal),
):
    """Edit a task; status changes follow the task lifecycle."""
    logger.info("Updating task", task_id=task_id, method=request.method, path=request.url.path)
    task = await task_flow.update_task(store, principal, task_id, payload.model_dump(exclude_none=True))
    return {"message": "Task updated successfully", "task": task}


##########################


@ROUTER_TASK.post("/tasks/{task_id}/delete", responses={status.HTTP_404_NOT_FOUND: TASK_NOT_FOUND})
async def soft_delete_task(
    request: Request,
    task_id: str,
    payload: Optional[TaskDeleteRequest] = Body(None),
    store=Depends(get_store),
    principal: Principal = Depends(get_current_principal),
):
    """Mark a task deleted, keeping the reason."""
    logger.info("Soft deleting task", task_id=task_id, method=request.method, path=request.url.path)
    task = await task_flow.soft_delete_task(store, principal, task_id, payload.reason if payload else None)
    return {"message": "Task deleted successfully", "task": task}


##########################


@ROUTER_TASK.put(
    "/tasks/update/{team_member_id}",
    responses={
        status.HTTP_200_OK: {
            "description": "Tasks updated",
            "content": {"application/json": {"example": {"message": "Tasks updated successfully", "updated_count": 3}}},
        },
        status.HTTP_403_FORBIDDEN: {
            "description": "Completion refused",
            "content": {
                "application/json": {
                    "example": {"detail": "Only a team lead can mark tasks as completed after verification."}
                }
            },
        },
    },
)
async def batch_update(
    request: Request,
    team_member_id: str,
    payload: TaskBatchUpdateRequest,
    store=Depends(get_store),
    principal: Principal = Depends(get_current_principal),
):
    """Apply one update to every non-deleted task of an assignee."""
    logger.info("Batch updating tasks", team_member_id=team_member_id, method=request.method, path=request.url.path)
    updated = await task_flow.batch_update(store, principal, team_member_id, payload.model_dump(exclude_none=True))
    return {"message": "Tasks updated successfully", "updated_count": updated}


##########################


@ROUTER_TASK.delete("/tasks/delete/{team_member_id}")
async def batch_delete(
    request: Request,
    team_member_id: str,
    store=Depends(get_store),
    principal: Principal = Depends(get_current_principal),
):
    """Permanently delete every task of an assignee."""
    logger.info("Batch deleting tasks", team_member_id=team_member_id, method=request.method, path=request.url.path)
    deleted = await task_flow.batch_delete(store, principal, team_member_id)
    return {"message": "Tasks deleted successfully", "deleted_count": deleted}
