# Task endpoints. Handlers stay thin: parse, call TaskService, shape the response.
# Domain errors propagate to the handlers in api/errors.py. Sync handlers run in
# FastAPI's threadpool, one unit of work per request.

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Request, Response, status

from ..api.deps import get_task_service, parse_task_filter
from ..auth import get_current_owner
from ..domain import TaskFilter
from ..models import StatusChange, TaskCreate, TaskOut, TaskUpdate
from ..rate_limit import api_limit
from ..service import TaskService

router = APIRouter(prefix="/tasks", tags=["tasks"])


@router.get("/", response_model=List[TaskOut])
@api_limit
def list_tasks(
    request: Request,
    response: Response,
    task_filter: TaskFilter = Depends(parse_task_filter),
    service: TaskService = Depends(get_task_service),
    owner_id: UUID = Depends(get_current_owner),
):
    return [TaskOut.from_task(t) for t in service.list_tasks(owner_id, task_filter)]


@router.post("/", response_model=TaskOut, status_code=status.HTTP_201_CREATED)
@api_limit
def create_task(
    request: Request,
    response: Response,
    item: TaskCreate,
    service: TaskService = Depends(get_task_service),
    owner_id: UUID = Depends(get_current_owner),
):
    task = service.create_task(owner_id, item.title, item.description)
    response.headers["Location"] = f"/api/v1/tasks/{task.id}"
    return TaskOut.from_task(task)


@router.get("/{task_id}", response_model=TaskOut)
@api_limit
def get_task(
    request: Request,
    response: Response,
    task_id: UUID,
    service: TaskService = Depends(get_task_service),
    owner_id: UUID = Depends(get_current_owner),
):
    return TaskOut.from_task(service.get_task(owner_id, task_id))


@router.patch("/{task_id}", response_model=TaskOut)
@api_limit
def patch_task(
    request: Request,
    response: Response,
    task_id: UUID,
    item: TaskUpdate,
    service: TaskService = Depends(get_task_service),
    owner_id: UUID = Depends(get_current_owner),
):
    task = service.update_task(owner_id, task_id, title=item.title, description=item.description)
    return TaskOut.from_task(task)


@router.patch("/{task_id}/status", response_model=TaskOut)
@api_limit
def change_status(
    request: Request,
    response: Response,
    task_id: UUID,
    item: StatusChange,
    service: TaskService = Depends(get_task_service),
    owner_id: UUID = Depends(get_current_owner),
):
    return TaskOut.from_task(service.change_status(owner_id, task_id, item.status))


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
@api_limit
def delete_task(
    request: Request,
    task_id: UUID,
    service: TaskService = Depends(get_task_service),
    owner_id: UUID = Depends(get_current_owner),
):
    service.delete_task(owner_id, task_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
