"""
Tasks API endpoints.

All routes require a bearer token (JWTBearer on the NinjaAPI instance);
request.auth is the verified Caller and the only source of the owner id.
Lookups by id that match no owned task return {"data": null}.
"""
from dataclasses import asdict

from ninja import Query, Router

from . import services
from .dtos import (
    TaskIn,
    TaskListQuery,
    TaskPatch,
    TaskResponse,
    TasksResponse,
)

router = Router(tags=["Tasks"])


@router.post("", response=TaskResponse, by_alias=True)
def create_task_api(request, payload: TaskIn):
    """Create a task owned by the caller."""
    task = services.create_task(request.auth, payload)
    return {"data": task}


@router.get("", response=TasksResponse, by_alias=True)
def list_tasks_api(request, filters: TaskListQuery = Query(...)):
    """
    List the caller's tasks, newest first.

    Query Parameters:
    - text: case-insensitive search in title
    - filter: all | done | pending
    - page: 1-based page number (default 1)
    - limit: page size (default 10)
    """
    page = services.list_tasks(
        request.auth,
        services.TaskQuery(
            text=filters.text,
            filter=filters.filter,
            page=filters.page,
            limit=filters.limit,
        ),
    )
    return {"data": page.tasks, "pagination": asdict(page.pagination)}


@router.get("/{task_id}", response=TaskResponse, by_alias=True)
def get_task_api(request, task_id: int):
    return {"data": services.get_task(request.auth, task_id)}


@router.put("/{task_id}", response=TaskResponse, by_alias=True)
def update_task_api(request, task_id: int, payload: TaskPatch):
    """Partially update a task; omitted fields keep their value."""
    changes = payload.model_dump(exclude_unset=True)
    return {"data": services.update_task(request.auth, task_id, changes)}


@router.patch("/{task_id}/toggle", response=TaskResponse, by_alias=True)
def toggle_task_api(request, task_id: int):
    return {"data": services.toggle_task(request.auth, task_id)}


@router.delete("/{task_id}", response=TaskResponse, by_alias=True)
def delete_task_api(request, task_id: int):
    return {"data": services.delete_task(request.auth, task_id)}
