"""
Task query and mutation services.

Every function takes the authenticated Caller explicitly and scopes all
reads and writes to rows owned by caller.subject_id. Lookups that match
no owned row return None; "not found" is not an error here.

Mutations are single conditional statements
(UPDATE/DELETE ... WHERE id = ? AND user_id = ?), so ownership and the
toggled value are checked by the database in the same statement that
writes them.
"""
import logging
import math
from dataclasses import dataclass
from typing import Optional

from django.conf import settings
from django.db.models import Case, Value, When
from django.utils import timezone

from apps.core.errors import ApiError, ErrorCode
from apps.core.trace import trace
from apps.identity.auth import Caller
from .dtos import Pagination, TaskIn, TaskPage
from .models import Task, TaskFilter

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10

PATCHABLE_FIELDS = ('title', 'description', 'completed')
# Fields that may be cleared by sending null
NULLABLE_FIELDS = ('description',)


@dataclass(frozen=True)
class TaskQuery:
    """Filters for list_tasks()."""
    text: Optional[str] = None
    filter: Optional[str] = None
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT


def _require_subject(caller: Optional[Caller]) -> str:
    if caller is None or not caller.subject_id:
        raise ApiError(ErrorCode.UNAUTHENTICATED, "Unauthenticated")
    return caller.subject_id


def _owned(caller: Caller, task_id: int):
    return Task.objects.filter(id=task_id, user_id=_require_subject(caller))


def build_pagination(page: int, limit: int, total: int) -> Pagination:
    total_pages = math.ceil(total / limit)
    return Pagination(
        page=page,
        limit=limit,
        total=total,
        total_pages=total_pages,
        has_next=page < total_pages,
        has_prev=page > 1,
    )


def list_tasks(caller: Caller, query: Optional[TaskQuery] = None) -> TaskPage:
    """
    One page of the caller's tasks, newest first.

    - text: case-insensitive substring match on title; blank means no filter
    - filter: "done", "pending", or "all"/None for no completion filter
    - page/limit: 1-based page of `limit` rows

    Total and the page slice come from two queries and may disagree under
    concurrent writes.
    """
    user_id = _require_subject(caller)
    query = query or TaskQuery()

    if query.page < 1:
        raise ApiError(ErrorCode.INVALID_ARGUMENT, "page must be at least 1")
    if query.limit < 1:
        raise ApiError(ErrorCode.INVALID_ARGUMENT, "limit must be at least 1")

    queryset = Task.objects.filter(user_id=user_id)

    search = (query.text or '').strip()
    if search:
        queryset = queryset.filter(title__icontains=search)

    if query.filter in (None, '', TaskFilter.ALL):
        pass
    elif query.filter == TaskFilter.DONE:
        queryset = queryset.filter(completed=True)
    elif query.filter == TaskFilter.PENDING:
        queryset = queryset.filter(completed=False)
    else:
        raise ApiError(ErrorCode.INVALID_ARGUMENT, f"Unknown filter: {query.filter}")

    offset = (query.page - 1) * query.limit

    with trace("tasks.list.count"):
        total = queryset.count()

    with trace("tasks.list.fetch"):
        tasks = list(queryset.order_by('-created_at', 'id')[offset:offset + query.limit])

    return TaskPage(tasks=tasks, pagination=build_pagination(query.page, query.limit, total))


def get_task(caller: Caller, task_id: int) -> Optional[Task]:
    with trace("tasks.get"):
        return _owned(caller, task_id).first()


def create_task(caller: Caller, payload: TaskIn) -> Task:
    user_id = _require_subject(caller)

    completed = payload.completed
    if completed is None:
        completed = settings.TASKS_DEFAULT_COMPLETED

    with trace("tasks.create"):
        task = Task.objects.create(
            title=payload.title,
            description=payload.description,
            completed=completed,
            user_id=user_id,
        )
    logger.info(f"Created task {task.id} for {user_id}")
    return task


def update_task(caller: Caller, task_id: int, changes: dict) -> Optional[Task]:
    """
    Apply a partial update to an owned task.

    `changes` holds only the fields the client sent. None clears
    description and is ignored for title/completed.
    """
    queryset = _owned(caller, task_id)

    fields = {}
    for name in PATCHABLE_FIELDS:
        if name not in changes:
            continue
        value = changes[name]
        if value is None and name not in NULLABLE_FIELDS:
            continue
        fields[name] = value

    with trace("tasks.update"):
        updated = queryset.update(updated_at=timezone.now(), **fields)
        if not updated:
            return None
        return queryset.first()


def toggle_task(caller: Caller, task_id: int) -> Optional[Task]:
    """Flip `completed` on an owned task, in SQL."""
    queryset = _owned(caller, task_id)

    with trace("tasks.toggle"):
        updated = queryset.update(
            completed=Case(
                When(completed=True, then=Value(False)),
                default=Value(True),
            ),
            updated_at=timezone.now(),
        )
        if not updated:
            return None
        return queryset.first()


def delete_task(caller: Caller, task_id: int) -> Optional[Task]:
    """
    Hard-delete an owned task and return its last state.

    Deleting a task that is already gone returns None.
    """
    queryset = _owned(caller, task_id)

    with trace("tasks.delete"):
        task = queryset.first()
        if task is None:
            return None
        deleted, _ = queryset.delete()

    if not deleted:
        return None
    logger.info(f"Deleted task {task_id} for {caller.subject_id}")
    return task
