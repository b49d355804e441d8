"""
Cached data fetching for the web frontend.

Reads go through QueryCache, keyed by (resource, operation, filters) and
scoped to the calling subject. After a successful mutation every cached
list (any filter combination) is invalidated together with the detail
entry of the affected task; deletes drop the detail entry.

Prefix invalidation uses generation counters: each stored key embeds the
generation of every prefix of its query key, so bumping the counter of
("tasks", "list") orphans all list entries at once.
"""
import hashlib
import logging
from typing import Any, Callable, Dict, Optional, Tuple

from django.conf import settings
from django.core.cache import caches

from apps.core.errors import ApiError, ErrorCode
from apps.identity.auth import Caller
from .client import TasksClient

logger = logging.getLogger(__name__)

_MISSING = object()


class task_keys:
    """Query keys for task data."""
    all = ('tasks',)

    @staticmethod
    def lists() -> Tuple:
        return task_keys.all + ('list',)

    @staticmethod
    def list(filters: Dict[str, Any]) -> Tuple:
        return task_keys.lists() + (tuple(sorted(filters.items())),)

    @staticmethod
    def details() -> Tuple:
        return task_keys.all + ('detail',)

    @staticmethod
    def detail(task_id) -> Tuple:
        return task_keys.details() + (str(task_id),)


def _digest(key: Tuple) -> str:
    return hashlib.sha1(repr(key).encode('utf-8')).hexdigest()


class QueryCache:
    """
    Per-subject view over a Django cache backend.
    """

    def __init__(self, subject_id: str, cache_alias: str = 'default', timeout: Optional[int] = None):
        self.subject_id = subject_id
        self.cache = caches[cache_alias]
        self.timeout = timeout if timeout is not None else settings.TASKS_CACHE_TIMEOUT
        self._namespace = f"tasks-client:{_digest((subject_id,))}"

    def _generation_key(self, prefix: Tuple) -> str:
        return f"{self._namespace}:gen:{_digest(prefix)}"

    def _storage_key(self, key: Tuple) -> str:
        prefixes = [key[:i] for i in range(1, len(key) + 1)]
        generation_keys = [self._generation_key(p) for p in prefixes]
        stored = self.cache.get_many(generation_keys)
        generations = '.'.join(str(stored.get(k, 0)) for k in generation_keys)
        return f"{self._namespace}:q:{generations}:{_digest(key)}"

    def get(self, key: Tuple, default=None):
        return self.cache.get(self._storage_key(key), default)

    def set(self, key: Tuple, value) -> None:
        self.cache.set(self._storage_key(key), value, self.timeout)

    def fetch(self, key: Tuple, loader: Callable[[], Any]):
        """Return the cached value for `key`, loading and storing it on a miss."""
        value = self.get(key, _MISSING)
        if value is not _MISSING:
            return value
        logger.debug(f"Cache miss for {key[:2]} ({self.subject_id})")
        value = loader()
        self.set(key, value)
        return value

    def invalidate(self, prefix: Tuple) -> None:
        """Invalidate every entry whose key starts with `prefix`."""
        generation_key = self._generation_key(prefix)
        # add() is a no-op when the counter exists, so concurrent bumps both land
        self.cache.add(generation_key, 0, None)
        try:
            self.cache.incr(generation_key)
        except ValueError:
            # Evicted between add() and incr()
            self.cache.set(generation_key, 1, None)

    def remove(self, key: Tuple) -> None:
        self.cache.delete(self._storage_key(key))


class MutationFailed(Exception):
    """The API accepted a mutation but returned no task."""


class TaskQueries:
    """
    Task reads and mutations for one signed-in subject.
    """

    def __init__(self, client: TasksClient, cache: QueryCache, default_limit: Optional[int] = None):
        self.client = client
        self.cache = cache
        self.default_limit = default_limit or settings.TASKS_PAGE_SIZE

    def close(self) -> None:
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def tasks(
        self,
        text: Optional[str] = None,
        filter: Optional[str] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        {"tasks": [...], "pagination": {...}} for the given filters.
        """
        filters = {
            'text': (text or '').strip() or None,
            'filter': None if filter in (None, '', 'all') else filter,
            'page': page,
            'limit': limit or self.default_limit,
        }

        def load():
            response = self.client.get_tasks(**filters)
            return {
                'tasks': response.get('data') or [],
                'pagination': response.get('pagination'),
            }

        return self.cache.fetch(task_keys.list(filters), load)

    def task(self, task_id) -> Optional[Dict[str, Any]]:
        return self.cache.fetch(
            task_keys.detail(task_id),
            lambda: self.client.get_task(task_id).get('data'),
        )

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def create_task(self, title: str, description: Optional[str] = None, completed: Optional[bool] = None) -> Dict[str, Any]:
        payload = {'title': title, 'description': description}
        if completed is not None:
            payload['completed'] = completed

        task = self.client.create_task(payload).get('data')
        if not task:
            raise MutationFailed("Failed to create task")

        self.cache.invalidate(task_keys.lists())
        return task

    def update_task(self, task_id, data: Dict[str, Any]) -> Dict[str, Any]:
        task = self.client.update_task(task_id, data).get('data')
        if not task:
            raise MutationFailed("Failed to update task")

        self.cache.invalidate(task_keys.detail(task_id))
        self.cache.invalidate(task_keys.lists())
        return task

    def toggle_task(self, task_id) -> Dict[str, Any]:
        task = self.client.toggle_task(task_id).get('data')
        if not task:
            raise MutationFailed("Failed to toggle task")

        self.cache.invalidate(task_keys.detail(task_id))
        self.cache.invalidate(task_keys.lists())
        return task

    def delete_task(self, task_id) -> Dict[str, Any]:
        task = self.client.delete_task(task_id).get('data')
        if not task:
            raise MutationFailed("Failed to delete task")

        self.cache.remove(task_keys.detail(task_id))
        self.cache.invalidate(task_keys.lists())
        return task


def build_queries(caller: Optional[Caller]) -> TaskQueries:
    """TaskQueries for a signed-in caller, talking to TASKS_API_BASE_URL."""
    if caller is None:
        raise ApiError(ErrorCode.UNAUTHENTICATED, "Unauthenticated")
    return TaskQueries(TasksClient(caller.token), QueryCache(caller.subject_id))
