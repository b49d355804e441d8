"""
HTTP client for the Tasks API.

Thin wrapper over httpx that sends the caller's bearer token and turns
error responses back into ApiError with the server's error code, so the
frontend sees the same taxonomy as the API.
"""
import logging
from typing import Any, Dict, Optional

import httpx
from django.conf import settings

from apps.core.errors import ApiError, ErrorCode

logger = logging.getLogger(__name__)


class TasksClient:

    def __init__(
        self,
        token: str,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self._http = httpx.Client(
            base_url=base_url or settings.TASKS_API_BASE_URL,
            timeout=timeout if timeout is not None else settings.TASKS_API_TIMEOUT,
            headers={'Authorization': f'Bearer {token}'},
            transport=transport,
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    # -------------------------------------------------------------------------

    def get_tasks(
        self,
        text: Optional[str] = None,
        filter: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Dict[str, Any]:
        params = {'page': page, 'limit': limit}
        if text:
            params['text'] = text
        if filter:
            params['filter'] = filter
        return self._request('GET', '/api/tasks', params=params)

    def get_task(self, task_id) -> Dict[str, Any]:
        return self._request('GET', f'/api/tasks/{task_id}')

    def create_task(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return self._request('POST', '/api/tasks', json=data)

    def update_task(self, task_id, data: Dict[str, Any]) -> Dict[str, Any]:
        return self._request('PUT', f'/api/tasks/{task_id}', json=data)

    def toggle_task(self, task_id) -> Dict[str, Any]:
        return self._request('PATCH', f'/api/tasks/{task_id}/toggle')

    def delete_task(self, task_id) -> Dict[str, Any]:
        return self._request('DELETE', f'/api/tasks/{task_id}')

    # -------------------------------------------------------------------------

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        try:
            response = self._http.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            logger.warning(f"{method} {path} timed out: {e}")
            raise ApiError(ErrorCode.DEADLINE_EXCEEDED, "Request timed out")
        except httpx.TransportError as e:
            logger.warning(f"{method} {path} failed: {e}")
            raise ApiError(ErrorCode.UNAVAILABLE, "Service temporarily unavailable")

        if response.is_success:
            return response.json()

        raise _error_from_response(response)


def _error_from_response(response: httpx.Response) -> ApiError:
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}

    try:
        code = ErrorCode(body.get('code'))
    except ValueError:
        code = ErrorCode.UNAUTHENTICATED if response.status_code == 401 else ErrorCode.INTERNAL

    message = body.get('message') or response.reason_phrase or "Request failed"
    return ApiError(code, message, body.get('details'))
