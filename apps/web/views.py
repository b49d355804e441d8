"""
Server-rendered task pages.

Pages read and write through TaskQueries (cached API client), never the
ORM directly. The session is the identity-provider token stored in the
httpOnly access_token cookie.
"""
import logging
import os
from functools import wraps
from urllib.parse import urlencode

from django.conf import settings
from django.contrib import messages
from django.http import HttpRequest, HttpResponse
from django.shortcuts import redirect, render
from django.urls import reverse
from django.utils.http import url_has_allowed_host_and_scheme
from django.views.decorators.http import require_http_methods, require_POST

from apps.core.errors import ApiError, ErrorCode
from apps.identity.auth import ACCESS_TOKEN_COOKIE, caller_from_token, get_cookie_caller
from apps.identity.jwt_auth import get_access_token_cookie_settings
from .forms import TaskFilterForm, TaskForm, TokenLoginForm
from .pagination import ELLIPSIS, page_numbers
from .queries import MutationFailed, build_queries

logger = logging.getLogger(__name__)


def is_production() -> bool:
    """Check if running in production (Lambda or DEBUG=False)."""
    return bool(os.getenv('AWS_LAMBDA_FUNCTION_NAME')) or not settings.DEBUG


def _unauthenticated_redirect(request: HttpRequest):
    return redirect(f"{reverse('web:unauthenticated')}?{urlencode({'from': request.get_full_path()})}")


def session_required(view_func):
    """
    Resolve request.caller from the session cookie or send the visitor
    to the unauthenticated page.
    """
    @wraps(view_func)
    def wrapper(request: HttpRequest, *args, **kwargs):
        caller = get_cookie_caller(request)
        if caller is None:
            return _unauthenticated_redirect(request)
        request.caller = caller
        return view_func(request, *args, **kwargs)
    return wrapper


def _safe_next(request: HttpRequest, fallback: str) -> str:
    target = request.POST.get('next') or request.GET.get('next')
    if target and url_has_allowed_host_and_scheme(target, allowed_hosts={request.get_host()}):
        return target
    return fallback


def _list_url(filters: dict) -> str:
    params = {k: v for k, v in filters.items() if v not in (None, '')}
    url = reverse('web:tasks')
    return f"{url}?{urlencode(params)}" if params else url


# =============================================================================
# Public pages
# =============================================================================

def home(request: HttpRequest) -> HttpResponse:
    return render(request, 'web/home.html', {'signed_in': get_cookie_caller(request) is not None})


def unauthenticated(request: HttpRequest) -> HttpResponse:
    return render(request, 'web/unauthenticated.html', {'from_path': request.GET.get('from', '')}, status=401)


@require_http_methods(['GET', 'POST'])
def login_view(request: HttpRequest) -> HttpResponse:
    """
    Accepts a token issued by the identity provider and stores it in the
    session cookie after verifying it.
    """
    form = TokenLoginForm(request.POST or None)

    if request.method == 'POST' and form.is_valid():
        token = form.cleaned_data['token']
        caller = caller_from_token(token)
        if caller is None:
            form.add_error('token', 'Invalid or expired token')
        else:
            logger.info(f"Web session started for {caller.subject_id}")
            response = redirect(_safe_next(request, reverse('web:tasks')))
            response.set_cookie(ACCESS_TOKEN_COOKIE, token, **get_access_token_cookie_settings(is_production()))
            return response

    return render(request, 'web/login.html', {'form': form, 'next': request.GET.get('next', '')})


@require_POST
def logout_view(request: HttpRequest) -> HttpResponse:
    response = redirect('web:home')
    response.delete_cookie(ACCESS_TOKEN_COOKIE, path='/')
    return response


# =============================================================================
# Task pages
# =============================================================================

@session_required
def tasks_page(request: HttpRequest) -> HttpResponse:
    filters = TaskFilterForm(request.GET).cleaned_filters()

    context = {
        'filters': filters,
        'active_filter': filters['filter'] or 'all',
        'list_url': _list_url(filters),
        'tasks': [],
        'pagination': None,
        'page_links': [],
        'ellipsis': ELLIPSIS,
        'error': None,
        'editing': None,
    }

    with build_queries(request.caller) as queries:
        try:
            result = queries.tasks(text=filters['text'], filter=filters['filter'], page=filters['page'])
            context['tasks'] = result['tasks']
            context['pagination'] = result['pagination']

            edit_id = request.GET.get('edit')
            if edit_id and edit_id.isdigit():
                context['editing'] = queries.task(edit_id)
        except ApiError as e:
            if e.code == ErrorCode.UNAUTHENTICATED:
                return _unauthenticated_redirect(request)
            logger.warning(f"Could not load tasks for {request.caller.subject_id}: {e.message}")
            context['error'] = e.message

    pagination = context['pagination']
    if pagination and pagination.get('totalPages', 0) > 1:
        context['page_links'] = [
            {'page': p, 'url': _list_url({**filters, 'page': p}) if p != ELLIPSIS else None}
            for p in page_numbers(pagination['page'], pagination['totalPages'])
        ]
        if pagination.get('hasPrev'):
            context['prev_url'] = _list_url({**filters, 'page': pagination['page'] - 1})
        if pagination.get('hasNext'):
            context['next_url'] = _list_url({**filters, 'page': pagination['page'] + 1})

    editing = context['editing']
    if editing:
        context['form'] = TaskForm(initial={
            'title': editing['title'],
            'description': editing.get('description') or '',
            'completed': editing['completed'],
        })
    else:
        context['form'] = TaskForm()

    return render(request, 'web/tasks.html', context)


def _run_mutation(request: HttpRequest, action, success_message: str) -> HttpResponse:
    back = _safe_next(request, reverse('web:tasks'))
    with build_queries(request.caller) as queries:
        try:
            action(queries)
        except ApiError as e:
            if e.code == ErrorCode.UNAUTHENTICATED:
                return _unauthenticated_redirect(request)
            logger.warning(f"Task mutation failed for {request.caller.subject_id}: {e.message}")
            messages.error(request, e.message)
            return redirect(back)
        except MutationFailed as e:
            messages.error(request, str(e))
            return redirect(back)

    messages.success(request, success_message)
    return redirect(back)


@require_POST
@session_required
def create_task_view(request: HttpRequest) -> HttpResponse:
    form = TaskForm(request.POST)
    if not form.is_valid():
        for errors in form.errors.values():
            for error in errors:
                messages.error(request, error)
        return redirect(_safe_next(request, reverse('web:tasks')))

    data = form.cleaned_data
    return _run_mutation(
        request,
        lambda q: q.create_task(data['title'], data['description'] or None, data['completed']),
        "Task created",
    )


@require_POST
@session_required
def edit_task_view(request: HttpRequest, task_id: int) -> HttpResponse:
    form = TaskForm(request.POST)
    if not form.is_valid():
        for errors in form.errors.values():
            for error in errors:
                messages.error(request, error)
        return redirect(_safe_next(request, reverse('web:tasks')))

    data = form.cleaned_data
    changes = {
        'title': data['title'],
        'description': data['description'] or None,
        'completed': data['completed'],
    }
    return _run_mutation(request, lambda q: q.update_task(task_id, changes), "Task updated")


@require_POST
@session_required
def toggle_task_view(request: HttpRequest, task_id: int) -> HttpResponse:
    return _run_mutation(request, lambda q: q.toggle_task(task_id), "Task updated")


@require_POST
@session_required
def delete_task_view(request: HttpRequest, task_id: int) -> HttpResponse:
    return _run_mutation(request, lambda q: q.delete_task(task_id), "Task deleted")
