"""
Tests for the task query and mutation services.
"""
from datetime import timedelta

from django.test import TestCase, override_settings
from django.utils import timezone

from apps.core.errors import ApiError, ErrorCode
from apps.identity.auth import Caller
from apps.tasks.dtos import TaskIn
from apps.tasks.models import Task
from apps.tasks.services import (
    TaskQuery,
    build_pagination,
    create_task,
    delete_task,
    get_task,
    list_tasks,
    toggle_task,
    update_task,
)


class PaginationMathTest(TestCase):
    """Test pagination metadata calculation."""

    def test_total_pages_rounds_up(self):
        """Test totalPages = ceil(total / limit)."""
        cases = [
            (0, 10, 0),
            (1, 10, 1),
            (10, 10, 1),
            (11, 10, 2),
            (15, 5, 3),
            (7, 1, 7),
        ]
        for total, limit, expected in cases:
            with self.subTest(total=total, limit=limit):
                self.assertEqual(build_pagination(1, limit, total).total_pages, expected)

    def test_next_and_prev_flags(self):
        """Test hasNext/hasPrev on first, middle and last page."""
        first = build_pagination(1, 5, 15)
        self.assertFalse(first.has_prev)
        self.assertTrue(first.has_next)

        middle = build_pagination(2, 5, 15)
        self.assertTrue(middle.has_prev)
        self.assertTrue(middle.has_next)

        last = build_pagination(3, 5, 15)
        self.assertTrue(last.has_prev)
        self.assertFalse(last.has_next)

    def test_page_past_the_end(self):
        pagination = build_pagination(5, 5, 15)
        self.assertFalse(pagination.has_next)
        self.assertTrue(pagination.has_prev)


class ListTasksTest(TestCase):
    """Test listing with text search, filters and pagination."""

    def setUp(self):
        self.alice = Caller(subject_id="user_alice")
        self.bob = Caller(subject_id="user_bob")

    def _make(self, caller, title, completed=True, **extra):
        return Task.objects.create(user_id=caller.subject_id, title=title, completed=completed, **extra)

    def test_requires_caller(self):
        with self.assertRaises(ApiError) as ctx:
            list_tasks(None)
        self.assertEqual(ctx.exception.code, ErrorCode.UNAUTHENTICATED)

    def test_defaults(self):
        """Test page 1 and limit 10 when no query is given."""
        self._make(self.alice, "One")
        page = list_tasks(self.alice)
        self.assertEqual(page.pagination.page, 1)
        self.assertEqual(page.pagination.limit, 10)
        self.assertEqual(page.pagination.total, 1)

    def test_second_page_of_fifteen(self):
        """Test page 2 of 15 tasks with limit 5."""
        for i in range(15):
            create_task(self.alice, TaskIn(title=f"Task {i}"))

        page = list_tasks(self.alice, TaskQuery(page=2, limit=5))

        self.assertEqual(len(page.tasks), 5)
        self.assertEqual(page.pagination.total, 15)
        self.assertEqual(page.pagination.total_pages, 3)
        self.assertTrue(page.pagination.has_next)
        self.assertTrue(page.pagination.has_prev)

    def test_pending_filter_with_everything_done(self):
        """Test an empty pending page reports zero pages."""
        for i in range(3):
            create_task(self.alice, TaskIn(title=f"Task {i}"))

        page = list_tasks(self.alice, TaskQuery(filter="pending"))

        self.assertEqual(page.tasks, [])
        self.assertEqual(page.pagination.total, 0)
        self.assertEqual(page.pagination.total_pages, 0)
        self.assertFalse(page.pagination.has_next)
        self.assertFalse(page.pagination.has_prev)

    def test_completion_filters(self):
        done = self._make(self.alice, "Done", completed=True)
        pending = self._make(self.alice, "Pending", completed=False)

        self.assertEqual(list_tasks(self.alice, TaskQuery(filter="done")).tasks, [done])
        self.assertEqual(list_tasks(self.alice, TaskQuery(filter="pending")).tasks, [pending])
        self.assertEqual(len(list_tasks(self.alice, TaskQuery(filter="all")).tasks), 2)

    def test_unknown_filter_is_invalid(self):
        with self.assertRaises(ApiError) as ctx:
            list_tasks(self.alice, TaskQuery(filter="archived"))
        self.assertEqual(ctx.exception.code, ErrorCode.INVALID_ARGUMENT)

    def test_text_search_is_case_insensitive_substring(self):
        """Test search matches any casing and trims the query."""
        milk = self._make(self.alice, "Buy Milk")
        self._make(self.alice, "Walk the dog")

        for text in ("milk", "MILK", "  Mil  ", "uy m"):
            with self.subTest(text=text):
                self.assertEqual(list_tasks(self.alice, TaskQuery(text=text)).tasks, [milk])

    def test_blank_text_is_ignored(self):
        self._make(self.alice, "Buy Milk")
        self._make(self.alice, "Walk the dog")

        self.assertEqual(list_tasks(self.alice, TaskQuery(text="   ")).pagination.total, 2)

    def test_text_and_completion_filters_combine(self):
        """Test text and completion filters apply together."""
        self._make(self.alice, "Buy milk", completed=False)
        self._make(self.alice, "Buy bread", completed=True)
        self._make(self.alice, "Walk", completed=False)

        page = list_tasks(self.alice, TaskQuery(text="buy", filter="pending"))

        self.assertEqual([t.title for t in page.tasks], ["Buy milk"])

    def test_never_returns_other_users_tasks(self):
        self._make(self.alice, "Alice task")
        self._make(self.bob, "Bob task")

        titles = [t.title for t in list_tasks(self.bob).tasks]
        self.assertEqual(titles, ["Bob task"])

    def test_newest_first(self):
        """Test tasks are ordered by creation time, newest first."""
        now = timezone.now()
        old = self._make(self.alice, "Old")
        new = self._make(self.alice, "New")
        Task.objects.filter(id=old.id).update(created_at=now - timedelta(hours=1))
        Task.objects.filter(id=new.id).update(created_at=now)

        self.assertEqual([t.id for t in list_tasks(self.alice).tasks], [new.id, old.id])

    def test_equal_timestamps_order_by_id(self):
        """Test ties on created_at are broken by id."""
        now = timezone.now()
        first = self._make(self.alice, "A")
        second = self._make(self.alice, "B")
        Task.objects.filter(id__in=[first.id, second.id]).update(created_at=now)

        self.assertEqual([t.id for t in list_tasks(self.alice).tasks], [first.id, second.id])

    def test_pages_do_not_overlap(self):
        """Test consecutive pages never repeat a task."""
        now = timezone.now()
        for i in range(6):
            self._make(self.alice, f"Task {i}")
        Task.objects.filter(user_id=self.alice.subject_id).update(created_at=now)

        seen = []
        for page_number in (1, 2, 3):
            seen.extend(t.id for t in list_tasks(self.alice, TaskQuery(page=page_number, limit=2)).tasks)

        self.assertEqual(len(seen), 6)
        self.assertEqual(len(set(seen)), 6)

    def test_page_below_one_is_invalid(self):
        """Test page 0 and negative pages are rejected."""
        for page_number in (0, -1):
            with self.subTest(page=page_number):
                with self.assertRaises(ApiError) as ctx:
                    list_tasks(self.alice, TaskQuery(page=page_number))
                self.assertEqual(ctx.exception.code, ErrorCode.INVALID_ARGUMENT)

    def test_limit_below_one_is_invalid(self):
        with self.assertRaises(ApiError) as ctx:
            list_tasks(self.alice, TaskQuery(limit=0))
        self.assertEqual(ctx.exception.code, ErrorCode.INVALID_ARGUMENT)


class SingleTaskTest(TestCase):
    """Test create, get, update, toggle and delete."""

    def setUp(self):
        self.alice = Caller(subject_id="user_alice")
        self.bob = Caller(subject_id="user_bob")

    def test_create_sets_owner_from_caller(self):
        task = create_task(self.alice, TaskIn(title="Write report"))
        self.assertEqual(task.user_id, "user_alice")

    def test_create_requires_caller(self):
        with self.assertRaises(ApiError) as ctx:
            create_task(None, TaskIn(title="x"))
        self.assertEqual(ctx.exception.code, ErrorCode.UNAUTHENTICATED)
        self.assertEqual(Task.objects.count(), 0)

    def test_create_accepts_empty_title(self):
        task = create_task(self.alice, TaskIn(title=""))
        self.assertEqual(task.title, "")

    def test_create_keeps_special_characters_and_long_titles(self):
        """Test unicode, markup and long titles are stored unchanged."""
        title = "Ünïcødé <b>&</b> 🚀 " + "x" * 5000
        task = create_task(self.alice, TaskIn(title=title, description="línea\nnueva"))
        task.refresh_from_db()
        self.assertEqual(task.title, title)
        self.assertEqual(task.description, "línea\nnueva")

    def test_create_without_description_stores_null(self):
        task = create_task(self.alice, TaskIn(title="No description"))
        task.refresh_from_db()
        self.assertIsNone(task.description)

    def test_create_uses_configured_default_completed(self):
        """Test TASKS_DEFAULT_COMPLETED applies when completed is omitted."""
        task = create_task(self.alice, TaskIn(title="Default"))
        self.assertTrue(task.completed)

        with override_settings(TASKS_DEFAULT_COMPLETED=False):
            task = create_task(self.alice, TaskIn(title="Flipped default"))
        self.assertFalse(task.completed)

    def test_round_trip(self):
        """Test a created task reads back with the same fields."""
        created = create_task(self.alice, TaskIn(title="X", description="Y", completed=False))

        fetched = get_task(self.alice, created.id)

        self.assertEqual(fetched.id, created.id)
        self.assertEqual(fetched.title, "X")
        self.assertEqual(fetched.description, "Y")
        self.assertFalse(fetched.completed)
        self.assertEqual(fetched.user_id, "user_alice")
        self.assertIsNotNone(fetched.created_at)
        self.assertIsNotNone(fetched.updated_at)

    def test_get_missing_returns_none(self):
        self.assertIsNone(get_task(self.alice, 999999))

    def test_update_is_partial(self):
        """Test fields not in the patch keep their value."""
        task = create_task(self.alice, TaskIn(title="Old", description="Keep me", completed=False))

        updated = update_task(self.alice, task.id, {"title": "New"})

        self.assertEqual(updated.title, "New")
        self.assertEqual(updated.description, "Keep me")
        self.assertFalse(updated.completed)
        self.assertGreaterEqual(updated.updated_at, task.updated_at)

    def test_update_null_clears_description_only(self):
        """Test null clears description and is ignored elsewhere."""
        task = create_task(self.alice, TaskIn(title="Title", description="Desc", completed=False))

        updated = update_task(self.alice, task.id, {"title": None, "description": None, "completed": None})

        self.assertEqual(updated.title, "Title")
        self.assertIsNone(updated.description)
        self.assertFalse(updated.completed)

    def test_update_missing_returns_none(self):
        self.assertIsNone(update_task(self.alice, 999999, {"title": "x"}))

    def test_toggle_negates(self):
        """Test toggle flips completed each time."""
        task = create_task(self.alice, TaskIn(title="Toggle me", completed=False))

        self.assertTrue(toggle_task(self.alice, task.id).completed)
        self.assertFalse(toggle_task(self.alice, task.id).completed)

    def test_toggle_missing_returns_none(self):
        self.assertIsNone(toggle_task(self.alice, 999999))

    def test_delete_returns_last_state_then_none(self):
        """Test delete returns the row once, then None."""
        task = create_task(self.alice, TaskIn(title="Bye"))

        deleted = delete_task(self.alice, task.id)
        self.assertEqual(deleted.id, task.id)
        self.assertEqual(deleted.title, "Bye")
        self.assertFalse(Task.objects.filter(id=task.id).exists())

        self.assertIsNone(delete_task(self.alice, task.id))

    def test_other_users_cannot_see_or_change_task(self):
        """Test every operation is scoped to the owner."""
        task = create_task(self.alice, TaskIn(title="Private", completed=False))

        self.assertIsNone(get_task(self.bob, task.id))
        self.assertIsNone(update_task(self.bob, task.id, {"title": "Hijacked"}))
        self.assertIsNone(toggle_task(self.bob, task.id))
        self.assertIsNone(delete_task(self.bob, task.id))

        task.refresh_from_db()
        self.assertEqual(task.title, "Private")
        self.assertFalse(task.completed)
