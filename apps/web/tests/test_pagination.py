from django.test import SimpleTestCase

from apps.web.pagination import ELLIPSIS, page_numbers


class PageNumbersTest(SimpleTestCase):
    """Test the page-number strip with ellipses."""

    def test_few_pages_are_all_shown(self):
        self.assertEqual(page_numbers(1, 1), [1])
        self.assertEqual(page_numbers(3, 5), [1, 2, 3, 4, 5])

    def test_no_pages(self):
        self.assertEqual(page_numbers(1, 0), [])

    def test_near_start(self):
        """Test the first pages show 1-4 then the last page."""
        for page in (1, 2, 3):
            with self.subTest(page=page):
                self.assertEqual(page_numbers(page, 10), [1, 2, 3, 4, ELLIPSIS, 10])

    def test_near_end(self):
        """Test the last pages show the first page then the last four."""
        for page in (8, 9, 10):
            with self.subTest(page=page):
                self.assertEqual(page_numbers(page, 10), [1, ELLIPSIS, 7, 8, 9, 10])

    def test_middle_window(self):
        """Test a window of three around the current page."""
        self.assertEqual(page_numbers(5, 10), [1, ELLIPSIS, 4, 5, 6, ELLIPSIS, 10])

    def test_six_pages(self):
        self.assertEqual(page_numbers(4, 6), [1, ELLIPSIS, 3, 4, 5, 6])
