"""Page-number strip for the task list pagination control."""
from typing import List, Union

ELLIPSIS = 'ellipsis'
MAX_VISIBLE_PAGES = 5


def page_numbers(page: int, total_pages: int) -> List[Union[int, str]]:
    """
    Page links to render, with ELLIPSIS marking gaps.

    Shows every page when there are at most MAX_VISIBLE_PAGES, otherwise
    the first and last page plus a window around the current one:

        page_numbers(1, 10)  -> [1, 2, 3, 4, 'ellipsis', 10]
        page_numbers(5, 10)  -> [1, 'ellipsis', 4, 5, 6, 'ellipsis', 10]
        page_numbers(9, 10)  -> [1, 'ellipsis', 7, 8, 9, 10]
    """
    if total_pages <= MAX_VISIBLE_PAGES:
        return list(range(1, total_pages + 1))

    if page <= 3:
        return [1, 2, 3, 4, ELLIPSIS, total_pages]

    if page >= total_pages - 2:
        return [1, ELLIPSIS] + list(range(total_pages - 3, total_pages + 1))

    return [1, ELLIPSIS, page - 1, page, page + 1, ELLIPSIS, total_pages]
