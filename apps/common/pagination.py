from __future__ import annotations

from django.conf import settings
from django.core.paginator import EmptyPage, Paginator


def clamp_page_size(value, default: int | None = None) -> int:
    default = default or int(getattr(settings, "LIST_DEFAULT_PAGE_SIZE", 20))
    maximum = int(getattr(settings, "LIST_MAX_PAGE_SIZE", 100))
    try:
        return min(max(int(value), 1), maximum)
    except (TypeError, ValueError):
        return default


def clamp_page_number(value) -> int:
    try:
        return max(int(value), 1)
    except (TypeError, ValueError):
        return 1


def paginate(queryset, *, page: int, page_size: int):
    """Return ``(object_list, meta)``; an out-of-range page falls back to the last one."""
    paginator = Paginator(queryset, page_size)
    if paginator.count == 0:
        return [], {
            "count": 0,
            "page": 1,
            "pageSize": page_size,
            "totalPages": 1,
            "hasNext": False,
            "hasPrevious": False,
        }

    try:
        page_obj = paginator.page(page)
    except EmptyPage:
        page_obj = paginator.page(paginator.num_pages or 1)

    return list(page_obj.object_list), {
        "count": paginator.count,
        "page": page_obj.number,
        "pageSize": page_size,
        "totalPages": paginator.num_pages,
        "hasNext": page_obj.has_next(),
        "hasPrevious": page_obj.has_previous(),
    }
