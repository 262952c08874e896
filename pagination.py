import math

DEFAULT_LIMIT = 20
MAX_LIMIT = 100


def _to_int(value, default):
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def normalize(page, limit):
    page = max(_to_int(page, 1), 1)
    limit = min(max(_to_int(limit, DEFAULT_LIMIT), 1), MAX_LIMIT)
    return page, limit


def paginate(queryset, page=1, limit=DEFAULT_LIMIT):
    """Slice an already-sorted queryset into a page plus paging metadata."""
    page, limit = normalize(page, limit)
    total = queryset.count()
    items = list(queryset.skip((page - 1) * limit).limit(limit))
    total_pages = math.ceil(total / limit) if total else 0
    return {
        "data": items,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": total_pages,
            "hasNext": page < total_pages,
            "hasPrev": page > 1,
        },
    }
