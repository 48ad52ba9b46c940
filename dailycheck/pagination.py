import math


def build_pagination(page: int, limit: int, total: int) -> dict:
    """
    Page metadata for offset pagination.

    The requested page is clamped into [1, total_pages]; with no rows at all
    it collapses to 1.
    """
    total_pages = math.ceil(total / limit) if limit > 0 else 0
    page = max(page, 1)
    if total_pages == 0:
        page = 1
    elif page > total_pages:
        page = total_pages

    return {
        "page": page,
        "limit": limit,
        "total": total,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_prev": page > 1,
    }


def page_offset(pagination: dict) -> int:
    return (pagination["page"] - 1) * pagination["limit"]


def clamp_limit(limit: int, maximum: int) -> int:
    """Page size clamped into [1, maximum]."""
    return min(max(limit, 1), maximum)
