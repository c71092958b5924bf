"""Offset pagination shared by list endpoints."""
from __future__ import annotations

import math
from typing import Any, Dict, List, Tuple


def paginate(query, page: int, limit: int) -> Tuple[List[Any], int]:
    """Return ``(items, total)`` for one page of ``query`` (pages are 1-based)."""
    page = max(int(page or 1), 1)
    limit = max(int(limit or 1), 1)
    total = query.order_by(None).count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return items, total


def pagination_meta(total: int, page: int, limit: int) -> Dict[str, Any]:
    total_pages = math.ceil(total / limit) if limit else 0
    return {
        'page': page,
        'limit': limit,
        'totalCount': total,
        'totalPages': total_pages,
        'hasNextPage': page < total_pages,
        'hasPrevPage': page > 1,
    }
