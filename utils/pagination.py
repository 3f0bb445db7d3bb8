import heapq
import math
from itertools import islice
from typing import Any, Dict, Iterable, List, Optional, Tuple


def _to_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_page(page: Any, limit: Any, default_limit: int, max_limit: int) -> Tuple[int, int, int]:
    """
    Normalize raw page/limit query values, anything non-numeric falls back to the defaults

    Returns:
        (page, limit, skip) with page >= 1 and 1 <= limit <= max_limit
    """
    page = max(_to_int(page) or 1, 1)
    limit = _to_int(limit)
    if not limit or limit < 1:
        limit = default_limit
    limit = min(limit, max_limit)
    return page, limit, (page - 1) * limit


def pagination_meta(page: int, limit: int, total: int) -> Dict[str, int]:
    return {
        "currentPage": page,
        "totalPages": math.ceil(total / limit) if limit else 0,
        "totalItems": total,
        "itemsPerPage": limit,
    }


def merge_recent(
        chunks: Iterable[List[Dict[str, Any]]],
        skip: int,
        limit: Optional[int],
        field: str = "created_at",
        then_by: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """
    Merge result lists that are each already sorted newest first and return one page.

    Ties on field are broken by then_by, also newest first.
    Each chunk must hold at least its first skip + limit documents for the page to be exact.
    """
    def key(doc):
        return doc.get(field) or "", (doc.get(then_by) or "") if then_by else ""

    merged = heapq.merge(*chunks, key=key, reverse=True)
    stop = skip + limit if limit is not None else None
    return list(islice(merged, skip, stop))


def chunked(values: List[str], size: int = 10) -> Iterable[List[str]]:
    """Split ids into chunks, Firestore 'in' filters only accept short lists"""
    for i in range(0, len(values), size):
        yield values[i:i + size]
