"""
Response envelope helpers shared by all v1 routers
"""

from datetime import datetime, timezone
import math
from typing import Any, Dict, Optional, Sequence

API_VERSION = "1.0"
MAX_PAGE_SIZE = 100


def _meta(extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    meta = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": API_VERSION,
    }
    if extra:
        meta.update(extra)
    return meta


def success(data: Any, meta: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Wrap a payload in the standard {data, meta} envelope"""
    return {"data": data, "meta": _meta(meta)}


def paginate(
    items: Sequence[Any],
    page: int = 1,
    page_size: int = 25,
    meta: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Slice a list and return it in the envelope with pagination meta

    page_size is capped at MAX_PAGE_SIZE; page is clamped to >= 1.
    """
    page = max(1, int(page))
    page_size = max(1, min(int(page_size), MAX_PAGE_SIZE))
    total = len(items)
    last_page = max(1, math.ceil(total / page_size))
    start = (page - 1) * page_size
    chunk = list(items[start:start + page_size])

    pagination = {
        "total": total,
        "page": page,
        "pageSize": page_size,
        "lastPage": last_page,
        "hasMorePages": page < last_page,
        "from": start + 1 if chunk else None,
        "to": start + len(chunk) if chunk else None,
    }
    if meta:
        pagination.update(meta)
    return success(chunk, pagination)
