"""
Pagination Engine

Wraps a composed pipeline with page/limit semantics. The item slice and the
total count are two independent store reads: each reflects committed state,
but under concurrent writes they may disagree momentarily (for example the
total already includes a row the slice did not see). Callers get no
single-snapshot guarantee.
"""

import math
import os
from dataclasses import dataclass
from typing import Any, Dict, List

from sqlmodel import Session

from vidhub.services import query_composer
from vidhub.services.query_composer import Pipeline

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_PAGE_SIZE = int(os.getenv("MAX_PAGE_SIZE", "100"))


@dataclass
class Page:
    items: List[Dict[str, Any]]
    page: int
    limit: int
    total_items: int
    total_pages: int
    has_next: bool
    has_prev: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": self.items,
            "page": self.page,
            "limit": self.limit,
            "total_items": self.total_items,
            "total_pages": self.total_pages,
            "has_next": self.has_next,
            "has_prev": self.has_prev,
        }


def _to_int(value: Any):
    if isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def normalize_page(value: Any) -> int:
    """1-indexed page; missing, non-numeric or <= 0 becomes 1."""
    page = _to_int(value)
    if page is None or page <= 0:
        return DEFAULT_PAGE
    return page


def normalize_limit(value: Any) -> int:
    """Page size; missing or non-numeric becomes 10, then clamped to [1, MAX_PAGE_SIZE]."""
    limit = _to_int(value)
    if limit is None:
        return DEFAULT_LIMIT
    return max(1, min(limit, MAX_PAGE_SIZE))


def paginate(session: Session, pipeline: Pipeline, page: Any = None, limit: Any = None) -> Page:
    page = normalize_page(page)
    limit = normalize_limit(limit)

    total_items = query_composer.count(session, pipeline)
    items = query_composer.run(session, pipeline, offset=(page - 1) * limit, limit=limit)

    # An empty result is still one (empty) page
    total_pages = max(1, math.ceil(total_items / limit))
    return Page(
        items=items,
        page=page,
        limit=limit,
        total_items=total_items,
        total_pages=total_pages,
        has_next=page < total_pages,
        has_prev=page > 1,
    )
