"""Offset/limit pagination shared by the task and user listings."""

import math
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

from fastapi import Query
from sqlalchemy.orm import Query as SAQuery

from config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE


@dataclass
class PageParams:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def page_params(
    page: int = Query(1, ge=1, description="1-indexed page number"),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE, description=f"Page size (max {MAX_PAGE_SIZE})"),
) -> PageParams:
    return PageParams(page=page, limit=limit)


def page_count(total: int, limit: int) -> int:
    return math.ceil(total / limit) if total else 0


def paginate(query: SAQuery, params: PageParams) -> Tuple[List[Any], Dict[str, int]]:
    """
    Apply offset/limit to an ordered query.

    Returns:
        (items on the requested page, {page, limit, total, pages})
    """
    total = query.order_by(None).count()
    items = query.offset(params.offset).limit(params.limit).all()
    return items, {
        "page": params.page,
        "limit": params.limit,
        "total": total,
        "pages": page_count(total, params.limit),
    }
