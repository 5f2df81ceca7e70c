from typing import Any, Callable, Generic, Iterable, List, Optional, TypeVar
from pydantic import BaseModel

from constants import DEFAULT_PAGE, DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE

T = TypeVar('T')


class PaginatedResponse(BaseModel, Generic[T]):
    """Generic paginated response model"""
    items: List[T]
    total: int
    page: int
    page_size: int
    total_pages: int
    has_next: bool
    has_previous: bool


def get_pagination_params(page: Optional[int] = None, page_size: Optional[int] = None) -> tuple[int, int, int]:
    """
    Normalize pagination parameters.

    Returns:
        Tuple of (page, page_size, skip). page is at least 1 and page_size is clamped to MAX_PAGE_SIZE.
    """
    page = page if page is not None and page > 0 else DEFAULT_PAGE
    page_size = page_size if page_size is not None and page_size > 0 else DEFAULT_PAGE_SIZE
    page_size = min(page_size, MAX_PAGE_SIZE)
    return page, page_size, (page - 1) * page_size


def create_paginated_response(
    items: List[T],
    total: int,
    page: int,
    page_size: int
) -> PaginatedResponse[T]:
    total_pages = (total + page_size - 1) // page_size if total > 0 else 0

    return PaginatedResponse(
        items=items,
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages,
        has_next=page < total_pages,
        has_previous=page > 1
    )


def paginate_list(
    items: List[Any],
    page: Optional[int] = None,
    page_size: Optional[int] = None,
    transform: Optional[Callable[[Any], T]] = None,
) -> PaginatedResponse:
    """
    Slice an already filtered and sorted list into one page.

    transform is applied only to the items on the returned page.
    """
    page, page_size, skip = get_pagination_params(page, page_size)
    window = items[skip:skip + page_size]
    if transform is not None:
        window = [transform(item) for item in window]
    return create_paginated_response(window, len(items), page, page_size)


def sort_documents(documents: Iterable[dict], sort_by: str, descending: bool = False) -> List[dict]:
    """Sort documents by a field; documents missing the field always go last."""
    documents = list(documents)
    present = [doc for doc in documents if doc.get(sort_by) is not None]
    missing = [doc for doc in documents if doc.get(sort_by) is None]
    present.sort(key=lambda doc: _sort_key(doc[sort_by]), reverse=descending)
    return present + missing


def _sort_key(value):
    if isinstance(value, str):
        return value.lower()
    return value


def matches_search(document: dict, search: Optional[str], fields: Iterable[str]) -> bool:
    """Case-insensitive substring match across the given fields."""
    if not search or not search.strip():
        return True
    needle = search.strip().lower()
    return any(needle in str(document.get(field) or "").lower() for field in fields)
