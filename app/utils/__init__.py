"""Utility modules."""

from app.utils.normalization import blank_to_none, normalize_email, normalize_name
from app.utils.pagination import (
    PaginationParams,
    apply_sort,
    get_pagination,
    page_envelope,
    paginate_query,
)

__all__ = [
    # Normalization
    "blank_to_none",
    "normalize_email",
    "normalize_name",
    # Pagination
    "PaginationParams",
    "apply_sort",
    "get_pagination",
    "page_envelope",
    "paginate_query",
]
