import math

from app.config import settings
from app.schemas import Pagination


class PaginationParams:
    """
    Normalised offset/limit pagination shared by the listing services.

    Attributes
    ----------
    page:
        1-based page number; anything below 1 is treated as 1.
    limit:
        Number of items per page, defaulting to ``settings.DEFAULT_PAGE_SIZE``
        and clamped to ``settings.MAX_PAGE_SIZE``.
    offset:
        Computed SQL OFFSET derived from *page* and *limit*.
    """

    def __init__(self, page: int = 1, limit: int | None = None) -> None:
        self.page = max(page, 1)
        if limit is None:
            limit = settings.DEFAULT_PAGE_SIZE
        self.limit = max(1, min(limit, settings.MAX_PAGE_SIZE))

    @property
    def offset(self) -> int:
        """SQL OFFSET value computed from the current page and limit."""
        return (self.page - 1) * self.limit

    def build(self, total: int) -> Pagination:
        """Return the pagination metadata for a result set of *total* rows."""
        return Pagination(
            page=self.page,
            limit=self.limit,
            total=total,
            total_pages=math.ceil(total / self.limit),
        )
