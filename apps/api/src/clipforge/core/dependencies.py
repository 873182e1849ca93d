"""
FastAPI dependencies shared by the v1 routers.
"""

from typing import Annotated, Any

from fastapi import Depends, Query

from clipforge.schemas.common import PaginationMeta
from clipforge.workers.dispatch import Dispatcher, get_task_dispatcher


class PaginationParams:
    """``?page=&page_size=`` query parameters for list endpoints."""

    def __init__(
        self,
        page: Annotated[int, Query(ge=1, description="Page number (1-indexed)")] = 1,
        page_size: Annotated[int, Query(ge=1, le=200, description="Items per page (max 200)")] = 50,
    ) -> None:
        self.page = page
        self.page_size = page_size

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    @property
    def limit(self) -> int:
        return self.page_size

    def meta(self, total_items: int) -> dict[str, Any]:
        """Response ``meta`` block for a page out of ``total_items``."""
        pagination = PaginationMeta.create(self.page, self.page_size, total_items)
        return {"pagination": pagination.model_dump()}


Pagination = Annotated[PaginationParams, Depends()]
TaskDispatch = Annotated[Dispatcher, Depends(get_task_dispatcher)]
