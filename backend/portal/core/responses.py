"""Response envelope models.

Every success body is {"data": ...}; collections add pagination meta;
errors are {"error": {...}}.
"""

from typing import Generic, TypeVar

from pydantic import BaseModel, computed_field

T = TypeVar("T")


class PaginationMeta(BaseModel):
    """Pagination metadata for collections.

    Attributes:
        total: Total number of items across all pages.
        page: Current page number (1-indexed).
        per_page: Number of items per page.
    """

    total: int
    page: int
    per_page: int

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_pages(self) -> int:
        """Number of pages needed to show all items (0 when empty)."""
        if self.total == 0:
            return 0
        return (self.total + self.per_page - 1) // self.per_page


class DataResponse(BaseModel, Generic[T]):
    """Standard response envelope for single resources.

    Usage:
        @router.get("/onboarding/me")
        async def get_me(...) -> DataResponse[OnboardingView]:
            return DataResponse(data=view)
    """

    data: T


class ListResponse(BaseModel, Generic[T]):
    """Standard response envelope for collections.

    Usage:
        @router.get("/admin/profiles")
        async def list_profiles(...) -> ListResponse[ProfileSummary]:
            rows, total = await svc.list_profiles(page=page, per_page=per_page)
            return ListResponse(
                data=rows,
                meta=PaginationMeta(total=total, page=page, per_page=per_page),
            )
    """

    data: list[T]
    meta: PaginationMeta


class ErrorDetail(BaseModel):
    """Error detail for response body.

    Attributes:
        code: Machine-readable error code (e.g., "STEP_LOCKED").
        message: Human-readable error message.
        details: Optional list of extra context (field errors, blockers).
    """

    code: str
    message: str
    details: list[dict] | None = None


class ErrorResponse(BaseModel):
    """Standard error response envelope: {"error": {...}}."""

    error: ErrorDetail
