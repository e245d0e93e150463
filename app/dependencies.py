from fastapi import Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.services.comment_service import CommentService
from app.stores.sql import SqlCommentStore, SqlPostLookup


class PaginationParams:
    """
    Reusable FastAPI dependency that parses and validates pagination /
    sorting query parameters.

    Usage in a router::

        @router.get("/comments")
        async def list_comments(pagination: PaginationParams = Depends()):
            ...

    Attributes
    ----------
    page:
        1-based page number (minimum 1).
    page_size:
        Number of items per page, clamped to ``settings.MAX_PAGE_SIZE``
        regardless of the value supplied by the caller.
    sort_order:
        ``"asc"`` or ``"desc"`` by creation time (enforced by the regex
        pattern).
    """

    def __init__(
        self,
        page: int = Query(
            1,
            ge=1,
            description="Page number (1-based).",
        ),
        page_size: int = Query(
            settings.DEFAULT_PAGE_SIZE,
            ge=1,
            le=100,
            description="Number of items returned per page (max 100).",
        ),
        sort_order: str = Query(
            "desc",
            pattern="^(asc|desc)$",
            description="Sort direction by creation time: 'asc' or 'desc'.",
        ),
    ) -> None:
        self.page = page
        self.page_size = min(page_size, settings.MAX_PAGE_SIZE)
        self.sort_order = sort_order


def get_comment_service(db: AsyncSession = Depends(get_db)) -> CommentService:
    """Build a request-scoped service over the request's session."""
    return CommentService(SqlCommentStore(db), SqlPostLookup(db))
