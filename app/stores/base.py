from datetime import datetime
from typing import Protocol

from app.schemas import CommentResponse


class CommentStore(Protocol):
    """
    Persistence operations for comments.

    Methods that target a single comment return None (or False / 0) when
    the comment is absent; they never raise for a missing row.  Backend
    failures are raised as ``StoreError``.
    """

    async def add(
        self, post_id: int, author_id: str, content: str, created_at: datetime
    ) -> CommentResponse: ...

    async def get(self, comment_id: int) -> CommentResponse | None: ...

    async def list_by_post(self, post_id: int) -> list[CommentResponse]:
        """Comments for *post_id*, newest first."""
        ...

    async def list_all(
        self, offset: int, limit: int, newest_first: bool = True
    ) -> list[CommentResponse]: ...

    async def count(self, since: datetime | None = None) -> int: ...

    async def update_content(self, comment_id: int, content: str) -> CommentResponse | None: ...

    async def replace_likes(
        self, comment_id: int, expected_version: int, liked_by: frozenset[str]
    ) -> CommentResponse | None:
        """
        Atomically write *liked_by*, its size as ``like_count`` and a bumped
        version, but only if the stored version still equals
        *expected_version*.  Returns None when the write did not apply
        (version moved on, or the comment is gone).
        """
        ...

    async def delete(self, comment_id: int) -> bool: ...

    async def delete_by_post(self, post_id: int) -> int: ...


class PostLookup(Protocol):
    async def exists(self, post_id: int) -> bool: ...

    async def forget(self, post_id: int) -> None:
        """Called when a post's comments are cascaded away."""
        ...
