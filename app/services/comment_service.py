"""
Comment service: authorization and invariants for the comment lifecycle.

Design notes
------------
- The service is built per request around a ``CommentStore`` and a
  ``PostLookup``; it holds no comment state of its own between calls.
- The acting identity is always an explicit argument.  The API layer
  passes whatever the identity verifier produced (possibly None) and
  every permission decision is made here.
- ``like_count`` is never computed by callers: the service decides the
  new ``liked_by`` set and the store writes the set, its size and a new
  version in one conditional operation.  On a version conflict the
  toggle re-reads and tries again.
"""
import asyncio
import logging
import math
import random
from datetime import datetime, timedelta, timezone

from app.config import settings
from app.exceptions import (
    ForbiddenError,
    NotFoundError,
    StoreError,
    UnauthenticatedError,
    ValidationError,
)
from app.schemas import CommentPage, CommentResponse
from app.stores.base import CommentStore, PostLookup

logger = logging.getLogger(__name__)

LAST_MONTH = timedelta(days=30)


def validate_content(content: str) -> str:
    """Return *content* unchanged if it satisfies the length bound."""
    if not isinstance(content, str) or len(content) == 0:
        raise ValidationError("Comment content must not be empty")
    if len(content) > settings.COMMENT_MAX_LENGTH:
        raise ValidationError(
            f"Comment content must be at most {settings.COMMENT_MAX_LENGTH} characters"
        )
    return content


class CommentService:
    def __init__(
        self,
        store: CommentStore,
        posts: PostLookup,
        max_attempts: int | None = None,
        backoff: float | None = None,
    ) -> None:
        self.store = store
        self.posts = posts
        self.max_attempts = (
            settings.LIKE_TOGGLE_MAX_ATTEMPTS if max_attempts is None else max_attempts
        )
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")
        self.backoff = settings.LIKE_TOGGLE_BACKOFF_SECONDS if backoff is None else backoff

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _require_identity(user_id: str | None) -> str:
        if not user_id:
            raise UnauthenticatedError("You must be signed in")
        return user_id

    async def _get_or_404(self, comment_id: int) -> CommentResponse:
        comment = await self.store.get(comment_id)
        if comment is None:
            raise NotFoundError(f"Comment {comment_id} not found")
        return comment

    async def _require_post(self, post_id: int) -> None:
        if not await self.posts.exists(post_id):
            raise NotFoundError(f"Post {post_id} not found")

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def create(self, post_id: int, author_id: str | None, content: str) -> CommentResponse:
        author_id = self._require_identity(author_id)
        validate_content(content)
        await self._require_post(post_id)

        try:
            comment = await self.store.add(
                post_id=post_id,
                author_id=author_id,
                content=content,
                created_at=datetime.now(timezone.utc),
            )
        except NotFoundError:
            # The existence answer was stale; drop it so the next call rechecks.
            await self.posts.forget(post_id)
            raise
        logger.info("Comment %s created on post %s by %s", comment.id, post_id, author_id)
        return comment

    async def list_by_post(self, post_id: int) -> list[CommentResponse]:
        """Public read: every comment on *post_id*, newest first."""
        await self._require_post(post_id)
        return await self.store.list_by_post(post_id)

    async def toggle_like(self, comment_id: int, acting_user_id: str | None) -> CommentResponse:
        """
        Flip the acting user's membership in ``liked_by``.

        Optimistic concurrency: read, compute the new set, write it only if
        nobody else wrote in between.  Conflicting writers retry with a
        small jittered backoff; running out of attempts is a ``StoreError``.
        """
        user_id = self._require_identity(acting_user_id)

        for attempt in range(1, self.max_attempts + 1):
            comment = await self._get_or_404(comment_id)
            if comment.is_liked_by(user_id):
                liked_by = comment.liked_by - {user_id}
            else:
                liked_by = comment.liked_by | {user_id}

            updated = await self.store.replace_likes(comment_id, comment.version, liked_by)
            if updated is not None:
                return updated

            logger.debug(
                "Like toggle conflict on comment %s (attempt %d/%d)",
                comment_id, attempt, self.max_attempts,
            )
            if self.backoff:
                await asyncio.sleep(random.uniform(0, self.backoff * attempt))

        logger.warning(
            "Like toggle on comment %s gave up after %d attempts", comment_id, self.max_attempts
        )
        raise StoreError(f"Could not update likes for comment {comment_id}, try again")

    async def edit_content(
        self, comment_id: int, acting_user_id: str | None, new_content: str
    ) -> CommentResponse:
        user_id = self._require_identity(acting_user_id)
        comment = await self._get_or_404(comment_id)
        if comment.author_id != user_id:
            raise ForbiddenError("You are not allowed to edit this comment")
        validate_content(new_content)

        updated = await self.store.update_content(comment_id, new_content)
        if updated is None:
            # Deleted between the read and the write.
            raise NotFoundError(f"Comment {comment_id} not found")
        return updated

    async def delete(
        self,
        comment_id: int,
        acting_user_id: str | None,
        acting_user_is_moderator: bool = False,
    ) -> None:
        user_id = self._require_identity(acting_user_id)
        comment = await self._get_or_404(comment_id)
        if comment.author_id != user_id and not acting_user_is_moderator:
            raise ForbiddenError("You are not allowed to delete this comment")

        if not await self.store.delete(comment_id):
            raise NotFoundError(f"Comment {comment_id} not found")
        logger.info(
            "Comment %s deleted by %s%s",
            comment_id, user_id, " (moderator)" if comment.author_id != user_id else "",
        )

    async def delete_all_for_post(self, post_id: int) -> int:
        """
        Cascade hook for the post-deletion workflow.

        Idempotent: a post with no (remaining) comments yields 0.
        """
        removed = await self.store.delete_by_post(post_id)
        await self.posts.forget(post_id)
        if removed:
            logger.info("Cascade removed %d comment(s) of post %s", removed, post_id)
        return removed

    async def list_all(
        self,
        acting_user_id: str | None,
        acting_user_is_moderator: bool,
        page: int = 1,
        page_size: int | None = None,
        sort_order: str = "desc",
    ) -> CommentPage:
        """Moderator dashboard: every comment, paginated, plus 30-day volume."""
        self._require_identity(acting_user_id)
        if not acting_user_is_moderator:
            raise ForbiddenError("You are not allowed to see all comments")

        page_size = min(page_size or settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE)
        total = await self.store.count()
        last_month = await self.store.count(since=datetime.now(timezone.utc) - LAST_MONTH)
        items = await self.store.list_all(
            offset=(page - 1) * page_size,
            limit=page_size,
            newest_first=sort_order != "asc",
        )
        return CommentPage(
            items=items,
            total=total,
            page=page,
            page_size=page_size,
            pages=math.ceil(total / page_size) if total > 0 else 0,
            last_month=last_month,
        )
