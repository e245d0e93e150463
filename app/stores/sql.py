"""
SQLAlchemy-backed stores.

Design notes
------------
- Stores flush but never commit; the transaction boundary is owned by the
  ``get_db`` dependency, exactly as for the rest of the API.
- Reads use ``populate_existing`` because writes go through Core-style
  ``UPDATE`` statements that bypass the session's identity map.
- ``replace_likes`` is a single ``UPDATE ... WHERE version = :expected``.
  ``liked_by``, ``like_count`` and ``version`` are written by the same
  statement, so an aborted request can never leave them out of step.
- Ids outside the ``INTEGER`` column range cannot name a row and are
  answered as absent without a round trip.
"""
import logging
from contextlib import contextmanager
from datetime import datetime

from pydantic import ValidationError as SchemaError
from sqlalchemy import asc, delete, desc, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.cache import CacheManager, cache as default_cache
from app.config import settings
from app.exceptions import NotFoundError, StoreError
from app.models import Comment, Post
from app.schemas import CommentResponse

logger = logging.getLogger(__name__)

MAX_ID = 2**31 - 1


def _storable(row_id: int) -> bool:
    return 1 <= row_id <= MAX_ID


@contextmanager
def _translate_errors(operation: str):
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error("Comment store %s failed: %s", operation, exc)
        raise StoreError(f"Comment store {operation} failed") from exc


def _to_record(row: Comment) -> CommentResponse:
    try:
        return CommentResponse.model_validate(row)
    except SchemaError as exc:
        logger.error("Stored comment %s is malformed: %s", row.id, exc)
        raise StoreError(f"Stored comment {row.id} is malformed") from exc


class SqlCommentStore:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def add(
        self, post_id: int, author_id: str, content: str, created_at: datetime
    ) -> CommentResponse:
        if not _storable(post_id):
            raise NotFoundError(f"Post {post_id} not found")
        row = Comment(
            post_id=post_id,
            author_id=author_id,
            content=content,
            liked_by=[],
            like_count=0,
            version=0,
            created_at=created_at,
        )
        with _translate_errors("insert"):
            self.db.add(row)
            try:
                await self.db.flush()
            except IntegrityError as exc:
                # Foreign key: the post row went away after the existence check.
                logger.info("Insert on post %s rejected: post no longer exists", post_id)
                raise NotFoundError(f"Post {post_id} not found") from exc
        return _to_record(row)

    async def get(self, comment_id: int) -> CommentResponse | None:
        if not _storable(comment_id):
            return None
        q = (
            select(Comment)
            .where(Comment.id == comment_id)
            .execution_options(populate_existing=True)
        )
        with _translate_errors("read"):
            result = await self.db.execute(q)
            row = result.scalar_one_or_none()
        return _to_record(row) if row is not None else None

    async def list_by_post(self, post_id: int) -> list[CommentResponse]:
        if not _storable(post_id):
            return []
        q = (
            select(Comment)
            .where(Comment.post_id == post_id)
            .order_by(Comment.created_at.desc(), Comment.id.desc())
            .execution_options(populate_existing=True)
        )
        with _translate_errors("list"):
            result = await self.db.execute(q)
            rows = result.scalars().all()
        return [_to_record(r) for r in rows]

    async def list_all(
        self, offset: int, limit: int, newest_first: bool = True
    ) -> list[CommentResponse]:
        direction = desc if newest_first else asc
        q = (
            select(Comment)
            .order_by(direction(Comment.created_at), direction(Comment.id))
            .offset(offset)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        with _translate_errors("list"):
            result = await self.db.execute(q)
            rows = result.scalars().all()
        return [_to_record(r) for r in rows]

    async def count(self, since: datetime | None = None) -> int:
        q = select(func.count()).select_from(Comment)
        if since is not None:
            q = q.where(Comment.created_at >= since)
        with _translate_errors("count"):
            return (await self.db.execute(q)).scalar_one()

    async def update_content(self, comment_id: int, content: str) -> CommentResponse | None:
        if not _storable(comment_id):
            return None
        stmt = (
            update(Comment)
            .where(Comment.id == comment_id)
            .values(content=content)
            .execution_options(synchronize_session=False)
        )
        with _translate_errors("update"):
            result = await self.db.execute(stmt)
        if result.rowcount == 0:
            return None
        return await self.get(comment_id)

    async def replace_likes(
        self, comment_id: int, expected_version: int, liked_by: frozenset[str]
    ) -> CommentResponse | None:
        if not _storable(comment_id):
            return None
        stmt = (
            update(Comment)
            .where(Comment.id == comment_id, Comment.version == expected_version)
            .values(
                liked_by=sorted(liked_by),
                like_count=len(liked_by),
                version=Comment.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        with _translate_errors("like update"):
            result = await self.db.execute(stmt)
        if result.rowcount == 0:
            return None
        return await self.get(comment_id)

    async def delete(self, comment_id: int) -> bool:
        if not _storable(comment_id):
            return False
        stmt = (
            delete(Comment)
            .where(Comment.id == comment_id)
            .execution_options(synchronize_session=False)
        )
        with _translate_errors("delete"):
            result = await self.db.execute(stmt)
        return result.rowcount > 0

    async def delete_by_post(self, post_id: int) -> int:
        if not _storable(post_id):
            return 0
        stmt = (
            delete(Comment)
            .where(Comment.post_id == post_id)
            .execution_options(synchronize_session=False)
        )
        with _translate_errors("delete"):
            result = await self.db.execute(stmt)
        return result.rowcount


class SqlPostLookup:
    """
    Post existence check with a Redis cache-aside in front of the
    ``posts`` table.  Only positive answers are cached, so a post created
    a moment ago is never reported missing because of a stale entry.
    """

    def __init__(self, db: AsyncSession, cache: CacheManager = default_cache) -> None:
        self.db = db
        self._cache = cache

    async def exists(self, post_id: int) -> bool:
        if not _storable(post_id):
            return False
        key = self._cache.post_exists_key(post_id)
        if await self._cache.get(key):
            return True

        with _translate_errors("post lookup"):
            result = await self.db.execute(select(Post.id).where(Post.id == post_id))
            found = result.scalar_one_or_none() is not None
        if found:
            await self._cache.set(key, True, ttl=settings.CACHE_TTL_POST_EXISTS)
        return found

    async def forget(self, post_id: int) -> None:
        await self._cache.forget_post(post_id)
