"""
In-process stores for exercising the comment service without a database.

``InMemoryCommentStore`` keeps the same contract as ``SqlCommentStore``,
including the version-checked ``replace_likes``.  Every operation yields
to the event loop before touching state, so concurrent ``asyncio`` tasks
interleave between a read and the following write the way real requests
would.
"""
import asyncio
import itertools
from datetime import datetime

from app.schemas import CommentResponse


class InMemoryCommentStore:
    def __init__(self) -> None:
        self._comments: dict[int, CommentResponse] = {}
        self._ids = itertools.count(1)
        self._lock = asyncio.Lock()

    async def add(
        self, post_id: int, author_id: str, content: str, created_at: datetime
    ) -> CommentResponse:
        await asyncio.sleep(0)
        async with self._lock:
            comment = CommentResponse(
                id=next(self._ids),
                post_id=post_id,
                author_id=author_id,
                content=content,
                created_at=created_at,
            )
            self._comments[comment.id] = comment
            return comment

    async def get(self, comment_id: int) -> CommentResponse | None:
        await asyncio.sleep(0)
        return self._comments.get(comment_id)

    async def list_by_post(self, post_id: int) -> list[CommentResponse]:
        await asyncio.sleep(0)
        return self._sorted(c for c in self._comments.values() if c.post_id == post_id)

    async def list_all(
        self, offset: int, limit: int, newest_first: bool = True
    ) -> list[CommentResponse]:
        await asyncio.sleep(0)
        ordered = self._sorted(self._comments.values(), newest_first)
        return ordered[offset:offset + limit]

    async def count(self, since: datetime | None = None) -> int:
        await asyncio.sleep(0)
        if since is None:
            return len(self._comments)
        return sum(1 for c in self._comments.values() if c.created_at >= since)

    async def update_content(self, comment_id: int, content: str) -> CommentResponse | None:
        await asyncio.sleep(0)
        async with self._lock:
            current = self._comments.get(comment_id)
            if current is None:
                return None
            updated = current.model_copy(update={"content": content})
            self._comments[comment_id] = updated
            return updated

    async def replace_likes(
        self, comment_id: int, expected_version: int, liked_by: frozenset[str]
    ) -> CommentResponse | None:
        await asyncio.sleep(0)
        async with self._lock:
            current = self._comments.get(comment_id)
            if current is None or current.version != expected_version:
                return None
            updated = current.model_copy(
                update={
                    "liked_by": frozenset(liked_by),
                    "like_count": len(liked_by),
                    "version": current.version + 1,
                }
            )
            self._comments[comment_id] = updated
            return updated

    async def delete(self, comment_id: int) -> bool:
        await asyncio.sleep(0)
        async with self._lock:
            return self._comments.pop(comment_id, None) is not None

    async def delete_by_post(self, post_id: int) -> int:
        await asyncio.sleep(0)
        async with self._lock:
            doomed = [cid for cid, c in self._comments.items() if c.post_id == post_id]
            for cid in doomed:
                del self._comments[cid]
            return len(doomed)

    @staticmethod
    def _sorted(comments, newest_first: bool = True) -> list[CommentResponse]:
        return sorted(comments, key=lambda c: (c.created_at, c.id), reverse=newest_first)


class InMemoryPostLookup:
    def __init__(self, post_ids=()) -> None:
        self.post_ids: set[int] = set(post_ids)
        self.forgotten: list[int] = []

    async def exists(self, post_id: int) -> bool:
        return post_id in self.post_ids

    async def forget(self, post_id: int) -> None:
        self.forgotten.append(post_id)
