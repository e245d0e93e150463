"""
SqlCommentStore / SqlPostLookup against in-memory SQLite.

These cover the persistence contract the service relies on: the
version-checked like write, hard deletes with row counts, and rejection
of rows whose like_count has drifted from liked_by.
"""
from datetime import datetime, timezone

import pytest
from sqlalchemy import delete, text
from sqlalchemy.ext.asyncio import AsyncSession

from app.cache import CacheManager
from app.exceptions import NotFoundError, StoreError
from app.models import Comment, Post
from app.services.comment_service import CommentService
from app.stores.sql import SqlCommentStore, SqlPostLookup


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _create_post(db: AsyncSession, title: str = "Post") -> Post:
    post = Post(author_id="owner", title=title, created_at=datetime.now(timezone.utc))
    db.add(post)
    await db.flush()
    return post


def _now() -> datetime:
    return datetime.now(timezone.utc)


class DictCache(CacheManager):
    """CacheManager stand-in that keeps values in a dict instead of Redis."""

    def __init__(self) -> None:
        super().__init__()
        self.values: dict = {}

    async def get(self, key):
        return self.values.get(key)

    async def set(self, key, value, ttl=None):
        self.values[key] = value

    async def delete(self, *keys):
        for key in keys:
            self.values.pop(key, None)


# ---------------------------------------------------------------------------
# SqlCommentStore
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_add_and_get(db_session: AsyncSession):
    post = await _create_post(db_session)
    store = SqlCommentStore(db_session)

    created = await store.add(post.id, "alice", "hello", _now())
    fetched = await store.get(created.id)

    assert fetched is not None
    assert fetched.content == "hello"
    assert fetched.liked_by == frozenset()
    assert fetched.like_count == 0
    assert fetched.version == 0
    assert fetched.created_at.tzinfo is not None


@pytest.mark.asyncio
async def test_get_missing_returns_none(db_session: AsyncSession):
    assert await SqlCommentStore(db_session).get(999) is None


@pytest.mark.asyncio
async def test_replace_likes_checks_version(db_session: AsyncSession):
    post = await _create_post(db_session)
    store = SqlCommentStore(db_session)
    created = await store.add(post.id, "alice", "hello", _now())

    first = await store.replace_likes(created.id, 0, frozenset({"bob", "carol"}))
    assert first is not None
    assert first.liked_by == {"bob", "carol"}
    assert first.like_count == 2
    assert first.version == 1

    # A writer that read version 0 lost the race and must not overwrite.
    assert await store.replace_likes(created.id, 0, frozenset({"dave"})) is None
    current = await store.get(created.id)
    assert current.liked_by == {"bob", "carol"}
    assert current.version == 1


@pytest.mark.asyncio
async def test_replace_likes_on_missing_comment(db_session: AsyncSession):
    assert await SqlCommentStore(db_session).replace_likes(999, 0, frozenset({"bob"})) is None


@pytest.mark.asyncio
async def test_update_content_only_touches_content(db_session: AsyncSession):
    post = await _create_post(db_session)
    store = SqlCommentStore(db_session)
    created = await store.add(post.id, "alice", "before", _now())
    await store.replace_likes(created.id, 0, frozenset({"bob"}))

    updated = await store.update_content(created.id, "after")
    assert updated.content == "after"
    assert updated.liked_by == {"bob"}
    assert updated.author_id == "alice"
    assert await store.update_content(999, "nothing") is None


@pytest.mark.asyncio
async def test_delete_and_delete_by_post(db_session: AsyncSession):
    post = await _create_post(db_session)
    other = await _create_post(db_session, "Other")
    store = SqlCommentStore(db_session)
    for i in range(3):
        await store.add(post.id, "alice", f"c{i}", _now())
    survivor = await store.add(other.id, "alice", "stays", _now())

    assert await store.delete_by_post(post.id) == 3
    assert await store.delete_by_post(post.id) == 0
    assert await store.count() == 1

    assert await store.delete(survivor.id) is True
    assert await store.delete(survivor.id) is False


@pytest.mark.asyncio
async def test_drifted_like_count_is_rejected(db_session: AsyncSession):
    post = await _create_post(db_session)
    row = Comment(
        post_id=post.id,
        author_id="alice",
        content="tampered",
        liked_by=["bob"],
        like_count=7,
        version=0,
        created_at=_now(),
    )
    db_session.add(row)
    await db_session.flush()

    with pytest.raises(StoreError):
        await SqlCommentStore(db_session).get(row.id)


@pytest.mark.asyncio
async def test_service_over_sql_store(db_session: AsyncSession):
    """The same service code runs unchanged over the SQL store."""
    post = await _create_post(db_session)
    service = CommentService(SqlCommentStore(db_session), SqlPostLookup(db_session), backoff=0)

    comment = await service.create(post.id, "alice", "sql backed")
    for user in ("bob", "carol", "bob"):
        comment = await service.toggle_like(comment.id, user)
    assert comment.liked_by == {"carol"}
    assert comment.like_count == 1

    for i in range(2):
        await service.create(post.id, "dave", f"more {i}")
    assert await service.delete_all_for_post(post.id) == 3
    assert await service.delete_all_for_post(post.id) == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("row_id", [0, 2**31, 2**63, 2**70])
async def test_ids_outside_column_range_are_absent(db_session: AsyncSession, row_id: int):
    store = SqlCommentStore(db_session)

    assert await store.get(row_id) is None
    assert await store.update_content(row_id, "x") is None
    assert await store.replace_likes(row_id, 0, frozenset({"bob"})) is None
    assert await store.delete(row_id) is False
    assert await store.delete_by_post(row_id) == 0
    assert await store.list_by_post(row_id) == []
    assert await SqlPostLookup(db_session, cache=DictCache()).exists(row_id) is False
    with pytest.raises(NotFoundError):
        await store.add(row_id, "alice", "hello", _now())


@pytest.mark.asyncio
async def test_create_on_vanished_post_is_not_found(db_session: AsyncSession):
    """A stale "post exists" cache entry must not turn the FK violation into a 503."""
    await db_session.execute(text("PRAGMA foreign_keys=ON"))
    cache = DictCache()
    cache.values["posts:exists:77"] = True
    service = CommentService(
        SqlCommentStore(db_session), SqlPostLookup(db_session, cache=cache), backoff=0
    )

    try:
        with pytest.raises(NotFoundError):
            await service.create(77, "alice", "hello")
        assert "posts:exists:77" not in cache.values
    finally:
        await db_session.rollback()
        await db_session.execute(text("PRAGMA foreign_keys=OFF"))


@pytest.mark.asyncio
async def test_post_removal_cascades_in_the_database(db_session: AsyncSession):
    assert not Post.__mapper__.relationships
    assert not Comment.__mapper__.relationships

    await db_session.execute(text("PRAGMA foreign_keys=ON"))
    try:
        post = await _create_post(db_session)
        store = SqlCommentStore(db_session)
        await store.add(post.id, "alice", "goes with the post", _now())

        await db_session.execute(delete(Post).where(Post.id == post.id))
        assert await store.list_by_post(post.id) == []
        assert await store.count() == 0
    finally:
        await db_session.rollback()
        await db_session.execute(text("PRAGMA foreign_keys=OFF"))


# ---------------------------------------------------------------------------
# SqlPostLookup
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_post_lookup_caches_positive_answers(db_session: AsyncSession):
    post = await _create_post(db_session)
    cache = DictCache()
    lookup = SqlPostLookup(db_session, cache=cache)

    assert await lookup.exists(post.id) is True
    assert cache.values == {f"posts:exists:{post.id}": True}

    assert await lookup.exists(12345) is False
    assert "posts:exists:12345" not in cache.values

    await lookup.forget(post.id)
    assert cache.values == {}
