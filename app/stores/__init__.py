# Stores package.
#
# Narrow repository interfaces the comment service is written against:
#
#   base    CommentStore / PostLookup protocols
#   sql     async SQLAlchemy implementations (one AsyncSession per request)
#   memory  in-process doubles used by the service-level tests
#
# Every store method returns validated ``CommentResponse`` records, never
# ORM rows, so the service works on a fixed record shape.
from app.stores.base import CommentStore, PostLookup
from app.stores.memory import InMemoryCommentStore, InMemoryPostLookup
from app.stores.sql import SqlCommentStore, SqlPostLookup

__all__ = [
    "CommentStore",
    "PostLookup",
    "InMemoryCommentStore",
    "InMemoryPostLookup",
    "SqlCommentStore",
    "SqlPostLookup",
]
