from datetime import datetime, timezone

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)


# --- Comment ---

class CommentCreate(BaseModel):
    post_id: int
    # Length bounds are enforced by the service so they surface as a 400
    # envelope rather than a framework-level 422.
    content: str


class CommentUpdate(BaseModel):
    content: str


class CommentResponse(BaseModel):
    """
    Fixed record shape for a comment.

    Built from whatever the store hands back (ORM row or in-memory record)
    and validated on the way in, so a drifted ``like_count`` is rejected
    instead of being passed through to clients.
    """

    id: int
    post_id: int
    author_id: str
    content: str
    liked_by: frozenset[str] = frozenset()
    like_count: int = 0
    created_at: datetime
    version: int = Field(default=0, exclude=True)

    model_config = ConfigDict(from_attributes=True, frozen=True)

    @field_validator("created_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # SQLite hands back naive datetimes; everything is stored in UTC.
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

    @model_validator(mode="after")
    def _check_like_count(self) -> "CommentResponse":
        if self.like_count != len(self.liked_by):
            raise ValueError(
                f"like_count={self.like_count} does not match "
                f"{len(self.liked_by)} liked_by entries"
            )
        return self

    @field_serializer("liked_by")
    def _serialize_liked_by(self, liked_by: frozenset[str]) -> list[str]:
        return sorted(liked_by)

    def is_liked_by(self, user_id: str) -> bool:
        return user_id in self.liked_by


# --- Pagination ---

class PaginatedResponse(BaseModel):
    items: list  # Will be typed in router
    total: int
    page: int
    page_size: int
    pages: int


class CommentPage(PaginatedResponse):
    items: list[CommentResponse]
    last_month: int


# --- Metrics ---

class MetricsResponse(BaseModel):
    total_posts: int
    total_comments: int
    total_likes: int
    avg_comments_per_post: float
    cache_info: dict = {}
