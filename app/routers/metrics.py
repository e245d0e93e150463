from fastapi import APIRouter, Depends
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from app.database import get_db
from app.models import Comment, Post
from app.schemas import MetricsResponse
from app.cache import cache

router = APIRouter(prefix="/api/v1/metrics", tags=["metrics"])

@router.get("", response_model=MetricsResponse)
async def get_metrics(db: AsyncSession = Depends(get_db)):

    total_posts = (await db.execute(select(func.count()).select_from(Post))).scalar_one()

    total_comments = (await db.execute(select(func.count()).select_from(Comment))).scalar_one()

    total_likes = (
        await db.execute(select(func.coalesce(func.sum(Comment.like_count), 0)))
    ).scalar_one()

    avg_comments = total_comments / total_posts if total_posts > 0 else 0

    return MetricsResponse(
        total_posts=total_posts,
        total_comments=total_comments,
        total_likes=total_likes,
        avg_comments_per_post=round(avg_comments, 2),
        cache_info=cache.stats,
    )
