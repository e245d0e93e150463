from fastapi import APIRouter, Depends

from app.dependencies import PaginationParams, get_comment_service
from app.schemas import CommentCreate, CommentPage, CommentResponse, CommentUpdate
from app.security import Identity, get_identity
from app.services.comment_service import CommentService

router = APIRouter(prefix="/api/v1", tags=["comments"])


def _user_id(identity: Identity | None) -> str | None:
    return identity.user_id if identity else None


def _is_moderator(identity: Identity | None) -> bool:
    return identity.is_moderator if identity else False


@router.post("/comments", status_code=201, response_model=CommentResponse)
async def create_comment(
    data: CommentCreate,
    identity: Identity | None = Depends(get_identity),
    service: CommentService = Depends(get_comment_service),
):
    return await service.create(data.post_id, _user_id(identity), data.content)

@router.get("/comments", response_model=CommentPage)
async def list_all_comments(
    pagination: PaginationParams = Depends(),
    identity: Identity | None = Depends(get_identity),
    service: CommentService = Depends(get_comment_service),
):
    """Moderators only: every comment across all posts, paginated, with a 30-day count."""
    return await service.list_all(
        _user_id(identity),
        _is_moderator(identity),
        page=pagination.page,
        page_size=pagination.page_size,
        sort_order=pagination.sort_order,
    )

@router.get("/posts/{post_id}/comments", response_model=list[CommentResponse])
async def list_post_comments(
    post_id: int,
    service: CommentService = Depends(get_comment_service),
):
    """Public: comments on one post, newest first."""
    return await service.list_by_post(post_id)

@router.put("/comments/{comment_id}/like", response_model=CommentResponse)
async def toggle_like(
    comment_id: int,
    identity: Identity | None = Depends(get_identity),
    service: CommentService = Depends(get_comment_service),
):
    return await service.toggle_like(comment_id, _user_id(identity))

@router.put("/comments/{comment_id}", response_model=CommentResponse)
async def edit_comment(
    comment_id: int,
    data: CommentUpdate,
    identity: Identity | None = Depends(get_identity),
    service: CommentService = Depends(get_comment_service),
):
    return await service.edit_content(comment_id, _user_id(identity), data.content)

@router.delete("/comments/{comment_id}", status_code=204)
async def delete_comment(
    comment_id: int,
    identity: Identity | None = Depends(get_identity),
    service: CommentService = Depends(get_comment_service),
):
    await service.delete(comment_id, _user_id(identity), _is_moderator(identity))
