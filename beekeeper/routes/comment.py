from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy import func
from typing import Optional
import math

from starlette import status

from beekeeper.models.article import Article
from beekeeper.models.comment import ArticleComment, CommentStatus
from beekeeper.models.user import User
from beekeeper.policy.cascade import CommentDeletion, plan_comment_deletion, tombstone
from beekeeper.policy.ownership import can_comment_on_articles, ensure_can_delete, ensure_can_edit
from beekeeper.policy.roles import Identity
from beekeeper.policy.visibility import can_view
from beekeeper.schemas.comment import CommentCreate, CommentUpdate, CommentStatusUpdate, CommentResponse
from beekeeper.schemas.common import ApiListResponse, ApiResponse, MessageResponse, Pagination
from beekeeper.utils.exceptions import Forbidden, InvalidState, NotFound, PASSTHROUGH_ERRORS
from dependencies import get_db, get_current_user, get_identity, require_identity, require_admin, logger

router = APIRouter()


async def _reply_count(db: AsyncSession, comment_id: int) -> int:
    return await db.scalar(
        select(func.count(ArticleComment.id)).filter(ArticleComment.parent_id == comment_id)
    )


@router.get("/article/{article_id}", response_model=ApiListResponse[CommentResponse])
async def list_article_comments(
    article_id: int,
    identity: Optional[Identity] = Depends(get_identity),
    db: AsyncSession = Depends(get_db)
):
    """Approved comments of an article, oldest first."""
    article = await db.get(Article, article_id)
    if not article or not can_view(article, identity):
        raise NotFound("Article")

    result = await db.execute(
        select(ArticleComment)
        .filter(ArticleComment.article_id == article_id, ArticleComment.status == CommentStatus.APPROVED)
        .order_by(ArticleComment.created_at, ArticleComment.id)
    )
    return ApiListResponse(data=[CommentResponse.model_validate(c) for c in result.scalars().all()])


@router.get("/", response_model=ApiListResponse[CommentResponse])
async def list_comments(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status_filter: Optional[CommentStatus] = Query(None, alias="status"),
    admin: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Review queue for admins."""
    query = select(ArticleComment)
    if status_filter is not None:
        query = query.filter(ArticleComment.status == status_filter)

    total = await db.scalar(select(func.count()).select_from(query.subquery()))
    result = await db.execute(
        query.order_by(ArticleComment.created_at.desc(), ArticleComment.id.desc())
        .offset((page - 1) * limit).limit(limit)
    )
    return ApiListResponse(
        data=[CommentResponse.model_validate(c) for c in result.scalars().all()],
        pagination=Pagination(total=total, page=page, pages=math.ceil(total / limit), per_page=limit),
    )


@router.post("/", response_model=ApiResponse[CommentResponse], status_code=status.HTTP_201_CREATED)
async def create_comment(
    comment: CommentCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        identity = Identity.from_user(current_user)
        if not can_comment_on_articles(current_user):
            raise Forbidden(reason=f"inactive user {current_user.id} commenting")

        article = await db.get(Article, comment.article_id)
        if not article or not can_view(article, identity):
            raise NotFound("Article")
        if article.is_blocked:
            raise Forbidden(
                "Cannot comment on a blocked article",
                reason=f"article {article.id} blocked",
            )

        if comment.parent_id is not None:
            parent = await db.get(ArticleComment, comment.parent_id)
            if not parent:
                raise NotFound("Parent comment")
            if parent.article_id != article.id:
                raise InvalidState("Parent comment belongs to a different article")

        db_comment = ArticleComment(
            article_id=article.id,
            parent_id=comment.parent_id,
            owner_id=current_user.id,
            content=comment.content,
            status=CommentStatus.PENDING,
        )
        db.add(db_comment)
        await db.commit()
        await db.refresh(db_comment)

        return ApiResponse(
            message="Comment submitted and awaiting moderation",
            data=CommentResponse.model_validate(db_comment),
        )

    except PASSTHROUGH_ERRORS:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        logger.error(f"Error creating comment: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create comment"
        )


@router.put("/{comment_id}", response_model=ApiResponse[CommentResponse])
async def update_comment(
    comment_id: int,
    comment_update: CommentUpdate,
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db)
):
    try:
        comment = await db.get(ArticleComment, comment_id)
        if not comment:
            raise NotFound("Comment")

        ensure_can_edit(comment, identity)

        comment.content = comment_update.content
        # edits by readers go back through review
        if not identity.is_admin:
            comment.status = CommentStatus.PENDING

        await db.commit()
        await db.refresh(comment)

        return ApiResponse(data=CommentResponse.model_validate(comment))

    except PASSTHROUGH_ERRORS:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        logger.error(f"Error updating comment {comment_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update comment"
        )


@router.delete("/{comment_id}", response_model=MessageResponse)
async def delete_comment(
    comment_id: int,
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db)
):
    try:
        comment = await db.get(ArticleComment, comment_id)
        if not comment:
            raise NotFound("Comment")

        ensure_can_delete(comment, identity)

        if plan_comment_deletion(await _reply_count(db, comment_id)) == CommentDeletion.TOMBSTONE:
            tombstone(comment)
            message = "Comment content removed"
        else:
            await db.delete(comment)
            message = "Comment deleted successfully"

        await db.commit()
        return MessageResponse(message=message)

    except PASSTHROUGH_ERRORS:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        logger.error(f"Error deleting comment {comment_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete comment"
        )


@router.put("/{comment_id}/status", response_model=ApiResponse[CommentResponse])
async def update_comment_status(
    comment_id: int,
    status_update: CommentStatusUpdate,
    admin: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    try:
        comment = await db.get(ArticleComment, comment_id)
        if not comment:
            raise NotFound("Comment")

        comment.status = status_update.status
        await db.commit()
        await db.refresh(comment)
        logger.info(f"Comment {comment_id} marked {status_update.status.value} by admin {admin.id}")

        return ApiResponse(
            message=f"Comment {status_update.status.value}",
            data=CommentResponse.model_validate(comment),
        )

    except PASSTHROUGH_ERRORS:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        logger.error(f"Error updating status of comment {comment_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update comment status"
        )
