from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy import delete, desc, func, update
from typing import Dict, List, Optional
from datetime import datetime, timezone
import math

from starlette import status

from beekeeper.models.forum import ForumCategory, ForumThread, ForumComment
from beekeeper.policy.bans import BanRegistry
from beekeeper.policy.cascade import CommentDeletion, ensure_category_deletable, plan_comment_deletion, tombstone
from beekeeper.policy.moderation import ensure_accepts_comments, ensure_thread_editable
from beekeeper.policy.ownership import (
    ensure_can_create_forum_content,
    ensure_can_delete,
    ensure_can_edit,
)
from beekeeper.policy.roles import Identity
from beekeeper.policy.visibility import (
    can_view, can_view_forum_comment, can_view_thread, filter_visible, visibility_clause,
)
from beekeeper.schemas.common import ApiListResponse, ApiResponse, MessageResponse, Pagination
from beekeeper.schemas.forum import (
    CategoryCreate, CategoryUpdate, CategoryResponse, CategoryDetail,
    ThreadCreate, ThreadUpdate, ThreadResponse, ThreadDetail,
    ForumCommentCreate, ForumCommentUpdate, ForumCommentResponse,
)
from beekeeper.utils.exceptions import ConflictError, Forbidden, InvalidState, NotFound, PASSTHROUGH_ERRORS
from beekeeper.utils.slugs import unique_slug
from dependencies import get_db, require_identity, check_forum_enabled, logger

router = APIRouter(dependencies=[Depends(check_forum_enabled), Depends(require_identity)])


async def _thread_counts(db: AsyncSession, category_ids: List[int], identity: Identity) -> Dict[int, int]:
    if not category_ids:
        return {}
    result = await db.execute(
        select(ForumThread.category_id, func.count(ForumThread.id))
        .filter(ForumThread.category_id.in_(category_ids), visibility_clause(ForumThread, identity))
        .group_by(ForumThread.category_id)
    )
    return dict(result.all())


async def _comment_counts(db: AsyncSession, thread_ids: List[int], identity: Identity) -> Dict[int, int]:
    if not thread_ids:
        return {}
    result = await db.execute(
        select(ForumComment.thread_id, func.count(ForumComment.id))
        .filter(ForumComment.thread_id.in_(thread_ids), visibility_clause(ForumComment, identity))
        .group_by(ForumComment.thread_id)
    )
    return dict(result.all())


def _thread_response(thread: ForumThread, comment_count: int = None) -> ThreadResponse:
    response = ThreadResponse.model_validate(thread)
    response.comment_count = comment_count
    return response


async def _get_visible_thread(db: AsyncSession, thread_id: int, identity: Identity) -> ForumThread:
    thread = await db.get(ForumThread, thread_id)
    if not thread or not can_view_thread(thread, thread.category, identity):
        raise NotFound("Thread")
    return thread


# Categories

@router.get("/categories", response_model=ApiListResponse[CategoryResponse])
async def list_categories(
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(
        select(ForumCategory)
        .filter(visibility_clause(ForumCategory, identity))
        .order_by(desc(ForumCategory.created_at), desc(ForumCategory.id))
    )
    categories = filter_visible(result.scalars().all(), identity)
    counts = await _thread_counts(db, [c.id for c in categories], identity)

    data = []
    for category in categories:
        response = CategoryResponse.model_validate(category)
        response.thread_count = counts.get(category.id, 0)
        data.append(response)
    return ApiListResponse(data=data)


@router.get("/categories/{slug}", response_model=ApiResponse[CategoryDetail])
async def get_category(
    slug: str,
    offset: int = Query(0, ge=0),
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db)
):
    """Category with its first page of visible threads."""
    category = await db.scalar(select(ForumCategory).filter(ForumCategory.slug == slug))
    if not category or not can_view(category, identity):
        raise NotFound("Category")

    result = await db.execute(
        select(ForumThread)
        .filter(ForumThread.category_id == category.id, visibility_clause(ForumThread, identity))
        .order_by(desc(ForumThread.is_pinned), desc(ForumThread.last_activity_at), desc(ForumThread.id))
        .offset(offset)
        .limit(20)
    )
    threads = filter_visible(result.scalars().unique().all(), identity)
    counts = await _comment_counts(db, [t.id for t in threads], identity)

    category_response = CategoryResponse.model_validate(category)
    thread_counts = await _thread_counts(db, [category.id], identity)
    category_response.thread_count = thread_counts.get(category.id, 0)
    return ApiResponse(data=CategoryDetail(
        category=category_response,
        threads=[_thread_response(t, counts.get(t.id, 0)) for t in threads],
    ))


@router.post("/categories", response_model=ApiResponse[CategoryResponse], status_code=status.HTTP_201_CREATED)
async def create_category(
    category: CategoryCreate,
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db)
):
    try:
        ensure_can_create_forum_content(identity)

        db_category = ForumCategory(
            name=category.name,
            slug=await unique_slug(db, ForumCategory, category.name, 150),
            description=category.description,
            owner_id=identity.id,
            is_blocked=False,
        )
        db.add(db_category)
        await db.commit()
        await db.refresh(db_category)

        return ApiResponse(message="Category created", data=CategoryResponse.model_validate(db_category))

    except PASSTHROUGH_ERRORS:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        logger.error(f"Error creating forum category: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create category"
        )


@router.put("/categories/{category_id}", response_model=ApiResponse[CategoryResponse])
async def update_category(
    category_id: int,
    category_update: CategoryUpdate,
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db)
):
    try:
        category = await db.get(ForumCategory, category_id)
        if not category:
            raise NotFound("Category")

        ensure_can_edit(category, identity)

        update_data = category_update.dict(exclude_unset=True, exclude_none=True)
        if 'name' in update_data and update_data['name'] != category.name:
            category.slug = await unique_slug(db, ForumCategory, update_data['name'], 150)
        for field, value in update_data.items():
            setattr(category, field, value)

        await db.commit()
        await db.refresh(category)

        return ApiResponse(message="Category updated", data=CategoryResponse.model_validate(category))

    except StaleDataError:
        await db.rollback()
        raise ConflictError(reason=f"category {category_id} version race")
    except PASSTHROUGH_ERRORS:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        logger.error(f"Error updating forum category {category_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update category"
        )


@router.delete("/categories/{category_id}", response_model=MessageResponse)
async def delete_category(
    category_id: int,
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db)
):
    try:
        category = await db.get(ForumCategory, category_id)
        if not category:
            raise NotFound("Category")

        ensure_can_delete(category, identity)

        # blocked threads count too
        thread_count = await db.scalar(
            select(func.count(ForumThread.id)).filter(ForumThread.category_id == category_id)
        )
        ensure_category_deletable(thread_count)

        await db.delete(category)
        await db.commit()
        logger.info(f"Forum category {category_id} deleted by user {identity.id}")

        return MessageResponse(message="Category deleted successfully")

    except StaleDataError:
        await db.rollback()
        raise ConflictError(reason=f"category {category_id} version race")
    except PASSTHROUGH_ERRORS:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        logger.error(f"Error deleting forum category {category_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete category"
        )


# Threads

@router.get("/threads", response_model=ApiListResponse[ThreadResponse])
async def list_threads(
    category: Optional[int] = Query(None, gt=0),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort: str = Query("default", pattern="^(default|recent)$"),
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db)
):
    """
    List threads the caller may see.

    A thread is listed only when both the thread and its category are visible
    to the caller. The default order puts pinned threads first; `recent`
    orders purely by last activity.
    """
    try:
        query = (
            select(ForumThread)
            .join(ForumCategory, ForumThread.category_id == ForumCategory.id)
            .filter(visibility_clause(ForumThread, identity), visibility_clause(ForumCategory, identity))
        )
        if category is not None:
            query = query.filter(ForumThread.category_id == category)

        total = await db.scalar(
            select(func.count()).select_from(query.with_only_columns(ForumThread.id).subquery())
        )

        if sort == "recent":
            query = query.order_by(desc(ForumThread.last_activity_at), desc(ForumThread.id))
        else:
            query = query.order_by(
                desc(ForumThread.is_pinned), desc(ForumThread.last_activity_at), desc(ForumThread.id)
            )
        query = query.offset((page - 1) * limit).limit(limit)

        result = await db.execute(query)
        threads = [t for t in result.scalars().unique().all() if can_view_thread(t, t.category, identity)]
        counts = await _comment_counts(db, [t.id for t in threads], identity)

        return ApiListResponse(
            data=[_thread_response(t, counts.get(t.id, 0)) for t in threads],
            pagination=Pagination(total=total, page=page, pages=math.ceil(total / limit), per_page=limit),
        )

    except PASSTHROUGH_ERRORS:
        raise
    except Exception as e:
        logger.error(f"Error listing forum threads: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch threads"
        )


@router.get("/threads/{slug}", response_model=ApiResponse[ThreadDetail])
async def get_thread(
    slug: str,
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db)
):
    try:
        thread = await db.scalar(select(ForumThread).filter(ForumThread.slug == slug))
        if not thread or not can_view_thread(thread, thread.category, identity):
            raise NotFound("Thread")

        result = await db.execute(
            select(ForumComment)
            .filter(ForumComment.thread_id == thread.id, visibility_clause(ForumComment, identity))
            .order_by(ForumComment.created_at, ForumComment.id)
        )
        comments = [
            c for c in result.scalars().all()
            if can_view_forum_comment(c, thread, thread.category, identity)
        ]

        response = _thread_response(thread, len(comments))

        await db.execute(
            update(ForumThread)
            .where(ForumThread.id == thread.id)
            .values(view_count=ForumThread.view_count + 1)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        response.view_count += 1

        return ApiResponse(data=ThreadDetail(
            thread=response,
            comments=[ForumCommentResponse.model_validate(c) for c in comments],
        ))

    except PASSTHROUGH_ERRORS:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        logger.error(f"Error fetching forum thread {slug}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch thread"
        )


@router.post("/threads", response_model=ApiResponse[ThreadResponse], status_code=status.HTTP_201_CREATED)
async def create_thread(
    thread: ThreadCreate,
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db)
):
    try:
        await BanRegistry(db).ensure_not_banned(identity.id)
        ensure_can_create_forum_content(identity)

        category = await db.get(ForumCategory, thread.category_id)
        if not category or not can_view(category, identity):
            raise NotFound("Category")
        if category.is_blocked and not identity.is_admin:
            raise Forbidden(
                "Cannot create threads in a blocked category",
                reason=f"category {category.id} blocked",
            )

        now = datetime.now(timezone.utc)
        db_thread = ForumThread(
            title=thread.title,
            slug=await unique_slug(db, ForumThread, thread.title, 300),
            content=thread.content,
            category_id=category.id,
            owner_id=identity.id,
            is_blocked=False,
            is_locked=False,
            is_pinned=False,
            view_count=0,
            last_activity_at=now,
        )
        db.add(db_thread)
        await db.commit()
        await db.refresh(db_thread)
        logger.info(f"Forum thread {db_thread.id} created by user {identity.id}")

        return ApiResponse(message="Thread created", data=_thread_response(db_thread, 0))

    except PASSTHROUGH_ERRORS:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        logger.error(f"Error creating forum thread: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create thread"
        )


@router.put("/threads/{thread_id}", response_model=ApiResponse[ThreadResponse])
async def update_thread(
    thread_id: int,
    thread_update: ThreadUpdate,
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db)
):
    try:
        await BanRegistry(db).ensure_not_banned(identity.id)

        thread = await db.get(ForumThread, thread_id)
        if not thread:
            raise NotFound("Thread")

        ensure_can_edit(thread, identity)
        ensure_thread_editable(thread, identity)

        update_data = thread_update.dict(exclude_unset=True, exclude_none=True)
        if 'title' in update_data and update_data['title'] != thread.title:
            thread.slug = await unique_slug(db, ForumThread, update_data['title'], 300)
        for field, value in update_data.items():
            setattr(thread, field, value)

        await db.commit()
        await db.refresh(thread)

        return ApiResponse(message="Thread updated", data=_thread_response(thread))

    except StaleDataError:
        await db.rollback()
        raise ConflictError(reason=f"thread {thread_id} version race")
    except PASSTHROUGH_ERRORS:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        logger.error(f"Error updating forum thread {thread_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update thread"
        )


@router.delete("/threads/{thread_id}", response_model=MessageResponse)
async def delete_thread(
    thread_id: int,
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db)
):
    try:
        thread = await db.get(ForumThread, thread_id)
        if not thread:
            raise NotFound("Thread")

        ensure_can_delete(thread, identity)

        # replies point at their parents, so drop the whole tree in one statement
        await db.execute(delete(ForumComment).where(ForumComment.thread_id == thread_id))
        await db.delete(thread)
        await db.commit()
        logger.info(f"Forum thread {thread_id} deleted by user {identity.id}")

        return MessageResponse(message="Thread deleted successfully")

    except StaleDataError:
        await db.rollback()
        raise ConflictError(reason=f"thread {thread_id} version race")
    except PASSTHROUGH_ERRORS:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        logger.error(f"Error deleting forum thread {thread_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete thread"
        )


# Comments

@router.post("/comments", response_model=ApiResponse[ForumCommentResponse], status_code=status.HTTP_201_CREATED)
async def create_forum_comment(
    comment: ForumCommentCreate,
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db)
):
    try:
        await BanRegistry(db).ensure_not_banned(identity.id)
        ensure_can_create_forum_content(identity)

        thread = await _get_visible_thread(db, comment.thread_id, identity)
        ensure_accepts_comments(thread)

        if comment.parent_comment_id is not None:
            parent = await db.get(ForumComment, comment.parent_comment_id)
            if not parent:
                raise NotFound("Parent comment")
            if parent.thread_id != thread.id:
                raise InvalidState("Parent comment belongs to a different thread")

        db_comment = ForumComment(
            thread_id=thread.id,
            parent_comment_id=comment.parent_comment_id,
            content=comment.content,
            owner_id=identity.id,
            is_blocked=False,
        )
        db.add(db_comment)
        thread.last_activity_at = datetime.now(timezone.utc)
        await db.commit()
        await db.refresh(db_comment)

        return ApiResponse(message="Comment posted", data=ForumCommentResponse.model_validate(db_comment))

    except StaleDataError:
        await db.rollback()
        raise ConflictError(reason=f"thread {comment.thread_id} changed while commenting")
    except PASSTHROUGH_ERRORS:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        logger.error(f"Error creating forum comment: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create comment"
        )


@router.put("/comments/{comment_id}", response_model=ApiResponse[ForumCommentResponse])
async def update_forum_comment(
    comment_id: int,
    comment_update: ForumCommentUpdate,
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db)
):
    try:
        await BanRegistry(db).ensure_not_banned(identity.id)

        comment = await db.get(ForumComment, comment_id)
        if not comment:
            raise NotFound("Comment")

        ensure_can_edit(comment, identity)
        thread = await db.get(ForumThread, comment.thread_id)
        ensure_accepts_comments(thread)

        comment.content = comment_update.content
        await db.commit()
        await db.refresh(comment)

        return ApiResponse(message="Comment updated", data=ForumCommentResponse.model_validate(comment))

    except StaleDataError:
        await db.rollback()
        raise ConflictError(reason=f"forum comment {comment_id} version race")
    except PASSTHROUGH_ERRORS:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        logger.error(f"Error updating forum comment {comment_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update comment"
        )


@router.delete("/comments/{comment_id}", response_model=MessageResponse)
async def delete_forum_comment(
    comment_id: int,
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db)
):
    try:
        comment = await db.get(ForumComment, comment_id)
        if not comment:
            raise NotFound("Comment")

        ensure_can_delete(comment, identity)

        reply_count = await db.scalar(
            select(func.count(ForumComment.id)).filter(ForumComment.parent_comment_id == comment_id)
        )
        if plan_comment_deletion(reply_count) == CommentDeletion.TOMBSTONE:
            tombstone(comment)
            message = "Comment content removed"
        else:
            await db.delete(comment)
            message = "Comment deleted successfully"

        await db.commit()
        return MessageResponse(message=message)

    except StaleDataError:
        await db.rollback()
        raise ConflictError(reason=f"forum comment {comment_id} version race")
    except PASSTHROUGH_ERRORS:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        logger.error(f"Error deleting forum comment {comment_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete comment"
        )
