from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy import func

from starlette import status

from beekeeper.models.forum import ForumCategory, ForumThread, ForumComment
from beekeeper.models.user import User
from beekeeper.policy import moderation
from beekeeper.policy.bans import BanRegistry, is_ban_active
from beekeeper.policy.roles import Identity
from beekeeper.schemas.common import ApiListResponse, ApiResponse, MessageResponse
from beekeeper.schemas.forum import (
    BlockedContent, CategoryResponse, CountPair, ForumCommentResponse, ForumStats, ThreadResponse,
)
from beekeeper.schemas.moderation import BanResponse, BanToggle, BlockToggle, LockToggle, MoveThread, PinToggle
from beekeeper.utils.exceptions import ConflictError, NotFound, PASSTHROUGH_ERRORS
from dependencies import get_db, require_admin, logger

router = APIRouter()

LABELS = {
    ForumCategory: "Category",
    ForumThread: "Thread",
    ForumComment: "Comment",
}


async def _get(db: AsyncSession, model, entity_id: int):
    entity = await db.get(model, entity_id)
    if not entity:
        raise NotFound(LABELS[model])
    return entity


async def _apply(db: AsyncSession, model, entity_id: int, action, response_schema, failure: str):
    """Load, transition and commit one forum entity under the usual rollback rules."""
    try:
        entity = await _get(db, model, entity_id)
        message = await action(entity)
        await db.commit()
        await db.refresh(entity)
        return ApiResponse(message=message, data=response_schema.model_validate(entity))

    except StaleDataError:
        await db.rollback()
        raise ConflictError(reason=f"{model.__tablename__} {entity_id} moderated concurrently")
    except PASSTHROUGH_ERRORS:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        logger.error(f"Error moderating {model.__tablename__} {entity_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=failure
        )


def _block_action(admin: Identity, request: BlockToggle):
    async def action(entity):
        return moderation.set_blocked(entity, admin, request.block, request.reason)
    return action


@router.put("/categories/{category_id}/block", response_model=ApiResponse[CategoryResponse])
async def toggle_category_block(
    category_id: int,
    request: BlockToggle,
    admin: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    return await _apply(db, ForumCategory, category_id, _block_action(admin, request),
                        CategoryResponse, "Failed to update category block status")


@router.put("/threads/{thread_id}/block", response_model=ApiResponse[ThreadResponse])
async def toggle_thread_block(
    thread_id: int,
    request: BlockToggle,
    admin: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    return await _apply(db, ForumThread, thread_id, _block_action(admin, request),
                        ThreadResponse, "Failed to update thread block status")


@router.put("/comments/{comment_id}/block", response_model=ApiResponse[ForumCommentResponse])
async def toggle_comment_block(
    comment_id: int,
    request: BlockToggle,
    admin: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    return await _apply(db, ForumComment, comment_id, _block_action(admin, request),
                        ForumCommentResponse, "Failed to update comment block status")


@router.put("/threads/{thread_id}/lock", response_model=ApiResponse[ThreadResponse])
async def toggle_thread_lock(
    thread_id: int,
    request: LockToggle,
    admin: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    async def action(thread):
        return moderation.set_locked(thread, admin, request.lock)

    return await _apply(db, ForumThread, thread_id, action, ThreadResponse, "Failed to update thread lock status")


@router.put("/threads/{thread_id}/pin", response_model=ApiResponse[ThreadResponse])
async def toggle_thread_pin(
    thread_id: int,
    request: PinToggle,
    admin: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    async def action(thread):
        return moderation.set_pinned(thread, admin, request.pin)

    return await _apply(db, ForumThread, thread_id, action, ThreadResponse, "Failed to update thread pin status")


@router.put("/threads/{thread_id}/move", response_model=ApiResponse[ThreadResponse])
async def move_thread(
    thread_id: int,
    request: MoveThread,
    admin: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    async def action(thread):
        target = await db.get(ForumCategory, request.category_id)
        return moderation.move(thread, admin, target)

    return await _apply(db, ForumThread, thread_id, action, ThreadResponse, "Failed to move thread")


@router.post("/users/{user_id}/ban", response_model=MessageResponse)
async def toggle_user_ban(
    user_id: int,
    request: BanToggle,
    admin: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    try:
        user = await db.get(User, user_id)
        if not user:
            raise NotFound("User")

        registry = BanRegistry(db)
        if request.ban:
            await registry.ban(user_id, admin.id, request.reason, request.expires_at)
            message = "User banned from forum successfully"
        else:
            await registry.unban(user_id)
            message = "User unbanned from forum successfully"

        await db.commit()
        return MessageResponse(message=message)

    except (IntegrityError, StaleDataError):
        await db.rollback()
        raise ConflictError(reason=f"ban record for user {user_id} changed concurrently")
    except PASSTHROUGH_ERRORS:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        logger.error(f"Error updating forum ban of user {user_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update user ban status"
        )


@router.get("/banned-users", response_model=ApiListResponse[BanResponse])
async def list_banned_users(
    admin: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    bans = await BanRegistry(db).list_bans()
    return ApiListResponse(data=[
        BanResponse(
            id=ban.id,
            user_id=ban.user_id,
            banned_by=ban.banned_by,
            reason=ban.reason,
            banned_at=ban.banned_at,
            expires_at=ban.expires_at,
            is_active=is_ban_active(ban),
        )
        for ban in bans
    ])


async def _counts(db: AsyncSession, model) -> CountPair:
    total = await db.scalar(select(func.count(model.id)))
    blocked = await db.scalar(select(func.count(model.id)).filter(model.is_blocked.is_(True)))
    return CountPair(total=total, blocked=blocked)


@router.get("/stats", response_model=ApiResponse[ForumStats])
async def get_forum_stats(
    admin: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    bans = await BanRegistry(db).list_bans()
    return ApiResponse(data=ForumStats(
        categories=await _counts(db, ForumCategory),
        threads=await _counts(db, ForumThread),
        comments=await _counts(db, ForumComment),
        banned_users=sum(1 for ban in bans if is_ban_active(ban)),
    ))


@router.get("/blocked", response_model=ApiResponse[BlockedContent])
async def get_blocked_content(
    admin: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    async def blocked(model):
        result = await db.execute(
            select(model).filter(model.is_blocked.is_(True)).order_by(model.blocked_at.desc())
        )
        return result.scalars().unique().all()

    return ApiResponse(data=BlockedContent(
        categories=[CategoryResponse.model_validate(c) for c in await blocked(ForumCategory)],
        threads=[ThreadResponse.model_validate(t) for t in await blocked(ForumThread)],
        comments=[ForumCommentResponse.model_validate(c) for c in await blocked(ForumComment)],
    ))
