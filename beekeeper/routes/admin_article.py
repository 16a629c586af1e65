from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm.exc import StaleDataError

from starlette import status

from beekeeper.models.article import Article
from beekeeper.policy import moderation
from beekeeper.policy.roles import Identity
from beekeeper.schemas.article import ArticleResponse
from beekeeper.schemas.common import ApiListResponse, ApiResponse
from beekeeper.schemas.moderation import BlockRequest
from beekeeper.utils.exceptions import ConflictError, NotFound, PASSTHROUGH_ERRORS
from dependencies import get_db, require_admin, logger

router = APIRouter()


async def _get_article(db: AsyncSession, article_id: int) -> Article:
    article = await db.get(Article, article_id)
    if not article:
        raise NotFound("Article")
    return article


@router.put("/{article_id}/block", response_model=ApiResponse[ArticleResponse])
async def block_article(
    article_id: int,
    request: BlockRequest,
    admin: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    try:
        article = await _get_article(db, article_id)
        message = moderation.block(article, admin, request.reason)
        await db.commit()
        await db.refresh(article)
        return ApiResponse(message=message, data=ArticleResponse.model_validate(article))

    except StaleDataError:
        await db.rollback()
        raise ConflictError(reason=f"article {article_id} block race")
    except PASSTHROUGH_ERRORS:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        logger.error(f"Error blocking article {article_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to block article"
        )


@router.put("/{article_id}/unblock", response_model=ApiResponse[ArticleResponse])
async def unblock_article(
    article_id: int,
    admin: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    try:
        article = await _get_article(db, article_id)
        message = moderation.unblock(article, admin)
        await db.commit()
        await db.refresh(article)
        return ApiResponse(message=message, data=ArticleResponse.model_validate(article))

    except StaleDataError:
        await db.rollback()
        raise ConflictError(reason=f"article {article_id} unblock race")
    except PASSTHROUGH_ERRORS:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        logger.error(f"Error unblocking article {article_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to unblock article"
        )


@router.get("/blocked", response_model=ApiListResponse[ArticleResponse])
async def list_blocked_articles(
    admin: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(
        select(Article).filter(Article.is_blocked.is_(True)).order_by(Article.blocked_at.desc())
    )
    return ApiListResponse(data=[ArticleResponse.model_validate(a) for a in result.scalars().all()])
