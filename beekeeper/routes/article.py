from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy import delete, desc, func, or_, update
from typing import Optional
from datetime import datetime, timezone
import math

from starlette import status

from beekeeper.models.article import Article, ArticleStatus
from beekeeper.models.comment import ArticleComment
from beekeeper.policy.ownership import ensure_can_create_article, ensure_can_delete, ensure_can_edit
from beekeeper.policy.roles import Identity
from beekeeper.policy.visibility import can_view, filter_visible, visibility_clause
from beekeeper.schemas.article import ArticleCreate, ArticleUpdate, ArticleResponse
from beekeeper.schemas.common import ApiListResponse, ApiResponse, MessageResponse, Pagination
from beekeeper.utils.exceptions import ConflictError, Forbidden, NotFound, PASSTHROUGH_ERRORS
from beekeeper.utils.slugs import unique_slug
from dependencies import get_db, get_identity, require_identity, logger

router = APIRouter()


def _excerpt(content: str) -> str:
    return content[:200] + "..."


@router.get("/", response_model=ApiListResponse[ArticleResponse])
async def list_articles(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    author: Optional[int] = None,
    search: Optional[str] = Query(None, min_length=2),
    status_filter: Optional[str] = Query(None, alias="status", pattern="^(draft|published|archived|blocked)$"),
    identity: Optional[Identity] = Depends(get_identity),
    db: AsyncSession = Depends(get_db)
):
    """List the articles the caller may see, newest first."""
    try:
        query = select(Article).filter(visibility_clause(Article, identity))

        if author is not None:
            query = query.filter(Article.owner_id == author)
        if search:
            search_term = f"%{search}%"
            query = query.filter(or_(
                Article.title.ilike(search_term),
                Article.content.ilike(search_term),
                Article.excerpt.ilike(search_term),
            ))
        # status filtering is an admin panel feature
        if status_filter and identity is not None and identity.is_admin:
            if status_filter == "blocked":
                query = query.filter(Article.is_blocked.is_(True))
            else:
                query = query.filter(Article.status == ArticleStatus(status_filter))

        total = await db.scalar(select(func.count()).select_from(query.subquery()))

        query = query.order_by(desc(Article.published_at), desc(Article.id))
        query = query.offset((page - 1) * limit).limit(limit)
        result = await db.execute(query)
        articles = filter_visible(result.scalars().all(), identity)

        return ApiListResponse(
            data=[ArticleResponse.model_validate(a) for a in articles],
            pagination=Pagination(total=total, page=page, pages=math.ceil(total / limit), per_page=limit),
        )

    except PASSTHROUGH_ERRORS:
        raise
    except Exception as e:
        logger.error(f"Error listing articles: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch articles"
        )


@router.get("/byId/{article_id}", response_model=ApiResponse[ArticleResponse])
async def get_article_for_editing(
    article_id: int,
    identity: Optional[Identity] = Depends(get_identity),
    db: AsyncSession = Depends(get_db)
):
    """Editor fetch. Hidden articles answer 403 here rather than 404."""
    article = await db.get(Article, article_id)
    if not article:
        raise NotFound("Article")
    if not can_view(article, identity):
        raise Forbidden(
            "This article has been blocked and cannot be edited",
            reason=f"article {article_id} hidden from {identity.id if identity else 'anonymous'}",
        )
    return ApiResponse(data=ArticleResponse.model_validate(article))


@router.get("/{slug}", response_model=ApiResponse[ArticleResponse])
async def get_article(
    slug: str,
    identity: Optional[Identity] = Depends(get_identity),
    db: AsyncSession = Depends(get_db)
):
    """Public read. Articles the caller may not see look exactly like missing ones."""
    try:
        article = await db.scalar(select(Article).filter(Article.slug == slug))
        if not article or not can_view(article, identity):
            raise NotFound("Article")

        response = ArticleResponse.model_validate(article)

        # Only public reads count as views; the version column is left alone
        if article.publicly_visible():
            await db.execute(
                update(Article)
                .where(Article.id == article.id)
                .values(view_count=Article.view_count + 1)
                .execution_options(synchronize_session=False)
            )
            await db.commit()
            response.view_count += 1

        return ApiResponse(data=response)

    except PASSTHROUGH_ERRORS:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        logger.error(f"Error fetching article {slug}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch article"
        )


@router.post("/", response_model=ApiResponse[ArticleResponse], status_code=status.HTTP_201_CREATED)
async def create_article(
    article: ArticleCreate,
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db)
):
    try:
        ensure_can_create_article(identity)

        db_article = Article(
            title=article.title,
            slug=await unique_slug(db, Article, article.title),
            content=article.content,
            excerpt=article.excerpt or _excerpt(article.content),
            status=article.status,
            owner_id=identity.id,
            published_at=datetime.now(timezone.utc) if article.status == ArticleStatus.PUBLISHED else None,
            is_blocked=False,
        )
        db.add(db_article)
        await db.commit()
        await db.refresh(db_article)
        logger.info(f"Article {db_article.id} created by user {identity.id}")

        return ApiResponse(data=ArticleResponse.model_validate(db_article))

    except PASSTHROUGH_ERRORS:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        logger.error(f"Error creating article: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create article"
        )


@router.put("/{article_id}", response_model=ApiResponse[ArticleResponse])
async def update_article(
    article_id: int,
    article_update: ArticleUpdate,
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db)
):
    try:
        article = await db.get(Article, article_id)
        if not article:
            raise NotFound("Article")

        ensure_can_edit(article, identity)

        update_data = article_update.dict(exclude_unset=True, exclude_none=True)

        if 'title' in update_data and update_data['title'] != article.title:
            article.slug = await unique_slug(db, Article, update_data['title'])
        if update_data.get('status') == ArticleStatus.PUBLISHED and article.published_at is None:
            article.published_at = datetime.now(timezone.utc)

        for field, value in update_data.items():
            setattr(article, field, value)

        await db.commit()
        await db.refresh(article)

        return ApiResponse(data=ArticleResponse.model_validate(article))

    except StaleDataError:
        await db.rollback()
        raise ConflictError(reason=f"article {article_id} version race")
    except PASSTHROUGH_ERRORS:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        logger.error(f"Error updating article {article_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update article"
        )


@router.delete("/{article_id}", response_model=MessageResponse)
async def delete_article(
    article_id: int,
    identity: Identity = Depends(require_identity),
    db: AsyncSession = Depends(get_db)
):
    try:
        article = await db.get(Article, article_id)
        if not article:
            raise NotFound("Article")

        ensure_can_delete(article, identity)

        # Comments go with the article
        await db.execute(delete(ArticleComment).where(ArticleComment.article_id == article_id))
        await db.delete(article)
        await db.commit()
        logger.info(f"Article {article_id} deleted by user {identity.id}")

        return MessageResponse(message="Article deleted successfully")

    except StaleDataError:
        await db.rollback()
        raise ConflictError(reason=f"article {article_id} version race")
    except PASSTHROUGH_ERRORS:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        logger.error(f"Error deleting article {article_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete article"
        )
