import re

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession


def slugify(text: str, max_length: int = 255) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", (text or "").lower()).strip("-")
    return slug[:max_length] or "item"


async def unique_slug(db: AsyncSession, model, text: str, max_length: int = 255) -> str:
    """Slug for `text` that no row of `model` uses yet: "title", "title-1", "title-2", ..."""
    base = slugify(text, max_length - 6)
    candidate = base
    counter = 1
    while await db.scalar(select(model.id).filter(model.slug == candidate)) is not None:
        candidate = f"{base}-{counter}"
        counter += 1
    return candidate
