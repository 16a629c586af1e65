from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from config import DATABASE_URL

engine = create_async_engine(DATABASE_URL)
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

Base = declarative_base()


async def get_db():
    async with async_session() as session:
        yield session


async def create_tables():
    # Register every model on Base.metadata before creating
    import beekeeper.models.user  # noqa: F401
    import beekeeper.models.article  # noqa: F401
    import beekeeper.models.comment  # noqa: F401
    import beekeeper.models.forum  # noqa: F401
    import beekeeper.models.site  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
