from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession
from sqlalchemy.orm import sessionmaker
from .config import settings

def build_engine(database_url: str = settings.DATABASE_URL) -> AsyncEngine:
    """
    Engine for the job store. Postgres in production; SQLite (aiosqlite)
    does not take the pool sizing options.
    """
    if make_url(database_url).get_backend_name() == "sqlite":
        return create_async_engine(database_url, echo=False)
    return create_async_engine(
        database_url,
        echo=False,
        pool_pre_ping=True,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
    )

engine = build_engine()
# Jobs are read after commit (status checks, responses), so nothing expires on commit.
AsyncSessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False, class_=AsyncSession)

async def get_db():
    async with AsyncSessionLocal() as session:
        yield session
