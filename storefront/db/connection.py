from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine,async_sessionmaker,AsyncSession
from sqlalchemy.pool import StaticPool
from storefront.config.settings import config_settings
from storefront.db.utils import _normalize_db_url, is_sqlite_memory_url


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        # every connection to an in-memory db is a new db, keep a single one
        if is_sqlite_memory_url(url):
            kwargs["poolclass"] = StaticPool
        return create_async_engine(url, echo=echo, **kwargs)
    return create_async_engine(url, echo=echo, pool_pre_ping=True)


DATABASE_URL=_normalize_db_url(config_settings.DATABASE_URL)

async_engine=build_engine(DATABASE_URL,echo=config_settings.SQL_ECHO)

async_session=async_sessionmaker(bind=async_engine,class_=AsyncSession,expire_on_commit=False)
