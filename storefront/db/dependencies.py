from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import  AsyncSession
from storefront.db.connection import async_session

async def get_session() -> AsyncGenerator[AsyncSession,None]:
    # the session opens its connection on first execute and is closed at the end of the with block
    async with async_session() as session:
        yield session
