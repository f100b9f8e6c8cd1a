from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession


async def get_async_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    Использовать в Depends(get_async_session).
    Сессия на запрос; незакоммиченная транзакция откатывается при закрытии.
    """
    async with request.app.state.session_factory() as session:
        yield session
