from typing import Annotated, AsyncGenerator

import httpx
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from trustradar.config import settings
from trustradar.database import get_db


async def get_http_client() -> AsyncGenerator[httpx.AsyncClient, None]:
    """Outbound client for on-demand endpoint checks, closed after the request."""
    async with httpx.AsyncClient(
        timeout=settings.probe_timeout_seconds,
        headers={"User-Agent": settings.probe_user_agent},
    ) as client:
        yield client


DbSession = Annotated[AsyncSession, Depends(get_db)]
HttpClient = Annotated[httpx.AsyncClient, Depends(get_http_client)]
