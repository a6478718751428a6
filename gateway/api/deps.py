from typing import Optional

from fastapi import Depends, Header, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gateway.errors import AuthenticationError
from gateway.jobs import JobQueues
from gateway.models.merchant import Merchant


async def get_db(request: Request):
    async with request.app.state.session_factory() as db:
        yield db


def get_queues(request: Request) -> JobQueues:
    return request.app.state.queues


async def get_current_merchant(
    x_api_key: Optional[str] = Header(None),
    x_api_secret: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
) -> Merchant:
    if not x_api_key or not x_api_secret:
        raise AuthenticationError("Invalid API credentials")

    result = await db.execute(
        select(Merchant).filter_by(api_key=x_api_key, api_secret=x_api_secret, is_active=True)
    )
    merchant = result.scalars().first()
    if merchant is None:
        raise AuthenticationError("Invalid API credentials")
    return merchant
