"""Prefixed identifiers for orders, payments and refunds."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gateway.utils import random_token

MAX_ID_ATTEMPTS = 5


async def generate_unique_id(db: AsyncSession, model, prefix: str) -> str:
    for _ in range(MAX_ID_ATTEMPTS):
        candidate = random_token(prefix)
        result = await db.execute(select(model.id).filter_by(id=candidate))
        if result.first() is None:
            return candidate
    # 62**16 possible tokens; reaching this means the generator is broken.
    raise RuntimeError(f"Failed to generate unique {prefix!r} id after {MAX_ID_ATTEMPTS} attempts")
