"""Per-merchant replay of payment-creation responses keyed by ``Idempotency-Key``."""

import json
import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from gateway.models.idempotency_key import IdempotencyKey
from gateway.utils import utcnow

logger = logging.getLogger(__name__)

IDEMPOTENCY_TTL = timedelta(hours=24)


async def get_cached_response(db: AsyncSession, merchant_id: str, key: Optional[str]) -> Optional[dict]:
    """Return the stored response for ``key`` if it has not expired.

    An expired entry for the same key is deleted so the request is processed
    afresh.
    """
    if not key:
        return None

    now = utcnow()
    result = await db.execute(
        select(IdempotencyKey).filter(
            IdempotencyKey.key == key,
            IdempotencyKey.merchant_id == merchant_id,
            IdempotencyKey.expires_at > now,
        )
    )
    entry = result.scalars().first()
    if entry:
        logger.info("Idempotency hit", extra={"merchant_id": merchant_id})
        return json.loads(entry.response)

    await db.execute(
        delete(IdempotencyKey).where(
            IdempotencyKey.key == key,
            IdempotencyKey.merchant_id == merchant_id,
            IdempotencyKey.expires_at <= now,
        )
    )
    await db.commit()
    return None


async def store_response(
    db: AsyncSession,
    merchant_id: str,
    key: Optional[str],
    response: dict,
    ttl: timedelta = IDEMPOTENCY_TTL,
) -> None:
    if not key:
        return

    expires_at = utcnow() + ttl
    serialized = json.dumps(response)

    result = await db.execute(select(IdempotencyKey).filter_by(key=key, merchant_id=merchant_id))
    entry = result.scalars().first()
    if entry:
        entry.response = serialized
        entry.expires_at = expires_at
    else:
        db.add(IdempotencyKey(key=key, merchant_id=merchant_id, response=serialized, expires_at=expires_at))
    await db.commit()
