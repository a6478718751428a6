"""Webhook log bookkeeping: creation, manual retry and merchant configuration.

Delivery itself happens in :mod:`gateway.workers.webhook_worker`.
"""

import logging
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from gateway.errors import BadRequestError, NotFoundError
from gateway.jobs import JobQueues
from gateway.models.merchant import Merchant
from gateway.models.webhook_log import WebhookLog
from gateway.services.signing import build_envelope, serialize_envelope
from gateway.utils import isoformat, random_token, utcnow

logger = logging.getLogger(__name__)

TEST_EVENT = "webhook.test"


async def create_webhook_log_and_enqueue(
    db: AsyncSession,
    queues: JobQueues,
    merchant_id: str,
    event: str,
    data: dict,
) -> Optional[str]:
    """Record one event for delivery and schedule its first attempt.

    Returns the log id, or ``None`` when the merchant has no webhook URL (the
    event is dropped without a log row).
    """
    merchant = await db.get(Merchant, merchant_id)
    if merchant is None or not merchant.webhook_url:
        logger.debug("Webhook skipped, no URL configured", extra={"merchant_id": merchant_id, "event": event})
        return None

    log = WebhookLog(
        merchant_id=merchant_id,
        event=event,
        payload=serialize_envelope(build_envelope(event, data)),
        status="pending",
        attempts=0,
        next_retry_at=utcnow(),
    )
    db.add(log)
    await db.commit()

    await queues.webhooks.enqueue(log.id)
    logger.info("Webhook scheduled", extra={"merchant_id": merchant_id, "event": event, "entity_id": log.id})
    return log.id


async def emit_event(
    db: AsyncSession,
    queues: JobQueues,
    merchant_id: str,
    event: str,
    data: dict,
) -> Optional[str]:
    """Best-effort variant used by the pipeline: failures are logged, not raised."""
    try:
        return await create_webhook_log_and_enqueue(db, queues, merchant_id, event, data)
    except Exception:
        logger.exception("Failed to enqueue %s webhook", event, extra={"merchant_id": merchant_id})
        await db.rollback()
        return None


async def reset_webhook_log_for_retry(
    db: AsyncSession,
    queues: JobQueues,
    webhook_id: str,
    merchant_id: str,
) -> dict:
    """Restart the full attempt budget of a log and deliver it again now."""
    result = await db.execute(select(WebhookLog).filter_by(id=webhook_id, merchant_id=merchant_id))
    log = result.scalars().first()
    if log is None:
        raise NotFoundError("Webhook log not found")

    log.status = "pending"
    log.attempts = 0
    log.next_retry_at = utcnow()
    log.last_attempt_at = None
    log.response_code = None
    log.response_body = None
    await db.commit()

    await queues.webhooks.enqueue(log.id)
    logger.info("Manual webhook retry", extra={"merchant_id": merchant_id, "entity_id": log.id})
    return {"id": log.id, "status": "pending", "message": "Webhook retry scheduled"}


async def send_test_webhook(db: AsyncSession, queues: JobQueues, merchant_id: str) -> dict:
    log_id = await create_webhook_log_and_enqueue(
        db, queues, merchant_id, TEST_EVENT, {"message": "This is a test webhook"}
    )
    if log_id is None:
        return {"skipped": True, "message": "Webhook URL not configured"}
    return {"scheduled": True, "webhook_id": log_id}


def webhook_log_to_dict(log: WebhookLog) -> dict:
    return {
        "id": log.id,
        "event": log.event,
        "status": log.status,
        "attempts": log.attempts,
        "created_at": isoformat(log.created_at),
        "last_attempt_at": isoformat(log.last_attempt_at),
        "next_retry_at": isoformat(log.next_retry_at),
        "response_code": log.response_code,
    }


async def list_webhook_logs(db: AsyncSession, merchant_id: str, limit: int = 10, offset: int = 0) -> dict:
    if limit < 1 or limit > 100 or offset < 0:
        raise BadRequestError("limit must be 1-100 and offset non-negative")

    total = await db.scalar(
        select(func.count()).select_from(WebhookLog).filter(WebhookLog.merchant_id == merchant_id)
    )
    result = await db.execute(
        select(WebhookLog)
        .filter(WebhookLog.merchant_id == merchant_id)
        .order_by(WebhookLog.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    return {
        "data": [webhook_log_to_dict(log) for log in result.scalars().all()],
        "total": total or 0,
        "limit": limit,
        "offset": offset,
    }


async def update_webhook_config(db: AsyncSession, merchant: Merchant, webhook_url: Optional[str]) -> dict:
    if webhook_url is not None and not isinstance(webhook_url, str):
        raise BadRequestError("webhook_url must be a string or null")

    merchant.webhook_url = webhook_url or None
    await db.commit()
    return {"webhook_url": merchant.webhook_url, "webhook_secret": merchant.webhook_secret}


async def regenerate_webhook_secret(db: AsyncSession, merchant: Merchant) -> dict:
    merchant.webhook_secret = random_token("whsec_")
    await db.commit()
    return {"webhook_secret": merchant.webhook_secret}
