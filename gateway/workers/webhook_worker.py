"""One job run is one delivery attempt of a webhook log.

Failures never propagate: they are recorded on the log, which is either
rescheduled with the next interval of the retry table or marked failed.
"""

import logging
from datetime import datetime
from typing import Optional

import httpx

from gateway.models.merchant import Merchant
from gateway.models.webhook_log import WebhookLog
from gateway.services.signing import SIGNATURE_HEADER, generate_signature, next_retry_at
from gateway.utils import utcnow
from gateway.workers.context import WorkerContext

logger = logging.getLogger(__name__)

MAX_RESPONSE_BODY = 2000
RESOLVED_STATUSES = ("success", "failed")


async def _post(ctx: WorkerContext, url: str, body: str, secret: str):
    """Return ``(delivered, response_code, response_body)``."""
    headers = {
        "Content-Type": "application/json",
        SIGNATURE_HEADER: generate_signature(body, secret),
    }
    try:
        response = await ctx.http_client.post(
            url,
            content=body.encode("utf-8"),
            headers=headers,
            timeout=ctx.settings.webhook_timeout,
        )
    except httpx.HTTPError as exc:
        return False, None, f"{type(exc).__name__}: {exc}"[:MAX_RESPONSE_BODY]
    return 200 <= response.status_code < 300, response.status_code, response.text[:MAX_RESPONSE_BODY]


async def deliver_webhook(ctx: WorkerContext, log_id: str) -> None:
    extra = {"entity_id": log_id, "queue": "webhooks"}

    async with ctx.session_factory() as db:
        log = await db.get(WebhookLog, log_id)
        if log is None:
            logger.warning("Webhook log not found; skipping", extra=extra)
            return
        if log.status in RESOLVED_STATUSES:
            # Stale job for a log that an earlier attempt already resolved
            return
        merchant = await db.get(Merchant, log.merchant_id)
        if merchant is None or not merchant.webhook_url:
            logger.info("Webhook URL no longer configured; skipping", extra=extra)
            return
        merchant_id = merchant.id
        url = merchant.webhook_url
        secret = merchant.webhook_secret
        body = log.payload
        event = log.event

    if not secret:
        logger.warning("Merchant %s has no webhook secret; signing with empty key", merchant_id, extra=extra)

    delivered, response_code, response_body = await _post(ctx, url, body, secret or "")

    retry_at: Optional[datetime] = None
    async with ctx.session_factory() as db:
        log = await db.get(WebhookLog, log_id)
        if log is None:
            return
        now = utcnow()
        log.attempts = (log.attempts or 0) + 1
        log.last_attempt_at = now
        log.response_code = response_code
        log.response_body = response_body

        if delivered:
            log.status = "success"
            log.next_retry_at = None
        else:
            retry_at = next_retry_at(log.attempts, ctx.settings.webhook_retry_intervals, now)
            log.status = "pending" if retry_at else "failed"
            log.next_retry_at = retry_at
        attempts = log.attempts
        await db.commit()

    if delivered:
        logger.info("Webhook %s delivered to %s", event, url, extra=extra)
    elif retry_at is None:
        logger.warning("Webhook %s failed after %d attempts", event, attempts, extra=extra)
    else:
        delay = max(0.0, (retry_at - utcnow()).total_seconds())
        await ctx.queues.webhooks.enqueue(log_id, delay=delay)
        logger.info(
            "Webhook %s attempt %d failed (%s); retry in %.0fs",
            event, attempts, response_code, delay, extra=extra,
        )
