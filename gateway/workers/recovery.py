"""Re-enqueue work left unfinished by a previous process.

Jobs only live in memory, so on startup every non-terminal row in the ledger
gets a fresh job. A job for a row that is already being handled is a no-op
thanks to the status-guarded updates in the workers.
"""

import logging

from sqlalchemy import select

from gateway.models.payment import Payment
from gateway.models.refund import Refund
from gateway.models.webhook_log import WebhookLog
from gateway.utils import utcnow
from gateway.workers.context import WorkerContext

logger = logging.getLogger(__name__)


async def recover_pending_jobs(ctx: WorkerContext) -> dict:
    async with ctx.session_factory() as db:
        payment_ids = (
            await db.execute(select(Payment.id).filter(Payment.status.in_(("pending", "processing"))))
        ).scalars().all()
        refund_ids = (
            await db.execute(select(Refund.id).filter(Refund.status == "pending"))
        ).scalars().all()
        webhooks = (
            await db.execute(select(WebhookLog.id, WebhookLog.next_retry_at).filter(WebhookLog.status == "pending"))
        ).all()

    for payment_id in payment_ids:
        await ctx.queues.settlement.enqueue(payment_id)
    for refund_id in refund_ids:
        await ctx.queues.refunds.enqueue(refund_id)

    now = utcnow()
    for log_id, retry_at in webhooks:
        delay = max(0.0, (retry_at - now).total_seconds()) if retry_at else 0.0
        await ctx.queues.webhooks.enqueue(log_id, delay=delay)

    recovered = {"payments": len(payment_ids), "refunds": len(refund_ids), "webhooks": len(webhooks)}
    if any(recovered.values()):
        logger.info("Recovered unfinished jobs: %s", recovered)
    return recovered
