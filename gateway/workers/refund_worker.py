import logging

from sqlalchemy import update

from gateway.errors import SettlementError
from gateway.models.payment import Payment
from gateway.models.refund import Refund
from gateway.services.refund_service import refund_to_dict
from gateway.services.settlement import refund_processing_delay
from gateway.services.webhook_service import emit_event
from gateway.utils import utcnow
from gateway.workers.context import WorkerContext

logger = logging.getLogger(__name__)


async def settle_refund(ctx: WorkerContext, refund_id: str) -> None:
    """Mark a pending refund processed after a simulated delay.

    Raises :class:`SettlementError` while the refund or its payment is
    missing, or the payment is no longer successful, so the queue retries.
    """
    extra = {"entity_id": refund_id, "queue": "refunds"}

    async with ctx.session_factory() as db:
        refund = await db.get(Refund, refund_id)
        if refund is None:
            raise SettlementError(f"Refund {refund_id} not found")
        payment = await db.get(Payment, refund.payment_id)
        if payment is None:
            raise SettlementError(f"Payment {refund.payment_id} not found")
        if payment.status != "success":
            raise SettlementError(f"Payment {payment.id} is not refundable")
        if refund.status == "processed":
            logger.info("Refund already processed; skipping", extra=extra)
            return
        merchant_id = refund.merchant_id

    delay = refund_processing_delay(ctx.settings, ctx.rng)
    logger.info("Processing refund %s for %.2fs", refund_id, delay, extra=extra)
    await ctx.sleep(delay)

    async with ctx.session_factory() as db:
        result = await db.execute(
            update(Refund)
            .where(Refund.id == refund_id, Refund.status == "pending")
            .values(status="processed", processed_at=utcnow())
        )
        await db.commit()
        if result.rowcount == 0:
            logger.info("Refund processed concurrently; skipping", extra=extra)
            return

        refund = await db.get(Refund, refund_id)
        logger.info("Refund %s processed", refund_id, extra=extra)
        await emit_event(db, ctx.queues, merchant_id, "refund.processed", {"refund": refund_to_dict(refund)})
