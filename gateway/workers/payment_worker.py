"""Settlement of pending payments.

The status-guarded updates make a duplicate job for the same payment a
no-op once the first one has written a terminal state.
"""

import logging

from sqlalchemy import update

from gateway.errors import SettlementError
from gateway.models.payment import TERMINAL_STATUSES, Payment
from gateway.services.payment_service import payment_to_dict
from gateway.services.settlement import (
    DECLINE_CODE,
    DECLINE_DESCRIPTION,
    SUCCESS,
    payment_processing_delay,
)
from gateway.services.webhook_service import emit_event
from gateway.utils import utcnow
from gateway.workers.context import WorkerContext

logger = logging.getLogger(__name__)


async def settle_payment(ctx: WorkerContext, payment_id: str) -> None:
    extra = {"entity_id": payment_id, "queue": "payments"}

    async with ctx.session_factory() as db:
        payment = await db.get(Payment, payment_id)
        if payment is None:
            raise SettlementError(f"Payment {payment_id} not found")
        if payment.status in TERMINAL_STATUSES:
            logger.info("Payment already %s; skipping", payment.status, extra=extra)
            return

        claimed = await db.execute(
            update(Payment)
            .where(Payment.id == payment_id, Payment.status.in_(("pending", "processing")))
            .values(status="processing", updated_at=utcnow())
        )
        await db.commit()
        if claimed.rowcount == 0:
            logger.info("Payment settled concurrently; skipping", extra=extra)
            return
        method = payment.method
        merchant_id = payment.merchant_id

    delay = payment_processing_delay(ctx.settings, ctx.rng)
    outcome = ctx.outcome_decider.decide(method, ctx.settings)
    logger.info("Processing payment %s for %.2fs", payment_id, delay, extra=extra)
    await ctx.sleep(delay)

    if outcome == SUCCESS:
        values = {"status": "success", "error_code": None, "error_description": None}
    else:
        values = {"status": "failed", "error_code": DECLINE_CODE, "error_description": DECLINE_DESCRIPTION}

    async with ctx.session_factory() as db:
        result = await db.execute(
            update(Payment)
            .where(Payment.id == payment_id, Payment.status == "processing")
            .values(updated_at=utcnow(), **values)
        )
        await db.commit()
        if result.rowcount == 0:
            logger.warning("Payment left processing before settlement finished", extra=extra)
            return

        payment = await db.get(Payment, payment_id)
        logger.info("Payment %s %s", payment_id, payment.status, extra=extra)
        await emit_event(
            db, ctx.queues, merchant_id, f"payment.{payment.status}", {"payment": payment_to_dict(payment)}
        )
