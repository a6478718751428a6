"""Partial and full refunds reconciled against the payment amount."""

import logging
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from gateway.errors import BadRequestError, NotFoundError
from gateway.jobs import JobQueues
from gateway.models.payment import Payment
from gateway.models.refund import Refund
from gateway.services.ids import generate_unique_id
from gateway.services.webhook_service import emit_event
from gateway.utils import isoformat

logger = logging.getLogger(__name__)

# Refunds in these states count against the refundable amount
OPEN_REFUND_STATUSES = ("pending", "processed")


def refund_to_dict(refund: Refund) -> dict:
    return {
        "id": refund.id,
        "payment_id": refund.payment_id,
        "amount": refund.amount,
        "reason": refund.reason,
        "status": refund.status,
        "created_at": isoformat(refund.created_at),
        "processed_at": isoformat(refund.processed_at),
    }


async def refunded_total(db: AsyncSession, payment_id: str) -> int:
    total = await db.scalar(
        select(func.coalesce(func.sum(Refund.amount), 0)).filter(
            Refund.payment_id == payment_id,
            Refund.status.in_(OPEN_REFUND_STATUSES),
        )
    )
    return int(total or 0)


async def create_refund(
    db: AsyncSession,
    queues: JobQueues,
    payment_id: str,
    merchant_id: str,
    amount,
    reason: Optional[str] = None,
) -> dict:
    result = await db.execute(select(Payment).filter_by(id=payment_id, merchant_id=merchant_id))
    payment = result.scalars().first()
    if payment is None:
        raise NotFoundError("Payment not found")
    if payment.status != "success":
        raise BadRequestError("Payment must be successful to refund")
    if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
        raise BadRequestError("amount must be a positive integer")

    # Not atomic: two concurrent refunds can both pass this check.
    already_refunded = await refunded_total(db, payment_id)
    if amount + already_refunded > payment.amount:
        raise BadRequestError("Refund amount exceeds available amount")

    refund = Refund(
        id=await generate_unique_id(db, Refund, "rfnd_"),
        payment_id=payment_id,
        merchant_id=merchant_id,
        amount=amount,
        reason=reason or None,
        status="pending",
    )
    db.add(refund)
    await db.commit()
    await db.refresh(refund)
    logger.info(
        "Refund %s of %d created for payment %s", refund.id, amount, payment_id,
        extra={"merchant_id": merchant_id},
    )

    response = refund_to_dict(refund)
    await emit_event(db, queues, merchant_id, "refund.created", {"refund": response})

    try:
        await queues.refunds.enqueue(response["id"])
    except Exception:
        logger.exception("Failed to enqueue refund job for %s", response["id"])

    return response


async def get_refund(db: AsyncSession, refund_id: str, merchant_id: str) -> Optional[Refund]:
    result = await db.execute(select(Refund).filter_by(id=refund_id, merchant_id=merchant_id))
    return result.scalars().first()
