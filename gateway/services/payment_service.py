"""Payment creation, capture and merchant-scoped reads.

Creation only validates and records the payment in ``pending``; the
settlement worker moves it to ``success`` or ``failed`` later.
"""

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gateway.errors import BadRequestError, NotFoundError
from gateway.jobs import JobQueues
from gateway.models.merchant import Merchant
from gateway.models.order import Order
from gateway.models.payment import Payment
from gateway.services import idempotency_service
from gateway.services.ids import generate_unique_id
from gateway.services.validation_service import (
    clean_card_number,
    detect_card_network,
    is_valid_card_number,
    is_valid_expiry,
    is_valid_vpa,
)
from gateway.services.webhook_service import emit_event
from gateway.utils import isoformat

logger = logging.getLogger(__name__)


def payment_response(payment: Payment) -> dict:
    """Fields returned to the API caller on creation."""
    response = {
        "id": payment.id,
        "order_id": payment.order_id,
        "amount": payment.amount,
        "currency": payment.currency,
        "method": payment.method,
        "status": payment.status,
        "created_at": isoformat(payment.created_at),
    }
    if payment.method == "upi":
        response["vpa"] = payment.vpa
    else:
        response["card_network"] = payment.card_network
        response["card_last4"] = payment.card_last4
    return response


def payment_to_dict(payment: Payment) -> dict:
    """Full public snapshot, used by reads and webhook payloads."""
    return {
        "id": payment.id,
        "order_id": payment.order_id,
        "amount": payment.amount,
        "currency": payment.currency,
        "method": payment.method,
        "status": payment.status,
        "vpa": payment.vpa,
        "card_network": payment.card_network,
        "card_last4": payment.card_last4,
        "captured": payment.captured,
        "error_code": payment.error_code,
        "error_description": payment.error_description,
        "created_at": isoformat(payment.created_at),
        "updated_at": isoformat(payment.updated_at),
    }


def _instrument_fields(body: dict) -> dict:
    """Validate the method-specific part of a payment request.

    Only the VPA, or the card network and last four digits, survive; the card
    number and CVV are dropped here.
    """
    method = body.get("method")

    if method == "upi":
        vpa = body.get("vpa")
        if not vpa or not is_valid_vpa(vpa):
            raise BadRequestError("VPA format invalid", code="INVALID_VPA")
        return {"vpa": vpa}

    if method == "card":
        card = body.get("card")
        if not isinstance(card, dict):
            raise BadRequestError("Card details missing", code="INVALID_CARD")
        number = clean_card_number(card.get("number"))
        if not is_valid_card_number(number):
            raise BadRequestError("Card validation failed", code="INVALID_CARD")
        if not is_valid_expiry(card.get("expiry_month"), card.get("expiry_year")):
            raise BadRequestError("Card expiry date invalid", code="EXPIRED_CARD")
        return {"card_network": detect_card_network(number), "card_last4": number[-4:]}

    raise BadRequestError("Unsupported payment method")


async def create_payment(
    db: AsyncSession,
    queues: JobQueues,
    merchant: Merchant,
    order: Order,
    body: dict,
    idempotency_key: Optional[str] = None,
) -> dict:
    cached = await idempotency_service.get_cached_response(db, merchant.id, idempotency_key)
    if cached is not None:
        return cached

    instrument = _instrument_fields(body)

    payment = Payment(
        id=await generate_unique_id(db, Payment, "pay_"),
        order_id=order.id,
        merchant_id=merchant.id,
        amount=order.amount,
        currency=order.currency,
        method=body["method"],
        status="pending",
        captured=False,
        **instrument,
    )
    db.add(payment)
    await db.commit()
    await db.refresh(payment)
    logger.info(
        "Payment %s created for order %s", payment.id, order.id, extra={"merchant_id": merchant.id}
    )

    # Read everything before the side effects; a rollback there expires the instance.
    merchant_id = merchant.id
    response = payment_response(payment)
    snapshot = {"payment": payment_to_dict(payment)}

    # The payment exists from here on, so nothing below may fail the request.
    try:
        await idempotency_service.store_response(db, merchant_id, idempotency_key, response)
    except Exception:
        logger.exception("Failed to store idempotency key for %s", response["id"])
        await db.rollback()

    await emit_event(db, queues, merchant_id, "payment.created", snapshot)
    await emit_event(db, queues, merchant_id, "payment.pending", snapshot)

    try:
        await queues.settlement.enqueue(response["id"])
    except Exception:
        logger.exception("Failed to enqueue settlement job for %s", response["id"])

    return response


async def get_payment(db: AsyncSession, payment_id: str, merchant_id: str) -> Optional[Payment]:
    result = await db.execute(select(Payment).filter_by(id=payment_id, merchant_id=merchant_id))
    return result.scalars().first()


async def list_payments(db: AsyncSession, merchant_id: str) -> List[Payment]:
    result = await db.execute(
        select(Payment).filter_by(merchant_id=merchant_id).order_by(Payment.created_at.desc())
    )
    return list(result.scalars().all())


async def get_public_payment_status(db: AsyncSession, payment_id: str) -> Optional[dict]:
    payment = await db.get(Payment, payment_id)
    if payment is None:
        return None
    return {
        "id": payment.id,
        "order_id": payment.order_id,
        "status": payment.status,
        "amount": payment.amount,
        "currency": payment.currency,
    }


async def capture_payment(db: AsyncSession, payment_id: str, merchant_id: str, amount) -> dict:
    payment = await get_payment(db, payment_id, merchant_id)
    if payment is None:
        raise NotFoundError("Payment not found")
    if payment.status != "success":
        raise BadRequestError("Payment not in capturable state")
    if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
        raise BadRequestError("amount must be a positive integer")
    if amount > payment.amount:
        raise BadRequestError("Capture amount exceeds payment amount")

    payment.captured = True
    await db.commit()
    await db.refresh(payment)
    logger.info("Payment %s captured", payment.id, extra={"merchant_id": merchant_id})
    return payment_to_dict(payment)
