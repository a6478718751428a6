from typing import Any, Optional

from fastapi import APIRouter, Depends, Header
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gateway.api.deps import get_current_merchant, get_db, get_queues
from gateway.errors import BadRequestError, NotFoundError
from gateway.jobs import JobQueues
from gateway.models.merchant import Merchant
from gateway.services import order_service, payment_service, refund_service

router = APIRouter(prefix="/payments", tags=["payments"])


class PaymentCreate(BaseModel):
    order_id: Optional[str] = None
    method: Optional[str] = None
    vpa: Optional[str] = None
    # Full number and CVV only live in this request body
    card: Any = None


class CaptureRequest(BaseModel):
    amount: Any = None


class RefundCreate(BaseModel):
    amount: Any = None
    reason: Optional[str] = None


@router.post("", status_code=201)
async def create_payment(
    data: PaymentCreate,
    idempotency_key: Optional[str] = Header(None),
    merchant: Merchant = Depends(get_current_merchant),
    db: AsyncSession = Depends(get_db),
    queues: JobQueues = Depends(get_queues),
):
    order = await order_service.get_order_by_id(db, data.order_id or "", merchant.id)
    if order is None:
        raise NotFoundError("Order not found")
    return await payment_service.create_payment(
        db, queues, merchant, order, data.model_dump(), idempotency_key=idempotency_key
    )


@router.get("/list")
async def list_payments(
    merchant: Merchant = Depends(get_current_merchant),
    db: AsyncSession = Depends(get_db),
):
    payments = await payment_service.list_payments(db, merchant.id)
    return [payment_service.payment_to_dict(p) for p in payments]


@router.post("/public", status_code=201)
async def create_public_payment(
    data: PaymentCreate,
    db: AsyncSession = Depends(get_db),
    queues: JobQueues = Depends(get_queues),
):
    """Checkout-page entry point: the merchant is resolved from the order."""
    if not data.order_id:
        raise BadRequestError("order_id is required")

    order = await order_service.get_order_by_id(db, data.order_id)
    if order is None:
        raise NotFoundError("Order not found")

    result = await db.execute(select(Merchant).filter_by(id=order.merchant_id, is_active=True))
    merchant = result.scalars().first()
    if merchant is None:
        raise BadRequestError("Invalid merchant")

    return await payment_service.create_payment(db, queues, merchant, order, data.model_dump())


@router.get("/public/{payment_id}")
async def get_public_payment(payment_id: str, db: AsyncSession = Depends(get_db)):
    status = await payment_service.get_public_payment_status(db, payment_id)
    if status is None:
        raise NotFoundError("Payment not found")
    return status


@router.get("/{payment_id}")
async def get_payment(
    payment_id: str,
    merchant: Merchant = Depends(get_current_merchant),
    db: AsyncSession = Depends(get_db),
):
    payment = await payment_service.get_payment(db, payment_id, merchant.id)
    if payment is None:
        raise NotFoundError("Payment not found")
    return payment_service.payment_to_dict(payment)


@router.post("/{payment_id}/capture")
async def capture_payment(
    payment_id: str,
    data: CaptureRequest,
    merchant: Merchant = Depends(get_current_merchant),
    db: AsyncSession = Depends(get_db),
):
    return await payment_service.capture_payment(db, payment_id, merchant.id, data.amount)


@router.post("/{payment_id}/refunds", status_code=201)
async def create_refund(
    payment_id: str,
    data: RefundCreate,
    merchant: Merchant = Depends(get_current_merchant),
    db: AsyncSession = Depends(get_db),
    queues: JobQueues = Depends(get_queues),
):
    return await refund_service.create_refund(
        db, queues, payment_id, merchant.id, data.amount, reason=data.reason
    )
