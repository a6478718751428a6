"""Operations for managing :class:`Order` records asynchronously."""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gateway.errors import BadRequestError
from gateway.models.merchant import Merchant
from gateway.models.order import Order
from gateway.services.ids import generate_unique_id
from gateway.utils import isoformat

MIN_ORDER_AMOUNT = 100


def order_to_dict(order: Order) -> dict:
    return {
        "id": order.id,
        "merchant_id": order.merchant_id,
        "amount": order.amount,
        "currency": order.currency,
        "receipt": order.receipt,
        "notes": order.notes,
        "status": order.status,
        "created_at": isoformat(order.created_at),
        "updated_at": isoformat(order.updated_at),
    }


async def create_order(
    db: AsyncSession,
    merchant: Merchant,
    amount,
    currency: Optional[str] = None,
    receipt: Optional[str] = None,
    notes: Optional[dict] = None,
) -> Order:
    # bool is an int subclass; reject it explicitly
    if not isinstance(amount, int) or isinstance(amount, bool) or amount < MIN_ORDER_AMOUNT:
        raise BadRequestError(f"amount must be at least {MIN_ORDER_AMOUNT}")
    if notes is not None and not isinstance(notes, dict):
        raise BadRequestError("notes must be an object")

    order = Order(
        id=await generate_unique_id(db, Order, "order_"),
        merchant_id=merchant.id,
        amount=amount,
        currency=currency or "INR",
        receipt=receipt,
        notes=notes,
        status="created",
    )
    db.add(order)
    await db.commit()
    await db.refresh(order)
    return order


async def get_order_by_id(db: AsyncSession, order_id: str, merchant_id: Optional[str] = None) -> Optional[Order]:
    """Fetch an order, scoped to ``merchant_id`` unless it is None (public checkout)."""
    query = select(Order).filter(Order.id == order_id)
    if merchant_id is not None:
        query = query.filter(Order.merchant_id == merchant_id)
    result = await db.execute(query)
    return result.scalars().first()
