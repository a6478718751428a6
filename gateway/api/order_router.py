from typing import Any, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from gateway.api.deps import get_current_merchant, get_db
from gateway.errors import NotFoundError
from gateway.models.merchant import Merchant
from gateway.services import order_service

router = APIRouter(prefix="/orders", tags=["orders"])


class OrderCreate(BaseModel):
    amount: Any = None
    currency: Optional[str] = None
    receipt: Optional[str] = None
    notes: Optional[dict] = None


@router.post("", status_code=201)
async def create_order(
    data: OrderCreate,
    merchant: Merchant = Depends(get_current_merchant),
    db: AsyncSession = Depends(get_db),
):
    order = await order_service.create_order(
        db, merchant, data.amount, currency=data.currency, receipt=data.receipt, notes=data.notes
    )
    return order_service.order_to_dict(order)


@router.get("/{order_id}")
async def get_order(
    order_id: str,
    merchant: Merchant = Depends(get_current_merchant),
    db: AsyncSession = Depends(get_db),
):
    order = await order_service.get_order_by_id(db, order_id, merchant.id)
    if order is None:
        raise NotFoundError("Order not found")
    return order_service.order_to_dict(order)


@router.get("/{order_id}/public")
async def get_public_order(order_id: str, db: AsyncSession = Depends(get_db)):
    """Minimal order view for the hosted checkout page."""
    order = await order_service.get_order_by_id(db, order_id)
    if order is None:
        raise NotFoundError("Order not found")
    return {"id": order.id, "amount": order.amount, "currency": order.currency, "status": order.status}
