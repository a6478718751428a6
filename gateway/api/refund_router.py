from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from gateway.api.deps import get_current_merchant, get_db
from gateway.errors import NotFoundError
from gateway.models.merchant import Merchant
from gateway.services import refund_service

router = APIRouter(prefix="/refunds", tags=["refunds"])


@router.get("/{refund_id}")
async def get_refund(
    refund_id: str,
    merchant: Merchant = Depends(get_current_merchant),
    db: AsyncSession = Depends(get_db),
):
    refund = await refund_service.get_refund(db, refund_id, merchant.id)
    if refund is None:
        raise NotFoundError("Refund not found")
    return refund_service.refund_to_dict(refund)
