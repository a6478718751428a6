from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from gateway.api.deps import get_current_merchant, get_db, get_queues
from gateway.jobs import JobQueues
from gateway.models.merchant import Merchant
from gateway.services import webhook_service

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


class WebhookConfig(BaseModel):
    webhook_url: Optional[str] = None


@router.get("")
async def list_webhook_logs(
    limit: int = 10,
    offset: int = 0,
    merchant: Merchant = Depends(get_current_merchant),
    db: AsyncSession = Depends(get_db),
):
    return await webhook_service.list_webhook_logs(db, merchant.id, limit=limit, offset=offset)


@router.put("/config")
async def save_webhook_config(
    data: WebhookConfig,
    merchant: Merchant = Depends(get_current_merchant),
    db: AsyncSession = Depends(get_db),
):
    return await webhook_service.update_webhook_config(db, merchant, data.webhook_url)


@router.post("/regenerate-secret")
async def regenerate_secret(
    merchant: Merchant = Depends(get_current_merchant),
    db: AsyncSession = Depends(get_db),
):
    return await webhook_service.regenerate_webhook_secret(db, merchant)


@router.post("/test")
async def send_test_webhook(
    merchant: Merchant = Depends(get_current_merchant),
    db: AsyncSession = Depends(get_db),
    queues: JobQueues = Depends(get_queues),
):
    return await webhook_service.send_test_webhook(db, queues, merchant.id)


@router.post("/{webhook_id}/retry")
async def retry_webhook(
    webhook_id: str,
    merchant: Merchant = Depends(get_current_merchant),
    db: AsyncSession = Depends(get_db),
    queues: JobQueues = Depends(get_queues),
):
    return await webhook_service.reset_webhook_log_for_retry(db, queues, webhook_id, merchant.id)
