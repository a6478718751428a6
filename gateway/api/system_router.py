from fastapi import APIRouter, Depends, Request
from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession

from gateway.api.deps import get_db, get_queues
from gateway.errors import NotFoundError
from gateway.jobs import JobQueues
from gateway.models.merchant import Merchant
from gateway.utils import isoformat, utcnow

router = APIRouter()


@router.get("/health")
async def health(db: AsyncSession = Depends(get_db)):
    try:
        await db.execute(text("SELECT 1"))
        database = "connected"
    except Exception:
        database = "disconnected"
    return {"status": "healthy", "database": database, "timestamp": isoformat(utcnow())}


@router.get("/api/v1/test/merchant")
async def test_merchant(request: Request, db: AsyncSession = Depends(get_db)):
    email = request.app.state.settings.test_merchant_email
    result = await db.execute(select(Merchant).filter_by(email=email))
    merchant = result.scalars().first()
    if merchant is None:
        raise NotFoundError("Test merchant not found")
    return {"id": merchant.id, "email": merchant.email, "api_key": merchant.api_key, "seeded": True}


@router.get("/api/v1/test/jobs/status")
async def job_status(request: Request, queues: JobQueues = Depends(get_queues)):
    stats = queues.stats()
    payments = stats["payments"]
    return {
        **payments,
        "queues": stats,
        "worker_status": "running" if request.app.state.settings.run_workers else "stopped",
    }
