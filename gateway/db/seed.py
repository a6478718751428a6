"""Create the test merchant used by the checkout page and local testing."""

import asyncio
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gateway.config import Settings
from gateway.db.session import build_engine, build_session_factory, init_models
from gateway.models.merchant import Merchant

logger = logging.getLogger(__name__)

TEST_MERCHANT_ID = "550e8400-e29b-41d4-a716-446655440000"


async def seed_test_merchant(db: AsyncSession, settings: Settings) -> Merchant:
    result = await db.execute(select(Merchant).filter_by(email=settings.test_merchant_email))
    merchant = result.scalars().first()
    if merchant:
        if not merchant.webhook_secret:
            merchant.webhook_secret = settings.test_webhook_secret
            await db.commit()
        return merchant

    merchant = Merchant(
        id=TEST_MERCHANT_ID,
        name="Test Merchant",
        email=settings.test_merchant_email,
        api_key=settings.test_api_key,
        api_secret=settings.test_api_secret,
        webhook_secret=settings.test_webhook_secret,
        webhook_url=settings.test_webhook_url,
        is_active=True,
    )
    db.add(merchant)
    await db.commit()
    logger.info("Test merchant seeded: %s", merchant.email)
    return merchant


async def main() -> None:
    settings = Settings.from_env()
    print(f"Using database: {settings.database_url}")
    engine = build_engine(settings.database_url)
    await init_models(engine)
    async with build_session_factory(engine)() as session:
        merchant = await seed_test_merchant(session, settings)
        print(f"Test merchant ready: id={merchant.id} api_key={merchant.api_key}")
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
