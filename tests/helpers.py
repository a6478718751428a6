import dataclasses
from contextlib import asynccontextmanager
from typing import Callable, Optional

import httpx

from gateway.config import Settings
from gateway.db.session import build_engine, build_session_factory, init_models
from gateway.jobs import JobQueues
from gateway.models.merchant import Merchant
from gateway.models.order import Order
from gateway.models.payment import Payment
from gateway.services.settlement import FixedOutcomeDecider, OutcomeDecider
from gateway.workers import WorkerContext, recover_pending_jobs, start_workers

WEBHOOK_URL = "https://merchant.example.com/webhook"
WEBHOOK_SECRET = "whsec_test_abc123"
VALID_CARD = "4111111111111111"


def make_settings(tmp_path, **overrides) -> Settings:
    values = dict(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        test_mode=True,
        test_processing_delay=0,
        webhook_retry_intervals=(0, 0, 0, 0, 0),
        job_max_attempts=3,
        job_backoff_seconds=0,
        worker_concurrency=1,
    )
    values.update(overrides)
    return Settings(**values)


def ok_handler(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, text="OK")


@dataclasses.dataclass
class GatewayEnv:
    settings: Settings
    session_factory: object
    queues: JobQueues
    ctx: WorkerContext
    requests: list

    def session(self):
        return self.session_factory()


@asynccontextmanager
async def gateway_env(
    tmp_path,
    handler: Callable[[httpx.Request], httpx.Response] = ok_handler,
    outcome_decider: Optional[OutcomeDecider] = None,
    start: bool = True,
    **overrides,
):
    """Database, queues and workers wired up the way the app lifespan does."""
    settings = make_settings(tmp_path, **overrides)
    engine = build_engine(settings.database_url)
    await init_models(engine)
    factory = build_session_factory(engine)

    requests = []

    def recording_handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(recording_handler))
    queues = JobQueues.from_settings(settings)
    ctx = WorkerContext(
        session_factory=factory,
        queues=queues,
        settings=settings,
        http_client=client,
        outcome_decider=outcome_decider or FixedOutcomeDecider("success"),
    )
    if start:
        start_workers(ctx, settings.worker_concurrency)
        await recover_pending_jobs(ctx)
    try:
        yield GatewayEnv(settings, factory, queues, ctx, requests)
    finally:
        await queues.close()
        await client.aclose()
        await engine.dispose()


async def create_merchant(db, email="merchant@example.com", webhook_url=WEBHOOK_URL, api_key=None) -> Merchant:
    merchant = Merchant(
        name="Merchant",
        email=email,
        api_key=api_key or f"key_{email}",
        api_secret="secret",
        webhook_url=webhook_url,
        webhook_secret=WEBHOOK_SECRET,
    )
    db.add(merchant)
    await db.commit()
    return merchant


async def create_order(db, merchant: Merchant, amount: int = 50000, order_id: str = "order_test0000000001") -> Order:
    order = Order(id=order_id, merchant_id=merchant.id, amount=amount, currency="INR", status="created")
    db.add(order)
    await db.commit()
    return order


async def create_settled_payment(db, merchant: Merchant, order: Order, status: str = "success", payment_id="pay_settled000000001") -> Payment:
    payment = Payment(
        id=payment_id,
        order_id=order.id,
        merchant_id=merchant.id,
        amount=order.amount,
        currency=order.currency,
        method="upi",
        vpa="user@bank",
        status=status,
    )
    db.add(payment)
    await db.commit()
    return payment
