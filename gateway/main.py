import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import async_sessionmaker

from gateway.api import order_router, payment_router, refund_router, system_router, webhook_router
from gateway.config import Settings
from gateway.db.seed import seed_test_merchant
from gateway.db.session import build_engine, build_session_factory, init_models
from gateway.errors import GatewayError
from gateway.jobs import JobQueues
from gateway.logging_config import RequestLoggingMiddleware, setup_logging
from gateway.services.settlement import OutcomeDecider, RandomOutcomeDecider
from gateway.workers import WorkerContext, recover_pending_jobs, start_workers

SERVICE_NAME = "payment-gateway"

logger = logging.getLogger(SERVICE_NAME)


def create_app(
    settings: Optional[Settings] = None,
    session_factory: Optional[async_sessionmaker] = None,
    outcome_decider: Optional[OutcomeDecider] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> FastAPI:
    """Build the API together with its queues and workers.

    The lifespan owns every long-lived resource: it opens them on startup and
    drains and closes them on shutdown.
    """
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = None
        factory = session_factory
        if factory is None:
            engine = build_engine(settings.database_url)
            factory = build_session_factory(engine)
        if settings.auto_create_tables:
            await init_models(factory.kw["bind"])
        async with factory() as db:
            await seed_test_merchant(db, settings)

        client = http_client or httpx.AsyncClient(timeout=settings.webhook_timeout)
        queues = JobQueues.from_settings(settings)
        if settings.run_workers:
            ctx = WorkerContext(
                session_factory=factory,
                queues=queues,
                settings=settings,
                http_client=client,
                outcome_decider=outcome_decider or RandomOutcomeDecider(),
            )
            start_workers(ctx, settings.worker_concurrency)
            await recover_pending_jobs(ctx)

        app.state.settings = settings
        app.state.session_factory = factory
        app.state.queues = queues
        logger.info("Gateway started (test_mode=%s)", settings.test_mode)
        try:
            yield
        finally:
            if settings.run_workers:
                try:
                    await queues.drain(settings.queue_drain_timeout)
                except asyncio.TimeoutError:
                    logger.warning("Queues not drained before shutdown: %s", queues.stats())
            await queues.close()
            if http_client is None:
                await client.aclose()
            if engine is not None:
                await engine.dispose()
            logger.info("Gateway stopped")

    app = FastAPI(title="Payment Gateway", lifespan=lifespan)
    app.add_middleware(RequestLoggingMiddleware, service_name=SERVICE_NAME)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        first = exc.errors()[0] if exc.errors() else {}
        description = first.get("msg", "Invalid request")
        return JSONResponse(
            status_code=400,
            content={"error": {"code": "BAD_REQUEST_ERROR", "description": description}},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={"error": {"code": "INTERNAL_SERVER_ERROR", "description": "Internal server error"}},
        )

    app.include_router(system_router.router)
    for module in (order_router, payment_router, refund_router, webhook_router):
        app.include_router(module.router, prefix="/api/v1")
    return app


def run() -> None:
    import uvicorn

    settings = Settings.from_env()
    setup_logging(SERVICE_NAME, settings.log_level, settings.log_json)
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    run()
