from functools import partial

from gateway.workers.context import WorkerContext
from gateway.workers.payment_worker import settle_payment
from gateway.workers.recovery import recover_pending_jobs
from gateway.workers.refund_worker import settle_refund
from gateway.workers.webhook_worker import deliver_webhook

__all__ = [
    "WorkerContext",
    "deliver_webhook",
    "recover_pending_jobs",
    "settle_payment",
    "settle_refund",
    "start_workers",
]


def start_workers(ctx: WorkerContext, concurrency: int = 1) -> None:
    ctx.queues.settlement.start(partial(settle_payment, ctx), concurrency)
    ctx.queues.refunds.start(partial(settle_refund, ctx), concurrency)
    ctx.queues.webhooks.start(partial(deliver_webhook, ctx), concurrency)
