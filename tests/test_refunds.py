import asyncio

import pytest
from sqlalchemy import select

from gateway.errors import BadRequestError, NotFoundError, SettlementError
from gateway.models.payment import Payment
from gateway.models.refund import Refund
from gateway.models.webhook_log import WebhookLog
from gateway.services import refund_service
from gateway.workers import settle_refund

from helpers import create_merchant, create_order, create_settled_payment, gateway_env


def test_refund_above_payment_amount_is_rejected(tmp_path):
    async def scenario():
        async with gateway_env(tmp_path, start=False) as env:
            async with env.session() as db:
                merchant = await create_merchant(db)
                order = await create_order(db, merchant, amount=50000)
                payment = await create_settled_payment(db, merchant, order)
                with pytest.raises(BadRequestError) as exc_info:
                    await refund_service.create_refund(db, env.queues, payment.id, merchant.id, 60000)
                refunds = (await db.execute(select(Refund))).scalars().all()
            return exc_info.value, refunds

    error, refunds = asyncio.run(scenario())
    assert error.code == "BAD_REQUEST_ERROR"
    assert error.description == "Refund amount exceeds available amount"
    assert refunds == []


def test_partial_refunds_add_up_to_payment_amount(tmp_path):
    async def scenario():
        async with gateway_env(tmp_path, start=False) as env:
            async with env.session() as db:
                merchant = await create_merchant(db)
                order = await create_order(db, merchant, amount=50000)
                payment = await create_settled_payment(db, merchant, order)

                first = await refund_service.create_refund(db, env.queues, payment.id, merchant.id, 30000, "damaged")
                second = await refund_service.create_refund(db, env.queues, payment.id, merchant.id, 20000)
                with pytest.raises(BadRequestError):
                    await refund_service.create_refund(db, env.queues, payment.id, merchant.id, 1)
                total = await refund_service.refunded_total(db, payment.id)
            return first, second, total, env.queues.stats()

    first, second, total, stats = asyncio.run(scenario())
    assert first["id"].startswith("rfnd_")
    assert first["status"] == "pending"
    assert first["reason"] == "damaged"
    assert second["reason"] is None
    assert total == 50000
    assert stats["refunds"]["pending"] == 2


@pytest.mark.parametrize("amount", [0, -5, "100", 10.5, True, None])
def test_refund_amount_must_be_positive_integer(tmp_path, amount):
    async def scenario():
        async with gateway_env(tmp_path, start=False) as env:
            async with env.session() as db:
                merchant = await create_merchant(db)
                order = await create_order(db, merchant)
                payment = await create_settled_payment(db, merchant, order)
                with pytest.raises(BadRequestError):
                    await refund_service.create_refund(db, env.queues, payment.id, merchant.id, amount)

    asyncio.run(scenario())


def test_only_successful_payments_can_be_refunded(tmp_path):
    async def scenario():
        async with gateway_env(tmp_path, start=False) as env:
            async with env.session() as db:
                merchant = await create_merchant(db)
                order = await create_order(db, merchant)
                payment = await create_settled_payment(db, merchant, order, status="failed")
                with pytest.raises(BadRequestError) as exc_info:
                    await refund_service.create_refund(db, env.queues, payment.id, merchant.id, 100)
            return exc_info.value.description

    assert asyncio.run(scenario()) == "Payment must be successful to refund"


def test_refund_of_another_merchants_payment_is_not_found(tmp_path):
    async def scenario():
        async with gateway_env(tmp_path, start=False) as env:
            async with env.session() as db:
                merchant = await create_merchant(db)
                other = await create_merchant(db, email="other@example.com")
                order = await create_order(db, merchant)
                payment = await create_settled_payment(db, merchant, order)
                with pytest.raises(NotFoundError):
                    await refund_service.create_refund(db, env.queues, payment.id, other.id, 100)

    asyncio.run(scenario())


def test_refund_worker_processes_refund_and_emits_webhooks(tmp_path):
    async def scenario():
        async with gateway_env(tmp_path) as env:
            async with env.session() as db:
                merchant = await create_merchant(db)
                order = await create_order(db, merchant)
                payment = await create_settled_payment(db, merchant, order)
                created = await refund_service.create_refund(db, env.queues, payment.id, merchant.id, 10000)
            await env.queues.drain(timeout=10)

            async with env.session() as db:
                refund = await db.get(Refund, created["id"])
                events = sorted(log.event for log in (await db.execute(select(WebhookLog))).scalars().all())
            return refund, events

    refund, events = asyncio.run(scenario())
    assert refund.status == "processed"
    assert refund.processed_at is not None
    assert events == ["refund.created", "refund.processed"]


def test_refund_worker_is_a_no_op_for_processed_refund(tmp_path):
    async def scenario():
        async with gateway_env(tmp_path, start=False) as env:
            async with env.session() as db:
                merchant = await create_merchant(db)
                order = await create_order(db, merchant)
                payment = await create_settled_payment(db, merchant, order)
                created = await refund_service.create_refund(db, env.queues, payment.id, merchant.id, 10000)

            await settle_refund(env.ctx, created["id"])
            await settle_refund(env.ctx, created["id"])

            async with env.session() as db:
                logs = (await db.execute(select(WebhookLog).filter_by(event="refund.processed"))).scalars().all()
            return len(logs)

    assert asyncio.run(scenario()) == 1


def test_refund_worker_raises_when_payment_no_longer_successful(tmp_path):
    async def scenario():
        async with gateway_env(tmp_path, start=False) as env:
            async with env.session() as db:
                merchant = await create_merchant(db)
                order = await create_order(db, merchant)
                payment = await create_settled_payment(db, merchant, order)
                created = await refund_service.create_refund(db, env.queues, payment.id, merchant.id, 10000)
                stored = await db.get(Payment, payment.id)
                stored.status = "failed"
                await db.commit()

            with pytest.raises(SettlementError):
                await settle_refund(env.ctx, created["id"])
            with pytest.raises(SettlementError):
                await settle_refund(env.ctx, "rfnd_missing0000000")

            async with env.session() as db:
                return (await db.get(Refund, created["id"])).status

    assert asyncio.run(scenario()) == "pending"


def test_pending_refund_is_resumed_after_restart(tmp_path):
    async def before_restart():
        async with gateway_env(tmp_path, start=False) as env:
            async with env.session() as db:
                merchant = await create_merchant(db, webhook_url=None)
                order = await create_order(db, merchant)
                payment = await create_settled_payment(db, merchant, order)
                created = await refund_service.create_refund(db, env.queues, payment.id, merchant.id, 10000)
            return created["id"]

    async def after_restart():
        async with gateway_env(tmp_path) as env:
            await env.queues.drain(timeout=10)
            async with env.session() as db:
                return (await db.get(Refund, refund_id)).status

    refund_id = asyncio.run(before_restart())
    assert asyncio.run(after_restart()) == "processed"
