from gateway.models.idempotency_key import IdempotencyKey
from gateway.models.merchant import Merchant
from gateway.models.order import Order
from gateway.models.payment import Payment
from gateway.models.refund import Refund
from gateway.models.webhook_log import WebhookLog

__all__ = [
    "IdempotencyKey",
    "Merchant",
    "Order",
    "Payment",
    "Refund",
    "WebhookLog",
]
