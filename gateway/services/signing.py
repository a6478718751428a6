"""Webhook envelope serialization, HMAC signing and retry scheduling."""

import hashlib
import hmac
import json
from datetime import datetime, timedelta
from typing import Optional, Sequence, Union

from gateway.utils import unix_timestamp, utcnow

SIGNATURE_HEADER = "X-Webhook-Signature"


def build_envelope(event: str, data: dict, timestamp: Optional[int] = None) -> dict:
    return {
        "event": event,
        "timestamp": timestamp if timestamp is not None else unix_timestamp(),
        "data": data,
    }


def serialize_envelope(envelope: dict) -> str:
    """Compact JSON; the result is stored, signed and sent unchanged."""
    return json.dumps(envelope, separators=(",", ":"), ensure_ascii=False)


def _as_bytes(value: Union[str, bytes]) -> bytes:
    return value if isinstance(value, bytes) else value.encode("utf-8")


def generate_signature(body: Union[str, bytes], secret: Union[str, bytes]) -> str:
    return hmac.new(_as_bytes(secret), _as_bytes(body), hashlib.sha256).hexdigest()


def verify_signature(body: Union[str, bytes], signature: Optional[str], secret: Union[str, bytes]) -> bool:
    if not signature:
        return False
    expected = generate_signature(body, secret)
    return hmac.compare_digest(expected, signature)


def next_retry_at(
    attempts_made: int,
    intervals: Sequence[int],
    now: Optional[datetime] = None,
) -> Optional[datetime]:
    """When the next delivery attempt is due, or None once the table is used up.

    ``intervals[n]`` is the wait before attempt ``n + 1``, so after
    ``attempts_made`` attempts the next wait is ``intervals[attempts_made]``.
    """
    if attempts_made >= len(intervals):
        return None
    now = now or utcnow()
    return now + timedelta(seconds=intervals[attempts_made])
