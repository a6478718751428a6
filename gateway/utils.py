import secrets
import string
from datetime import datetime, timezone
from typing import Optional

ID_ALPHABET = string.ascii_letters + string.digits
ID_RANDOM_LENGTH = 16


def utcnow() -> datetime:
    """Naive UTC timestamp, matching what the ``DateTime`` columns store."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def unix_timestamp(moment: Optional[datetime] = None) -> int:
    moment = moment or utcnow()
    return int(moment.replace(tzinfo=timezone.utc).timestamp())


def isoformat(moment: Optional[datetime]) -> Optional[str]:
    if moment is None:
        return None
    return moment.replace(tzinfo=timezone.utc).isoformat().replace("+00:00", "Z")


def random_token(prefix: str, length: int = ID_RANDOM_LENGTH) -> str:
    return prefix + "".join(secrets.choice(ID_ALPHABET) for _ in range(length))
