"""Runtime configuration read from the environment (and ``.env``)."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent

# Attempt 1: immediate, 2: 1min, 3: 5min, 4: 30min, 5: 2h
PRODUCTION_RETRY_INTERVALS: Tuple[int, ...] = (0, 60, 300, 1800, 7200)
TEST_RETRY_INTERVALS: Tuple[int, ...] = (0, 5, 10, 15, 20)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value not in (None, "") else default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value not in (None, "") else default


@dataclass(frozen=True)
class Settings:
    database_url: str = f"sqlite+aiosqlite:///{BASE_DIR / 'database.db'}"
    port: int = 8000

    # Settlement simulation. Delays are in milliseconds.
    test_mode: bool = False
    test_payment_success: bool = True
    test_processing_delay: int = 1000
    processing_delay_min: int = 5000
    processing_delay_max: int = 10000
    refund_delay_min: int = 3000
    refund_delay_max: int = 5000
    upi_success_rate: float = 0.90
    card_success_rate: float = 0.95

    # Webhooks
    webhook_retry_intervals: Tuple[int, ...] = PRODUCTION_RETRY_INTERVALS
    webhook_timeout: float = 5.0

    # Queues
    job_max_attempts: int = 5
    job_backoff_seconds: float = 2.0
    worker_concurrency: int = 2
    run_workers: bool = True
    queue_drain_timeout: Optional[float] = 10.0

    auto_create_tables: bool = True

    log_level: str = "INFO"
    log_json: bool = True

    test_merchant_email: str = "test@example.com"
    test_api_key: str = "key_test_abc123"
    test_api_secret: str = "secret_test_xyz789"
    test_webhook_secret: str = "whsec_test_abc123"
    test_webhook_url: Optional[str] = None

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        defaults = cls()
        intervals = (
            TEST_RETRY_INTERVALS
            if _env_bool("WEBHOOK_RETRY_INTERVALS_TEST", False)
            else PRODUCTION_RETRY_INTERVALS
        )
        drain_timeout = os.getenv("QUEUE_DRAIN_TIMEOUT")
        return cls(
            database_url=os.getenv("DATABASE_URL") or defaults.database_url,
            port=_env_int("PORT", defaults.port),
            test_mode=_env_bool("TEST_MODE", defaults.test_mode),
            # Anything but an explicit "false" forces success in test mode.
            test_payment_success=os.getenv("TEST_PAYMENT_SUCCESS", "true").strip().lower() != "false",
            test_processing_delay=_env_int("TEST_PROCESSING_DELAY", defaults.test_processing_delay),
            processing_delay_min=_env_int("PROCESSING_DELAY_MIN", defaults.processing_delay_min),
            processing_delay_max=_env_int("PROCESSING_DELAY_MAX", defaults.processing_delay_max),
            refund_delay_min=_env_int("REFUND_DELAY_MIN", defaults.refund_delay_min),
            refund_delay_max=_env_int("REFUND_DELAY_MAX", defaults.refund_delay_max),
            upi_success_rate=_env_float("UPI_SUCCESS_RATE", defaults.upi_success_rate),
            card_success_rate=_env_float("CARD_SUCCESS_RATE", defaults.card_success_rate),
            webhook_retry_intervals=intervals,
            webhook_timeout=_env_float("WEBHOOK_TIMEOUT", defaults.webhook_timeout),
            job_max_attempts=_env_int("JOB_MAX_ATTEMPTS", defaults.job_max_attempts),
            job_backoff_seconds=_env_float("JOB_BACKOFF_SECONDS", defaults.job_backoff_seconds),
            worker_concurrency=_env_int("WORKER_CONCURRENCY", defaults.worker_concurrency),
            run_workers=_env_bool("RUN_WORKERS", defaults.run_workers),
            queue_drain_timeout=float(drain_timeout) if drain_timeout else defaults.queue_drain_timeout,
            auto_create_tables=_env_bool("AUTO_CREATE_TABLES", defaults.auto_create_tables),
            log_level=os.getenv("LOG_LEVEL", defaults.log_level).upper(),
            log_json=_env_bool("LOG_JSON", defaults.log_json),
            test_merchant_email=os.getenv("TEST_MERCHANT_EMAIL") or defaults.test_merchant_email,
            test_api_key=os.getenv("TEST_API_KEY") or defaults.test_api_key,
            test_api_secret=os.getenv("TEST_API_SECRET") or defaults.test_api_secret,
            test_webhook_secret=os.getenv("TEST_WEBHOOK_SECRET") or defaults.test_webhook_secret,
            test_webhook_url=os.getenv("TEST_WEBHOOK_URL") or None,
        )
