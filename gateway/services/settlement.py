"""Simulated settlement: how long it takes and whether it succeeds.

Workers receive an outcome decider so tests can force results without
touching the timing logic.
"""

import random
from abc import ABC, abstractmethod
from typing import Optional

from gateway.config import Settings

SUCCESS = "success"
FAILED = "failed"

DECLINE_CODE = "PAYMENT_DECLINED"
DECLINE_DESCRIPTION = "Payment declined by bank"


class OutcomeDecider(ABC):
    @abstractmethod
    def decide(self, method: str, settings: Settings) -> str:
        """Return ``SUCCESS`` or ``FAILED`` for a payment made with ``method``."""


class RandomOutcomeDecider(OutcomeDecider):
    """Per-method success rates, or the forced outcome when test mode is on."""

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def decide(self, method: str, settings: Settings) -> str:
        if settings.test_mode:
            return SUCCESS if settings.test_payment_success else FAILED
        rate = settings.upi_success_rate if method == "upi" else settings.card_success_rate
        return SUCCESS if self.rng.random() < rate else FAILED


class FixedOutcomeDecider(OutcomeDecider):
    def __init__(self, outcome: str = SUCCESS):
        if outcome not in (SUCCESS, FAILED):
            raise ValueError(f"unknown outcome {outcome!r}")
        self.outcome = outcome

    def decide(self, method: str, settings: Settings) -> str:
        return self.outcome


def _uniform_seconds(low_ms: int, high_ms: int, rng: random.Random) -> float:
    low, high = sorted((max(0, low_ms), max(0, high_ms)))
    return rng.uniform(low, high) / 1000


def payment_processing_delay(settings: Settings, rng: Optional[random.Random] = None) -> float:
    if settings.test_mode:
        return max(0, settings.test_processing_delay) / 1000
    return _uniform_seconds(settings.processing_delay_min, settings.processing_delay_max, rng or random)


def refund_processing_delay(settings: Settings, rng: Optional[random.Random] = None) -> float:
    if settings.test_mode:
        return max(0, settings.test_processing_delay) / 1000
    return _uniform_seconds(settings.refund_delay_min, settings.refund_delay_max, rng or random)
