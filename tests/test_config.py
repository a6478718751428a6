import pytest

from gateway.config import PRODUCTION_RETRY_INTERVALS, TEST_RETRY_INTERVALS, Settings
from gateway.services.settlement import (
    FAILED,
    OutcomeDecider,
    SUCCESS,
    RandomOutcomeDecider,
    payment_processing_delay,
    refund_processing_delay,
)


def test_defaults_from_environment(monkeypatch):
    for name in ("TEST_MODE", "WEBHOOK_RETRY_INTERVALS_TEST", "JOB_MAX_ATTEMPTS", "TEST_PAYMENT_SUCCESS"):
        monkeypatch.delenv(name, raising=False)
    settings = Settings.from_env()
    assert settings.test_mode is False
    assert settings.test_payment_success is True
    assert settings.webhook_retry_intervals == PRODUCTION_RETRY_INTERVALS
    assert settings.job_max_attempts == 5
    assert settings.upi_success_rate == 0.9
    assert settings.card_success_rate == 0.95


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("TEST_MODE", "true")
    monkeypatch.setenv("TEST_PAYMENT_SUCCESS", "false")
    monkeypatch.setenv("TEST_PROCESSING_DELAY", "250")
    monkeypatch.setenv("WEBHOOK_RETRY_INTERVALS_TEST", "true")
    monkeypatch.setenv("WORKER_CONCURRENCY", "4")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    settings = Settings.from_env()
    assert settings.test_mode is True
    assert settings.test_payment_success is False
    assert settings.webhook_retry_intervals == TEST_RETRY_INTERVALS
    assert settings.worker_concurrency == 4
    assert settings.log_level == "DEBUG"
    assert payment_processing_delay(settings) == 0.25
    assert refund_processing_delay(settings) == 0.25


def test_test_mode_forces_outcome():
    decider = RandomOutcomeDecider()
    assert decider.decide("upi", Settings(test_mode=True)) == SUCCESS
    assert decider.decide("card", Settings(test_mode=True, test_payment_success=False)) == FAILED


def test_random_outcome_uses_method_rate():
    settings = Settings(upi_success_rate=1.0, card_success_rate=0.0)
    decider = RandomOutcomeDecider()
    assert {decider.decide("upi", settings) for _ in range(20)} == {SUCCESS}
    assert {decider.decide("card", settings) for _ in range(20)} == {FAILED}


def test_production_delays_stay_in_range():
    settings = Settings()
    for _ in range(20):
        assert 5.0 <= payment_processing_delay(settings) <= 10.0
        assert 3.0 <= refund_processing_delay(settings) <= 5.0


def test_outcome_decider_is_abstract():
    with pytest.raises(TypeError):
        OutcomeDecider()
