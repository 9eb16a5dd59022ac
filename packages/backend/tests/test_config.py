"""Settings validation tests."""

import pytest
from pydantic import ValidationError

from userpulse.config import Settings


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("USERPULSE_EXCHANGE_NAME", "other.exchange")
    monkeypatch.setenv("USERPULSE_MALFORMED_MESSAGE_POLICY", "dead_letter")

    s = Settings()

    assert s.exchange_name == "other.exchange"
    assert s.malformed_message_policy == "dead_letter"


@pytest.mark.parametrize(
    "name",
    ["USERPULSE_SEND_TIMEOUT_SECONDS", "USERPULSE_SSE_KEEPALIVE_SECONDS"],
)
def test_timeouts_must_be_positive(monkeypatch, name):
    monkeypatch.setenv(name, "0")
    with pytest.raises(ValidationError):
        Settings()


def test_unknown_malformed_policy_is_rejected(monkeypatch):
    monkeypatch.setenv("USERPULSE_MALFORMED_MESSAGE_POLICY", "requeue")
    with pytest.raises(ValidationError):
        Settings()
