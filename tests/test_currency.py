# tests/test_currency.py
import pytest

from invite_rewards.core.errors import ValidationError
from invite_rewards.services.currency import CurrencyConfig, convert, default_currency, to_local


def test_to_local_rounds_half_up():
    assert to_local(50, 10000) == 500_000
    assert to_local(1, 0.5) == 1
    assert to_local(3, 0.5) == 2
    assert to_local(1, 0.4) == 0


def test_convert_keeps_raw_usd_next_to_local_amount():
    money = convert(2500, CurrencyConfig(code="SYP", exchange_rate=10000))
    assert money.usd == 2500
    assert money.local == 25_000_000
    assert money.currency == "SYP"


def test_rate_must_be_positive():
    with pytest.raises(ValidationError):
        CurrencyConfig(code="SYP", exchange_rate=0)


def test_default_currency_comes_from_settings(mocker):
    mocker.patch("invite_rewards.services.currency.settings.EXCHANGE_RATE", 15000)
    mocker.patch("invite_rewards.services.currency.settings.LOCAL_CURRENCY", "SYP")
    currency = default_currency()
    assert currency.exchange_rate == 15000
    assert convert(10, currency).local == 150_000
