# invite_rewards/services/currency.py
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from invite_rewards.core.config import settings
from invite_rewards.core.errors import ValidationError
from invite_rewards.schemas.referral import Money


@dataclass(frozen=True)
class CurrencyConfig:
    """Местная валюта отображения и курс к доллару."""
    code: str
    exchange_rate: float

    def __post_init__(self):
        if self.exchange_rate <= 0:
            raise ValidationError("Exchange rate must be positive", exchange_rate=self.exchange_rate)


def default_currency() -> CurrencyConfig:
    return CurrencyConfig(code=settings.LOCAL_CURRENCY, exchange_rate=settings.EXCHANGE_RATE)


def to_local(usd_amount: int | float, exchange_rate: float) -> int:
    """round(usd * rate), половины округляются от нуля."""
    value = Decimal(str(usd_amount)) * Decimal(str(exchange_rate))
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def convert(usd_amount: int, currency: CurrencyConfig) -> Money:
    """Сумма в долларах вместе с пересчетом в местную валюту."""
    return Money(usd=usd_amount, local=to_local(usd_amount, currency.exchange_rate), currency=currency.code)
