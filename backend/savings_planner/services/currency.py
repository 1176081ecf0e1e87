"""Currency conversion and progress arithmetic shared by goals and the dashboard."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Literal, Protocol

from pydantic import BaseModel, ConfigDict, Field, field_validator

Currency = Literal["USD", "INR"]
SUPPORTED_CURRENCIES: tuple[str, ...] = ("USD", "INR")
PIVOT_CURRENCY = "USD"

MONEY_QUANT = Decimal("0.01")
PCT_QUANT = Decimal("0.01")
MAX_PROGRESS = Decimal("100")

_CURRENCY_SYMBOLS = {
    "USD": "$",
    "INR": "₹",
}


class ExchangeRate(BaseModel):
    """USD-based rate table. `inr` is INR per 1 USD."""

    model_config = ConfigDict(frozen=True)

    usd: Decimal = Decimal("1")
    inr: Decimal = Field(gt=Decimal("0"))
    last_updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    error: str | None = None

    @field_validator("usd")
    @classmethod
    def _usd_is_base(cls, value: Decimal) -> Decimal:
        if value != Decimal("1"):
            raise ValueError("usd rate must be 1 for a USD-based table")
        return value

    def per_usd(self) -> dict[str, Decimal]:
        return {"USD": self.usd, "INR": self.inr}


class SupportsProgress(Protocol):
    current_amount: Decimal
    target_amount: Decimal


def quantize_amount(value: Decimal) -> Decimal:
    """Normalize money values to 2-decimal precision."""
    return value.quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def other_currency(currency: str) -> str:
    return "INR" if currency == "USD" else "USD"


def format_currency(amount: Decimal, currency: str) -> str:
    """Format display amounts like '$1,234.50' or '₹1,234.50'."""
    symbol = _currency_symbol(currency)
    quantized = quantize_amount(amount)
    if quantized < 0:
        return f"-{symbol}{-quantized:,.2f}"
    return f"{symbol}{quantized:,.2f}"


def _currency_symbol(currency: str) -> str:
    return _CURRENCY_SYMBOLS.get(currency, f"{currency} ")


def _rate_for(currency: str, rates: ExchangeRate) -> Decimal:
    table = rates.per_usd()
    if currency not in table:
        raise ValueError(f"Unsupported currency: {currency}")

    rate = table[currency]
    if rate <= Decimal("0"):
        raise ValueError(f"Exchange rate for {currency} must be positive")
    return rate


def convert_currency(
    amount: Decimal,
    from_currency: str,
    to_currency: str,
    rates: ExchangeRate,
) -> Decimal:
    """
    Convert `amount` between currencies, pivoting through USD.

    Same-currency conversion returns `amount` untouched, without rounding.
    """
    if from_currency == to_currency:
        return amount

    if from_currency == PIVOT_CURRENCY:
        amount_usd = amount
    else:
        amount_usd = amount / _rate_for(from_currency, rates)

    if to_currency == PIVOT_CURRENCY:
        return amount_usd
    return amount_usd * _rate_for(to_currency, rates)


def calculate_progress(current: Decimal, target: Decimal) -> Decimal:
    """Percent of target reached, rounded half-up to 2 dp and capped at 100."""
    if target == 0:
        return Decimal("0")

    progress = (Decimal(current) / Decimal(target)) * Decimal("100")
    return min(progress.quantize(PCT_QUANT, rounding=ROUND_HALF_UP), MAX_PROGRESS)


def calculate_overall_progress(goals: Iterable[SupportsProgress]) -> Decimal:
    """Unweighted mean of per-goal progress; 0 when there are no goals."""
    progress_values = [
        calculate_progress(goal.current_amount, goal.target_amount)
        for goal in goals
    ]
    if not progress_values:
        return Decimal("0")

    total = sum(progress_values, Decimal("0"))
    return (total / Decimal(len(progress_values))).quantize(PCT_QUANT, rounding=ROUND_HALF_UP)
