from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

import pytest
from pydantic import ValidationError

from savings_planner.services.currency import (
    ExchangeRate,
    calculate_overall_progress,
    calculate_progress,
    convert_currency,
    format_currency,
    other_currency,
)

RATES = ExchangeRate(inr=Decimal("83.5"))


@dataclass
class _Progress:
    current_amount: Decimal
    target_amount: Decimal


def test_same_currency_conversion_returns_amount_untouched() -> None:
    amount = Decimal("1234.5678901")

    assert convert_currency(amount, "USD", "USD", RATES) is amount
    assert convert_currency(amount, "INR", "INR", RATES) is amount


def test_usd_to_inr_and_back_round_trips() -> None:
    amount = Decimal("100.00")

    inr = convert_currency(amount, "USD", "INR", RATES)
    back = convert_currency(inr, "INR", "USD", RATES)

    assert inr == Decimal("8350.00")
    assert abs(back - amount) < Decimal("1e-20")


def test_inr_to_usd_divides_by_rate() -> None:
    assert convert_currency(Decimal("167"), "INR", "USD", RATES) == Decimal("2")


def test_cross_conversion_rejects_non_positive_rate() -> None:
    broken = ExchangeRate.model_construct(usd=Decimal("1"), inr=Decimal("0"))

    with pytest.raises(ValueError):
        convert_currency(Decimal("10"), "INR", "USD", broken)


def test_progress_rounds_half_up_to_two_places() -> None:
    # 1/8 of 1% -> 0.125 -> 0.13
    assert calculate_progress(Decimal("1"), Decimal("800")) == Decimal("0.13")
    assert calculate_progress(Decimal("1"), Decimal("3")) == Decimal("33.33")
    assert calculate_progress(Decimal("250"), Decimal("1000")) == Decimal("25.00")


def test_progress_is_zero_for_zero_target() -> None:
    assert calculate_progress(Decimal("500"), Decimal("0")) == Decimal("0")
    assert calculate_progress(Decimal("0"), Decimal("0")) == Decimal("0")


def test_progress_caps_at_100_when_overfunded() -> None:
    assert calculate_progress(Decimal("1500"), Decimal("1000")) == Decimal("100")


def test_progress_is_monotonic_in_current() -> None:
    target = Decimal("700")
    values = [calculate_progress(Decimal(current), target) for current in range(0, 1000, 7)]

    assert values == sorted(values)
    assert max(values) == Decimal("100")


def test_overall_progress_is_unweighted_mean() -> None:
    goals = [
        _Progress(current_amount=Decimal("100"), target_amount=Decimal("100")),
        _Progress(current_amount=Decimal("0"), target_amount=Decimal("200")),
    ]

    assert calculate_overall_progress(goals) == Decimal("50.00")


def test_overall_progress_rounds_mean() -> None:
    goals = [
        _Progress(current_amount=Decimal("1"), target_amount=Decimal("3")),
        _Progress(current_amount=Decimal("0"), target_amount=Decimal("3")),
        _Progress(current_amount=Decimal("0"), target_amount=Decimal("3")),
    ]

    # (33.33 + 0 + 0) / 3 = 11.11
    assert calculate_overall_progress(goals) == Decimal("11.11")


def test_overall_progress_empty_is_zero() -> None:
    assert calculate_overall_progress([]) == Decimal("0")


def test_exchange_rate_usd_is_pinned_to_one() -> None:
    with pytest.raises(ValidationError):
        ExchangeRate(usd=Decimal("2"), inr=Decimal("83.5"))

    assert ExchangeRate(usd="1.00", inr="83.5").usd == Decimal("1")


def test_format_currency_uses_symbol_and_grouping() -> None:
    assert format_currency(Decimal("1234.5"), "USD") == "$1,234.50"
    assert format_currency(Decimal("100000"), "INR") == "₹100,000.00"
    assert other_currency("USD") == "INR"
    assert other_currency("INR") == "USD"
