"""
Dashboard totals and per-goal card values.

Design goals:
- one exchange-rate snapshot per summary, used for both target and saved sums
- each goal amount converted to INR exactly once; USD totals derive from the INR totals
- Decimal arithmetic throughout; rounding happens only at serialization time
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from .currency import (
    ExchangeRate,
    calculate_overall_progress,
    calculate_progress,
    convert_currency,
    other_currency,
)
from .goals_service import Goal

REFERENCE_CURRENCY = "INR"


@dataclass(frozen=True)
class DashboardSummary:
    total_target_inr: Decimal
    total_saved_inr: Decimal
    total_target_usd: Decimal
    total_saved_usd: Decimal
    overall_progress: Decimal
    goal_count: int


@dataclass(frozen=True)
class GoalView:
    goal: Goal
    progress_pct: Decimal
    remaining_amount: Decimal
    converted_currency: str
    converted_target_amount: Decimal
    contribution_count: int
    currency_locked: bool


def build_dashboard_summary(goals: Sequence[Goal], rate: ExchangeRate) -> DashboardSummary:
    """Sum every goal in INR with one rate snapshot, then derive USD totals."""
    total_target_inr = Decimal("0")
    total_saved_inr = Decimal("0")

    for goal in goals:
        total_target_inr += convert_currency(goal.target_amount, goal.currency, REFERENCE_CURRENCY, rate)
        total_saved_inr += convert_currency(goal.current_amount, goal.currency, REFERENCE_CURRENCY, rate)

    # Pivot back once from the INR totals rather than re-converting each goal.
    total_target_usd = convert_currency(total_target_inr, REFERENCE_CURRENCY, "USD", rate)
    total_saved_usd = convert_currency(total_saved_inr, REFERENCE_CURRENCY, "USD", rate)

    return DashboardSummary(
        total_target_inr=total_target_inr,
        total_saved_inr=total_saved_inr,
        total_target_usd=total_target_usd,
        total_saved_usd=total_saved_usd,
        overall_progress=calculate_overall_progress(goals),
        goal_count=len(goals),
    )


def build_goal_view(goal: Goal, rate: ExchangeRate) -> GoalView:
    """Card values for one goal: progress, remaining and target in the other currency."""
    converted_currency = other_currency(goal.currency)
    return GoalView(
        goal=goal,
        progress_pct=calculate_progress(goal.current_amount, goal.target_amount),
        remaining_amount=max(Decimal("0"), goal.target_amount - goal.current_amount),
        converted_currency=converted_currency,
        converted_target_amount=convert_currency(goal.target_amount, goal.currency, converted_currency, rate),
        contribution_count=len(goal.contributions),
        currency_locked=goal.currency_locked,
    )
