"""
Dashboard API router.

Fetch and display:

- total target and saved amounts in INR and USD
- overall progress across goals
- exchange rate used for the totals, with loading/error flags
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, field_serializer

from .services.currency import format_currency, quantize_amount
from .services.dashboard_service import build_dashboard_summary
from .services.exchange_rate import ExchangeRateProvider
from .services.goal_store import GoalStore
from .state import get_goal_store, get_rate_provider

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


def _money(value: Decimal) -> str:
    """Serialize Decimal values to fixed 2-decimal amount strings."""
    return str(quantize_amount(value))


class ExchangeRateInfo(BaseModel):
    """Rate card shown under the totals."""
    rate: Decimal
    last_updated: datetime
    loading: bool
    error: str | None

    @field_serializer("rate")
    def serialize_rate(self, value: Decimal) -> str:
        return str(value)


class DashboardSummaryResponse(BaseModel):
    """Top-level totals for the financial overview card."""
    total_target_inr: Decimal
    total_saved_inr: Decimal
    total_target_usd: Decimal
    total_saved_usd: Decimal
    overall_progress: Decimal
    goal_count: int
    formatted_total_target_inr: str
    formatted_total_saved_inr: str
    formatted_total_target_usd: str
    formatted_total_saved_usd: str
    exchange_rate: ExchangeRateInfo

    @field_serializer(
        "total_target_inr",
        "total_saved_inr",
        "total_target_usd",
        "total_saved_usd",
        "overall_progress",
    )
    def serialize_decimal(self, value: Decimal) -> str:
        return _money(value)


@router.get("/summary", response_model=DashboardSummaryResponse)
async def dashboard_summary(
    store: GoalStore = Depends(get_goal_store),
    rate_provider: ExchangeRateProvider = Depends(get_rate_provider),
) -> DashboardSummaryResponse:
    """
    Return dashboard totals computed from one exchange-rate snapshot.

    Example response:
    {
      "total_target_inr": "91850.00",
      "total_saved_inr": "8350.00",
      "total_target_usd": "1100.00",
      "total_saved_usd": "100.00",
      "overall_progress": "12.50",
      "goal_count": 2,
      "formatted_total_target_inr": "₹91,850.00",
      "formatted_total_saved_inr": "₹8,350.00",
      "formatted_total_target_usd": "$1,100.00",
      "formatted_total_saved_usd": "$100.00",
      "exchange_rate": {
        "rate": "83.5",
        "last_updated": "2026-03-01T00:00:01Z",
        "loading": false,
        "error": null
      }
    }
    """
    # Take the snapshot once so every total uses the same rate.
    rate = rate_provider.snapshot()
    summary = build_dashboard_summary(store.goals, rate)

    return DashboardSummaryResponse(
        total_target_inr=summary.total_target_inr,
        total_saved_inr=summary.total_saved_inr,
        total_target_usd=summary.total_target_usd,
        total_saved_usd=summary.total_saved_usd,
        overall_progress=summary.overall_progress,
        goal_count=summary.goal_count,
        formatted_total_target_inr=format_currency(summary.total_target_inr, "INR"),
        formatted_total_saved_inr=format_currency(summary.total_saved_inr, "INR"),
        formatted_total_target_usd=format_currency(summary.total_target_usd, "USD"),
        formatted_total_saved_usd=format_currency(summary.total_saved_usd, "USD"),
        exchange_rate=ExchangeRateInfo(
            rate=rate.inr,
            last_updated=rate.last_updated,
            loading=rate_provider.loading,
            error=rate.error,
        ),
    )
