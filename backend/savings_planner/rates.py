"""Exchange rate router: current USD->INR rate and manual refresh."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, field_serializer

from .services.currency import ExchangeRate
from .services.exchange_rate import ExchangeRateProvider, RateStatus
from .state import get_rate_provider

router = APIRouter(prefix="/exchange-rate", tags=["exchange-rate"])


class ExchangeRateResponse(BaseModel):
    usd: Decimal
    inr: Decimal
    last_updated: datetime
    status: RateStatus
    error: str | None

    @field_serializer("usd", "inr")
    def serialize_rate(self, value: Decimal) -> str:
        return str(value)


def _rate_response(rate: ExchangeRate, provider: ExchangeRateProvider) -> ExchangeRateResponse:
    return ExchangeRateResponse(
        usd=rate.usd,
        inr=rate.inr,
        last_updated=rate.last_updated,
        status=provider.status,
        error=rate.error,
    )


@router.get("", response_model=ExchangeRateResponse)
async def get_exchange_rate(
    provider: ExchangeRateProvider = Depends(get_rate_provider),
) -> ExchangeRateResponse:
    return _rate_response(provider.snapshot(), provider)


@router.post("/refresh", response_model=ExchangeRateResponse)
async def refresh_exchange_rate(
    provider: ExchangeRateProvider = Depends(get_rate_provider),
) -> ExchangeRateResponse:
    """
    Re-fetch the rate, ignoring cache freshness.

    Fetch failures are reported in `error` with status `error`; the response is
    still 200 because a cached or default rate remains usable.
    """
    rate = await provider.refresh()
    return _rate_response(rate, provider)
