"""USD->INR exchange rate provider with a TTL cache and stale fallbacks.

Lifecycle:
- IDLE: seeded with the default rate, nothing fetched yet
- LOADING: one fetch in flight; concurrent refreshes wait on it
- READY: rate came from a fresh cache entry or a successful fetch
- ERROR: last fetch failed; serving a cached (possibly stale) or default rate
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from collections.abc import Callable
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from email.utils import parsedate_to_datetime
from enum import Enum
from typing import Any

import httpx
from pydantic import BaseModel, ValidationError

from ..logging_config import get_logger
from .currency import ExchangeRate
from .storage import KeyValueStore, StorageError, read_json, write_json

logger = get_logger(__name__)

CACHE_KEY = "exchangeRateCache"
DEFAULT_INR_RATE = Decimal("83.5")
DEFAULT_CACHE_TTL_SECONDS = 60 * 60
DEFAULT_BASE_URL = "https://v6.exchangerate-api.com/v6"


class ExchangeRateError(Exception):
    """Base exception for exchange rate fetch failures."""


class ExchangeRateRequestError(ExchangeRateError):
    """Raised when the rate endpoint cannot be reached or answers non-2xx."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code


class ExchangeRateResponseError(ExchangeRateError):
    """Raised when the rate payload cannot be parsed."""


class RateStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


class CachedRate(BaseModel):
    rate: ExchangeRate
    timestamp: float


def _parse_last_updated(payload: dict[str, Any]) -> datetime:
    raw_utc = payload.get("time_last_update_utc")
    if isinstance(raw_utc, str) and raw_utc.strip():
        try:
            parsed = parsedate_to_datetime(raw_utc)
        except (TypeError, ValueError):
            parsed = None
        if parsed is not None:
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed.astimezone(timezone.utc)

    raw_unix = payload.get("time_last_update_unix")
    if isinstance(raw_unix, (int, float)) and not isinstance(raw_unix, bool):
        try:
            return datetime.fromtimestamp(raw_unix, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            pass

    return datetime.now(timezone.utc)


def parse_rate_payload(payload: Any) -> ExchangeRate:
    """
    Extract the INR rate from a USD-based rates response.

    Accepts both `conversion_rates` (v6) and legacy `rates` mappings.
    """
    if not isinstance(payload, dict):
        raise ExchangeRateResponseError("Invalid API response format")

    if payload.get("result") == "error":
        raise ExchangeRateResponseError(str(payload.get("error-type") or "API error"))

    rates = payload.get("conversion_rates") or payload.get("rates")
    if not isinstance(rates, dict):
        raise ExchangeRateResponseError("Invalid API response format")

    raw_inr = rates.get("INR")
    if raw_inr is None or isinstance(raw_inr, bool) or not isinstance(raw_inr, (int, float, str)):
        raise ExchangeRateResponseError("Invalid API response format")

    try:
        inr = Decimal(str(raw_inr))
    except InvalidOperation as exc:
        raise ExchangeRateResponseError("Invalid INR rate in API response") from exc

    if not inr.is_finite() or inr <= Decimal("0"):
        raise ExchangeRateResponseError("Invalid INR rate in API response")

    return ExchangeRate(inr=inr, last_updated=_parse_last_updated(payload))


class ExchangeRateProvider:
    """Owns the process-wide exchange rate and its cache entry."""

    def __init__(
        self,
        storage: KeyValueStore,
        *,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        cache_ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS,
        timeout_seconds: float = 10.0,
        default_rate: Decimal = DEFAULT_INR_RATE,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.storage = storage
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.cache_ttl_seconds = cache_ttl_seconds
        self.timeout_seconds = timeout_seconds
        self._transport = transport
        self._clock = clock

        self._rate = ExchangeRate(inr=default_rate)
        self._status = RateStatus.IDLE
        self._error: str | None = None
        self._inflight: asyncio.Task[ExchangeRate] | None = None

    @property
    def status(self) -> RateStatus:
        return self._status

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def loading(self) -> bool:
        return self._status is RateStatus.LOADING

    def snapshot(self) -> ExchangeRate:
        """Current rate with the last fetch error attached, if any."""
        return self._rate.model_copy(update={"error": self._error})

    async def initialize(self) -> ExchangeRate:
        """Adopt a fresh cached rate, or fetch one."""
        cached = self._load_cached_rate(max_age_seconds=self.cache_ttl_seconds)
        if cached is not None:
            self._rate = cached
            self._error = None
            self._status = RateStatus.READY
            logger.info("exchange_rate_cache_hit", inr=str(cached.inr))
            return self.snapshot()

        return await self.refresh()

    async def refresh(self) -> ExchangeRate:
        """Fetch unconditionally; joins the in-flight fetch when one is running."""
        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.ensure_future(self._fetch_and_apply())
        return await asyncio.shield(self._inflight)

    async def aclose(self) -> None:
        """Cancel an in-flight fetch, if any. Used on shutdown."""
        task = self._inflight
        if task is None or task.done():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _fetch_and_apply(self) -> ExchangeRate:
        self._status = RateStatus.LOADING
        self._error = None

        try:
            rate = await self._fetch_rate()
        except ExchangeRateError as exc:
            message = str(exc) or "Failed to fetch exchange rate"
            logger.warning("exchange_rate_fetch_failed", error=message)

            cached = self._load_cached_rate(max_age_seconds=None)
            if cached is not None:
                self._rate = cached
            self._error = message
            self._status = RateStatus.ERROR
            return self.snapshot()

        self._rate = rate
        self._save_cached_rate(rate)
        self._status = RateStatus.READY
        logger.info("exchange_rate_updated", inr=str(rate.inr), last_updated=rate.last_updated.isoformat())
        return self.snapshot()

    async def _fetch_rate(self) -> ExchangeRate:
        if not self.api_key:
            raise ExchangeRateRequestError(400, "Exchange rate API key is not configured")

        url = f"{self.base_url}/{self.api_key}/latest/USD"

        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = await client.get(url)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise ExchangeRateRequestError(503, "Exchange rate request failed") from exc

        if not response.is_success:
            raise ExchangeRateRequestError(response.status_code, f"API error: {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise ExchangeRateResponseError("Invalid JSON from exchange rate API") from exc

        return parse_rate_payload(payload)

    def _load_cached_rate(self, max_age_seconds: int | None) -> ExchangeRate | None:
        raw = read_json(self.storage, CACHE_KEY)
        if raw is None:
            return None

        try:
            cached = CachedRate.model_validate(raw)
        except ValidationError:
            logger.warning("exchange_rate_cache_malformed")
            return None

        if max_age_seconds is not None and self._clock() - cached.timestamp >= max_age_seconds:
            return None

        return cached.rate.model_copy(update={"error": None})

    def _save_cached_rate(self, rate: ExchangeRate) -> None:
        entry = CachedRate(rate=rate.model_copy(update={"error": None}), timestamp=self._clock())
        try:
            write_json(self.storage, CACHE_KEY, entry.model_dump(mode="json"))
        except StorageError:
            logger.exception("exchange_rate_cache_write_failed")
