"""Root application state: the goal store and the exchange rate provider."""

from __future__ import annotations

from dataclasses import dataclass

import httpx
from fastapi import HTTPException, Request

from .config import Settings
from .services.exchange_rate import ExchangeRateProvider
from .services.goal_store import GoalStore
from .services.storage import InMemoryKeyValueStore, JsonFileKeyValueStore, KeyValueStore


@dataclass
class AppState:
    settings: Settings
    storage: KeyValueStore
    goal_store: GoalStore
    rate_provider: ExchangeRateProvider


def build_storage(settings: Settings) -> KeyValueStore:
    if not settings.storage_dir:
        return InMemoryKeyValueStore()
    return JsonFileKeyValueStore(settings.storage_dir)


def build_app_state(
    settings: Settings,
    *,
    storage: KeyValueStore | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AppState:
    """Wire the store and rate provider over one key-value backend."""
    kv_store = storage if storage is not None else build_storage(settings)
    return AppState(
        settings=settings,
        storage=kv_store,
        goal_store=GoalStore(kv_store),
        rate_provider=ExchangeRateProvider(
            kv_store,
            api_key=settings.exchange_rate_api_key,
            base_url=settings.exchange_rate_api_base_url,
            cache_ttl_seconds=settings.exchange_rate_cache_ttl_seconds,
            timeout_seconds=settings.exchange_rate_timeout_seconds,
            default_rate=settings.default_inr_rate,
            transport=transport,
        ),
    )


def get_app_state(request: Request) -> AppState:
    # Centralized guard so route handlers never see a half-started app.
    state = getattr(request.app.state, "savings", None)
    if state is None:
        raise HTTPException(status_code=500, detail="Application state is not initialized")
    return state


def get_goal_store(request: Request) -> GoalStore:
    return get_app_state(request).goal_store


def get_rate_provider(request: Request) -> ExchangeRateProvider:
    return get_app_state(request).rate_provider
