import asyncio
import contextlib
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings, settings
from .dashboard import router as dashboard_router
from .goals import router as goals_router
from .logging_config import configure_logging, get_logger
from .rates import router as rates_router
from .services.storage import KeyValueStore
from .state import build_app_state

logger = get_logger(__name__)


def create_app(
    app_settings: Settings | None = None,
    *,
    storage: KeyValueStore | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    app_settings = app_settings or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(app_settings.log_level, format_json=app_settings.log_json)
        state = build_app_state(app_settings, storage=storage, transport=transport)
        app.state.savings = state
        logger.info("app_started", goal_count=len(state.goal_store.goals))

        # The first rate fetch runs in the background so goal endpoints never wait on it.
        init_task = asyncio.create_task(state.rate_provider.initialize())
        app.state.rate_init_task = init_task
        yield

        if not init_task.done():
            init_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await init_task
        await state.rate_provider.aclose()
        app.state.savings = None

    app = FastAPI(title=app_settings.app_name, lifespan=lifespan)

    origins = [o.strip() for o in app_settings.cors_allow_origins.split(",") if o.strip()]
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(goals_router)
    app.include_router(dashboard_router)
    app.include_router(rates_router)

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = create_app()
