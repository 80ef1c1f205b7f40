import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings, configure_logging, load_settings
from .deps import shared_store
from .routers import api_v1 as v1
from .services.scheduler import SweepScheduler

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings.log_level)

    scheduler = SweepScheduler.from_settings(settings, lambda: shared_store(settings))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.sweep_schedule_enabled:
            scheduler.start()
        try:
            yield
        finally:
            scheduler.stop()

    app = FastAPI(title="Artisan Backend", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.scheduler = scheduler

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/healthz")
    def healthz():
        return {"status": "ok", "scheduler": "running" if scheduler.is_alive else "stopped"}

    app.include_router(v1.router, prefix="/api")

    logger.info(
        "Artisan backend configured: project=%s bucket=%s keep_days=%d prefix=%s",
        settings.project_id,
        settings.bucket_name,
        settings.keep_days,
        settings.generated_prefix,
    )
    return app


app = create_app()
