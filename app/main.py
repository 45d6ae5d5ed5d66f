from __future__ import annotations
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.api import router
from datastore.timeseries import build_default_table
from logging_config import configure_logging
from services.monitor import build_default_monitor
from services.replicator import build_default_replicator
from storage.checkpoint import build_default_checkpoint_store
from storage.commit_log import build_default_commit_log

_FACTORIES = (
    build_default_monitor,
    build_default_replicator,
    build_default_commit_log,
    build_default_checkpoint_store,
    build_default_table,
)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    try:
        yield
    finally:
        if build_default_monitor.cache_info().currsize:
            monitor = build_default_monitor()
            monitor.source.close()
            monitor.notifier.close()
        for factory in _FACTORIES:
            factory.cache_clear()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Sensorlog",
        description="Replicates committed sensor snapshots into a time-series store "
        "and watches the feed for staleness.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(router)
    return app

app = create_app()
