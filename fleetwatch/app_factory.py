import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from fleetwatch.core.config import get_settings
from fleetwatch.deps import broadcaster, job_manager


@asynccontextmanager
async def _lifespan(app: FastAPI):
    job_manager.start_all()
    try:
        yield
    finally:
        await job_manager.stop_all()
        await broadcaster.close()


def create_base_app() -> FastAPI:
    """
    Build a FastAPI application with shared middleware, settings, and lifespan hooks.
    The lifespan owns the background jobs, so the connection monitor runs with the API.
    """
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = FastAPI(title=settings.app_name, lifespan=_lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts="*")
    return app
