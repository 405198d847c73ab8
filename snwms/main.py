# snwms/main.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from snwms.core.config import get_settings
from snwms.core.logging import setup_logging
from snwms.db.base import init_models
from snwms.db.session import close_engines
from snwms.http_problem_handlers import register_exception_handlers
from snwms.obs.metrics import PrometheusMiddleware
from snwms.router_mount import mount_routers

settings = get_settings()
setup_logging(settings.LOG_LEVEL, json=settings.JSON_LOG)
logger = logging.getLogger("snwms")

init_models()


@asynccontextmanager
async def lifespan(_app: FastAPI):
    logger.info("snwms starting (env=%s)", settings.ENV)
    yield
    await close_engines()


app = FastAPI(
    title="SNWMS",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(PrometheusMiddleware)
register_exception_handlers(app)
mount_routers(app)


@app.get("/health")
async def health():
    return {"status": "ok", "env": settings.ENV}
