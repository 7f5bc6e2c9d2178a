import asyncio
import contextlib

from fastapi import FastAPI
from starlette.responses import JSONResponse

from service import scoring, system
from service.config import settings
from service.constants import APP_NAME, APP_TITLE, PATH_PREFIX
from service.core.observability import (
    PrometheusMiddleware,
    get_metrics_middleware,
    metrics_endpoint,
)
from service.log import get_logger, setup_logging

setup_logging(settings.log_level, debug=settings.debug)
logger = get_logger(__name__)


async def update_metrics_task(interval: float) -> None:
    """Refresh process metrics periodically"""
    while True:
        try:
            get_metrics_middleware().update_system_metrics()
        except RuntimeError:
            logger.debug("Metrics middleware not available")
        await asyncio.sleep(interval)


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
    if not settings.prediction.api_token:
        logger.warning("Prediction API token not set; every remote metric will use the neutral fallback")

    metrics_task = None
    if settings.observability.enable_metrics:
        metrics_task = asyncio.create_task(update_metrics_task(settings.observability.system_metrics_interval))

    yield

    if metrics_task is not None:
        metrics_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await metrics_task


app = FastAPI(
    title=APP_TITLE,
    docs_url=f"{PATH_PREFIX}/docs",
    redoc_url=f"{PATH_PREFIX}/redoc",
    openapi_url=f"{PATH_PREFIX}/openapi.json",
    description="Ensemble image similarity scoring backed by remote inference models",
    lifespan=lifespan,
)

app.add_middleware(PrometheusMiddleware, app_name=APP_NAME)

app.add_route(f"{PATH_PREFIX}/metrics", metrics_endpoint)

app.include_router(scoring.router, prefix=PATH_PREFIX)
app.include_router(system.router, prefix=PATH_PREFIX)


@app.get(f"{PATH_PREFIX}/health")
async def health():
    """Basic health check endpoint"""
    return JSONResponse(content={"status": "available", "service": APP_NAME})


@app.get("/")
async def root():
    """Root endpoint redirect"""
    return JSONResponse(
        content={"message": f"Welcome to {APP_TITLE}", "docs": f"{PATH_PREFIX}/docs", "health": f"{PATH_PREFIX}/health"}
    )
