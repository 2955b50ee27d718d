import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI

from src.api.deps import get_bucket_store, get_rules, get_settings
from src.api.routes import telemetry

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    settings = get_settings()

    # Load rules and open the store on startup (fail-fast)
    try:
        rules = get_rules()
        logging.getLogger().setLevel(rules.logging.level)
        get_bucket_store()
        logger.info("Rules loaded from %s", settings.rules_path)
    except Exception as e:
        logger.critical("Telemetry store startup failed: %s", e)
        sys.exit(1)

    yield


app = FastAPI(
    title="Engagement Telemetry Store",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.include_router(telemetry.router, prefix="/api/telemetry", tags=["Telemetry"])


@app.get("/health")
def health_check() -> dict[str, Any]:
    """Health check endpoint."""
    return {"status": "ok", "service": "telemetry-store"}
