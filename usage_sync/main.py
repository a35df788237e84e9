"""
Main FastAPI application bootstrap.
Configures logging and includes routers.
"""
import logging

from fastapi import FastAPI

from usage_sync.core.config import config
from usage_sync.api.usage import router as usage_router


# Validate configuration on startup
try:
    config.validate()
except ValueError as error:
    # Fail fast with a clear, non-secret-bearing message
    raise RuntimeError(f"Configuration error: {error}") from error

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


app = FastAPI(
    title="Usage Sync",
    description="Reconciles resource usage assumptions for infrastructure cost estimation",
)

app.include_router(usage_router)


@app.get("/health")
async def health():
    """Liveness check."""
    return {"status": "ok"}


logger.info("Usage sync service configured (log level %s)", config.LOG_LEVEL)
