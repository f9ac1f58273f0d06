# app/main.py
"""
Archival service entry point.

Mounts the scheduler trigger and archive retrieval routers.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.config import get_settings
from app.logging_config import configure_logging
from app.routers import archive_router, cron_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(json_format=settings.LOG_JSON, level=settings.LOG_LEVEL)
    yield


app = FastAPI(title="Agro Archive Service", lifespan=lifespan)

app.include_router(cron_router)
app.include_router(archive_router)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

@app.get("/health")
def health() -> dict:
    return {"status": "ok", "service": "agro-archive"}
