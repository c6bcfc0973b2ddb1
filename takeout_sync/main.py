"""Takeout Sync inspection API - FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from takeout_sync import __version__
from takeout_sync.database import init_db


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize the catalog database on startup."""
    init_db()
    yield


app = FastAPI(
    title="Takeout Sync",
    description="Read-only view of the takeout-to-NAS photo catalog",
    version=__version__,
    lifespan=lifespan,
)

# --- Register API routers ---
from takeout_sync.api.photos import router as photos_router  # noqa: E402
from takeout_sync.api.albums import router as albums_router  # noqa: E402
from takeout_sync.api.system import export_router, router as system_router  # noqa: E402

API_PREFIX = "/api/v1"

app.include_router(photos_router, prefix=API_PREFIX)
app.include_router(albums_router, prefix=API_PREFIX)
app.include_router(system_router, prefix=API_PREFIX)
app.include_router(export_router, prefix=API_PREFIX)


@app.get("/api/v1/health")
def health():
    return {"status": "ok"}
