"""
main.py
========
This is the FastAPI entry point for the CareBook booking backend.
It:
 - Configures logging and initializes the database.
 - Seeds demo doctors, schedules and slots if none exist.
 - Mounts the REST routers (auth, users, doctors, filters, slots, appointments).
 - Mounts the chat assistant (streaming replies, SSE doctor lists, speech to text)
   and the Marcus greeting / hint routes.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import config, __version__
from .db import init_db, SessionLocal
from .logging_config import configure_logging
from .models import Base
from .seed import seed_demo_data
from .routers import (
    auth, users, doctors, filters, slots, appointments, chat, assistant,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# APP STARTUP / SHUTDOWN
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Called when FastAPI starts.
    Sets up logging, creates tables and seeds the demo data set.
    """
    configure_logging()
    logger.info("🚀 Starting CareBook Backend (%s)...", config.APP_ENV)
    init_db(Base)

    if config.SEED_DEMO_DATA:
        db = SessionLocal()
        try:
            seed_demo_data(db)
        finally:
            db.close()

    yield
    logger.info("👋 CareBook Backend shutting down")


# ---------------------------------------------------------------------------
# APP INITIALIZATION
# ---------------------------------------------------------------------------

app = FastAPI(title="CareBook Backend", version=__version__, lifespan=lifespan)

# Only the configured frontend may call us with cookies
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.allowed_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

for module in (auth, users, doctors, filters, slots, appointments, chat, assistant):
    app.include_router(module.router)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("❌ Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# ---------------------------------------------------------------------------
# ROOT ENDPOINTS
# ---------------------------------------------------------------------------

@app.get("/")
def root():
    """Basic health check endpoint."""
    return {"message": "CareBook Backend is running!"}


@app.get("/health")
def health():
    return {"status": "ok", "env": config.APP_ENV, "version": __version__}
