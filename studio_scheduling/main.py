"""Entry point for the Scheduling FastAPI application."""

import logging

from fastapi import FastAPI

from studio_scheduling import models  # noqa: F401
from studio_scheduling.api.v1 import router as api_router
from studio_scheduling.core.config import settings
from studio_scheduling.core.database import Base, engine, verify_database_connection
from studio_scheduling.core.error_handlers import register_exception_handlers

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

verify_database_connection()

# Ensure database tables exist when the application starts (for development purposes).
Base.metadata.create_all(bind=engine)

app = FastAPI(title=settings.PROJECT_NAME)

register_exception_handlers(app)

app.include_router(api_router, prefix="/api/studio/v1/scheduling")


@app.get("/health", tags=["health"])
def health() -> dict:
    return {"status": "ok"}
