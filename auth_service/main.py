from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from auth_service.api.routers.auth import router as auth_router
from auth_service.core.config import get_settings
from auth_service.core.db import create_schema, get_engine
from auth_service.core.logging import configure_logging


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    settings = get_settings()
    configure_logging(settings.log_level)
    if settings.auto_create_schema and settings.credential_store == "sql" and settings.postgres_dsn:
        create_schema(get_engine(settings.postgres_dsn))
        logger.info("main: schema_created")
    logger.info("main: startup credential_store=%s", settings.credential_store)
    yield


app = FastAPI(title="Auth API", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(auth_router)


@app.get("/health")
def health():
    return {"status": "ok"}
