"""Suplient API: coach/client accounts gated by the coach's Stripe subscription."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.access.dependencies import AccessDeniedError, access_denied_handler
from app.api.v1 import access, admin, auth, billing, clients, webhooks
from app.config import settings
from app.database import engine

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Subscription-gated access for coaches and their clients.",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# require_access raises this; browsers get redirected, API callers get 403
app.add_exception_handler(AccessDeniedError, access_denied_handler)  # type: ignore[arg-type]

for module in (auth, access, billing, clients, admin, webhooks):
    app.include_router(module.router)


@app.get("/health", tags=["health"])
async def health_check() -> dict[str, str]:
    return {"status": "healthy", "service": settings.app_name}


@app.get("/", tags=["root"])
async def root() -> dict[str, str]:
    return {"service": settings.app_name, "version": settings.app_version, "docs": "/docs"}
