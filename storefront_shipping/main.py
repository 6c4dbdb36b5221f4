import asyncio
from contextlib import asynccontextmanager, suppress

import httpx
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from storefront_shipping.core.config import settings
from storefront_shipping.core.observability import (
    http_exception_handler,
    request_logging_middleware,
    setup_observability,
    unhandled_exception_handler,
    validation_exception_handler,
)
from storefront_shipping.routers import shipping
from storefront_shipping.services.provider_registry import build_default_providers, build_quote_service
from storefront_shipping.services.quote_cache import QuoteCache, purge_expired_periodically


@asynccontextmanager
async def lifespan(app: FastAPI):
    # The provider list is built once and never mutated afterwards.
    async with httpx.AsyncClient(timeout=settings.shipping_http_timeout_seconds) as client:
        providers = build_default_providers(client, settings)
        app.state.rate_providers = providers
        app.state.quote_service = build_quote_service(providers, settings)
        app.state.quote_cache = None
        cleanup_task = None
        if settings.shipping_quote_cache_enabled:
            app.state.quote_cache = QuoteCache(ttl_seconds=settings.shipping_quote_cache_ttl_seconds)
            cleanup_task = asyncio.create_task(
                purge_expired_periodically(
                    app.state.quote_cache,
                    settings.shipping_quote_cache_cleanup_interval_seconds,
                )
            )
        try:
            yield
        finally:
            if cleanup_task is not None:
                cleanup_task.cancel()
                with suppress(asyncio.CancelledError):
                    await cleanup_task


app = FastAPI(
    title=settings.app_name,
    version="0.1.0",
    description=(
        "Shipping-rate aggregation for the storefront checkout.\n\n"
        "`POST /shipping/quote` fans out to every configured carrier, merges the "
        "quotes cheapest first and falls back to weight-based pricing when no "
        "carrier answers."
    ),
    lifespan=lifespan,
    openapi_tags=[
        {"name": "health", "description": "Service status and quick links."},
        {"name": "shipping", "description": "Carrier rate quotes, aggregator info, and quote cache stats."},
    ],
)

setup_observability(settings.log_level)
app.middleware("http")(request_logging_middleware)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

cors_origins = settings.cors_origins or ["http://localhost:3000"]
allow_all_origins = "*" in cors_origins
env_value = settings.env.lower().strip()
allow_origin_regex = settings.cors_origin_regex

if (
    not allow_origin_regex
    and env_value in {"dev", "development", "staging", "stage"}
):
    # Helps local web development where tooling uses dynamic localhost ports.
    allow_origin_regex = r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$"

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if allow_all_origins else cors_origins,
    allow_origin_regex=allow_origin_regex,
    allow_credentials=not allow_all_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(shipping.router)


@app.get("/", tags=["health"])
def root():
    return {
        "app": settings.app_name,
        "docs": "/docs",
        "redoc": "/redoc",
        "health": "/health",
    }


@app.get("/health", tags=["health"])
def health():
    return {"ok": True}
