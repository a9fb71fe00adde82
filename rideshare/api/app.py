"""
FastAPI application factory.

* Registers the JSON API under ``/api/v1`` and the server-rendered pages.
* Starts / stops the background rating-reveal worker via lifespan events.
* Renders every :class:`RideshareError` as ``{"detail", "reason"}``.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from rideshare.api.middleware import limiter
from rideshare.api.routes import (
    auth,
    bookings,
    cities,
    health,
    messages,
    ratings,
    rides,
    users,
)
from rideshare.domain.errors import RideshareError
from rideshare.infrastructure.redis_client import close_redis
from rideshare.infrastructure.sms import sms_gateway
from rideshare.web import pages
from rideshare.workers import rating_reveal as _rating_reveal

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the rating-reveal worker on startup; stop it and close pooled clients on shutdown."""
    await _rating_reveal.start_reveal_loop()
    yield
    await _rating_reveal.stop_reveal_loop()
    await close_redis()
    await sms_gateway.aclose()


async def rideshare_error_handler(request: Request, exc: RideshareError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "reason": exc.reason},
    )


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        detail = f"{field}: {first.get('msg')}" if field else first.get("msg")
    else:
        detail = "Invalid request"
    return JSONResponse(
        status_code=400,
        content={"detail": detail, "reason": "invalid_argument"},
    )


def create_app() -> FastAPI:
    app = FastAPI(
        title="AlbaniaRides API",
        description=(
            "Intercity ridesharing for Albania.  Drivers publish trips, "
            "passengers book seats, both sides chat per booking and rate "
            "each other after the ride."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Error envelope
    app.add_exception_handler(RideshareError, rideshare_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    # Routers
    for module in (auth, rides, bookings, messages, ratings, users, cities, health):
        app.include_router(module.router, prefix="/api/v1")
    app.include_router(pages.router)

    return app
