"""Hotel Booking API: FastAPI application entry point."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from hotel_booking.api.v1.auth import router as auth_router
from hotel_booking.api.v1.bookings import router as bookings_router
from hotel_booking.config import settings
from hotel_booking.services.booking_automation import BookingAutomation
from hotel_booking.services.compliance_sweep import SweepFailureTracker, SweepWindows

# Configure root logger so all hotel_booking.* loggers output to stderr.
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Start the booking automation loop on startup; stop it and dispose the engine on shutdown."""
    from hotel_booking.database import async_session_factory, engine

    automation = BookingAutomation(
        async_session_factory,
        interval_seconds=settings.booking_automation_interval_seconds,
        reconcile_every=settings.counter_reconcile_every_n_sweeps,
        tracker=SweepFailureTracker.from_settings(),
        windows=SweepWindows.from_settings(),
    )
    app.state.booking_automation = automation
    if settings.booking_automation_enabled:
        automation.start()

    yield

    await automation.stop()
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Hotel booking marketplace: booking lifecycle and compliance automation.",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report invalid request bodies and parameters as 400 Bad Request."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Validation failed", "errors": jsonable_encoder(exc.errors())},
    )


# Routers
app.include_router(auth_router)
app.include_router(bookings_router)


@app.get("/health", tags=["health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy", "service": settings.app_name}


@app.get("/", tags=["root"])
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
    }
