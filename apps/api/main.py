"""
Velora Coins API - FastAPI Backend
Coin ledger, paid AI features and payment settlement for the Velora recipe app.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from config import settings, validate_security_settings
from database import engine, Base
import models  # noqa: F401
from routers import health, auth, coins, payments, ai
from services.exceptions import CoinServiceError, InvalidRequest
from services.rate_limiter import build_rate_limit_store
from services.tiers import validate_tier_table

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    # Startup
    print("🚀 Starting Velora Coins API...")
    validate_security_settings()
    validate_tier_table()
    if settings.AUTO_CREATE_DB_SCHEMA:
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            print("🗄️ Database schema verified.")
        except Exception as e:
            print(f"⚠️ Database bootstrap skipped: {e}")
    app.state.rate_limit_store = build_rate_limit_store(settings.RATE_LIMIT_BACKEND, settings.REDIS_URL)
    print(f"🚦 Rate limit store: {settings.RATE_LIMIT_BACKEND}")
    if not (settings.RAZORPAY_KEY_ID and settings.RAZORPAY_KEY_SECRET):
        print("⚠️ Razorpay keys not configured; order creation and verification will fail.")
    yield
    # Shutdown
    store = getattr(app.state, "rate_limit_store", None)
    if store is not None:
        await store.close()
    print("👋 Shutting down API...")


app = FastAPI(
    title="Velora Coins API",
    description="Coin balances, paid AI features and subscription payments",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(CoinServiceError)
async def coin_service_error_handler(request: Request, exc: CoinServiceError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.error_code, exc.detail)
    elif exc.detail:
        logger.info("%s %s rejected: %s (%s)", request.method, request.url.path, exc.error_code, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.message, "error_code": exc.error_code},
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    missing = any(error.get("type") == "missing" for error in errors)
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "error": "Missing required fields" if missing else "Invalid or missing fields",
            "error_code": InvalidRequest.error_code,
            "fields": [".".join(str(part) for part in error.get("loc", ())) for error in errors],
        },
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": CoinServiceError.default_message, "error_code": CoinServiceError.error_code},
    )


# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(auth.router, prefix="/auth", tags=["Authentication"])
app.include_router(coins.router, prefix="/coins", tags=["Coins"])
app.include_router(payments.router, prefix="/payments", tags=["Payments"])
app.include_router(ai.router, prefix="/ai", tags=["AI"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Velora Coins API",
        "version": "0.1.0",
        "status": "running"
    }
