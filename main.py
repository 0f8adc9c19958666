"""
Main application entry point for the CarHub API.

This module initializes the FastAPI application, sets up middleware,
configures CORS, initializes the rate limiter with Redis backend,
registers error handlers, and includes routers for authentication,
profiles, cars and user administration.

Modules:
- FastAPI: Web framework
- CORSMiddleware: Middleware for handling CORS
- FastAPILimiter: Rate limiting
- redis.asyncio: Async Redis client
- fakeredis.aioredis: Fake Redis for testing/offline
- carhub.database: Database engine
- carhub.models: SQLAlchemy models
- carhub.auth / carhub.profile / carhub.cars / carhub.users: Routers
- carhub.core: Application settings
"""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from fastapi_limiter import FastAPILimiter
from fakeredis.aioredis import FakeRedis
import redis.asyncio as redis

from carhub.database import engine
from carhub import models, cars, profile, users
from carhub.auth import router as auth_router
from carhub.core import get_settings
from carhub.errors import ValidationError
from carhub.logger import get_logger
from carhub.validation import (
    request_validation_error_handler,
    validation_error_handler,
)

logger = get_logger("carhub")

# Create tables (no migration tooling)
models.Base.metadata.create_all(bind=engine)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Initialize the rate limiter with the Redis backend.

    Falls back to FakeRedis if Redis is unavailable (e.g., during tests
    or offline).
    """
    redis_client = redis.from_url(
        settings.REDIS_URL, encoding="utf-8", decode_responses=True
    )
    try:
        await FastAPILimiter.init(redis_client)
    except Exception as exc:
        logger.warning("Redis unavailable (%s), rate limiting in process", exc)
        await FastAPILimiter.init(FakeRedis())
    yield
    await FastAPILimiter.close()


# Initialize FastAPI application
app = FastAPI(title="CarHub API", lifespan=lifespan)

# Configure CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(ValidationError, validation_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_error_handler)

# Include routers for application areas
app.include_router(auth_router)
app.include_router(profile.router)
app.include_router(cars.router)
app.include_router(users.router)

# Locally stored profile photos
os.makedirs(settings.MEDIA_ROOT, exist_ok=True)
app.mount(settings.MEDIA_URL, StaticFiles(directory=settings.MEDIA_ROOT), name="media")


@app.get("/")
def root():
    """
    Root endpoint for the API.

    Returns a simple JSON message directing users to the Swagger UI.

    Returns:
        dict: JSON message with information about the API
    """
    return {"msg": "CarHub API. Visit /docs for Swagger UI"}
