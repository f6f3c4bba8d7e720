"""FastAPI application — marketlens v1."""
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from marketlens.api.v1 import exchanges, stocks
from marketlens.api.v1.errors import (
    ErrorResponseException,
    error_response_handler,
    request_validation_handler,
    value_error_handler,
)
from marketlens.api.v1.models import HealthResponse
from marketlens.core import data
from marketlens.core.config import settings
from marketlens.core.logging import configure_logging

VERSION = "1.0.0"

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.log_level)
    logger.info("startup", version=VERSION, store_backend=settings.store_backend)
    yield
    await data.close()
    logger.info("shutdown")


app = FastAPI(
    title="marketlens API",
    version=VERSION,
    description="Cached market data: exchanges, symbols, quotes and fundamentals",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(exchanges.router, prefix="/api/v1")
app.include_router(stocks.router, prefix="/api/v1")

app.add_exception_handler(ErrorResponseException, error_response_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)
app.add_exception_handler(ValueError, value_error_handler)


@app.get("/health", response_model=HealthResponse)
async def health():
    breaker = data.get_provider().policy.breaker
    return HealthResponse(status="ok", version=VERSION, breaker=breaker.state.value)
