"""
FastAPI backend for Weave.
"""
import math
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from weave_version import __version__ as WEAVE_VERSION

from weave.db import check_database_initialized, initialize_database
from weave.errors import RateLimitError, WeaveError
from weave.logging_config import get_logger, setup_logging
from weave.models import HealthResponse, SetupCheckResponse
from weave.rate_limiter import build_rate_limiter
from weave.routes import chat, conversations, extraction, patterns, sessions

setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if not check_database_initialized():
        logger.info("Creating database tables")
        initialize_database()
    logger.info("Weave backend %s started", WEAVE_VERSION)
    yield


app = FastAPI(title="Weave", version=WEAVE_VERSION, lifespan=lifespan)

# Per-process chat rate limiter, reached by routes through app.state
app.state.rate_limiter = build_rate_limiter()

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(WeaveError)
async def weave_error_handler(request: Request, exc: WeaveError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    else:
        logger.info("%s %s rejected (%d): %s", request.method, request.url.path, exc.status_code, exc.detail)

    headers = {}
    if isinstance(exc, RateLimitError):
        headers["Retry-After"] = str(max(1, math.ceil(exc.retry_after)))
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.public_message},
        headers=headers,
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    logger.info("%s %s invalid body: %s", request.method, request.url.path, errors[:3])
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": f"Invalid request: {location}: {message}" if location else message},
    )


@app.get("/api/health", response_model=HealthResponse)
async def health():
    return HealthResponse(status="ok", version=WEAVE_VERSION)


@app.get("/api/setup/check", response_model=SetupCheckResponse)
async def setup_check():
    return SetupCheckResponse(initialized=check_database_initialized())


app.include_router(chat.router)
app.include_router(extraction.router)
app.include_router(patterns.router)
app.include_router(conversations.router)
app.include_router(sessions.router)
