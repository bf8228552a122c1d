"""
Conference Submission Portal

FastAPI application entry point.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from confportal.api.middleware.rate_limit import RateLimitMiddleware
from confportal.api.middleware.request_id import RequestIdMiddleware
from confportal.api.v1 import router as api_v1_router
from confportal.config import get_settings
from confportal.database import close_db, init_db
from confportal.kernel.errors import InternalError, PortalError
from confportal.logging_config import configure_logging, get_logger
from confportal.schemas.common import HealthResponse

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Configure logging, create tables, dispose the engine on shutdown."""
    configure_logging(
        log_level=settings.log_level,
        environment=settings.environment,
        debug=settings.debug,
    )

    logger.info("Starting %s v%s", settings.project_name, settings.version)
    await init_db()
    logger.info("Database initialized")

    yield

    logger.info("Shutting down...")
    await close_db()
    logger.info("Database connections closed")


app = FastAPI(
    title=settings.project_name,
    description="""
    Conference Submission Portal

    Paper submission, review and payment backend for an academic conference.

    ## Features

    - **Submissions**: abstracts and full papers with immutable reference numbers
    - **Review**: admin decisions through an explicit status state machine
    - **Revisions**: versioned resubmission after accept-with-revision
    - **Payments**: server-priced conference and attendee fees via Easebuzz
    - **Receipts**: PDF receipts for verified payments
    - **Verification**: ID card and offline payment proof review
    """,
    version=settings.version,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)


# add_middleware stacks innermost-first: the last one added is outermost.
_cors_origins = list(dict.fromkeys([settings.frontend_url, *settings.allowed_frontend_urls]))

app.add_middleware(RateLimitMiddleware)
app.add_middleware(RequestIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_headers(request: Request) -> dict:
    headers = {}
    origin = request.headers.get("origin")
    if origin and origin in _cors_origins:
        headers["Access-Control-Allow-Origin"] = origin
        headers["Access-Control-Allow-Credentials"] = "true"
    req_id = getattr(request.state, "request_id", None)
    if req_id:
        headers["X-Request-ID"] = req_id
    return headers


@app.exception_handler(PortalError)
async def portal_error_handler(request: Request, exc: PortalError):
    """Map service-layer errors to JSON with a stable machine code."""
    req_id = getattr(request.state, "request_id", None)
    if isinstance(exc, InternalError):
        logger.exception("Internal error: %s", exc.message, exc_info=exc)
        detail = exc.default_message
    else:
        detail = exc.message
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": detail, "code": exc.code, "request_id": req_id},
        headers=_error_headers(request),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    req_id = getattr(request.state, "request_id", None)
    headers = _error_headers(request)
    if exc.headers:
        headers.update(exc.headers)
    content = {"detail": exc.detail}
    if req_id:
        content["request_id"] = req_id
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors."""
    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        errors.append({
            "field": field,
            "message": error["msg"],
            "type": error["type"],
        })
    content = {"detail": "Validation error", "code": "request_validation", "errors": errors}
    req_id = getattr(request.state, "request_id", None)
    if req_id:
        content["request_id"] = req_id
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=content,
        headers=_error_headers(request),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Unexpected exceptions: log with traceback, return a generic message."""
    logger.exception("Unhandled exception: %s", exc)
    req_id = getattr(request.state, "request_id", None)
    if settings.debug:
        content = {"detail": str(exc), "type": type(exc).__name__, "request_id": req_id}
    else:
        content = {"detail": "Internal server error", "code": "internal", "request_id": req_id}
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=content,
        headers=_error_headers(request),
    )


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Check application health."""
    return HealthResponse(
        status="ok",
        version=settings.version,
        database="connected",
        payments_configured=bool(
            settings.easebuzz_merchant_key.strip() and settings.easebuzz_merchant_salt.strip()
        ),
    )


@app.get("/", tags=["Root"])
async def root():
    return {
        "name": settings.project_name,
        "version": settings.version,
        "docs": "/docs" if settings.debug else "disabled",
        "api": {
            "v1": settings.api_v1_prefix,
        },
    }


app.include_router(
    api_v1_router,
    prefix=settings.api_v1_prefix,
)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "confportal.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
