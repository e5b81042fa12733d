"""
FastAPI application entry point.
"""

import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from persona_insights.db import close_db, init_db
from persona_insights.deps import get_request_id
from persona_insights.errors import ServiceError
from persona_insights.routers import auth, conversations, invitations, notifications, profile, sharing, team
from persona_insights.settings import settings

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s" if settings.log_format == "text" else None,
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info(f"Starting {settings.app_name}...")
    await init_db()
    yield
    logger.info(f"Shutting down {settings.app_name}...")
    await close_db()


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    debug=settings.debug,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request ID middleware
@app.middleware("http")
async def add_request_id(request: Request, call_next):
    """Add request ID to all requests for logging."""
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# Health check endpoint
@app.get("/healthz", tags=["health"])
@app.get("/health", tags=["health"])
async def healthz():
    """Health check endpoint for load balancers."""
    return {"status": "healthy"}


@app.get("/version", tags=["meta"])
async def version():
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "build_sha": settings.build_sha,
    }


app.include_router(auth.router)
app.include_router(profile.router)
app.include_router(invitations.router)
app.include_router(team.router)
app.include_router(sharing.router)
app.include_router(notifications.router)
app.include_router(conversations.router)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    """Expected domain failures raised by the service layer."""
    if exc.status_code >= 500:
        logger.error(f"[{get_request_id(request)}] {type(exc).__name__}: {exc.message}")
    else:
        logger.info(f"[{get_request_id(request)}] {type(exc).__name__}: {exc.message}")
    return JSONResponse({"error": exc.message, "code": exc.code}, status_code=exc.status_code)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code >= 500:
        logger.error(f"[{get_request_id(request)}] Server error {exc.status_code}: {exc.detail}")
    return JSONResponse(
        {"error": exc.detail},
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are plain 400s, like service validation errors."""
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(part) for part in first.get("loc", ())[1:])
    message = first.get("msg", "Invalid request")
    return JSONResponse(
        {"error": f"{field}: {message}" if field else message, "code": "validation_error"},
        status_code=status.HTTP_400_BAD_REQUEST,
    )


# Generic exception handler for unhandled errors
@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    logger.error(f"[{get_request_id(request)}] Unhandled exception: {exc}", exc_info=True)
    return JSONResponse({"error": "Internal server error"}, status_code=500)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "persona_insights.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
