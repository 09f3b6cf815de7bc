"""
FastAPI application entry point.
Main application instance with middleware and route configuration.
"""
from fastapi import FastAPI, Request, status, Depends, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from slowapi.errors import RateLimitExceeded
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text
import logging
import asyncio

from studio_cms.config import settings
from studio_cms.database import get_db, init_db, close_db
from studio_cms.exceptions import StudioCMSError
from studio_cms.services.storage import StorageGateway, get_storage_gateway
from studio_cms.routes import activity_logs, auth, content, profile, public, regions, storage, users
from studio_cms.utils.rate_limit import limiter

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Create FastAPI application instance
app = FastAPI(
    title=settings.API_TITLE,
    description=settings.API_DESCRIPTION,
    version=settings.API_VERSION,
)
app.state.limiter = limiter

CORS_METHODS = ["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"]
# Cache coordination headers must be readable by browser clients
CORS_EXPOSE_HEADERS = ["X-Content-Version", "X-Content-Invalidate", "Content-Disposition"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=False,  # Bearer tokens, no cookies
    allow_methods=CORS_METHODS,
    allow_headers=["*"],
    expose_headers=CORS_EXPOSE_HEADERS,
    max_age=3600,  # Cache preflight requests for 1 hour
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log requests and their response status."""
    method = request.method
    path = request.url.path
    origin = request.headers.get("origin", "No origin header")

    if method == "OPTIONS":
        logger.info(
            f"OPTIONS preflight request to {path}\n"
            f"  Origin: {origin}\n"
            f"  Access-Control-Request-Method: {request.headers.get('access-control-request-method', 'N/A')}"
        )
    else:
        logger.debug(f"Incoming {method} request to {path} from origin: {origin}")

    try:
        response = await call_next(request)
        logger.info(f"Response status: {response.status_code} for {method} {path}")
        return response
    except Exception as e:
        logger.error(
            f"Error processing {method} {path}: {str(e)}\n"
            f"  Origin: {origin}\n"
            f"  Error type: {type(e).__name__}",
            exc_info=True
        )
        raise


# Public content
app.include_router(public.router, prefix="/api", tags=["Public"])

# Admin API
app.include_router(auth.router, prefix="/api")
for collection_router in content.routers:
    app.include_router(collection_router, prefix="/api")
app.include_router(regions.router, prefix="/api")
app.include_router(users.router, prefix="/api")
app.include_router(profile.router, prefix="/api")
app.include_router(activity_logs.router, prefix="/api")
app.include_router(storage.router, prefix="/api")


def add_cors_headers(response: JSONResponse, request: Request) -> JSONResponse:
    """
    Add CORS headers to error responses so browsers can read the error body.

    Args:
        response: The JSONResponse to add headers to
        request: The incoming request

    Returns:
        JSONResponse with CORS headers added
    """
    origin = request.headers.get("origin")
    if origin and origin in settings.CORS_ORIGINS:
        response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Access-Control-Allow-Methods"] = ", ".join(CORS_METHODS)
        response.headers["Access-Control-Allow-Headers"] = "*"
        response.headers["Access-Control-Expose-Headers"] = ", ".join(CORS_EXPOSE_HEADERS)
        response.headers["Vary"] = "Origin"

    return response


# Exception Handlers
@app.exception_handler(StudioCMSError)
async def studio_cms_exception_handler(request: Request, exc: StudioCMSError):
    """Handle domain errors raised by services and dependencies."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"{type(exc).__name__} on {request.method} {request.url.path}:\n"
        f"  Status: {exc.status_code}\n"
        f"  Detail: {exc.detail}"
    )
    response = JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder({"error": exc.error, "detail": exc.detail})
    )
    return add_cors_headers(response, request)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions (404 for unknown routes, 405, etc.) with CORS headers."""
    logger.error(
        f"HTTPException on {request.method} {request.url.path}:\n"
        f"  Status: {exc.status_code}\n"
        f"  Origin: {request.headers.get('origin', 'No origin')}\n"
        f"  Detail: {exc.detail}"
    )

    # Handle both string and dict detail formats
    if isinstance(exc.detail, dict):
        content = exc.detail
    else:
        content = {"error": exc.detail, "detail": str(exc.detail)}

    response = JSONResponse(
        status_code=exc.status_code,
        content=content
    )

    return add_cors_headers(response, request)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_exception_handler(request: Request, exc: RateLimitExceeded):
    logger.warning(f"Rate limit exceeded on {request.method} {request.url.path}: {exc.detail}")
    response = JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={
            "error": "Too many requests",
            "detail": f"Rate limit exceeded: {exc.detail}. Please try again later."
        }
    )
    return add_cors_headers(response, request)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
):
    """Handle request validation errors."""
    logger.error(
        f"Validation error on {request.method} {request.url.path}:\n"
        f"  Origin: {request.headers.get('origin', 'No origin')}\n"
        f"  Errors: {exc.errors()}"
    )
    response = JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=jsonable_encoder({
            "error": "Validation error",
            "detail": exc.errors()
        })
    )
    return add_cors_headers(response, request)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions."""
    logger.error(
        f"Unhandled exception on {request.method} {request.url.path}:\n"
        f"  Origin: {request.headers.get('origin', 'No origin')}\n"
        f"  Error: {str(exc)}\n"
        f"  Error type: {type(exc).__name__}",
        exc_info=True
    )
    response = JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "detail": "An unexpected error occurred"
        }
    )
    return add_cors_headers(response, request)


# Root Endpoints
@app.get("/")
async def root():
    """Root endpoint - API health check."""
    return {
        "message": settings.API_TITLE,
        "status": "healthy",
        "version": settings.API_VERSION
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/health/db")
async def health_check_db(db: AsyncSession = Depends(get_db)):
    """
    Database health check endpoint.
    Tests database connection and returns status.
    """
    try:
        result = await db.execute(text("SELECT 1"))
        return {
            "database": "connected",
            "status": "healthy",
            "result": result.scalar()
        }
    except Exception as e:
        logger.error(f"Database health check failed: {str(e)}", exc_info=True)
        return {
            "database": "error",
            "status": "unhealthy",
            "error": "Database connection failed"
        }


@app.get("/health/storage")
async def health_check_storage(storage: StorageGateway = Depends(get_storage_gateway)):
    """
    Storage health check endpoint.
    Validates the storage gateway configuration.
    """
    is_configured = getattr(storage, "is_configured", lambda: True)()
    if is_configured:
        return {
            "storage": "configured",
            "status": "healthy",
            "cloud_name": settings.CLOUDINARY_CLOUD_NAME
        }
    return {
        "storage": "not_configured",
        "status": "warning",
        "message": "Cloudinary credentials not set in environment variables"
    }


@app.on_event("startup")
async def startup_event():
    """
    Initialize database connection on application startup.
    Non-blocking: app will start even if database connection fails.
    """
    logger.info(f"CORS allowed origins: {settings.CORS_ORIGINS}")

    if settings.DATABASE_URL:
        try:
            await init_db()
            logger.info("Database connection established successfully")
        except Exception as e:
            logger.error(
                f"Failed to initialize database on startup: {str(e)}\n"
                f"The application will continue to run, but database-dependent endpoints will fail.\n"
                f"Please check your DATABASE_URL configuration and network connectivity."
            )
            # Don't raise - allow app to start without database for non-db endpoints
    else:
        logger.info("DATABASE_URL not configured - database features will be unavailable")


@app.on_event("shutdown")
async def shutdown_event():
    """Close database connections on application shutdown."""
    if settings.DATABASE_URL:
        try:
            await close_db()
        except Exception as e:
            # Ignore cancellation errors during shutdown - they're expected
            if not isinstance(e, (KeyboardInterrupt, asyncio.CancelledError)):
                logger.warning(f"Error during database shutdown: {str(e)}")
