"""FastAPI main application entry point."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from backend.core.config import settings
from backend.core.middleware import RequestIdFilter, setup_middleware
from backend.core.exceptions import PlatformError
from backend.db.session import init_db
from backend.services.model_registry import model_registry

from backend.api.auth import router as auth_router
from backend.api.models import router as models_router
from backend.api.admin import router as admin_router
from backend.api.records import router as records_router

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s [%(request_id)s]: %(message)s",
)
for _handler in logging.getLogger().handlers:
    _handler.addFilter(RequestIdFilter())
logger = logging.getLogger("dynamic_platform")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("Starting %s", settings.APP_NAME)
    init_db()
    model_registry.load()

    yield

    logger.info("Shutting down %s", settings.APP_NAME)


app = FastAPI(
    title="Dynamic Model Platform API",
    description="Runtime-declared models with generated, RBAC-gated CRUD endpoints",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Middleware
setup_middleware(app)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


@app.exception_handler(PlatformError)
async def platform_exception_handler(request: Request, exc: PlatformError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return _error(exc.status_code, exc.message)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    problems = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        problems.append(f"{location}: {err.get('msg')}" if location else err.get("msg"))
    return _error(400, f"Validation failed: {', '.join(problems)}")


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error(500, "Internal server error")


@app.get("/")
async def root():
    return {
        "name": settings.APP_NAME,
        "version": "0.1.0",
        "docs": "/docs",
    }


@app.get("/api/health")
async def health():
    """Quick health check endpoint."""
    return {
        "status": "OK",
        "models": len(model_registry.list()),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


# Register routers; the dynamic records router must stay last.
app.include_router(auth_router, prefix="/api")
app.include_router(models_router, prefix="/api")
app.include_router(admin_router, prefix="/api")
app.include_router(records_router, prefix="/api")
