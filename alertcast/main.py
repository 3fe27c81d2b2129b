"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy.exc import SQLAlchemyError

from alertcast import __version__
from alertcast.api.v1 import router as api_v1_router
from alertcast.core.config import settings
from alertcast.core.context import set_context
from alertcast.core.exceptions import NotificationError, StoreWriteError
from alertcast.core.logging import configure_logging, get_logger
from alertcast.db.session import engine
from alertcast.services.push_gateway import create_push_gateway

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    configure_logging()
    gateway = create_push_gateway(settings)
    await gateway.start()
    app.state.push_gateway = gateway
    logger.info("Push gateway started", extra={"provider": gateway.name})
    yield
    await gateway.close()
    await engine.dispose()


app = FastAPI(
    title="AlertCast Notification API",
    description="Notification targeting and delivery service",
    version=__version__,
    docs_url="/api/docs" if settings.debug else None,
    redoc_url="/api/redoc" if settings.debug else None,
    openapi_url="/api/openapi.json" if settings.debug else None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or str(uuid4())
    request.state.request_id = request_id
    set_context({"request_id": request_id})
    response = await call_next(request)
    response.headers["X-Request-Id"] = request_id
    return response


app.include_router(api_v1_router, prefix="/api/v1")


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "code": "HTTP_ERROR"},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content={
            "detail": "Validation error",
            "code": "VALIDATION_ERROR",
            "errors": exc.errors(),
        },
    )


@app.exception_handler(StoreWriteError)
async def store_write_exception_handler(request: Request, exc: StoreWriteError):
    logger.error("Delivery log write failed", extra={"reason": exc.message})
    return JSONResponse(
        status_code=500,
        content={"detail": "Failed to record notification log", "code": exc.code},
    )


@app.exception_handler(NotificationError)
async def notification_exception_handler(request: Request, exc: NotificationError):
    return JSONResponse(
        status_code=400,
        content={"detail": exc.message, "code": exc.code},
    )


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Database error")
    return JSONResponse(
        status_code=500,
        content={"detail": "Database error", "code": "DB_ERROR"},
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error")
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "code": "INTERNAL_ERROR"},
    )


@app.get("/health")
async def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "healthy", "version": __version__}
