"""FastAPI application factory"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response

from statement_gateway.api.errors import http_exception_handler, request_validation_handler
from statement_gateway.api.middleware import RequestIDMiddleware, MetricsMiddleware
from statement_gateway.api.v1 import bank_records, payments, statements, transactions
from statement_gateway.infrastructure.database.session import init_db
from statement_gateway.infrastructure.observability.logging import setup_logging
from statement_gateway.config import settings

# Setup structured logging
setup_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.create_schema:
        init_db()
    yield


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Statement Gateway",
        description="Bank statement ingestion and payment reconciliation service",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # Every error body is {"error": "..."}
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(statements.router, prefix="/v1", tags=["statements"])
    app.include_router(bank_records.router, prefix="/v1", tags=["bank-records"])
    app.include_router(transactions.router, prefix="/v1", tags=["transactions"])
    app.include_router(payments.router, prefix="/v1", tags=["payment-records"])

    return app


app = create_app()
