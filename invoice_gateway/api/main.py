"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from invoice_gateway.api.middleware import RequestIDMiddleware, MetricsMiddleware
from invoice_gateway.api.v1 import charges, invoices, payments
from invoice_gateway.infrastructure.observability.logging import setup_logging
from invoice_gateway.config import settings

setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Credit Card Invoice Gateway",
        description="Card charges, installment plans and invoice payments",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Last added = first executed
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.include_router(charges.router, prefix="/v1", tags=["charges"])
    app.include_router(payments.router, prefix="/v1", tags=["payments"])
    app.include_router(invoices.router, prefix="/v1", tags=["invoices"])

    return app


app = create_app()
