"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from reconciliation_gateway.api.middleware import RequestIDMiddleware, MetricsMiddleware
from reconciliation_gateway.api.v1 import reconciliation
from reconciliation_gateway.infrastructure.observability.logging import setup_logging
from reconciliation_gateway.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Bank Feed Reconciliation Gateway",
        description="Match suggestions, manual matching and reconciliation status for bank feeds",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # Liveness only; the database is not probed
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Suggestion, match, unmatch and conflict counters plus request latency
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.include_router(reconciliation.router, prefix="/v1", tags=["reconciliation"])

    return app


app = create_app()
