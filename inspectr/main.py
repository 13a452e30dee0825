"""
Inspectr - live HTTP traffic inspection hub.

Features:
- Server-Sent Events stream of captured transactions (/api/sse)
- Publish endpoint fed by InspectrMiddleware broadcasts
- Replay of captured requests
- Structured logging with correlation IDs
- Prometheus metrics
"""
from fastapi import FastAPI
from prometheus_client import make_asgi_app
from .config import get_settings
from .logging import setup_logging, get_logger
from .api.router import router
from .api.sse_router import router as sse_router
from .middleware.correlation import CorrelationIdMiddleware
from .middleware.error_handler import install_error_handlers
from .metrics import metrics
from .services.broadcaster import broadcaster
from .streaming.hub import hub

# Initialize configuration
settings = get_settings()

# Setup logging
setup_logging(json_output=settings.LOG_JSON, service_name="inspectr")
logger = get_logger()

# Create FastAPI app
app = FastAPI(
    title="Inspectr",
    version="0.1.0",
    description="Live HTTP request/response inspection over Server-Sent Events",
)

app.add_middleware(CorrelationIdMiddleware)
install_error_handlers(app)

app.include_router(router)
app.include_router(sse_router)

# Mount Prometheus metrics endpoint
metrics_app = make_asgi_app(registry=metrics.registry)
app.mount("/metrics", metrics_app)


@app.on_event("startup")
async def startup_event():
    """Log service startup."""
    logger.info(
        "service_starting",
        version="0.1.0",
        env=settings.ENV,
        port=settings.SERVICE_PORT,
        sse_endpoint=f"http://localhost:{settings.SERVICE_PORT}/api/sse",
    )


@app.on_event("shutdown")
async def shutdown_event():
    """Close every subscriber stream and let pending broadcasts finish."""
    logger.info("service_stopping", subscribers=hub.connection_count, pending_broadcasts=broadcaster.pending)
    hub.close_all()
    await broadcaster.drain()
    metrics.app_up.labels(service="inspectr", version="0.1.0").set(0)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "inspectr.main:app",
        host="0.0.0.0",
        port=settings.SERVICE_PORT,
    )
