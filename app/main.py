"""
Main FastAPI application for TalabaHub Payments.
Serves health, provider webhooks (Click, Payme), user payments and metrics.
"""
import logging
import time
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.core.logging import configure_logging
from app.api.routes import health, payments, webhooks
from app.utils.metrics import router as metrics_router


configure_logging()
logger = logging.getLogger("http")

app = FastAPI(
    title="TalabaHub Payments API",
    description="Click / Payme integrations and payment orders for TalabaHub",
    version="1.0.0",
)

# CORS
origins = settings.cors_origins_list
if not origins:
    origins = ["http://localhost:3000", "http://127.0.0.1:3000", settings.frontend_url]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    request_id = request.headers.get(settings.request_id_header) or uuid4().hex
    started = time.monotonic()
    response = await call_next(request)
    latency_ms = round((time.monotonic() - started) * 1000, 2)
    response.headers[settings.request_id_header] = request_id
    logger.info(
        "http_request",
        extra={
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "latency_ms": latency_ms,
        },
    )
    return response


# Routers
app.include_router(health.router, tags=["health"])
app.include_router(webhooks.router)
app.include_router(payments.router)
app.include_router(metrics_router)
