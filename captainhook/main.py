import json
import time
from datetime import datetime
from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from starlette.exceptions import HTTPException

from captainhook.config.logging import setup_logging
from captainhook.config.settings import settings, APP_VERSION
from captainhook.middlewares.request_context import get_client_ip
from captainhook.middlewares.token_auth import WebhookTokenMiddleware
from captainhook.models import WebhookResponse, ErrorResponse, HealthResponse

setup_logging()

# Initialize structured logger
logger = structlog.get_logger()

# Prometheus metrics
webhook_requests_total = Counter(
    'webhook_requests_total',
    'Total webhook requests',
    ['method', 'endpoint', 'status']
)

webhook_request_duration = Histogram(
    'webhook_request_duration_seconds',
    'Webhook request duration',
    ['method', 'endpoint']
)

app = FastAPI(
    title="Captainhook",
    description="Single-endpoint webhook receiver guarded by a shared-secret header",
    version=APP_VERSION,
    docs_url="/docs" if settings.reload else None,  # Disable docs in production
    redoc_url=None,
)

app.add_middleware(WebhookTokenMiddleware)


def is_json_content_type(content_type: str) -> bool:
    """True for application/json and application/*+json media types."""
    mimetype = content_type.split(';', 1)[0].strip().lower()
    return mimetype == "application/json" or (
        mimetype.startswith("application/") and mimetype.endswith("+json")
    )


def reject_constant(name: str):
    # NaN and Infinity are not JSON and cannot be echoed back faithfully
    raise ValueError(f"invalid JSON constant {name}")


async def read_payload(request: Request) -> Any:
    """
    Leniently read the JSON body of a delivery.

    Anything that is not a JSON request, or does not parse, becomes an
    empty object, and so does any falsy JSON value.
    """
    if not is_json_content_type(request.headers.get("content-type", "")):
        return {}

    body = await request.body()
    if not body:
        return {}

    try:
        data = json.loads(body, parse_constant=reject_constant)
    except ValueError as e:
        logger.warning("invalid_json", error=str(e))
        return {}

    return data or {}


@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """Add processing time and logging middleware"""
    start_time = time.time()
    client_ip = get_client_ip(request)

    logger.info(
        "request_received",
        method=request.method,
        url=str(request.url),
        client_ip=client_ip,
        user_agent=request.headers.get("user-agent", "")
    )

    response = await call_next(request)

    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)

    webhook_requests_total.labels(
        method=request.method,
        endpoint=request.url.path,
        status=response.status_code
    ).inc()

    webhook_request_duration.labels(
        method=request.method,
        endpoint=request.url.path
    ).observe(process_time)

    logger.info(
        "request_processed",
        method=request.method,
        url=str(request.url),
        status_code=response.status_code,
        process_time=process_time,
        client_ip=client_ip
    )

    return response


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint"""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now().isoformat(),
        version=APP_VERSION,
    )


@app.get("/metrics")
async def get_metrics():
    """Prometheus metrics endpoint"""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.post(settings.webhook_path, response_model=WebhookResponse)
async def receive_webhook(request: Request):
    """
    Webhook endpoint.

    The X-Webhook-Token header has already been checked by
    WebhookTokenMiddleware by the time this runs; the handler only
    mirrors the payload back under ``received_data``.
    """
    data = await read_payload(request)

    logger.info(
        "webhook_authenticated",
        client_ip=get_client_ip(request),
        data=data
    )

    return WebhookResponse(received_data=data)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Custom HTTP exception handler"""
    logger.error(
        "http_exception",
        status_code=exc.status_code,
        detail=exc.detail,
        url=str(request.url),
        method=request.method
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(message=str(exc.detail)).model_dump(),
        headers=exc.headers
    )
