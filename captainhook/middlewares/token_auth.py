import hmac
from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from prometheus_client import Counter
from starlette.middleware.base import BaseHTTPMiddleware
import structlog

from captainhook.config.settings import settings
from captainhook.middlewares.request_context import get_client_ip
from captainhook.models import ErrorResponse

logger = structlog.get_logger()

TOKEN_HEADER = "X-Webhook-Token"

token_verification_total = Counter(
    'webhook_token_verification_total',
    'Total webhook token verifications',
    ['status']
)


def token_matches(token: Optional[str], secret: str) -> bool:
    """
    Exact, constant-time comparison of a header value with the secret.

    Header values arrive decoded as latin-1, so encoding them back to
    latin-1 recovers the raw bytes that were sent. An empty secret never
    matches.
    """
    if token is None or not secret:
        return False
    try:
        raw = token.encode('latin-1')
    except UnicodeEncodeError:
        return False
    return hmac.compare_digest(raw, secret.encode('utf-8'))


class WebhookTokenMiddleware(BaseHTTPMiddleware):
    """
    Middleware to reject webhook deliveries whose X-Webhook-Token header
    does not match the configured shared secret
    """

    async def dispatch(self, request: Request, call_next):
        # Only guard POSTs to the webhook route, other methods get a 405 from the router
        if request.method != "POST" or request.url.path != settings.webhook_path:
            return await call_next(request)

        client_ip = get_client_ip(request)
        token = request.headers.get(TOKEN_HEADER)

        if not token_matches(token, settings.secret_token):
            token_verification_total.labels(status="rejected").inc()
            logger.warning(
                "webhook_token_rejected",
                client_ip=client_ip,
                path=request.url.path,
                token_present=token is not None
            )
            return JSONResponse(
                status_code=403,
                content=ErrorResponse(message="Forbidden").model_dump()
            )

        token_verification_total.labels(status="accepted").inc()
        logger.info("webhook_token_accepted", client_ip=client_ip)
        return await call_next(request)
