from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from captainhook.config.logging import get_logger
from captainhook.middlewares.token_auth import TOKEN_HEADER

logger = get_logger(__name__)

SAMPLE_PAYLOAD = {"event": "test", "value": 123}


@dataclass
class SmokeResult:
    ok: bool
    status_code: Optional[int] = None
    body: Any = None
    error: Optional[str] = None


def check_webhook(url: str, token: str, payload: Optional[Dict[str, Any]] = None,
                  timeout: float = 10) -> SmokeResult:
    """
    Post a test delivery to a deployed receiver and check the echo.

    Args:
        url: Full webhook URL, e.g. https://example.com/webhook
        token: Value sent in the X-Webhook-Token header
        payload: JSON object to send, defaults to SAMPLE_PAYLOAD
        timeout: Request timeout in seconds

    Returns:
        SmokeResult: ok is True only for a 200 that echoes the payload back
    """
    payload = SAMPLE_PAYLOAD if payload is None else payload

    try:
        response = requests.post(
            url,
            json=payload,
            headers={TOKEN_HEADER: token},
            timeout=timeout
        )
    except requests.RequestException as e:
        logger.error("smoke_request_failed", url=url, error=str(e))
        return SmokeResult(ok=False, error=str(e))

    try:
        body = response.json()
    except ValueError:
        body = response.text

    ok = (
        response.status_code == 200
        and isinstance(body, dict)
        and body.get("status") == "success"
        and body.get("received_data") == payload
    )
    error = None
    if not ok:
        if response.status_code == 403:
            error = "token rejected"
        else:
            error = f"unexpected response (HTTP {response.status_code})"

    logger.info("smoke_check", url=url, status_code=response.status_code, ok=ok)
    return SmokeResult(ok=ok, status_code=response.status_code, body=body, error=error)
