import pytest
from fastapi.testclient import TestClient

from captainhook.config.settings import settings
from captainhook.main import app

SECRET = "s3cret-token"

PROVISION_ENV = (
    "APP_NAME", "APP_DIR", "APP_USER", "BIND_IP", "PORT", "SECRET_TOKEN",
    "DOMAIN", "CERTBOT_EMAIL", "USE_CERTBOT", "WORKERS", "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the host's environment out of ProvisionConfig."""
    for name in PROVISION_ENV:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def secret(monkeypatch):
    monkeypatch.setattr(settings, "secret_token", SECRET)
    return SECRET


@pytest.fixture
def client(secret):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def auth_headers(secret):
    return {"X-Webhook-Token": secret}
