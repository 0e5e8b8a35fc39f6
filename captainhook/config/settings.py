from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

APP_VERSION = "1.0.0"


class Settings(BaseSettings):
    # Server settings
    bind_ip: str = "127.0.0.1"
    port: int = 5009
    reload: bool = False

    # Shared secret expected in the X-Webhook-Token header
    secret_token: str = "mysecrettoken123"
    webhook_path: str = "/webhook"

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator('webhook_path')
    @classmethod
    def normalize_webhook_path(cls, v):
        v = v.strip()
        if not v.startswith('/'):
            v = '/' + v
        return v

    @field_validator('log_level')
    @classmethod
    def normalize_log_level(cls, v):
        return v.strip().upper()


settings = Settings()
