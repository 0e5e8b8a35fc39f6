import ipaddress
import re
from pathlib import Path
from typing import Optional

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

NAME_PATTERN = re.compile(r'^[A-Za-z0-9_.-]+$')


class ProvisionConfig(BaseSettings):
    """
    Deployment parameters for one receiver on one host.

    Read from the environment (APP_NAME, DOMAIN, ...); CLI flags are passed
    as keyword arguments and take precedence.
    """

    app_name: str = "captainhook"
    app_dir: Optional[Path] = None  # defaults to /opt/<app_name>
    app_user: str = "www-data"
    bind_ip: str = "127.0.0.1"
    port: int = 5009
    secret_token: str = "mysecrettoken123"
    workers: int = 2
    log_level: str = "INFO"

    # TLS + certbot
    domain: str = ""
    certbot_email: str = ""
    use_certbot: bool = True

    # Host locations
    systemd_dir: Path = Path("/etc/systemd/system")
    env_dir: Path = Path("/etc")
    nginx_sites_available: Path = Path("/etc/nginx/sites-available")
    nginx_sites_enabled: Path = Path("/etc/nginx/sites-enabled")
    acme_webroot: Path = Path("/var/www/certbot")

    model_config = SettingsConfigDict(case_sensitive=False, extra="ignore")

    @field_validator('app_name', 'app_user')
    @classmethod
    def check_name(cls, v):
        if not NAME_PATTERN.match(v):
            raise ValueError("may only contain letters, digits, '.', '_' and '-'")
        return v

    @field_validator('bind_ip')
    @classmethod
    def check_bind_ip(cls, v):
        ipaddress.ip_address(v)  # raises ValueError
        return v

    @field_validator('port')
    @classmethod
    def check_port(cls, v):
        if not 1 <= v <= 65535:
            raise ValueError("must be between 1 and 65535")
        return v

    @field_validator('workers')
    @classmethod
    def check_workers(cls, v):
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    @field_validator('secret_token')
    @classmethod
    def check_secret(cls, v):
        if not v:
            raise ValueError("must not be empty")
        if v != v.strip() or any(c.isspace() and c != " " for c in v):
            raise ValueError("must be a single line without leading or trailing whitespace")
        # systemd EnvironmentFile would unquote or unescape these
        if any(c in v for c in "\"'\\"):
            raise ValueError("must not contain quotes or backslashes")
        return v

    @field_validator('domain', 'certbot_email')
    @classmethod
    def check_no_whitespace(cls, v):
        v = v.strip()
        if any(c.isspace() for c in v):
            raise ValueError("must not contain whitespace")
        return v

    @field_validator('log_level')
    @classmethod
    def normalize_log_level(cls, v):
        return v.strip().upper()

    @model_validator(mode='after')
    def default_app_dir(self):
        if self.app_dir is None:
            self.app_dir = Path("/opt") / self.app_name
        return self

    @property
    def upstream_host(self) -> str:
        """bind_ip as it appears in a URL, IPv6 in brackets."""
        if ipaddress.ip_address(self.bind_ip).version == 6:
            return f"[{self.bind_ip}]"
        return self.bind_ip

    @property
    def app_src(self) -> Path:
        return self.app_dir / "app"

    @property
    def app_venv(self) -> Path:
        return self.app_dir / "venv"

    @property
    def env_file(self) -> Path:
        return self.env_dir / f"{self.app_name}.env"

    @property
    def service_file(self) -> Path:
        return self.systemd_dir / f"{self.app_name}.service"

    @property
    def site_file(self) -> Path:
        return self.nginx_sites_available / f"{self.app_name}.conf"

    @property
    def site_link(self) -> Path:
        return self.nginx_sites_enabled / f"{self.app_name}.conf"

    @property
    def acme_challenge_dir(self) -> Path:
        return self.acme_webroot / ".well-known" / "acme-challenge"

    @property
    def tls_requested(self) -> bool:
        return bool(self.domain) and self.use_certbot

    @property
    def tls_enabled(self) -> bool:
        """A certificate is actually requested only when an email is known."""
        return self.tls_requested and bool(self.certbot_email)
