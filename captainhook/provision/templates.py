"""Files written onto the host, rendered from a ProvisionConfig."""

from captainhook.config.settings import settings as service_settings
from captainhook.provision.config import ProvisionConfig

ENV_FILE = """\
SECRET_TOKEN={secret_token}
BIND_IP={bind_ip}
PORT={port}
LOG_LEVEL={log_level}
"""

# ${{BIND_IP}} and ${{PORT}} are expanded by systemd from the EnvironmentFile
SYSTEMD_UNIT = """\
[Unit]
Description={app_name} webhook (uvicorn)
After=network.target

[Service]
User={app_user}
Group={app_user}
WorkingDirectory={app_src}
EnvironmentFile=-{env_file}
ExecStart={app_venv}/bin/uvicorn captainhook.main:app --host ${{BIND_IP}} --port ${{PORT}} --workers {workers} --proxy-headers --no-server-header --no-date-header --no-access-log
Restart=on-failure
RestartSec=2

StandardOutput=journal
StandardError=journal

[Install]
WantedBy=multi-user.target
"""

NGINX_SITE = """\
server {{
    listen 80;
    server_name {server_name};

    # ACME challenge for Let's Encrypt
    location /.well-known/acme-challenge/ {{
        root {acme_webroot};
    }}

    # Proxy the webhook
    location {webhook_path} {{
        proxy_pass http://{upstream_host}:{port};
        proxy_set_header Host $host;
        proxy_set_header X-Real-IP $remote_addr;
        proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;
        proxy_set_header X-Forwarded-Proto $scheme;
        proxy_set_header X-Webhook-Token $http_x_webhook_token;
        proxy_http_version 1.1;
        proxy_buffering off;
    }}

    location / {{
        return 404;
    }}
}}
"""

SUMMARY = """
==================== SUCCESS ====================
Service: systemctl status {app_name}
Logs:    journalctl -u {app_name} -f

Test {scheme_label} webhook:
  curl -X POST {url} \\
       -H 'Content-Type: application/json' \\
       -H 'X-Webhook-Token: {secret_token}' \\
       -d '{{"event":"test","value":123}}'
=================================================
"""


def render_env_file(config: ProvisionConfig) -> str:
    return ENV_FILE.format(
        secret_token=config.secret_token,
        bind_ip=config.bind_ip,
        port=config.port,
        log_level=config.log_level,
    )


def render_systemd_unit(config: ProvisionConfig) -> str:
    return SYSTEMD_UNIT.format(
        app_name=config.app_name,
        app_user=config.app_user,
        app_src=config.app_src,
        app_venv=config.app_venv,
        env_file=config.env_file,
        workers=config.workers,
    )


def render_nginx_site(config: ProvisionConfig) -> str:
    return NGINX_SITE.format(
        server_name=config.domain or "_",
        acme_webroot=config.acme_webroot,
        webhook_path=service_settings.webhook_path,
        upstream_host=config.upstream_host,
        port=config.port,
    )


def webhook_url(config: ProvisionConfig) -> str:
    """Public URL of the webhook once nginx (and certbot) are in place."""
    if config.tls_enabled:
        return f"https://{config.domain}{service_settings.webhook_path}"
    # Bound to loopback, the proxy on the same host is the way in
    return f"http://{config.domain or 'localhost'}{service_settings.webhook_path}"


def render_summary(config: ProvisionConfig) -> str:
    return SUMMARY.format(
        app_name=config.app_name,
        scheme_label="HTTPS" if config.tls_enabled else "HTTP",
        url=webhook_url(config),
        secret_token=config.secret_token,
    )
