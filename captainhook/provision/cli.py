"""captainhook-provision - deploy and check the webhook receiver."""

import os
from typing import Optional

import typer
from pydantic import ValidationError

from captainhook.config.logging import setup_logging
from captainhook.config.settings import APP_VERSION
from captainhook.provision.config import ProvisionConfig
from captainhook.provision.runner import CommandRunner
from captainhook.provision.smoke import check_webhook
from captainhook.provision.steps import ProvisionError, Provisioner

app = typer.Typer(help="Provision the captainhook webhook receiver", no_args_is_help=True)


def version_callback(v: bool) -> None:
    if v:
        typer.echo(f"v{APP_VERSION}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False, "-v", "--version", is_eager=True, callback=version_callback
    )
) -> None:
    pass


def is_root() -> bool:
    return os.geteuid() == 0


@app.command("install")
def install(
    app_name: Optional[str] = typer.Option(None, "--app-name", help="Service name (default: captainhook)"),
    app_dir: Optional[str] = typer.Option(None, "--app-dir", help="Install directory (default: /opt/<app-name>)"),
    user: Optional[str] = typer.Option(None, "--user", help="System user the service runs as (default: www-data)"),
    bind_ip: Optional[str] = typer.Option(None, "--bind-ip", help="Address uvicorn binds to (default: 127.0.0.1)"),
    port: Optional[int] = typer.Option(None, "--port", help="Port uvicorn binds to (default: 5009)"),
    secret: Optional[str] = typer.Option(None, "--secret", help="Shared secret for X-Webhook-Token"),
    domain: Optional[str] = typer.Option(None, "--domain", help="FQDN; empty means no TLS"),
    email: Optional[str] = typer.Option(None, "--email", help="Certbot email, required for non-interactive issuance"),
    use_certbot: Optional[str] = typer.Option(None, "--use-certbot", help="true|false (default: true)"),
    workers: Optional[int] = typer.Option(None, "--workers", help="uvicorn worker processes (default: 2)"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Log the actions without touching the host"),
) -> None:
    """Install packages, deploy the receiver under systemd and put nginx in front.

    Examples:

      sudo captainhook-provision install --domain=example.com --email=you@example.com

      sudo captainhook-provision install --bind-ip=10.0.6.8 --secret=mysecrettoken123
    """
    setup_logging(console=True)

    overrides = {
        "app_name": app_name,
        "app_dir": app_dir,
        "app_user": user,
        "bind_ip": bind_ip,
        "port": port,
        "secret_token": secret,
        "domain": domain,
        "certbot_email": email,
        "use_certbot": use_certbot,
        "workers": workers,
    }
    try:
        config = ProvisionConfig(**{k: v for k, v in overrides.items() if v is not None})
    except ValidationError as e:
        typer.echo(f"Invalid parameters:\n{e}", err=True)
        raise typer.Exit(2)

    if not dry_run and not is_root():
        typer.echo("Please run as root (sudo).", err=True)
        raise typer.Exit(1)

    provisioner = Provisioner(config, CommandRunner(dry_run=dry_run))
    try:
        summary = provisioner.run()
    except ProvisionError as e:
        typer.echo(f"Provisioning failed at step {e}", err=True)
        raise typer.Exit(1)

    typer.echo(summary)


@app.command("verify")
def verify(
    url: str = typer.Option("http://localhost/webhook", "--url", help="Webhook URL to post to"),
    secret: Optional[str] = typer.Option(None, "--secret", envvar="SECRET_TOKEN", help="Shared secret for X-Webhook-Token"),
    timeout: float = typer.Option(10.0, "--timeout", help="Request timeout in seconds"),
) -> None:
    """Send a test delivery and check the receiver echoes it back."""
    setup_logging(console=True)

    token = secret if secret is not None else ProvisionConfig.model_fields["secret_token"].default
    result = check_webhook(url, token, timeout=timeout)
    if not result.ok:
        typer.echo(f"FAILED: {result.error}", err=True)
        raise typer.Exit(1)

    typer.echo(f"OK: {url} answered {result.status_code} and echoed the payload")
