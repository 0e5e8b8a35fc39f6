import shutil
import time
from pathlib import Path
from typing import List

from captainhook.config.logging import get_logger
from captainhook.provision.config import ProvisionConfig
from captainhook.provision.runner import CommandError, CommandRunner
from captainhook.provision.templates import (
    render_env_file,
    render_nginx_site,
    render_summary,
    render_systemd_unit,
)

logger = get_logger(__name__)

SYSTEM_PACKAGES = ["python3", "python3-venv", "python3-pip", "nginx"]
CERTBOT_PACKAGES = ["certbot", "python3-certbot-nginx"]

# What the deployed receiver imports; the provisioner itself is not shipped
RUNTIME_REQUIREMENTS = [
    "fastapi",
    "uvicorn",
    "pydantic-settings",
    "structlog",
    "python-json-logger",
    "prometheus-client",
]

PACKAGE_DIR = Path(__file__).resolve().parents[1]
APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}
TOTAL_STEPS = 8


class ProvisionError(Exception):
    """A provisioning step failed and the deployment is incomplete."""

    def __init__(self, step: str, error: Exception):
        self.step = step
        # File operations fail with OSError and carry no command
        self.command = getattr(error, "args_list", None)
        self.returncode = getattr(error, "returncode", None)
        super().__init__(f"{step}: {error}")


class Provisioner:
    """
    Brings a Debian/Ubuntu host from nothing to a running receiver behind
    nginx, optionally with a Let's Encrypt certificate.

    Each step is idempotent, so re-running after a fix is safe.
    """

    def __init__(self, config: ProvisionConfig, runner: CommandRunner):
        self.config = config
        self.runner = runner

    def run(self) -> str:
        steps = [
            ("packages", "Installing system packages", self.install_packages),
            ("layout", "Creating app directories", self.create_layout),
            ("application", "Deploying webhook application", self.deploy_application),
            ("virtualenv", "Creating Python venv and installing requirements", self.create_virtualenv),
            ("env_file", "Creating environment file", self.write_env_file),
            ("service", "Creating systemd service", self.install_service),
            ("nginx", "Creating NGINX site", self.configure_nginx),
            ("certificate", "Configuring TLS certificate", self.obtain_certificate),
        ]
        for index, (name, title, step) in enumerate(steps, start=1):
            logger.info(f"[{index}/{TOTAL_STEPS}] {title}", step=name)
            try:
                step()
            except (CommandError, OSError) as e:
                logger.error("provision_step_failed", step=name, error=str(e))
                raise ProvisionError(name, e) from e

        logger.info("provision_complete", app_name=self.config.app_name)
        return render_summary(self.config)

    def install_packages(self):
        self.runner.run(["apt-get", "update", "-y"], env=APT_ENV)
        packages: List[str] = list(SYSTEM_PACKAGES)
        # Certbot packages only if we plan to use TLS
        if self.config.tls_requested:
            packages += CERTBOT_PACKAGES
        self.runner.run(["apt-get", "install", "-y", *packages], env=APT_ENV)
        self.allow_firewall()

    def allow_firewall(self):
        """Open HTTP/HTTPS when ufw is installed and active."""
        if not self.runner.which("ufw"):
            return
        status = self.runner.run(["ufw", "status"], check=False, capture=True)
        if "Status: active" in (status.stdout or ""):
            logger.info("ufw_active_allowing_nginx")
            self.runner.run(["ufw", "allow", "Nginx Full"], check=False)

    def create_layout(self):
        cfg = self.config
        self.runner.make_dirs(cfg.app_src)
        self.runner.make_dirs(cfg.acme_challenge_dir)
        self.runner.run(
            ["chown", "-R", f"{cfg.app_user}:{cfg.app_user}", cfg.acme_webroot],
            check=False,
        )

    def deploy_application(self):
        self.runner.copy_tree(
            PACKAGE_DIR,
            self.config.app_src / PACKAGE_DIR.name,
            ignore=shutil.ignore_patterns("__pycache__", "*.pyc", "provision"),
        )

    def create_virtualenv(self):
        venv = self.config.app_venv
        pip = venv / "bin" / "pip"
        self.runner.run(["python3", "-m", "venv", venv])
        self.runner.run([pip, "install", "--upgrade", "pip"])
        self.runner.run([pip, "install", *RUNTIME_REQUIREMENTS])

    def write_env_file(self):
        cfg = self.config
        self.runner.write_file(cfg.env_file, render_env_file(cfg), mode=0o640)
        self.runner.run(["chown", f"root:{cfg.app_user}", cfg.env_file], check=False)

    def install_service(self):
        name = self.config.app_name
        self.runner.write_file(self.config.service_file, render_systemd_unit(self.config))
        self.runner.run(["systemctl", "daemon-reload"])
        self.runner.run(["systemctl", "enable", name])
        self.runner.run(["systemctl", "restart", name])
        if not self.runner.dry_run:
            time.sleep(1)
        self.runner.run(["systemctl", "--no-pager", "--full", "status", name], check=False)

    def configure_nginx(self):
        cfg = self.config
        self.runner.write_file(cfg.site_file, render_nginx_site(cfg))
        self.runner.symlink(cfg.site_file, cfg.site_link)

        # The stock default site also listens on :80
        default_site = cfg.nginx_sites_enabled / "default"
        if default_site.is_symlink() or default_site.exists():
            self.runner.remove(default_site)

        self.reload_nginx()

    def reload_nginx(self):
        self.runner.run(["nginx", "-t"])
        self.runner.run(["systemctl", "reload", "nginx"])

    def obtain_certificate(self):
        cfg = self.config
        if not cfg.tls_requested:
            logger.info("certbot_skipped", reason="no domain or certbot disabled", tls=False)
            return
        if not cfg.certbot_email:
            logger.warning("certbot_skipped", reason="domain given without certbot email", domain=cfg.domain)
            return

        logger.info("requesting_certificate", domain=cfg.domain)
        # certbot adds the ssl_* directives and the HTTP to HTTPS redirect to the site
        try:
            self.runner.run([
                "certbot", "--nginx",
                "-d", cfg.domain,
                "--agree-tos",
                "-m", cfg.certbot_email,
                "--non-interactive",
                "--redirect",
            ])
        except CommandError as e:
            logger.warning(
                "certbot_failed",
                error=str(e),
                hint="check DNS and inbound access to TCP/80 from Let's Encrypt",
            )
        self.reload_nginx()
