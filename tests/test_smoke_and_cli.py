from unittest.mock import MagicMock, patch

import pytest
import requests
from typer.testing import CliRunner

from captainhook.config.logging import setup_logging
from captainhook.provision.cli import app
from captainhook.provision.smoke import SAMPLE_PAYLOAD, SmokeResult, check_webhook

runner = CliRunner()


@pytest.fixture(autouse=True)
def restore_logging():
    # CliRunner swaps stdout; put the handler back on the real one afterwards
    yield
    setup_logging()


def _response(status_code, body):
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = body
    return resp


# ── Smoke check ───────────────────────────────────────────────────────────


class TestCheckWebhook:

    @patch("captainhook.provision.smoke.requests.post")
    def test_echo_ok(self, mock_post):
        mock_post.return_value = _response(200, {
            "status": "success",
            "message": "Webhook received successfully",
            "received_data": SAMPLE_PAYLOAD,
        })
        result = check_webhook("https://hooks.example.com/webhook", "tok")

        assert result.ok is True
        assert result.status_code == 200
        _, kwargs = mock_post.call_args
        assert kwargs["headers"] == {"X-Webhook-Token": "tok"}
        assert kwargs["json"] == SAMPLE_PAYLOAD

    @patch("captainhook.provision.smoke.requests.post")
    def test_forbidden(self, mock_post):
        mock_post.return_value = _response(403, {"status": "error", "message": "Forbidden"})
        result = check_webhook("http://localhost/webhook", "wrong")
        assert result.ok is False
        assert result.error == "token rejected"

    @patch("captainhook.provision.smoke.requests.post")
    def test_echo_mismatch(self, mock_post):
        mock_post.return_value = _response(200, {"status": "success", "received_data": {}})
        assert check_webhook("http://localhost/webhook", "tok").ok is False

    @patch("captainhook.provision.smoke.requests.post")
    def test_non_json_body(self, mock_post):
        resp = _response(502, None)
        resp.json.side_effect = ValueError("no json")
        resp.text = "<html>Bad Gateway</html>"
        mock_post.return_value = resp
        result = check_webhook("http://localhost/webhook", "tok")
        assert result.ok is False
        assert result.body == "<html>Bad Gateway</html>"
        assert "502" in result.error

    @patch("captainhook.provision.smoke.requests.post")
    def test_connection_error(self, mock_post):
        mock_post.side_effect = requests.ConnectionError("refused")
        result = check_webhook("http://localhost/webhook", "tok")
        assert result.ok is False
        assert result.status_code is None
        assert "refused" in result.error


# ── CLI ───────────────────────────────────────────────────────────────────


class TestCli:

    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "v1.0.0" in result.output

    @patch("captainhook.provision.steps.time.sleep")
    def test_install_dry_run(self, _sleep):
        result = runner.invoke(app, [
            "install", "--dry-run",
            "--app-name=hooky",
            "--secret=tok",
            "--domain=hooks.example.com",
            "--email=ops@example.com",
        ])
        assert result.exit_code == 0, result.output
        assert "curl -X POST https://hooks.example.com/webhook" in result.output
        assert "X-Webhook-Token: tok" in result.output

    def test_install_invalid_port(self):
        result = runner.invoke(app, ["install", "--dry-run", "--port=0"])
        assert result.exit_code == 2
        assert "Invalid parameters" in result.output

    def test_install_invalid_use_certbot(self):
        result = runner.invoke(app, ["install", "--dry-run", "--use-certbot=perhaps"])
        assert result.exit_code == 2

    @patch("captainhook.provision.cli.is_root", return_value=False)
    def test_install_requires_root(self, _is_root):
        result = runner.invoke(app, ["install"])
        assert result.exit_code == 1
        assert "Please run as root (sudo)." in result.output

    @patch("captainhook.provision.cli.is_root", return_value=True)
    @patch("captainhook.provision.cli.Provisioner")
    def test_install_failure_exit_code(self, mock_provisioner, _is_root):
        from captainhook.provision.runner import CommandError
        from captainhook.provision.steps import ProvisionError

        error = ProvisionError("packages", CommandError(["apt-get", "update", "-y"], 100))
        mock_provisioner.return_value.run.side_effect = error
        result = runner.invoke(app, ["install"])
        assert result.exit_code == 1
        assert "packages" in result.output

    @patch("captainhook.provision.cli.is_root", return_value=True)
    @patch("captainhook.provision.cli.Provisioner")
    def test_install_flags_reach_config(self, mock_provisioner, _is_root):
        mock_provisioner.return_value.run.return_value = "done"
        result = runner.invoke(app, [
            "install", "--user=hooks", "--bind-ip=10.0.6.8", "--port=6001",
            "--use-certbot=false", "--workers=4", "--app-dir=/srv/hooky",
        ])
        assert result.exit_code == 0, result.output
        config, command_runner = mock_provisioner.call_args[0]
        assert config.app_user == "hooks"
        assert config.bind_ip == "10.0.6.8"
        assert config.port == 6001
        assert config.use_certbot is False
        assert config.workers == 4
        assert str(config.app_dir) == "/srv/hooky"
        assert command_runner.dry_run is False

    @patch("captainhook.provision.cli.check_webhook")
    def test_verify_ok(self, mock_check):
        mock_check.return_value = SmokeResult(ok=True, status_code=200)
        result = runner.invoke(app, ["verify", "--url=https://hooks.example.com/webhook", "--secret=tok"])
        assert result.exit_code == 0
        mock_check.assert_called_once_with("https://hooks.example.com/webhook", "tok", timeout=10.0)

    @patch("captainhook.provision.cli.check_webhook")
    def test_verify_default_secret(self, mock_check):
        mock_check.return_value = SmokeResult(ok=True, status_code=200)
        runner.invoke(app, ["verify"])
        assert mock_check.call_args[0] == ("http://localhost/webhook", "mysecrettoken123")

    @patch("captainhook.provision.cli.check_webhook")
    def test_verify_failure(self, mock_check):
        mock_check.return_value = SmokeResult(ok=False, status_code=403, error="token rejected")
        result = runner.invoke(app, ["verify"])
        assert result.exit_code == 1
        assert "token rejected" in result.output
