"""Tests for the command line entry points."""

import json
from argparse import Namespace
from pathlib import Path
from unittest.mock import patch

import pytest

from limits_admission.cli import ux
from limits_admission.cli.check_config import ceiling_row, check_config_command
from limits_admission.cli.main import build_parser, run, settings_from_args
from limits_admission.cli.serve import _tls_files
from limits_admission.config.settings import Settings
from limits_admission.core.errors import ConfigurationError, ExitCode
from limits_admission.policy.models import UNLIMITED, Ceiling
from limits_admission.policy.quantity import Quantity


@pytest.fixture(autouse=True)
def wide_console(monkeypatch):
    """Keep table cells and JSON lines from wrapping."""
    monkeypatch.setattr(ux.console, "width", 200)


def write_review(tmp_path: Path, cpu_limit: str, namespace: str = "shop") -> Path:
    body = {
        "apiVersion": "admission.k8s.io/v1",
        "kind": "AdmissionReview",
        "request": {
            "uid": "uid-cli",
            "kind": {"version": "v1", "kind": "Pod"},
            "operation": "CREATE",
            "namespace": namespace,
            "object": {
                "metadata": {"name": "web"},
                "spec": {
                    "containers": [
                        {
                            "name": "app",
                            "resources": {
                                "limits": {"cpu": cpu_limit, "memory": "1Gi"},
                                "requests": {"cpu": "100m", "memory": "128Mi"},
                            },
                        }
                    ]
                },
            },
        },
    }
    path = tmp_path / "review.json"
    path.write_text(json.dumps(body))
    return path


class TestCheckConfig:
    def test_valid_document(self, policy_path, capsys):
        assert check_config_command(str(policy_path)) == ExitCode.SUCCESS

        out = capsys.readouterr().out
        assert "namespace kube-system" in out
        assert "test-namespace/deployment-name" in out
        assert "policy document is valid" in out

    def test_invalid_document(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("maxCPULimit: lots\n")
        assert check_config_command(str(path)) == ExitCode.CONFIG_ERROR

    def test_missing_document(self, tmp_path):
        assert check_config_command(str(tmp_path / "missing.yaml")) == ExitCode.CONFIG_ERROR

    def test_ceiling_row(self):
        ceiling = Ceiling(cpu_limit=Quantity.parse("2"), storage=Quantity.parse("10Gi"))
        assert ceiling_row("global", ceiling) == ["global", "2", "-", "-", "-", "10Gi"]
        assert ceiling_row("ns", UNLIMITED)[1:] == ["unlimited"] * 5


class TestReviewCommand:
    def test_allowed(self, tmp_path, policy_path, capsys):
        review = write_review(tmp_path, "1")

        assert run(["review", str(review), "--config-file", str(policy_path)]) == ExitCode.SUCCESS
        assert '"allowed": true' in capsys.readouterr().out

    def test_denied(self, tmp_path, policy_path, capsys):
        review = write_review(tmp_path, "3")

        assert run(["review", str(review), "--config-file", str(policy_path)]) == ExitCode.DENIED
        assert "limits.CPU: 3 > 2" in capsys.readouterr().out

    def test_unreadable_review(self, tmp_path, policy_path):
        code = run(["review", str(tmp_path / "missing.json"), "--config-file", str(policy_path)])
        assert code == ExitCode.DECODE_ERROR

    def test_bad_policy(self, tmp_path):
        review = write_review(tmp_path, "1")
        code = run(["review", str(review), "--config-file", str(tmp_path / "missing.yaml")])
        assert code == ExitCode.CONFIG_ERROR


class TestServeArguments:
    def test_flags_override_settings(self):
        args = build_parser().parse_args(
            ["serve", "--config-file", "/tmp/p.yaml", "--refresh-interval", "1m", "--log.level", "debug"]
        )
        settings = settings_from_args(args)

        assert settings.config_file == "/tmp/p.yaml"
        assert settings.refresh_interval == 60.0
        assert settings.log_level == "debug"

    def test_flags_without_subcommand(self):
        args = build_parser().parse_args(["--addr", ":9443"])

        assert args.command is None
        assert settings_from_args(args).addr == ":9443"

    def test_invalid_settings(self):
        with pytest.raises(ConfigurationError):
            settings_from_args(Namespace(refresh_interval="never"))

    def test_serve_dispatch(self):
        with patch("limits_admission.cli.main.serve_command", return_value=0) as serve:
            assert run(["serve", "--ops-addr", ":9090"]) == 0

        settings = serve.call_args.args[0]
        assert settings.ops_addr == ":9090"


class TestTlsFiles:
    def test_neither(self):
        assert _tls_files(Settings(_env_file=None)) == (None, None)

    def test_only_one(self, tmp_path):
        cert = tmp_path / "tls.crt"
        cert.write_text("cert")
        with pytest.raises(ConfigurationError):
            _tls_files(Settings(_env_file=None, tls_cert_file=str(cert)))

    def test_missing_file(self, tmp_path):
        cert = tmp_path / "tls.crt"
        cert.write_text("cert")
        settings = Settings(_env_file=None, tls_cert_file=str(cert), tls_key_file=str(tmp_path / "tls.key"))
        with pytest.raises(ConfigurationError) as exc_info:
            _tls_files(settings)
        assert exc_info.value.details["path"].endswith("tls.key")

    def test_both(self, tmp_path):
        cert = tmp_path / "tls.crt"
        key = tmp_path / "tls.key"
        cert.write_text("cert")
        key.write_text("key")
        settings = Settings(_env_file=None, tls_cert_file=str(cert), tls_key_file=str(key))
        assert _tls_files(settings) == (str(cert), str(key))
