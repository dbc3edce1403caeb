from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence
from typing import Any

from pydantic import ValidationError

from limits_admission import __version__
from limits_admission.cli.check_config import check_config_command
from limits_admission.cli.review import review_command
from limits_admission.cli.serve import serve_command
from limits_admission.config.settings import Settings, get_settings
from limits_admission.core.errors import ConfigurationError, main_with_error_handling

PROG = "limits-admission"

# flag dest -> Settings field
SERVE_OPTIONS = (
    "config_file",
    "refresh_interval",
    "tls_cert_file",
    "tls_key_file",
    "addr",
    "ops_addr",
    "log_level",
    "log_format",
)


def _serve_options() -> argparse.ArgumentParser:
    parent = argparse.ArgumentParser(add_help=False, argument_default=argparse.SUPPRESS)
    parent.add_argument("--config-file", dest="config_file", help="File path to the policy config (env: LIMITS_ADMISSION_CONFIG_FILE)")
    parent.add_argument(
        "--refresh-interval",
        dest="refresh_interval",
        help="Reload interval if no file change happens, seconds or duration like 5m (default: 5m)",
    )
    parent.add_argument("--tls-cert-file", dest="tls_cert_file", help="TLS certificate for the admission server")
    parent.add_argument("--tls-private-key-file", dest="tls_key_file", help="TLS private key for the admission server")
    parent.add_argument("--addr", dest="addr", help="Address receiving AdmissionReview requests (default: 0.0.0.0:8443)")
    parent.add_argument("--ops-addr", dest="ops_addr", help="Address serving /health and /metrics (default: 0.0.0.0:8090)")
    parent.add_argument("--log.level", dest="log_level", choices=["error", "warn", "info", "debug"], help="Log level")
    parent.add_argument("--log.format", dest="log_format", choices=["text", "json"], help="Log format")
    return parent


def build_parser() -> argparse.ArgumentParser:
    serve_options = _serve_options()
    parser = argparse.ArgumentParser(
        prog=PROG,
        description="Validates Pod, Deployment, StatefulSet, DaemonSet, Job, CronJob and "
        "PersistentVolumeClaim resource requests and limits",
        parents=[serve_options],
    )
    parser.add_argument("--version", action="version", version=f"{PROG} {__version__}")

    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("serve", help="Run the admission webhook (default)", parents=[serve_options])

    check_parser = subparsers.add_parser("check-config", help="Validate a policy document and print resolved ceilings")
    check_parser.add_argument("config", help="Path to the policy document")

    review_parser = subparsers.add_parser("review", help="Evaluate an AdmissionReview JSON file offline")
    review_parser.add_argument("review_file", help="Path to an AdmissionReview JSON document")
    review_parser.add_argument("--config-file", dest="policy_file", required=True, help="Path to the policy document")

    return parser


def settings_from_args(args: argparse.Namespace) -> Settings:
    """Environment settings with command line flags taking precedence."""
    overrides: dict[str, Any] = {
        name: getattr(args, name) for name in SERVE_OPTIONS if getattr(args, name, None) is not None
    }
    try:
        if not overrides:
            return get_settings()
        return Settings(**overrides)
    except ValidationError as e:
        raise ConfigurationError(f"invalid settings: {e}") from e


@main_with_error_handling()
def run(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "check-config":
        return check_config_command(args.config)

    if args.command == "review":
        return review_command(args.policy_file, args.review_file)

    return serve_command(settings_from_args(args))


def main(argv: Sequence[str] | None = None) -> None:
    sys.exit(run(argv))


if __name__ == "__main__":
    main()
