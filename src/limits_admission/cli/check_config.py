"""
Policy document check command.

Loads a policy document exactly as the server would and prints the resolved
ceilings, inheritance already applied.
"""

from __future__ import annotations

from limits_admission.cli import ux
from limits_admission.core.errors import ConfigurationError, ExitCode, format_error_message
from limits_admission.policy.loader import load_policy_file
from limits_admission.policy.models import Ceiling

COLUMNS = ["Target", "CPU limit", "Memory limit", "CPU request", "Memory request", "PVC size"]


def _fmt(value: object) -> str:
    return "-" if value is None else str(value)


def ceiling_row(target: str, ceiling: Ceiling) -> list[str]:
    if ceiling.unlimited:
        return [target, *(["unlimited"] * (len(COLUMNS) - 1))]
    return [
        target,
        _fmt(ceiling.cpu_limit),
        _fmt(ceiling.memory_limit),
        _fmt(ceiling.cpu_request),
        _fmt(ceiling.memory_request),
        _fmt(ceiling.storage),
    ]


def check_config_command(config_file: str) -> int:
    """Validate a policy document; returns an exit code."""
    try:
        generation = load_policy_file(config_file)
    except ConfigurationError as e:
        ux.error(format_error_message(e))
        return ExitCode.CONFIG_ERROR

    ux.header(f"Policy: {config_file}")

    rows = [ceiling_row("global", generation.defaults)]
    rows.extend(
        ceiling_row(f"namespace {namespace}", ceiling)
        for namespace, ceiling in sorted(generation.namespaces.items())
    )
    rows.extend(
        ceiling_row(f"{nn.namespace}/{nn.name}", ceiling)
        for nn, ceiling in sorted(generation.names.items(), key=lambda item: (item[0].namespace, item[0].name))
    )
    ux.print_table("Resolved ceilings", COLUMNS, rows)
    ux.success("policy document is valid")
    return ExitCode.SUCCESS
