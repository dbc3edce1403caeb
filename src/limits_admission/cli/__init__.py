"""
CLI commands for the admission controller.
"""

from limits_admission.cli.check_config import check_config_command
from limits_admission.cli.review import review_command
from limits_admission.cli.serve import serve_command

__all__ = [
    "check_config_command",
    "review_command",
    "serve_command",
]
