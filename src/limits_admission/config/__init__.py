"""
Process configuration.

Pydantic-based settings read from the environment (``LIMITS_ADMISSION_*``)
or a ``.env`` file. The resource policy itself lives in
``limits_admission.policy``.
"""

from limits_admission.config.settings import (
    Settings,
    get_settings,
    parse_duration,
    split_address,
)

__all__ = [
    "Settings",
    "get_settings",
    "parse_duration",
    "split_address",
]
