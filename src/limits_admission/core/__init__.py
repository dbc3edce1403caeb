"""Core utilities shared across the admission controller."""

from limits_admission.core.errors import (
    AdmissionControllerError,
    ConfigurationError,
    DecodeError,
    ExitCode,
    format_error_message,
    main_with_error_handling,
)

__all__ = [
    "AdmissionControllerError",
    "ConfigurationError",
    "DecodeError",
    "ExitCode",
    "format_error_message",
    "main_with_error_handling",
]
