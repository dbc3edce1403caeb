"""Offline evaluation of one AdmissionReview against a policy document."""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import ValidationError

from limits_admission.admission.engine import DecisionEngine
from limits_admission.admission.models import AdmissionReview
from limits_admission.cli import ux
from limits_admission.core.errors import DecodeError, ExitCode
from limits_admission.policy.loader import load_policy_file
from limits_admission.policy.store import PolicyStore


def review_command(config_file: str, review_file: str) -> int:
    """Print the AdmissionReview response; exit 0 when allowed, 2 when denied.

    Configuration and decode errors propagate as ``AdmissionControllerError``.
    """
    store = PolicyStore(load_policy_file(config_file))
    engine = DecisionEngine(store)

    try:
        review = AdmissionReview.model_validate_json(Path(review_file).read_bytes())
    except (OSError, ValidationError) as e:
        raise DecodeError(f"unable to decode admission review: {e}", details={"path": review_file}) from e
    if review.request is None:
        raise DecodeError("admission review carries no request", details={"path": review_file})

    review.response = engine.handle_admission(review.request)
    ux.console.print_json(json.dumps(review.to_wire()))

    if not review.response.allowed:
        return ExitCode.DENIED
    return ExitCode.SUCCESS
