"""Admission decisions for workload resource declarations."""

from limits_admission.admission.engine import Decision, DecisionEngine, PolicySource
from limits_admission.admission.models import (
    AdmissionRequest,
    AdmissionResponse,
    AdmissionReview,
)
from limits_admission.admission.workloads import (
    WorkloadKind,
    WorkloadSnapshot,
    decode_workload,
    normalize_name,
)

__all__ = [
    "AdmissionRequest",
    "AdmissionResponse",
    "AdmissionReview",
    "Decision",
    "DecisionEngine",
    "PolicySource",
    "WorkloadKind",
    "WorkloadSnapshot",
    "decode_workload",
    "normalize_name",
]
