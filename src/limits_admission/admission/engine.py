"""
Admission decision engine.

Resolves the effective ceilings for a workload and checks every container
(or the volume claim size) against them. The first violation found is the
decision; violations are not aggregated.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol

import structlog

from limits_admission.admission.models import (
    VALIDATED_OPERATIONS,
    AdmissionRequest,
    AdmissionResponse,
    Status,
)
from limits_admission.admission.workloads import (
    ContainerResources,
    WorkloadKind,
    WorkloadSnapshot,
    decode_workload,
)
from limits_admission.core.errors import DecodeError
from limits_admission.metrics import ADMISSION_ERRORS, record_decision
from limits_admission.policy.models import Ceiling, NameNamespace
from limits_admission.policy.quantity import ZERO, Quantity

logger = structlog.get_logger()


class PolicySource(Protocol):
    """Anything that can resolve ceilings for a target, usually a ``PolicyStore``."""

    def resolve(self, target: NameNamespace) -> Ceiling: ...


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str = ""

    @classmethod
    def allow(cls) -> Decision:
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: str) -> Decision:
        return cls(allowed=False, reason=reason)


ALLOW = Decision.allow()


def _check_present(container: str, field: str, declared: Quantity | None) -> Decision | None:
    if declared is None:
        return Decision.deny(f"error container {container} requests.{field} is empty, must be set")
    return None


def _check_request(
    container: str, field: str, declared: Quantity | None, ceiling: Quantity | None
) -> Decision | None:
    if declared is not None and ceiling is not None and declared > ceiling:
        return Decision.deny(f"error container {container} requests.{field}: {declared} > {ceiling}")
    return None


def _check_limit(
    container: str, field: str, declared: Quantity | None, ceiling: Quantity | None
) -> Decision | None:
    if ceiling is None:
        return None
    # an undeclared limit compares as zero
    value = declared if declared is not None else ZERO
    if value > ceiling:
        return Decision.deny(f"error container {container} limits.{field}: {value} > {ceiling}")
    return None


def validate_containers(containers: Iterable[ContainerResources], ceiling: Ceiling) -> Decision:
    """Check container declarations against ``ceiling``; first failure wins."""
    if ceiling.unlimited:
        return ALLOW

    for c in containers:
        denial = (
            _check_present(c.name, "CPU", c.cpu_request)
            or _check_present(c.name, "Memory", c.memory_request)
            or _check_request(c.name, "CPU", c.cpu_request, ceiling.cpu_request)
            or _check_request(c.name, "Memory", c.memory_request, ceiling.memory_request)
            or _check_limit(c.name, "CPU", c.cpu_limit, ceiling.cpu_limit)
            or _check_limit(c.name, "Memory", c.memory_limit, ceiling.memory_limit)
        )
        if denial is not None:
            return denial

    return ALLOW


def validate_storage(name: str, size: Quantity | None, ceiling: Ceiling) -> Decision:
    """Check a volume claim's requested size; claims without a size pass."""
    if ceiling.unlimited or ceiling.storage is None or size is None:
        return ALLOW
    if size > ceiling.storage:
        return Decision.deny(
            f"error persistentVolumeClaim {name} size is {size} > {ceiling.storage}"
        )
    return ALLOW


class DecisionEngine:
    """Makes admission decisions from the policy held by ``policy``."""

    def __init__(self, policy: PolicySource):
        self.policy = policy

    def resolve(self, target: NameNamespace) -> Ceiling:
        return self.policy.resolve(target)

    def validate(self, target: NameNamespace, workload: WorkloadSnapshot) -> Decision:
        ceiling = self.resolve(target)
        if ceiling.unlimited:
            return ALLOW
        if workload.kind.is_storage:
            return validate_storage(workload.name, workload.storage_request, ceiling)
        if workload.kind.is_pod_template:
            return validate_containers(workload.containers, ceiling)
        return ALLOW

    def handle_admission(self, request: AdmissionRequest) -> AdmissionResponse:
        """Answer one admission request.

        Raises:
            DecodeError: if the object body cannot be decoded; no decision
                is made in that case.
        """
        try:
            decision = self._decide(request)
        except DecodeError as e:
            ADMISSION_ERRORS.inc()
            logger.error(
                "unable_to_handle_request",
                uid=request.uid,
                kind=request.kind.kind,
                namespace=request.namespace,
                error=e.message,
            )
            raise

        record_decision(decision.allowed)
        status = None if decision.allowed else Status(message=decision.reason)
        return AdmissionResponse(uid=request.uid, allowed=decision.allowed, status=status)

    def _decide(self, request: AdmissionRequest) -> Decision:
        if request.operation not in VALIDATED_OPERATIONS:
            return ALLOW

        kind = WorkloadKind.from_kind(request.kind.kind)
        if kind is WorkloadKind.UNRECOGNIZED:
            return ALLOW

        workload = decode_workload(kind, request.object, name=request.name, namespace=request.namespace)
        target = NameNamespace(name=workload.name, namespace=workload.namespace)
        decision = self.validate(target, workload)

        if not decision.allowed:
            logger.info(
                "admission_denied",
                kind=kind.value,
                name=target.name,
                namespace=target.namespace,
                user=request.user_info.username,
                reason=decision.reason,
            )
        return decision
