"""
Workload shapes recognized by the controller.

Each recognized kind is decoded into a typed model and reduced to a
``WorkloadSnapshot``: the pod template's containers, or for volume claims
the requested storage size. Kinds outside ``WorkloadKind`` decode to
``WorkloadKind.UNRECOGNIZED`` and are never inspected.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, PlainValidator, ValidationError

from limits_admission.core.errors import DecodeError
from limits_admission.policy.quantity import Quantity, QuantityError

RESOURCE_CPU = "cpu"
RESOURCE_MEMORY = "memory"
RESOURCE_STORAGE = "storage"

# Controller-generated pod names: <stem>-<hash>-<suffix>, or <stem>-<suffix>.
GENERATED_NAME_PATTERN = re.compile(r"(.*)(-[0-9A-Za-z]+-[0-9A-Za-z]+)")
GENERATED_NAME_FALLBACK_PATTERN = re.compile(r"(.*)(-[0-9A-Za-z]+)")


def _parse_quantity(value: Any) -> Quantity:
    try:
        return Quantity.parse(value)
    except QuantityError as e:
        raise ValueError(str(e)) from e


QuantityValue = Annotated[Quantity, PlainValidator(_parse_quantity)]


class _ObjectModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", arbitrary_types_allowed=True)


class ObjectMeta(_ObjectModel):
    name: str = ""
    generate_name: str = Field(default="", alias="generateName")
    namespace: str = ""


class ResourceRequirements(_ObjectModel):
    limits: dict[str, QuantityValue] = Field(default_factory=dict)
    requests: dict[str, QuantityValue] = Field(default_factory=dict)


class Container(_ObjectModel):
    name: str = ""
    resources: ResourceRequirements = Field(default_factory=ResourceRequirements)


class PodSpec(_ObjectModel):
    containers: list[Container] = Field(default_factory=list)


class PodTemplateSpec(_ObjectModel):
    metadata: ObjectMeta = Field(default_factory=ObjectMeta)
    spec: PodSpec = Field(default_factory=PodSpec)


class Pod(_ObjectModel):
    metadata: ObjectMeta = Field(default_factory=ObjectMeta)
    spec: PodSpec = Field(default_factory=PodSpec)


class TemplatedSpec(_ObjectModel):
    template: PodTemplateSpec = Field(default_factory=PodTemplateSpec)


class TemplatedWorkload(_ObjectModel):
    """Deployment, StatefulSet, DaemonSet and Job all embed ``spec.template``."""

    metadata: ObjectMeta = Field(default_factory=ObjectMeta)
    spec: TemplatedSpec = Field(default_factory=TemplatedSpec)


class JobTemplateSpec(_ObjectModel):
    spec: TemplatedSpec = Field(default_factory=TemplatedSpec)


class CronJobSpec(_ObjectModel):
    job_template: JobTemplateSpec = Field(default_factory=JobTemplateSpec, alias="jobTemplate")


class CronJob(_ObjectModel):
    metadata: ObjectMeta = Field(default_factory=ObjectMeta)
    spec: CronJobSpec = Field(default_factory=CronJobSpec)


class PersistentVolumeClaimSpec(_ObjectModel):
    resources: ResourceRequirements = Field(default_factory=ResourceRequirements)


class PersistentVolumeClaim(_ObjectModel):
    metadata: ObjectMeta = Field(default_factory=ObjectMeta)
    spec: PersistentVolumeClaimSpec = Field(default_factory=PersistentVolumeClaimSpec)


@dataclass(frozen=True)
class ContainerResources:
    """Declared requests and limits of one container."""

    name: str
    cpu_request: Quantity | None = None
    memory_request: Quantity | None = None
    cpu_limit: Quantity | None = None
    memory_limit: Quantity | None = None

    @classmethod
    def from_container(cls, container: Container) -> ContainerResources:
        requests = container.resources.requests
        limits = container.resources.limits
        return cls(
            name=container.name,
            cpu_request=requests.get(RESOURCE_CPU),
            memory_request=requests.get(RESOURCE_MEMORY),
            cpu_limit=limits.get(RESOURCE_CPU),
            memory_limit=limits.get(RESOURCE_MEMORY),
        )


def normalize_name(name: str) -> str:
    """Reduce a controller-generated pod name to its template stem.

    ``myapp-7d9f8c6b5-x2z4k`` -> ``myapp``, ``myapp-x2z4k`` -> ``myapp``.
    """
    match = GENERATED_NAME_PATTERN.match(name)
    if match is None:
        match = GENERATED_NAME_FALLBACK_PATTERN.match(name)
    if match is None:
        return name
    return match.group(1)


def _pod_containers(obj: Pod) -> list[Container]:
    return obj.spec.containers


def _template_containers(obj: TemplatedWorkload) -> list[Container]:
    return obj.spec.template.spec.containers


def _cron_job_containers(obj: CronJob) -> list[Container]:
    return obj.spec.job_template.spec.template.spec.containers


class WorkloadKind(str, Enum):
    """Closed set of workload shapes the controller validates."""

    POD = "Pod"
    DEPLOYMENT = "Deployment"
    STATEFUL_SET = "StatefulSet"
    DAEMON_SET = "DaemonSet"
    JOB = "Job"
    CRON_JOB = "CronJob"
    PERSISTENT_VOLUME_CLAIM = "PersistentVolumeClaim"
    UNRECOGNIZED = "Unrecognized"

    @classmethod
    def from_kind(cls, kind: str) -> WorkloadKind:
        try:
            member = cls(kind)
        except ValueError:
            return cls.UNRECOGNIZED
        return member

    @property
    def is_pod_template(self) -> bool:
        return self in _CONTAINER_EXTRACTORS

    @property
    def is_storage(self) -> bool:
        return self is WorkloadKind.PERSISTENT_VOLUME_CLAIM


_CONTAINER_EXTRACTORS: dict[WorkloadKind, tuple[type[_ObjectModel], Callable[[Any], list[Container]]]] = {
    WorkloadKind.POD: (Pod, _pod_containers),
    WorkloadKind.DEPLOYMENT: (TemplatedWorkload, _template_containers),
    WorkloadKind.STATEFUL_SET: (TemplatedWorkload, _template_containers),
    WorkloadKind.DAEMON_SET: (TemplatedWorkload, _template_containers),
    WorkloadKind.JOB: (TemplatedWorkload, _template_containers),
    WorkloadKind.CRON_JOB: (CronJob, _cron_job_containers),
}


@dataclass(frozen=True)
class WorkloadSnapshot:
    """The parts of an admitted object the policy looks at."""

    kind: WorkloadKind
    name: str = ""
    namespace: str = ""
    containers: tuple[ContainerResources, ...] = ()
    storage_request: Quantity | None = None


def _raw_object(raw: Any) -> dict[str, Any]:
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"unable to unmarshal json: {e}") from e
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise DecodeError(f"unable to unmarshal json: {e}") from e
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise DecodeError(f"unable to unmarshal json: expected an object, got {type(raw).__name__}")
    return raw


def _object_name(metadata: ObjectMeta, kind: WorkloadKind, fallback: str) -> str:
    name = metadata.name or fallback
    if kind is WorkloadKind.POD:
        if not name and metadata.generate_name:
            # stand in for the random suffix the API server appends
            name = metadata.generate_name + "x"
        return normalize_name(name)
    return name


def decode_workload(kind: WorkloadKind, raw: Any, name: str = "", namespace: str = "") -> WorkloadSnapshot:
    """Decode a raw object body of ``kind`` into a snapshot.

    ``name``/``namespace`` from the admission request are used when the
    object itself does not carry them.

    Raises:
        DecodeError: if the body is not valid JSON or does not match the shape
    """
    if kind is WorkloadKind.UNRECOGNIZED:
        return WorkloadSnapshot(kind=kind, name=name, namespace=namespace)

    data = _raw_object(raw)
    try:
        if kind.is_storage:
            pvc = PersistentVolumeClaim.model_validate(data)
            return WorkloadSnapshot(
                kind=kind,
                name=pvc.metadata.name or name,
                namespace=namespace or pvc.metadata.namespace,
                storage_request=pvc.spec.resources.requests.get(RESOURCE_STORAGE),
            )

        model, extract = _CONTAINER_EXTRACTORS[kind]
        obj = model.model_validate(data)
    except ValidationError as e:
        raise DecodeError(
            f"unable to decode {kind.value}: {e}",
            details={"kind": kind.value, "name": name, "namespace": namespace},
        ) from e

    return WorkloadSnapshot(
        kind=kind,
        name=_object_name(obj.metadata, kind, name),
        namespace=namespace or obj.metadata.namespace,
        containers=tuple(ContainerResources.from_container(c) for c in extract(obj)),
    )
