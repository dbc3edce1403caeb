"""
Policy data model.

``PolicyDocument`` mirrors the YAML configuration document;
``NameNamespace`` and ``Ceiling`` are the resolved, immutable types the
store and the decision engine work with.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from limits_admission.policy.quantity import Quantity

CEILING_FIELDS: dict[str, str] = {
    "cpu_limit": "maxCPULimit",
    "memory_limit": "maxMemLimit",
    "cpu_request": "maxCPURequest",
    "memory_request": "maxMemRequest",
    "storage": "maxPVCSize",
}


@dataclass(frozen=True)
class NameNamespace:
    """Name + namespace combination, name may be empty."""

    name: str = ""
    namespace: str = ""

    def __str__(self) -> str:
        return f"Name: {self.name}, {self.namespace}"


@dataclass(frozen=True)
class Ceiling:
    """Resolved resource ceilings for one policy entry.

    ``None`` means no ceiling for that dimension. ``unlimited`` overrides
    everything else.
    """

    cpu_limit: Quantity | None = None
    memory_limit: Quantity | None = None
    cpu_request: Quantity | None = None
    memory_request: Quantity | None = None
    storage: Quantity | None = None
    unlimited: bool = False


UNLIMITED = Ceiling(unlimited=True)


def _quantity_text(value: Any) -> Any:
    # YAML turns ``maxCPULimit: 2`` into an int; keep the raw text for parsing later
    if isinstance(value, bool):
        raise ValueError("expected a quantity, got a boolean")
    if isinstance(value, (int, float)):
        return str(value)
    return value


class LimitSpec(BaseModel):
    """One ceiling block as written in the document (global or override)."""

    model_config = ConfigDict(populate_by_name=True)

    max_cpu_limit: str | None = Field(default=None, alias="maxCPULimit")
    max_mem_limit: str | None = Field(default=None, alias="maxMemLimit")
    max_cpu_request: str | None = Field(default=None, alias="maxCPURequest")
    max_mem_request: str | None = Field(default=None, alias="maxMemRequest")
    max_pvc_size: str | None = Field(default=None, alias="maxPVCSize")
    unlimited: bool = False

    @field_validator(
        "max_cpu_limit",
        "max_mem_limit",
        "max_cpu_request",
        "max_mem_request",
        "max_pvc_size",
        mode="before",
    )
    @classmethod
    def _coerce_quantity(cls, value: Any) -> Any:
        return _quantity_text(value)

    def raw_fields(self) -> dict[str, str | None]:
        """Ceiling attribute name -> raw text, keyed like ``Ceiling``."""
        return {
            "cpu_limit": self.max_cpu_limit,
            "memory_limit": self.max_mem_limit,
            "cpu_request": self.max_cpu_request,
            "memory_request": self.max_mem_request,
            "storage": self.max_pvc_size,
        }


class PolicyDocument(LimitSpec):
    """Top-level configuration document.

    Example::

        maxCPULimit: 2
        maxMemLimit: 2Gi
        maxPVCSize: 50Gi
        customNamespaces:
          kube-system:
            maxCPULimit: 1
          default:
            unlimited: true
        customNames:
          {name: deployment-name, namespace: test-namespace}:
            maxMemLimit: 5Gi
    """

    namespaces: dict[str, LimitSpec] = Field(default_factory=dict, alias="customNamespaces")
    names: dict[tuple[str, str], LimitSpec] = Field(default_factory=dict, alias="customNames")

    @field_validator("namespaces", "names", mode="before")
    @classmethod
    def _empty_section(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("names", mode="before")
    @classmethod
    def _name_keys(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return value
        return {_name_namespace_key(key): spec for key, spec in value.items()}

    @field_validator("namespaces", mode="before")
    @classmethod
    def _namespace_keys(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return value
        return {str(key): spec for key, spec in value.items()}


def _name_namespace_key(key: Any) -> tuple[str, str]:
    """Normalize a ``customNames`` key to ``(name, namespace)``.

    Accepts the flow-mapping form ``{name: x, namespace: y}`` (frozen into a
    tuple of pairs by the YAML loader, or a plain dict when the document
    arrives as JSON-like data) and the ``namespace/name`` string form.
    """
    if isinstance(key, NameNamespace):
        return key.name, key.namespace
    if isinstance(key, tuple) and all(isinstance(item, tuple) and len(item) == 2 for item in key):
        key = dict(key)
    if isinstance(key, dict):
        unknown = set(key) - {"name", "namespace"}
        if unknown:
            raise ValueError(f"unexpected keys in customNames key: {sorted(unknown)}")
        return str(key.get("name") or ""), str(key.get("namespace") or "")
    if isinstance(key, str) and "/" in key:
        namespace, _, name = key.partition("/")
        return name, namespace
    raise ValueError(f"customNames key must be {{name, namespace}} or 'namespace/name', got {key!r}")
