"""
Policy document loading.

Parses the YAML policy document into a ``PolicyGeneration``. Loading is all
or nothing: any YAML, schema or quantity error raises ``ConfigurationError``
and nothing is published.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import structlog
import yaml
from pydantic import ValidationError

from limits_admission.core.errors import ConfigurationError
from limits_admission.policy.models import (
    CEILING_FIELDS,
    Ceiling,
    LimitSpec,
    NameNamespace,
    PolicyDocument,
)
from limits_admission.policy.quantity import ZERO, Quantity, QuantityError
from limits_admission.policy.store import PolicyGeneration

logger = structlog.get_logger()

# Request ceilings left unset at the top level default to zero.
REQUEST_DEFAULTS: dict[str, Quantity] = {
    "cpu_request": ZERO,
    "memory_request": ZERO,
}


class PolicyYamlLoader(yaml.SafeLoader):
    """SafeLoader that accepts flow-mapping keys such as ``{name: x, namespace: y}``.

    Mapping keys that are themselves mappings are frozen into a sorted tuple of
    ``(key, value)`` pairs so they can be used as dictionary keys.
    """

    def construct_mapping(self, node: yaml.MappingNode, deep: bool = False) -> dict[Any, Any]:
        if not isinstance(node, yaml.MappingNode):
            raise yaml.constructor.ConstructorError(
                None, None, f"expected a mapping node, but found {node.id}", node.start_mark
            )
        self.flatten_mapping(node)

        mapping: dict[Any, Any] = {}
        for key_node, value_node in node.value:
            if isinstance(key_node, yaml.MappingNode):
                inner = self.construct_mapping(key_node, deep=True)
                key: Any = tuple(sorted((str(k), v) for k, v in inner.items()))
            else:
                key = self.construct_object(key_node, deep=deep)
            try:
                hash(key)
            except TypeError:
                raise yaml.constructor.ConstructorError(
                    "while constructing a mapping",
                    node.start_mark,
                    "found unhashable key",
                    key_node.start_mark,
                ) from None
            mapping[key] = self.construct_object(value_node, deep=deep)
        return mapping


def _parse_quantity(raw: str, field_name: str, where: str) -> Quantity:
    try:
        quantity = Quantity.parse(raw)
    except QuantityError as e:
        raise ConfigurationError(
            f"could not parse {field_name} for {where}: {e}",
            details={"field": field_name, "key": where, "value": raw},
        ) from e
    if quantity.is_negative():
        raise ConfigurationError(
            f"could not parse {field_name} for {where}: must not be negative",
            details={"field": field_name, "key": where, "value": raw},
        )
    return quantity


def _to_ceiling(spec: LimitSpec, where: str, inherited: Ceiling | None = None) -> Ceiling:
    """Convert a raw block, filling unset fields from ``inherited``."""
    values: dict[str, Quantity | None] = {}
    for attr, raw in spec.raw_fields().items():
        if raw is not None and raw.strip() != "":
            values[attr] = _parse_quantity(raw, CEILING_FIELDS[attr], where)
        elif inherited is not None:
            values[attr] = getattr(inherited, attr)
        else:
            values[attr] = REQUEST_DEFAULTS.get(attr)
    return Ceiling(unlimited=spec.unlimited, **values)


def parse_document(data: Any) -> PolicyDocument:
    """Validate already-deserialized document data."""
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"policy document must be a mapping, got {type(data).__name__}"
        )
    try:
        return PolicyDocument.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"invalid policy document: {e}") from e


def build_generation(document: PolicyDocument, source: str | None = None) -> PolicyGeneration:
    """Resolve a validated document into a generation, applying inheritance."""
    defaults = _to_ceiling(document, "global")

    namespaces: dict[str, Ceiling] = {}
    for namespace, spec in document.namespaces.items():
        namespaces[namespace] = _to_ceiling(spec, f'namespace "{namespace}"', defaults)

    names: dict[NameNamespace, Ceiling] = {}
    for (name, namespace), spec in document.names.items():
        nn = NameNamespace(name=name, namespace=namespace)
        names[nn] = _to_ceiling(spec, f'name "{name}" in namespace "{namespace}"', defaults)

    return PolicyGeneration(
        defaults=defaults,
        names=names,
        namespaces=namespaces,
        source=source,
    )


def parse_policy(text: str | bytes, source: str | None = None) -> PolicyGeneration:
    """Parse the raw text of a policy document into a generation."""
    try:
        data = yaml.load(text, Loader=PolicyYamlLoader)  # noqa: S506 - SafeLoader subclass
    except (yaml.YAMLError, TypeError, ValueError) as e:
        raise ConfigurationError(f"unable to parse policy yaml: {e}", details={"source": source}) from e

    generation = build_generation(parse_document(data), source=source)
    logger.debug(
        "policy_parsed",
        source=source,
        namespaces=sorted(generation.namespaces),
        names=[str(nn) for nn in generation.names],
        max_cpu_limit=str(generation.defaults.cpu_limit),
        max_mem_limit=str(generation.defaults.memory_limit),
        max_pvc_size=str(generation.defaults.storage),
    )
    return generation


class PolicyLoader:
    """Loads the policy document from a file path."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def load(self) -> PolicyGeneration:
        try:
            text = self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigurationError(
                f"unable to read policy file: {e}", details={"path": str(self.path)}
            ) from e
        return parse_policy(text, source=str(self.path))


def load_policy_file(path: str | Path) -> PolicyGeneration:
    """
    Convenience function to load a policy file.

    Raises:
        ConfigurationError: if the file is unreadable or invalid
    """
    return PolicyLoader(path).load()
