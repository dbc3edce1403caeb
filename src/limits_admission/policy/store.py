"""
Policy store.

A ``PolicyGeneration`` is one immutable, fully resolved configuration. The
``PolicyStore`` owns the currently active generation; readers grab the
reference, the reloader publishes a replacement. Nothing is ever mutated in
place, so a reader either sees the old generation or the new one in full.
"""

from __future__ import annotations

import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType

import structlog

from limits_admission.policy.models import UNLIMITED, Ceiling, NameNamespace

logger = structlog.get_logger()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class PolicyGeneration:
    """Resolved ceilings: global defaults plus two override tables.

    Override entries already carry the inherited global values, so a lookup
    is a plain dictionary hit.
    """

    defaults: Ceiling = field(default_factory=Ceiling)
    names: Mapping[NameNamespace, Ceiling] = field(default_factory=dict)
    namespaces: Mapping[str, Ceiling] = field(default_factory=dict)
    source: str | None = None
    loaded_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        object.__setattr__(self, "names", MappingProxyType(dict(self.names)))
        object.__setattr__(self, "namespaces", MappingProxyType(dict(self.namespaces)))

    def resolve(self, target: NameNamespace) -> Ceiling:
        """Effective ceiling for ``target``.

        Precedence: exact (name, namespace) override, then namespace
        override, then the global defaults.
        """
        ceiling = self.names.get(target)
        if ceiling is None:
            ceiling = self.namespaces.get(target.namespace)
        if ceiling is None:
            ceiling = self.defaults
        if ceiling.unlimited:
            return UNLIMITED
        return ceiling

    def is_excluded(self, target: NameNamespace) -> bool:
        return self.resolve(target).unlimited


class PolicyStore:
    """Holds the active policy generation.

    The lock is held only while reading or replacing the reference; parsing
    a new generation happens entirely outside of it.
    """

    def __init__(self, generation: PolicyGeneration | None = None):
        self._lock = threading.Lock()
        self._generation = generation or PolicyGeneration()
        self._number = 1 if generation is not None else 0

    @property
    def current(self) -> PolicyGeneration:
        with self._lock:
            return self._generation

    @property
    def generation_number(self) -> int:
        """How many generations have been published (0 before the first)."""
        with self._lock:
            return self._number

    def publish(self, generation: PolicyGeneration) -> PolicyGeneration:
        """Atomically replace the active generation, returning the previous one."""
        with self._lock:
            previous = self._generation
            self._generation = generation
            self._number += 1
            number = self._number

        logger.debug(
            "policy_generation_published",
            generation=number,
            source=generation.source,
            namespaces=sorted(generation.namespaces),
            names=[str(nn) for nn in generation.names],
        )
        return previous

    def resolve(self, target: NameNamespace) -> Ceiling:
        return self.current.resolve(target)

    def is_excluded(self, target: NameNamespace) -> bool:
        return self.current.is_excluded(target)
