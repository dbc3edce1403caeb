"""
Resource quantities.

Thin immutable wrapper around the Kubernetes quantity grammar
(``500m``, ``2``, ``1.5Gi``, ``10G`` ...). Parsing is delegated to
``kubernetes.utils.parse_quantity`` which yields a ``Decimal``; the original
text is kept so messages show values the way the user wrote them.
"""

from __future__ import annotations

import functools
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from kubernetes.utils import parse_quantity


class QuantityError(ValueError):
    """Raised when a value is not a valid resource quantity."""


@functools.total_ordering
@dataclass(frozen=True, eq=False)
class Quantity:
    """A parsed resource quantity.

    Instances are frozen, so sharing one between policy generations and
    callers never exposes mutable state. Equality and ordering compare the
    numeric value only: ``Quantity.parse("1Gi") == Quantity.parse("1073741824")``.
    """

    text: str
    value: Decimal

    @classmethod
    def parse(cls, raw: Any) -> Quantity:
        """Parse a string or number into a Quantity.

        Raises:
            QuantityError: for booleans, empty strings, malformed suffixes,
                NaN/infinite values.
        """
        if isinstance(raw, Quantity):
            return raw
        if isinstance(raw, bool) or raw is None:
            raise QuantityError(f"invalid quantity {raw!r}")
        if isinstance(raw, (int, float, Decimal)):
            text = str(raw)
        elif isinstance(raw, str):
            text = raw.strip()
        else:
            raise QuantityError(f"invalid quantity {raw!r}")

        if not text:
            raise QuantityError("invalid quantity: empty string")

        try:
            value = parse_quantity(text)
        except (ValueError, ArithmeticError) as e:
            raise QuantityError(f"invalid quantity {text!r}: {e}") from e

        if not value.is_finite():
            raise QuantityError(f"invalid quantity {text!r}: not a finite number")

        return cls(text=text, value=value)

    def is_zero(self) -> bool:
        return self.value == 0

    def is_negative(self) -> bool:
        return self.value < 0

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Quantity):
            return NotImplemented
        return self.value == other.value

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Quantity):
            return NotImplemented
        return self.value < other.value

    def __hash__(self) -> int:
        return hash(self.value)

    def __str__(self) -> str:
        return self.text


ZERO = Quantity(text="0", value=Decimal(0))
