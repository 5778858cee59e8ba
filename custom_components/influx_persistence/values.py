"""Typed field values and the data points built from them."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from numbers import Real
from typing import Any


@dataclass(frozen=True)
class FieldValue:
    """A single named observation waiting to be persisted."""

    field: str
    value: int | float | str


@dataclass(frozen=True)
class NumberFieldValue(FieldValue):
    """Numeric observation."""

    value: int | float


@dataclass(frozen=True)
class StringFieldValue(FieldValue):
    """Textual observation."""

    value: str


@dataclass(frozen=True)
class DataPoint:
    """One point of a batch write, stamped with its bucket key."""

    measurement: str
    timestamp_ms: int
    tags: dict[str, str] = field(default_factory=dict)
    fields: dict[str, int | float | str] = field(default_factory=dict)


def classify(field_name: str, value: Any) -> FieldValue | None:
    """
    Wrap a value into a typed field value.

    Returns None for anything that is neither a real number nor a string.
    Booleans are not numbers here, and non-finite floats cannot be written.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, Real):
        if not isinstance(value, (int, float)):
            value = float(value)
        if isinstance(value, float) and not math.isfinite(value):
            return None
        return NumberFieldValue(field_name, value)
    if isinstance(value, str):
        return StringFieldValue(field_name, value)
    return None


def build_point(
    measurement: str,
    timestamp_ms: int,
    values: list[FieldValue],
    tags: dict[str, str],
) -> DataPoint:
    """Build a point carrying one field per value; later values win on collision."""
    fields: dict[str, int | float | str] = {}
    for item in values:
        fields[item.field] = item.value
    return DataPoint(
        measurement=measurement,
        timestamp_ms=timestamp_ms,
        tags=dict(tags),
        fields=fields,
    )
