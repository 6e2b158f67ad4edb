"""Utility helpers."""

from __future__ import annotations

from typing import Callable, MutableMapping, TypeVar

K = TypeVar("K")
V = TypeVar("V")


def safe_frac(num: float, denom: float) -> float:
    """Return num / denom, or 0.0 when denom is zero."""
    if denom == 0:
        return 0.0
    return num / denom


def get_or_insert(mapping: MutableMapping[K, V], key: K, factory: Callable[[], V]) -> V:
    """Return the value stored under key, inserting factory() first if absent."""
    try:
        return mapping[key]
    except KeyError:
        value = factory()
        mapping[key] = value
        return value


def compress_int(value: int, bit_count: int) -> int:
    """Round value to its bit_count most significant bits.

    Values that already fit in bit_count bits are returned unchanged. Larger
    values are rounded half-up onto a grid whose spacing doubles with each
    additional bit, so the result is deterministic and monotonic
    non-decreasing in value.
    """
    if bit_count < 1:
        msg = f"bit_count must be positive, got {bit_count}"
        raise ValueError(msg)
    if value < 0:
        msg = f"cannot compress negative value {value}"
        raise ValueError(msg)

    shift = value.bit_length() - bit_count
    if shift <= 0:
        return value
    return ((value + (1 << (shift - 1))) >> shift) << shift
