"""Indel error rate tables keyed by repeat pattern size and repeat count."""

from __future__ import annotations

import bisect
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, List, Mapping, Tuple

import pandas as pd

from .enums import IndelType
from .exceptions import ConfigurationError, InternalConsistencyError
from .schemas import INDEL_ERROR_RATES_SCHEMA

RateKey = Tuple[int, int]


@dataclass(frozen=True)
class IndelErrorRates:
    """Error rates stored for one (pattern size, repeat count) key."""
    insertion_rate: float
    deletion_rate: float
    noisy_locus_rate: float = 0.0

    def rate(self, indel_type: IndelType) -> float:
        if indel_type is IndelType.INSERT:
            return self.insertion_rate
        if indel_type is IndelType.DELETE:
            return self.deletion_rate
        msg = f"no per-type rate for indel type {indel_type}"
        raise ValueError(msg)


class IndelErrorRateSet:
    """Indel error rates by repeat context.

    Rates are added while building, then the set is finalized exactly once.
    A finalized set is read-only and every lookup with pattern size and
    repeat count >= 1 resolves:

    1. an exact (pattern size, repeat count) entry is used when present;
    2. otherwise the repeat count is resolved within the pattern size: counts
       above the largest enumerated count plateau at the largest, counts below
       the smallest use the smallest, and gaps use the nearest lower count;
    3. an unknown pattern size falls back to the largest enumerated pattern
       size below it, or to pattern size 1.
    """

    def __init__(self) -> None:
        self._rates: Dict[RateKey, IndelErrorRates] = {}
        self._repeat_counts: Dict[int, List[int]] = {}
        self._pattern_sizes: List[int] = []
        self._finalized = False

    @property
    def is_finalized(self) -> bool:
        return self._finalized

    @property
    def rates(self) -> Mapping[RateKey, IndelErrorRates]:
        return MappingProxyType(self._rates)

    def __len__(self) -> int:
        return len(self._rates)

    def add_rate(
        self,
        repeat_pattern_size: int,
        repeat_count: int,
        insertion_rate: float,
        deletion_rate: float,
        noisy_locus_rate: float = 0.0,
    ) -> None:
        if self._finalized:
            msg = "cannot add rates to a finalized indel error rate set"
            raise InternalConsistencyError(msg)
        if repeat_pattern_size < 1 or repeat_count < 1:
            msg = (
                f"invalid indel error rate key: pattern size {repeat_pattern_size}, "
                f"repeat count {repeat_count}"
            )
            raise ConfigurationError(msg)
        for name, value in (
            ("insertion", insertion_rate),
            ("deletion", deletion_rate),
            ("noisy locus", noisy_locus_rate),
        ):
            if not 0.0 <= value <= 1.0:
                msg = (
                    f"{name} rate {value} out of range for pattern size "
                    f"{repeat_pattern_size}, repeat count {repeat_count}"
                )
                raise ConfigurationError(msg)

        self._rates[(repeat_pattern_size, repeat_count)] = IndelErrorRates(
            insertion_rate, deletion_rate, noisy_locus_rate
        )

    def finalize(self) -> "IndelErrorRateSet":
        """Freeze the set and prepare the fallback lookup tables."""
        if self._finalized:
            msg = "indel error rate set finalized twice"
            raise InternalConsistencyError(msg)
        if not self._rates:
            msg = "indel error rate set is empty"
            raise ConfigurationError(msg)

        repeat_counts: Dict[int, List[int]] = {}
        for pattern_size, repeat_count in self._rates:
            repeat_counts.setdefault(pattern_size, []).append(repeat_count)
        if 1 not in repeat_counts:
            msg = "indel error rate set has no homopolymer (pattern size 1) rates"
            raise ConfigurationError(msg)

        self._repeat_counts = {size: sorted(counts) for size, counts in repeat_counts.items()}
        self._pattern_sizes = sorted(self._repeat_counts)
        self._finalized = True
        return self

    def _resolve_key(self, repeat_pattern_size: int, repeat_count: int) -> RateKey:
        if not self._finalized:
            msg = "indel error rate set queried before finalize"
            raise InternalConsistencyError(msg)
        if repeat_pattern_size < 1 or repeat_count < 1:
            msg = (
                f"pattern size and repeat count must be >= 1, got "
                f"{repeat_pattern_size}, {repeat_count}"
            )
            raise ValueError(msg)

        key = (repeat_pattern_size, repeat_count)
        if key in self._rates:
            return key

        if repeat_pattern_size not in self._repeat_counts:
            index = bisect.bisect_right(self._pattern_sizes, repeat_pattern_size)
            repeat_pattern_size = self._pattern_sizes[index - 1] if index else 1

        counts = self._repeat_counts[repeat_pattern_size]
        index = bisect.bisect_right(counts, repeat_count)
        resolved_count = counts[index - 1] if index else counts[0]
        return repeat_pattern_size, resolved_count

    def get_rate(
        self, repeat_pattern_size: int, repeat_count: int, indel_type: IndelType
    ) -> float:
        key = self._resolve_key(repeat_pattern_size, repeat_count)
        return self._rates[key].rate(indel_type)

    def get_noisy_locus_rate(self, repeat_pattern_size: int, repeat_count: int) -> float:
        key = self._resolve_key(repeat_pattern_size, repeat_count)
        return self._rates[key].noisy_locus_rate

    def to_frame(self) -> pd.DataFrame:
        """Tabulate the enumerated rates, sorted by key."""
        rows = [
            (size, count, rates.insertion_rate, rates.deletion_rate, rates.noisy_locus_rate)
            for (size, count), rates in sorted(self._rates.items())
        ]
        frame = pd.DataFrame(rows, columns=INDEL_ERROR_RATES_SCHEMA.columns)
        frame = frame.astype(
            {
                "repeat_pattern_size": "int64",
                "repeat_count": "int64",
                "insertion_rate": "float64",
                "deletion_rate": "float64",
                "noisy_locus_rate": "float64",
            }
        )
        INDEL_ERROR_RATES_SCHEMA.validate(frame)
        return frame
