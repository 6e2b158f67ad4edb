"""Schema validators for exported tables."""

from __future__ import annotations

import polars as pl
from dataclasses import dataclass
from typing import List

import pandas as pd


@dataclass(frozen=True)
class Schema:
    name: str
    schema: pl.Schema

    @property
    def columns(self) -> List[str]:
        return list(self.schema.names())

    def validate(self, frame: pd.DataFrame) -> None:
        try:
            pl.DataFrame(frame).cast(dict(self.schema))
        except Exception as exc:  # pragma: no cover - polars details vary
            msg = f"{self.name} schema validation failed: {exc}"
            raise ValueError(msg) from exc


# alt_q<level> columns follow the fixed columns, one per quality level
EXPORT_OBSERVATION_SCHEMA = Schema(
    name="basecall_error_export",
    schema=pl.Schema(
        {
            "pattern_index": pl.Int64,
            "occurrences": pl.Int64,
            "strand": pl.Int64,
            "ref_allele_count": pl.Int64,
        }
    ),
)

INDEL_ERROR_RATES_SCHEMA = Schema(
    name="indel_error_rates",
    schema=pl.Schema(
        {
            "repeat_pattern_size": pl.Int64,
            "repeat_count": pl.Int64,
            "insertion_rate": pl.Float64,
            "deletion_rate": pl.Float64,
            "noisy_locus_rate": pl.Float64,
        }
    ),
)
