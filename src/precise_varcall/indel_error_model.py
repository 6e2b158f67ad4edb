"""
Indel error model construction and lookup.

This module provides:
- Built-in indel error rate presets (log-linear and adaptive default)
- Adaptive log-space interpolation between repeat count anchors
- Reading and writing calibrated indel error model files
- Report/candidate error probability lookup for a classified indel
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

import jsonschema
import numpy as np

from .config import IndelErrorModelConfig
from .enums import IndelErrorModelName, IndelType
from .exceptions import ConfigurationError, FileFormatError
from .indel_error_rates import IndelErrorRateSet
from .logging_config import time_it

logger = logging.getLogger(__name__)


INDEL_MODEL_FILE_SCHEMA = {
    "type": "object",
    "required": ["motifs"],
    "properties": {
        "motifs": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["indelRate", "noisyLocusRate", "repeatCount", "repeatPatternSize"],
                "properties": {
                    "indelRate": {"type": "number"},
                    "noisyLocusRate": {"type": "number"},
                    "repeatCount": {"type": "integer", "minimum": 1},
                    "repeatPatternSize": {"type": "integer", "minimum": 1},
                },
            },
        },
    },
}


@dataclass(frozen=True)
class AdaptiveIndelErrorModelLogParams:
    """Log-space rates anchoring one end of an adaptive ramp."""
    log_error_rate: float = 0.0
    log_noisy_locus_rate: float = 0.0


@dataclass(frozen=True)
class AdaptiveIndelErrorModel:
    """Log-linear interpolation of indel error rates over repeat count.

    The low anchor sits at LOW_REPEAT_COUNT; rates are constant from
    high_repeat_count upward.
    """
    repeat_pattern_size: int
    high_repeat_count: int
    low_log_params: AdaptiveIndelErrorModelLogParams
    high_log_params: AdaptiveIndelErrorModelLogParams

    LOW_REPEAT_COUNT = 2

    def __post_init__(self) -> None:
        if self.high_repeat_count <= self.LOW_REPEAT_COUNT:
            msg = (
                f"high repeat count must exceed {self.LOW_REPEAT_COUNT}, "
                f"got {self.high_repeat_count}"
            )
            raise ValueError(msg)

    def _check_repeat_count(self, repeat_count: int) -> None:
        if repeat_count < self.LOW_REPEAT_COUNT:
            msg = f"adaptive model requires repeat count >= {self.LOW_REPEAT_COUNT}, got {repeat_count}"
            raise ValueError(msg)

    def error_rate(self, repeat_count: int) -> float:
        self._check_repeat_count(repeat_count)
        if repeat_count >= self.high_repeat_count:
            return math.exp(self.high_log_params.log_error_rate)
        return math.exp(
            self.linear_fit(
                repeat_count,
                self.LOW_REPEAT_COUNT,
                self.low_log_params.log_error_rate,
                self.high_repeat_count,
                self.high_log_params.log_error_rate,
            )
        )

    def noisy_locus_rate(self, repeat_count: int) -> float:
        self._check_repeat_count(repeat_count)
        if repeat_count >= self.high_repeat_count:
            return math.exp(self.high_log_params.log_noisy_locus_rate)
        return math.exp(
            self.linear_fit(
                repeat_count,
                self.LOW_REPEAT_COUNT,
                self.low_log_params.log_noisy_locus_rate,
                self.high_repeat_count,
                self.high_log_params.log_noisy_locus_rate,
            )
        )

    @staticmethod
    def linear_fit(x: float, x1: float, y1: float, x2: float, y2: float) -> float:
        """Evaluate the line through (x1, y1) and (x2, y2) at x."""
        if x1 == x2:
            msg = "linear fit requires distinct anchor points"
            raise ValueError(msg)
        return ((y2 - y1) * x + (x2 * y1 - x1 * y2)) / (x2 - x1)


def log_linear_rates() -> IndelErrorRateSet:
    """Homopolymer error rates ramping log-linearly from 5e-5 to 3e-4.

    The ramp is zero-indexed at repeat count 1 and reaches the high rate at
    repeat count 16, after which lookups plateau.
    """
    repeat_count_switch_point = 15
    repeat_pattern_size = 1

    high_error_frac = np.arange(repeat_count_switch_point + 1) / repeat_count_switch_point
    log_error_rates = (1.0 - high_error_frac) * np.log(5e-5) + high_error_frac * np.log(3e-4)

    rates = IndelErrorRateSet()
    for repeat_count, error_rate in enumerate(np.exp(log_error_rates), start=1):
        rates.add_rate(repeat_pattern_size, repeat_count, float(error_rate), float(error_rate))
    return rates.finalize()


# (pattern size, low rate, high rate, switch point)
_ADAPTIVE_DEFAULT_PARAMS = (
    (1, 4.9e-3, 4.5e-2, 16),
    (2, 1.0e-2, 1.8e-2, 9),
)
_ADAPTIVE_DEFAULT_NON_STR_RATE = 8e-3


def adaptive_default_rates() -> IndelErrorRateSet:
    """Preset rates matching typical adaptive indel error estimates.

    Repeat count 1 uses a flat non-STR rate; homopolymer counts 2-16 and
    dinucleotide counts 2-9 follow adaptive log-linear ramps.
    """
    rates = IndelErrorRateSet()
    for pattern_size, low_rate, high_rate, switch_point in _ADAPTIVE_DEFAULT_PARAMS:
        model = AdaptiveIndelErrorModel(
            repeat_pattern_size=pattern_size,
            high_repeat_count=switch_point,
            low_log_params=AdaptiveIndelErrorModelLogParams(log_error_rate=math.log(low_rate)),
            high_log_params=AdaptiveIndelErrorModelLogParams(log_error_rate=math.log(high_rate)),
        )
        rates.add_rate(pattern_size, 1, _ADAPTIVE_DEFAULT_NON_STR_RATE, _ADAPTIVE_DEFAULT_NON_STR_RATE)
        for repeat_count in range(AdaptiveIndelErrorModel.LOW_REPEAT_COUNT, switch_point + 1):
            error_rate = model.error_rate(repeat_count)
            rates.add_rate(pattern_size, repeat_count, error_rate, error_rate)
    return rates.finalize()


_PRESETS = {
    IndelErrorModelName.LOG_LINEAR: log_linear_rates,
    IndelErrorModelName.ADAPTIVE_DEFAULT: adaptive_default_rates,
}


def preset_rates(model_name: str) -> IndelErrorRateSet:
    """Build the named preset rate set."""
    try:
        factory = _PRESETS[IndelErrorModelName(model_name)]
    except ValueError as exc:
        msg = f"unrecognized indel error model name: '{model_name}'"
        raise ConfigurationError(msg, {"model_name": model_name}) from exc
    return factory()


def load_indel_error_rates_json(path: str | Path) -> IndelErrorRateSet:
    """Read an indel error model file into a finalized rate set."""
    path = Path(path)

    def fail(reason: str) -> FileFormatError:
        msg = f"failed to load indel error model file '{path}': {reason}"
        return FileFormatError(msg, {"path": str(path), "reason": reason})

    try:
        root = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise fail(str(exc)) from exc
    except json.JSONDecodeError as exc:
        raise fail(f"invalid JSON: {exc}") from exc

    try:
        jsonschema.validate(root, INDEL_MODEL_FILE_SCHEMA)
    except jsonschema.ValidationError as exc:
        if isinstance(root, dict) and "motifs" not in root:
            raise fail("no motifs in model file") from exc
        raise fail(exc.message) from exc

    rates = IndelErrorRateSet()
    try:
        for motif in root["motifs"]:
            indel_rate = float(motif["indelRate"])
            rates.add_rate(
                int(motif["repeatPatternSize"]),
                int(motif["repeatCount"]),
                indel_rate,
                indel_rate,
                float(motif["noisyLocusRate"]),
            )
        return rates.finalize()
    except ConfigurationError as exc:
        raise fail(str(exc)) from exc


def dump_indel_error_rates_json(rates: IndelErrorRateSet, path: str | Path) -> Path:
    """Write a rate set in the model file format.

    The file stores one rate per motif, so the larger of the insertion and
    deletion rates is written.
    """
    path = Path(path)
    motifs = [
        {
            "indelRate": max(entry.insertion_rate, entry.deletion_rate),
            "noisyLocusRate": entry.noisy_locus_rate,
            "repeatCount": repeat_count,
            "repeatPatternSize": pattern_size,
        }
        for (pattern_size, repeat_count), entry in sorted(rates.rates.items())
    ]
    path.write_text(json.dumps({"motifs": motifs}, indent=2), encoding="utf-8")
    return path


@dataclass(frozen=True)
class IndelKey:
    """Minimal indel description used to classify an indel for lookup."""
    pos: int
    insert_length: int = 0
    delete_length: int = 0

    @property
    def indel_type(self) -> IndelType:
        if self.insert_length > 0 and self.delete_length == 0:
            return IndelType.INSERT
        if self.delete_length > 0 and self.insert_length == 0:
            return IndelType.DELETE
        return IndelType.COMPLEX


@dataclass(frozen=True)
class IndelReportInfo:
    """Repeat context of an indel allele."""
    repeat_unit_length: int = 0
    ref_repeat_count: int = 0
    indel_repeat_count: int = 0


class IndelErrorModel:
    """Report-time and candidate indel error rates.

    The report rates come from a preset or a model file. The candidate rates
    are always the log-linear preset. Both sets are immutable after
    construction and safe to share between workers.
    """

    @time_it("indel error model construction")
    def __init__(
        self,
        model_name: str = IndelErrorModelName.LOG_LINEAR.value,
        model_path: Optional[str | Path] = None,
    ) -> None:
        if model_path:
            self._error_rates = load_indel_error_rates_json(model_path)
            source = f"file '{model_path}'"
        else:
            self._error_rates = preset_rates(model_name)
            source = f"preset '{model_name}'"

        self._candidate_error_rates = log_linear_rates()
        logger.info(
            f"Loaded indel error model from {source} with {len(self._error_rates)} rate entries"
        )

    @classmethod
    def from_config(cls, config: IndelErrorModelConfig) -> "IndelErrorModel":
        return cls(model_name=config.model_name, model_path=config.model_path)

    @property
    def error_rates(self) -> IndelErrorRateSet:
        return self._error_rates

    @property
    def candidate_error_rates(self) -> IndelErrorRateSet:
        return self._candidate_error_rates

    def get_indel_error_rate(
        self,
        indel_key: IndelKey,
        report_info: IndelReportInfo,
        is_candidate_rates: bool = False,
    ) -> Tuple[float, float]:
        """Return (ref->indel, indel->ref) error probabilities for an indel."""
        error_rates = self._candidate_error_rates if is_candidate_rates else self._error_rates
        indel_type = indel_key.indel_type

        if indel_type is IndelType.COMPLEX:
            # complex indels use the baseline non-STR rate
            baseline = max(
                error_rates.get_rate(1, 1, IndelType.INSERT),
                error_rates.get_rate(1, 1, IndelType.DELETE),
            )
            return baseline, baseline

        repeat_pattern_size = max(report_info.repeat_unit_length, 1)
        ref_repeat_count = max(report_info.ref_repeat_count, 1)
        indel_repeat_count = max(report_info.indel_repeat_count, 1)

        ref_to_indel = error_rates.get_rate(repeat_pattern_size, ref_repeat_count, indel_type)
        indel_to_ref = error_rates.get_rate(
            repeat_pattern_size, indel_repeat_count, indel_type.reverse()
        )
        return ref_to_indel, indel_to_ref
