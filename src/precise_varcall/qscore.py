"""Phred quality conversions."""

from __future__ import annotations

import math


def qphred_to_error_prob(qscore: float) -> float:
    """Convert a phred score to an error probability."""
    return 10.0 ** (-qscore / 10.0)


def error_prob_to_qphred(prob: float) -> int:
    """Convert an error probability to the nearest integer phred score.

    prob must be positive; callers handle the zero-probability case.
    """
    if prob <= 0:
        msg = f"error probability must be positive, got {prob}"
        raise ValueError(msg)
    return int(math.floor(-10.0 * math.log10(prob) + 0.5))
