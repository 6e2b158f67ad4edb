"""
Test configuration and fixtures for precise-varcall tests.
"""

import json

import pytest

from precise_varcall.config import CallerOptions
from precise_varcall.enums import BaseId
from precise_varcall.locus_info import BaseCall, SnpPosInfo


@pytest.fixture
def caller_options():
    """Caller thresholds with the default floors."""
    return CallerOptions(min_het_vf=0.01, min_qscore=17, noise_floor=0.005, max_qscore=40)


@pytest.fixture
def model_file(tmp_path):
    """Calibrated indel error model file with homopolymer and dinucleotide motifs."""
    payload = {
        "motifs": [
            {"indelRate": 7.5e-3, "noisyLocusRate": 0.0, "repeatCount": 1, "repeatPatternSize": 1},
            {"indelRate": 1.2e-3, "noisyLocusRate": 0.01, "repeatCount": 2, "repeatPatternSize": 1},
            {"indelRate": 4.0e-3, "noisyLocusRate": 0.05, "repeatCount": 8, "repeatPatternSize": 1},
            {"indelRate": 2.5e-3, "noisyLocusRate": 0.02, "repeatCount": 3, "repeatPatternSize": 2},
        ]
    }
    path = tmp_path / "indel_model.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def make_pileup(ref_base, counts_by_strand):
    """Build a pileup from {(base, is_fwd_strand): count}."""
    calls = []
    for (base, is_fwd_strand), count in sorted(counts_by_strand.items()):
        calls.extend(BaseCall(BaseId.from_base(base), is_fwd_strand) for _ in range(count))
    return SnpPosInfo(ref_base=ref_base, calls=calls)
