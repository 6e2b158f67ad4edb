"""
Tests for the indel error rate table.
"""

import pytest

from precise_varcall.enums import IndelType
from precise_varcall.exceptions import ConfigurationError, InternalConsistencyError
from precise_varcall.indel_error_rates import IndelErrorRates, IndelErrorRateSet


def _rate_set():
    rates = IndelErrorRateSet()
    rates.add_rate(1, 1, 1e-3, 2e-3, 0.1)
    rates.add_rate(1, 4, 3e-3, 4e-3, 0.2)
    rates.add_rate(3, 2, 5e-3, 6e-3)
    return rates


class TestIndelErrorRateSet:
    """Test building, finalizing and querying rate sets."""

    def test_exact_lookup_by_type(self):
        rates = _rate_set().finalize()
        assert rates.get_rate(1, 4, IndelType.INSERT) == 3e-3
        assert rates.get_rate(1, 4, IndelType.DELETE) == 4e-3
        assert rates.get_noisy_locus_rate(1, 1) == 0.1

    @pytest.mark.parametrize(
        "pattern_size, repeat_count, expected",
        [
            (1, 2, 1e-3),   # gap: nearest lower count
            (1, 4, 3e-3),   # exact
            (1, 99, 3e-3),  # plateau at largest count
            (2, 3, 1e-3),   # unknown pattern size below 3 falls back to 1
            (3, 1, 5e-3),   # below smallest count
            (5, 10, 5e-3),  # unknown pattern size above 3 falls back to 3
        ],
    )
    def test_fallback_rules(self, pattern_size, repeat_count, expected):
        rates = _rate_set().finalize()
        assert rates.get_rate(pattern_size, repeat_count, IndelType.INSERT) == expected

    def test_finalize_twice(self):
        rates = _rate_set().finalize()
        with pytest.raises(InternalConsistencyError):
            rates.finalize()

    def test_add_after_finalize(self):
        rates = _rate_set().finalize()
        with pytest.raises(InternalConsistencyError):
            rates.add_rate(1, 5, 1e-3, 1e-3)

    def test_query_before_finalize(self):
        with pytest.raises(InternalConsistencyError):
            _rate_set().get_rate(1, 1, IndelType.INSERT)

    def test_empty_set_rejected(self):
        with pytest.raises(ConfigurationError, match="empty"):
            IndelErrorRateSet().finalize()

    def test_missing_homopolymer_rates_rejected(self):
        rates = IndelErrorRateSet()
        rates.add_rate(2, 2, 1e-3, 1e-3)
        with pytest.raises(ConfigurationError, match="pattern size 1"):
            rates.finalize()

    @pytest.mark.parametrize("pattern_size, repeat_count", [(0, 1), (1, 0)])
    def test_invalid_query(self, pattern_size, repeat_count):
        rates = _rate_set().finalize()
        with pytest.raises(ValueError):
            rates.get_rate(pattern_size, repeat_count, IndelType.INSERT)

    @pytest.mark.parametrize("rate", [-1e-3, 1.5])
    def test_rate_out_of_range(self, rate):
        rates = IndelErrorRateSet()
        with pytest.raises(ConfigurationError):
            rates.add_rate(1, 1, rate, 1e-3)

    def test_complex_type_has_no_rate(self):
        with pytest.raises(ValueError):
            IndelErrorRates(1e-3, 1e-3).rate(IndelType.COMPLEX)

    def test_rates_view_is_read_only(self):
        rates = _rate_set().finalize()
        with pytest.raises(TypeError):
            rates.rates[(1, 9)] = IndelErrorRates(1e-3, 1e-3)

    def test_to_frame(self):
        frame = _rate_set().finalize().to_frame()
        assert list(frame.columns) == [
            "repeat_pattern_size",
            "repeat_count",
            "insertion_rate",
            "deletion_rate",
            "noisy_locus_rate",
        ]
        assert len(frame) == 3
        assert frame["repeat_count"].tolist() == [1, 4, 2]
