"""
Tests for continuous-frequency SNV and indel calling.
"""

import math

import pytest
from scipy import stats

from precise_varcall.config import CallerOptions
from precise_varcall.continuous_caller import (
    ContinuousVariantCaller,
    add_indel_call,
    call_sites,
    poisson_qscore,
    poisson_tail_probability,
    position_snp_call_continuous,
    site_calls_to_frame,
    strand_bias,
    strand_counts,
)
from precise_varcall.enums import BaseId, VcfFilter
from precise_varcall.exceptions import InternalConsistencyError, StatisticalError
from precise_varcall.indel_error_model import IndelKey, IndelReportInfo
from precise_varcall.locus_info import (
    ContinuousIndelLocusInfo,
    ContinuousSiteLocusInfo,
    IndelData,
    IndelSampleReportInfo,
)

from conftest import make_pileup


def _site(ref_base, counts_by_strand, spanning_deletions=0, sample_count=1, is_forced_output=False):
    pileup = make_pileup(ref_base, counts_by_strand)
    locus_info = ContinuousSiteLocusInfo.from_pileup(
        1000,
        pileup,
        spanning_deletions=spanning_deletions,
        sample_count=sample_count,
        is_forced_output=is_forced_output,
    )
    return pileup, locus_info


class TestPoissonQscore:
    """Test Poisson tail quality scores."""

    def test_zero_calls_scores_zero(self):
        assert poisson_tail_probability(0, 100, 20) == 1.0
        assert poisson_qscore(0, 100, 20, 40) == 0

    def test_tail_probability_matches_scipy(self):
        # P(X >= 5) for X ~ Poisson(1)
        expected = stats.poisson.sf(4, 1.0)
        assert poisson_tail_probability(5, 100, 20) == pytest.approx(expected)

    @pytest.mark.parametrize("quality, expected", [(20, 24), (30, 40), (40, 40)])
    def test_scores(self, quality, expected):
        assert poisson_qscore(5, 100, quality, 40) == expected

    def test_scores_non_decreasing_in_basecall_quality(self):
        scores = [poisson_qscore(5, 100, quality, 40) for quality in (20, 30, 40)]
        assert scores == sorted(scores)

    def test_underflow_maps_to_max(self):
        assert poisson_qscore(200, 1000, 60, 40) == 40

    def test_max_qscore_is_configurable(self):
        assert poisson_qscore(50, 100, 17, 60) == 60


class TestStrandBias:
    """Test the strand-bias log-likelihood ratio."""

    def test_symmetric_alt_only_evidence(self):
        assert strand_bias(10, 10, 0, 0, 0.005) == pytest.approx(0.0)

    def test_no_coverage(self):
        assert strand_bias(0, 0, 0, 0, 0.005) == 0.0

    def test_no_alt_evidence(self):
        assert strand_bias(0, 0, 10, 12, 0.005) == 0.0

    def test_matches_binomial_likelihoods(self):
        vf = 10 / 30
        fwd = stats.binom.logpmf(8, 18, vf)
        rev = stats.binom.logpmf(2, 12, vf)
        both = stats.binom.logpmf(10, 30, vf)
        assert strand_bias(8, 2, 10, 10, 0.005) == pytest.approx(max(fwd, rev) - both)

    def test_single_strand_alt_is_finite(self):
        assert math.isfinite(strand_bias(10, 0, 0, 10, 0.005))

    def test_strand_counts(self):
        pileup = make_pileup("A", {("A", True): 4, ("A", False): 3, ("C", True): 2, ("C", False): 1})
        assert strand_counts(pileup, BaseId.C) == (2, 1, 4, 3)
        assert strand_counts(pileup, BaseId.G) == (0, 0, 6, 4)


class TestSiteCalling:
    """Test SNV site calling."""

    def test_zero_depth_site_emits_reference(self, caller_options):
        pileup, locus_info = _site("G", {})
        position_snp_call_continuous(caller_options, pileup, locus_info)

        assert len(locus_info.alt_alleles) == 1
        allele = locus_info.alt_alleles[0]
        assert allele.base is BaseId.G
        assert allele.total_depth == 0
        assert allele.gqx == 0
        assert not locus_info.is_snp
        assert locus_info.any_variant_allele_quality == 0

    def test_het_snv(self, caller_options):
        pileup, locus_info = _site(
            "A", {("A", True): 25, ("A", False): 25, ("C", True): 25, ("C", False): 25}
        )
        position_snp_call_continuous(caller_options, pileup, locus_info)

        assert [allele.base for allele in locus_info.alt_alleles] == [BaseId.A, BaseId.C]
        assert locus_info.is_snp
        assert all(allele.variant_frequency() == 0.5 for allele in locus_info.alt_alleles)
        assert all(allele.gqx == 40 for allele in locus_info.alt_alleles)
        assert locus_info.any_variant_allele_quality == 40
        # the reference allele carries no strand-bias statistic
        assert locus_info.alt_alleles[0].strand_bias == 0.0

    def test_alt_below_floor_not_called(self, caller_options):
        pileup, locus_info = _site("A", {("A", True): 500, ("A", False): 500, ("C", True): 5})
        position_snp_call_continuous(caller_options, pileup, locus_info)

        assert [allele.base for allele in locus_info.alt_alleles] == [BaseId.A]
        assert not locus_info.is_snp

    def test_forced_output_emits_every_base(self, caller_options):
        pileup, locus_info = _site("A", {("A", True): 10}, is_forced_output=True)
        position_snp_call_continuous(caller_options, pileup, locus_info)

        assert [allele.base for allele in locus_info.alt_alleles] == list(BaseId)
        assert not locus_info.is_snp
        for allele in locus_info.alt_alleles[1:]:
            assert allele.allele_observation_count == 0
            assert allele.gqx == 0
            assert allele.strand_bias == 0.0

    def test_every_sample_gets_quality(self, caller_options):
        pileup, locus_info = _site(
            "T", {("T", True): 30, ("G", False): 30}, sample_count=2
        )
        position_snp_call_continuous(caller_options, pileup, locus_info)

        assert locus_info.sample_count == 2
        assert [sample.gq for sample in locus_info.samples] == [40, 40]
        assert locus_info.any_variant_allele_quality == 40

    def test_spanning_deletions_count_toward_depth(self, caller_options):
        pileup, locus_info = _site("C", {("C", True): 10}, spanning_deletions=10)
        position_snp_call_continuous(caller_options, pileup, locus_info)

        allele = locus_info.alt_alleles[0]
        assert allele.total_depth == 20
        assert allele.variant_frequency() == 0.5

    def test_invalid_reference_base(self, caller_options):
        pileup, locus_info = _site("N", {("A", True): 10})
        with pytest.raises(ValueError, match="unknown base"):
            position_snp_call_continuous(caller_options, pileup, locus_info)

    def test_min_het_vf_threshold_is_strict(self):
        options = CallerOptions(min_het_vf=0.1)
        pileup, locus_info = _site("A", {("A", True): 90, ("C", True): 10})
        position_snp_call_continuous(options, pileup, locus_info)
        assert [allele.base for allele in locus_info.alt_alleles] == [BaseId.A]


def _indel_call(options, locus_info, n_ref, n_indel, n_alt=0, is_forced_output=False):
    add_indel_call(
        options,
        IndelKey(pos=locus_info.pos, insert_length=1),
        IndelData(is_forced_output=is_forced_output),
        IndelReportInfo(1, 6, 7),
        IndelSampleReportInfo(n_ref, n_indel, n_alt),
        locus_info,
    )


class TestIndelCalling:
    """Test indel allele calling."""

    def test_het_indel(self, caller_options):
        locus_info = ContinuousIndelLocusInfo(500)
        _indel_call(caller_options, locus_info, 50, 50)

        assert len(locus_info.alt_alleles) == 1
        allele = locus_info.alt_alleles[0]
        assert allele.total_depth == 100
        assert allele.allele_observation_count == 50
        assert allele.gqx == 40
        assert locus_info.is_het
        assert locus_info.any_variant_allele_quality == 40

    def test_hom_indel(self, caller_options):
        locus_info = ContinuousIndelLocusInfo(500)
        _indel_call(caller_options, locus_info, 0, 100)
        assert len(locus_info.alt_alleles) == 1
        assert not locus_info.is_het

    @pytest.mark.parametrize("n_ref, n_indel, is_het", [(1, 199, False), (2, 98, True)])
    def test_het_boundary(self, caller_options, n_ref, n_indel, is_het):
        locus_info = ContinuousIndelLocusInfo(500)
        _indel_call(caller_options, locus_info, n_ref, n_indel)
        assert locus_info.is_het is is_het

    def test_below_floor_not_called(self, caller_options):
        locus_info = ContinuousIndelLocusInfo(500)
        _indel_call(caller_options, locus_info, 1000, 5)
        assert locus_info.alt_alleles == []
        assert not locus_info.is_het
        assert locus_info.any_variant_allele_quality == 0

    def test_forced_output_without_reads(self, caller_options):
        locus_info = ContinuousIndelLocusInfo(500)
        _indel_call(caller_options, locus_info, 0, 0, is_forced_output=True)

        assert len(locus_info.alt_alleles) == 1
        allele = locus_info.alt_alleles[0]
        assert allele.total_depth == 0
        assert allele.gqx == 0

    def test_two_alleles_are_het(self, caller_options):
        locus_info = ContinuousIndelLocusInfo(500)
        _indel_call(caller_options, locus_info, 1, 199)
        assert not locus_info.is_het
        _indel_call(caller_options, locus_info, 1, 199)
        assert len(locus_info.alt_alleles) == 2
        assert locus_info.is_het

    def test_other_alt_reads_count_toward_depth(self, caller_options):
        locus_info = ContinuousIndelLocusInfo(500)
        _indel_call(caller_options, locus_info, 10, 20, n_alt=10)
        assert locus_info.alt_alleles[0].total_depth == 40
        assert locus_info.alt_alleles[0].variant_frequency() == 0.5


class TestContinuousVariantCaller:
    """Test the caller wrapper and tabular output."""

    def test_default_options(self):
        caller = ContinuousVariantCaller()
        assert caller.options == CallerOptions()

    def test_call_sites(self, caller_options):
        caller = ContinuousVariantCaller(caller_options)
        sites = [
            _site("A", {("A", True): 20, ("C", False): 20}),
            _site("G", {("G", True): 40}),
        ]
        loci = list(caller.call_sites(sites))

        assert [locus_info.is_snp for locus_info in loci] == [True, False]
        frame = site_calls_to_frame(loci)
        assert len(frame) == 3
        assert frame["allele"].tolist() == ["A", "C", "G"]
        assert frame["is_snp"].tolist() == [True, True, False]
        assert frame["total_depth"].tolist() == [40, 40, 40]

    def test_empty_frame(self):
        frame = site_calls_to_frame([])
        assert frame.empty
        assert "strand_bias" in frame.columns

    def test_call_indel(self, caller_options):
        caller = ContinuousVariantCaller(caller_options)
        locus_info = caller.call_indel(
            IndelKey(pos=10, delete_length=2),
            IndelData(),
            IndelReportInfo(2, 4, 3),
            IndelSampleReportInfo(30, 10, 0),
            ContinuousIndelLocusInfo(10),
        )
        assert locus_info.alt_alleles[0].indel_key.delete_length == 2
        assert locus_info.is_het


class TestFilterKeeper:
    """Test locus filter bookkeeping."""

    def test_set_and_labels(self):
        _, locus_info = _site("A", {("A", True): 5})
        locus_info.filters.set(VcfFilter.HIGH_DEPTH)
        assert VcfFilter.HIGH_DEPTH in locus_info.filters
        assert len(locus_info.filters) == 1
        assert locus_info.filters.labels() == [VcfFilter.HIGH_DEPTH.label]

    def test_double_set_is_an_error(self):
        _, locus_info = _site("A", {("A", True): 5})
        locus_info.filters.set(VcfFilter.HIGH_DEPTH)
        with pytest.raises(InternalConsistencyError):
            locus_info.filters.set(VcfFilter.HIGH_DEPTH)

    def test_clear_allows_setting_again(self):
        _, locus_info = _site("A", {("A", True): 5})
        locus_info.filters.set(VcfFilter.SPAN_DEL)
        locus_info.filters.set(VcfFilter.HIGH_DEPTH)
        assert locus_info.filters.labels() == ["HighDepth", "SpanDel"]

        locus_info.filters.clear()
        assert len(locus_info.filters) == 0
        assert VcfFilter.SPAN_DEL not in locus_info.filters
        locus_info.filters.set(VcfFilter.SPAN_DEL)
        assert locus_info.filters.labels() == ["SpanDel"]

    def test_locus_needs_a_sample(self):
        with pytest.raises(ValueError):
            ContinuousIndelLocusInfo(5, sample_count=0)


class TestInvalidCounts:
    """Negative counts indicate a broken upstream tally."""

    @pytest.mark.parametrize("call_count, coverage", [(-1, 10), (1, -10)])
    def test_poisson_rejects_negative_counts(self, call_count, coverage):
        with pytest.raises(StatisticalError):
            poisson_qscore(call_count, coverage, 20, 40)

    def test_strand_bias_rejects_negative_counts(self):
        with pytest.raises(StatisticalError):
            strand_bias(1, -1, 3, 3, 0.005)

    def test_module_level_call_sites(self, caller_options):
        loci = list(call_sites(caller_options, [_site("C", {("C", True): 12, ("T", False): 12})]))
        assert [allele.base for allele in loci[0].alt_alleles] == [BaseId.C, BaseId.T]
