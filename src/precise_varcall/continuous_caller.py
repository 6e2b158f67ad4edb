"""
Continuous-frequency variant calling.

Calls SNV and indel alleles without a diploid genotype assumption: every
allele whose observed frequency clears the heterozygous floor is reported
with a Poisson tail quality and, for SNVs, a strand-bias statistic.
"""

from __future__ import annotations

import logging
import math
from typing import Iterable, Iterator, Tuple

import pandas as pd
from scipy import special, stats

from .config import CallerOptions
from .enums import N_BASE, BaseId
from .exceptions import StatisticalError
from .indel_error_model import IndelKey, IndelReportInfo
from .locus_info import (
    ContinuousIndelAlleleInfo,
    ContinuousIndelLocusInfo,
    ContinuousSiteAlleleInfo,
    ContinuousSiteLocusInfo,
    IndelData,
    IndelSampleReportInfo,
    SnpPosInfo,
)
from .qscore import error_prob_to_qphred, qphred_to_error_prob
from .utils import safe_frac

logger = logging.getLogger(__name__)


def poisson_tail_probability(call_count: int, coverage: int, estimated_base_call_quality: int) -> float:
    """P(X >= call_count) for X ~ Poisson(coverage * basecall error rate).

    Zero observed calls have tail probability 1.
    """
    if call_count < 0 or coverage < 0:
        msg = f"counts must be non-negative, got call_count={call_count} coverage={coverage}"
        raise StatisticalError(msg, {"call_count": call_count, "coverage": coverage})
    if call_count == 0:
        return 1.0
    error_rate = qphred_to_error_prob(estimated_base_call_quality)
    return float(special.gammainc(call_count, coverage * error_rate))


def poisson_qscore(
    call_count: int, coverage: int, estimated_base_call_quality: int, max_qscore: int
) -> int:
    """Phred-scaled confidence that call_count is not explained by basecall error."""
    p_value = poisson_tail_probability(call_count, coverage, estimated_base_call_quality)
    if p_value <= 0:
        return max_qscore
    return min(max_qscore, error_prob_to_qphred(p_value))


def _log_likelihood(coverage: int, observed_call_count: int, expected_frequency: float) -> float:
    # a zero count has likelihood 0 under every model
    if observed_call_count == 0:
        return -math.inf
    return float(stats.binom.logpmf(observed_call_count, coverage, expected_frequency))


def strand_bias(fwd_alt: int, rev_alt: int, fwd_other: int, rev_other: int, noise: float) -> float:
    """Log-likelihood ratio of the best single-strand model to the combined model.

    Both models share the variant frequency estimated from the two strands
    together. Sites without any alt evidence, or without any coverage, have
    no strand bias and return 0. noise is accepted for interface stability
    and does not enter the statistic.
    """
    counts = (fwd_alt, rev_alt, fwd_other, rev_other)
    if min(counts) < 0:
        msg = f"strand counts must be non-negative, got {counts}"
        raise StatisticalError(msg)
    total = sum(counts)
    if total == 0:
        return 0.0
    expected_vf = (fwd_alt + rev_alt) / total

    fwd = _log_likelihood(fwd_alt + fwd_other, fwd_alt, expected_vf)
    rev = _log_likelihood(rev_alt + rev_other, rev_alt, expected_vf)
    both = _log_likelihood(total, fwd_alt + rev_alt, expected_vf)
    if both == -math.inf:
        return 0.0
    return max(fwd, rev) - both


def strand_counts(pileup: SnpPosInfo, base_id: int) -> Tuple[int, int, int, int]:
    """Tally (fwd_alt, rev_alt, fwd_other, rev_other) for base_id in the pileup."""
    fwd_alt = rev_alt = fwd_other = rev_other = 0
    for call in pileup.calls:
        if call.is_fwd_strand:
            if call.base_id == base_id:
                fwd_alt += 1
            else:
                fwd_other += 1
        elif call.base_id == base_id:
            rev_alt += 1
        else:
            rev_other += 1
    return fwd_alt, rev_alt, fwd_other, rev_other


def _update_locus_quality(locus_info) -> None:
    locus_info.any_variant_allele_quality = max(
        (sample.gq for sample in locus_info.samples), default=0
    )


def position_snp_call_continuous(
    options: CallerOptions,
    good_pi: SnpPosInfo,
    locus_info: ContinuousSiteLocusInfo,
) -> None:
    """Call every base at a site whose frequency clears the heterozygous floor.

    The reference base must be one of A, C, G or T; a non-ACGT reference
    (for example N) raises ValueError, so callers skip such positions before
    calling.
    """
    total_depth = locus_info.spanning_deletions + sum(
        locus_info.allele_observation_counts(base_id) for base_id in range(N_BASE)
    )
    ref_base_id = BaseId.from_base(locus_info.ref)

    def generate_allele_info(base_id: BaseId, is_forced_output: bool) -> None:
        call_count = locus_info.allele_observation_counts(base_id)
        vf = safe_frac(call_count, total_depth)
        if not (vf > options.min_het_vf or is_forced_output):
            return

        allele = ContinuousSiteAlleleInfo(total_depth, call_count, base_id)
        gq = poisson_qscore(call_count, total_depth, options.min_qscore, options.max_qscore)
        for sample_info in locus_info.samples:
            sample_info.gq = gq
        allele.gqx = gq

        if base_id != ref_base_id:
            # any non-ref allele above the floor makes the whole site a SNP
            locus_info.is_snp = locus_info.is_snp or vf > options.min_het_vf
            allele.strand_bias = strand_bias(*strand_counts(good_pi, base_id), options.noise_floor)

        locus_info.alt_alleles.append(allele)

    for base_id in BaseId:
        generate_allele_info(base_id, locus_info.is_forced_output)
    if not locus_info.alt_alleles:
        # filters live on the calls, so keep at least a reference call
        generate_allele_info(ref_base_id, True)

    _update_locus_quality(locus_info)
    logger.debug(
        f"Site {locus_info.pos}: depth={total_depth} alleles={len(locus_info.alt_alleles)} "
        f"qual={locus_info.any_variant_allele_quality}"
    )


def add_indel_call(
    options: CallerOptions,
    indel_key: IndelKey,
    indel_data: IndelData,
    indel_report_info: IndelReportInfo,
    indel_sample_report_info: IndelSampleReportInfo,
    locus_info: ContinuousIndelLocusInfo,
) -> None:
    """Add an indel allele to the locus if its frequency clears the floor."""
    total_reads = indel_sample_report_info.total_confident_reads()
    indel_reads = indel_sample_report_info.n_confident_indel_reads
    vf = safe_frac(indel_reads, total_reads)

    if vf > options.min_het_vf or indel_data.is_forced_output:
        allele = ContinuousIndelAlleleInfo(
            total_reads,
            indel_reads,
            indel_key,
            indel_data,
            indel_report_info,
            indel_sample_report_info,
        )
        gq = poisson_qscore(indel_reads, total_reads, options.min_qscore, options.max_qscore)
        for sample_info in locus_info.samples:
            sample_info.gq = gq
        allele.gqx = gq
        locus_info.alt_alleles.append(allele)

    if locus_info.alt_alleles:
        locus_info.is_het = (
            len(locus_info.alt_alleles) > 1
            or locus_info.alt_alleles[0].variant_frequency() < (1 - options.min_het_vf)
        )

    _update_locus_quality(locus_info)


def call_sites(
    options: CallerOptions,
    sites: Iterable[Tuple[SnpPosInfo, ContinuousSiteLocusInfo]],
) -> Iterator[ContinuousSiteLocusInfo]:
    """Call each (pileup, locus) pair in turn, yielding the filled-in locus."""
    for good_pi, locus_info in sites:
        position_snp_call_continuous(options, good_pi, locus_info)
        yield locus_info


class ContinuousVariantCaller:
    """Continuous-frequency calling with a fixed set of options."""

    def __init__(self, options: CallerOptions = None):
        self.options = options or CallerOptions()

    def call_site(self, good_pi: SnpPosInfo, locus_info: ContinuousSiteLocusInfo) -> ContinuousSiteLocusInfo:
        position_snp_call_continuous(self.options, good_pi, locus_info)
        return locus_info

    def call_sites(
        self, sites: Iterable[Tuple[SnpPosInfo, ContinuousSiteLocusInfo]]
    ) -> Iterator[ContinuousSiteLocusInfo]:
        return call_sites(self.options, sites)

    def call_indel(
        self,
        indel_key: IndelKey,
        indel_data: IndelData,
        indel_report_info: IndelReportInfo,
        indel_sample_report_info: IndelSampleReportInfo,
        locus_info: ContinuousIndelLocusInfo,
    ) -> ContinuousIndelLocusInfo:
        add_indel_call(
            self.options, indel_key, indel_data, indel_report_info, indel_sample_report_info, locus_info
        )
        return locus_info


def site_calls_to_frame(loci: Iterable[ContinuousSiteLocusInfo]) -> pd.DataFrame:
    """Flatten called sites to one row per emitted allele."""
    rows = []
    for locus_info in loci:
        for allele in locus_info.alt_alleles:
            rows.append(
                {
                    "pos": locus_info.pos,
                    "ref": locus_info.ref,
                    "allele": allele.base.name,
                    "total_depth": allele.total_depth,
                    "allele_count": allele.allele_observation_count,
                    "variant_frequency": allele.variant_frequency(),
                    "gqx": allele.gqx,
                    "strand_bias": allele.strand_bias,
                    "is_snp": locus_info.is_snp,
                    "site_quality": locus_info.any_variant_allele_quality,
                }
            )
    return pd.DataFrame(
        rows,
        columns=[
            "pos",
            "ref",
            "allele",
            "total_depth",
            "allele_count",
            "variant_frequency",
            "gqx",
            "strand_bias",
            "is_snp",
            "site_quality",
        ],
    )
