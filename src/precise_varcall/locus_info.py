"""Locus call records filled in by the continuous-frequency caller."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence, Set

from .enums import N_BASE, BaseId, VcfFilter
from .exceptions import InternalConsistencyError
from .indel_error_model import IndelKey, IndelReportInfo
from .utils import safe_frac


class FilterKeeper:
    """Set of filters attached to a locus.

    Setting a filter that is already set is a programming error.
    """

    def __init__(self) -> None:
        self._filters: Set[VcfFilter] = set()

    def set(self, vcf_filter: VcfFilter) -> None:
        if vcf_filter in self._filters:
            msg = f"filter {vcf_filter.label} set twice"
            raise InternalConsistencyError(msg)
        self._filters.add(vcf_filter)

    def __contains__(self, vcf_filter: VcfFilter) -> bool:
        return vcf_filter in self._filters

    def __len__(self) -> int:
        return len(self._filters)

    def labels(self) -> List[str]:
        return [vcf_filter.label for vcf_filter in sorted(self._filters)]

    def clear(self) -> None:
        self._filters.clear()


@dataclass(frozen=True)
class BaseCall:
    """A single basecall in the pileup at a site."""
    base_id: BaseId
    is_fwd_strand: bool
    qscore: int = 30


@dataclass
class SnpPosInfo:
    """Pileup at one site."""
    ref_base: str
    calls: List[BaseCall] = field(default_factory=list)

    def allele_observation_counts(self) -> List[int]:
        counts = [0] * N_BASE
        for call in self.calls:
            counts[call.base_id] += 1
        return counts


@dataclass
class SampleInfo:
    gq: int = 0


@dataclass
class ContinuousSiteAlleleInfo:
    total_depth: int
    allele_observation_count: int
    base: BaseId
    gqx: int = 0
    strand_bias: float = 0.0

    def variant_frequency(self) -> float:
        return safe_frac(self.allele_observation_count, self.total_depth)


class _ContinuousLocusInfo:
    """Per-sample quality slots, filters and aggregate quality."""

    def __init__(self, sample_count: int) -> None:
        if sample_count < 1:
            msg = f"locus needs at least one sample, got {sample_count}"
            raise ValueError(msg)
        self.samples = [SampleInfo() for _ in range(sample_count)]
        self.filters = FilterKeeper()
        self.any_variant_allele_quality = 0

    @property
    def sample_count(self) -> int:
        return len(self.samples)


class ContinuousSiteLocusInfo(_ContinuousLocusInfo):
    """SNV locus: observation counts in, allele calls out."""

    def __init__(
        self,
        pos: int,
        ref: str,
        allele_observation_counts: Sequence[int],
        spanning_deletions: int = 0,
        sample_count: int = 1,
        is_forced_output: bool = False,
    ) -> None:
        super().__init__(sample_count)
        if len(allele_observation_counts) != N_BASE:
            msg = f"expected {N_BASE} base counts, got {len(allele_observation_counts)}"
            raise ValueError(msg)
        self.pos = pos
        self.ref = ref
        self._allele_observation_counts = list(allele_observation_counts)
        self.spanning_deletions = spanning_deletions
        self.is_forced_output = is_forced_output
        self.is_snp = False
        self.alt_alleles: List[ContinuousSiteAlleleInfo] = []

    @classmethod
    def from_pileup(
        cls,
        pos: int,
        pileup: SnpPosInfo,
        spanning_deletions: int = 0,
        sample_count: int = 1,
        is_forced_output: bool = False,
    ) -> "ContinuousSiteLocusInfo":
        return cls(
            pos,
            pileup.ref_base,
            pileup.allele_observation_counts(),
            spanning_deletions=spanning_deletions,
            sample_count=sample_count,
            is_forced_output=is_forced_output,
        )

    def allele_observation_counts(self, base_id: int) -> int:
        return self._allele_observation_counts[base_id]


@dataclass(frozen=True)
class IndelData:
    is_forced_output: bool = False


@dataclass(frozen=True)
class IndelSampleReportInfo:
    """Confident read support for an indel in one sample."""
    n_confident_ref_reads: int = 0
    n_confident_indel_reads: int = 0
    n_confident_alt_reads: int = 0

    def total_confident_reads(self) -> int:
        return self.n_confident_ref_reads + self.n_confident_indel_reads + self.n_confident_alt_reads


@dataclass
class ContinuousIndelAlleleInfo:
    total_depth: int
    allele_observation_count: int
    indel_key: IndelKey
    indel_data: IndelData
    report_info: IndelReportInfo
    sample_report_info: IndelSampleReportInfo
    gqx: int = 0

    def variant_frequency(self) -> float:
        return safe_frac(self.allele_observation_count, self.total_depth)


class ContinuousIndelLocusInfo(_ContinuousLocusInfo):
    """Indel locus collecting one or more overlapping indel alleles."""

    def __init__(self, pos: int, sample_count: int = 1) -> None:
        super().__init__(sample_count)
        self.pos = pos
        self.is_het = False
        self.alt_alleles: List[ContinuousIndelAlleleInfo] = []
