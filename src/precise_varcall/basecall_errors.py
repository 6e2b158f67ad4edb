"""
Basecall error observation aggregation.

Per-site reference and alternate basecall counts are compressed into
canonical observation patterns and tallied per error context. Shards built
independently merge into a single aggregate, which is exported in a flat
form for the external error model fitting step.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, TextIO, Tuple

import pandas as pd

from .enums import BaseId
from .exceptions import InternalConsistencyError
from .locus_info import SnpPosInfo
from .logging_config import time_it
from .schemas import EXPORT_OBSERVATION_SCHEMA
from .utils import compress_int, get_or_insert, safe_frac

logger = logging.getLogger(__name__)

COMPRESSION_BIT_COUNT = 4
STRAND_COUNT = 2


@dataclass(frozen=True, order=True)
class BasecallErrorContext:
    """Calibration bucket an observation belongs to."""
    repeat_count: int = 1

    def __str__(self) -> str:
        return str(self.repeat_count)


@dataclass(frozen=True, order=True)
class StrandBasecallCounts:
    """Reference count and per-quality alternate counts for one strand.

    Alternate counts are held as (quality, count) pairs sorted by quality so
    that instances are hashable. The dataclass ordering compares
    ref_allele_count first, then the sorted alternate pairs
    lexicographically; this is the total order used to canonicalize strands.
    """
    ref_allele_count: int = 0
    alt_allele_count: Tuple[Tuple[int, int], ...] = ()

    @classmethod
    def from_counts(cls, ref_allele_count: int, alt_counts: Mapping[int, int]) -> "StrandBasecallCounts":
        pairs = tuple(sorted((qual, count) for qual, count in alt_counts.items() if count > 0))
        return cls(ref_allele_count, pairs)

    @property
    def alt_counts(self) -> Dict[int, int]:
        return dict(self.alt_allele_count)

    @property
    def has_alt(self) -> bool:
        return bool(self.alt_allele_count)

    def depth(self) -> int:
        return self.ref_allele_count + sum(count for _, count in self.alt_allele_count)

    def compressed(self, bit_count: int = COMPRESSION_BIT_COUNT) -> "StrandBasecallCounts":
        return StrandBasecallCounts(
            compress_int(self.ref_allele_count, bit_count),
            tuple((qual, compress_int(count, bit_count)) for qual, count in self.alt_allele_count),
        )

    def __str__(self) -> str:
        alts = ",".join(f"{qual}:{count}" for qual, count in self.alt_allele_count)
        return f"REF:\t{self.ref_allele_count}\tALT:\t{alts}"


@dataclass(frozen=True)
class BasecallErrorContextObservation:
    """Canonical compressed two-strand observation pattern.

    strand0 is always >= strand1 under the StrandBasecallCounts ordering.
    """
    strand0: StrandBasecallCounts
    strand1: StrandBasecallCounts

    def __post_init__(self) -> None:
        if self.strand0 < self.strand1:
            msg = "observation strands are not in canonical order"
            raise InternalConsistencyError(msg)

    @classmethod
    def from_strands(
        cls,
        strand0: StrandBasecallCounts,
        strand1: StrandBasecallCounts,
        bit_count: int = COMPRESSION_BIT_COUNT,
    ) -> "BasecallErrorContextObservation":
        """Compress and canonicalize a raw pair of strand counts."""
        if not strand0.has_alt and not strand1.has_alt:
            # without alt evidence the strands are exchangeable, so fold ref onto strand0
            strand0 = StrandBasecallCounts(strand0.ref_allele_count + strand1.ref_allele_count)
            strand1 = StrandBasecallCounts()

        strand0 = strand0.compressed(bit_count)
        strand1 = strand1.compressed(bit_count)
        if strand0 < strand1:
            strand0, strand1 = strand1, strand0
        return cls(strand0, strand1)

    def depth(self) -> int:
        return self.strand0.depth() + self.strand1.depth()


class BasecallErrorContextInputObservation:
    """Raw basecall counts at one site, split by strand and quality."""

    def __init__(self) -> None:
        self.ref: List[Counter] = [Counter() for _ in range(STRAND_COUNT)]
        self.alt: List[Counter] = [Counter() for _ in range(STRAND_COUNT)]

    def add_ref_count(self, is_fwd_strand: bool, basecall_error_phred_prob: int) -> None:
        self.ref[0 if is_fwd_strand else 1][basecall_error_phred_prob] += 1

    def add_alt_count(self, is_fwd_strand: bool, basecall_error_phred_prob: int) -> None:
        self.alt[0 if is_fwd_strand else 1][basecall_error_phred_prob] += 1

    def is_empty(self) -> bool:
        return not any(self.ref) and not any(self.alt)


@dataclass(frozen=True)
class BasecallErrorContextObservationExportStrandObservation:
    """Strand counts with alternate counts indexed by quality level."""
    ref_allele_count: int
    alt_allele_count: Tuple[int, ...]


@dataclass(frozen=True)
class BasecallErrorContextObservationExportObservation:
    strand0: BasecallErrorContextObservationExportStrandObservation
    strand1: BasecallErrorContextObservationExportStrandObservation


@dataclass
class BasecallErrorContextObservationExportData:
    """Flat export of one context's aggregated observations."""
    alt_allele_basecall_error_phred_prob_levels: List[int] = field(default_factory=list)
    ref_count: List[int] = field(default_factory=list)
    observations: Dict[BasecallErrorContextObservationExportObservation, int] = field(default_factory=dict)

    def to_frame(self) -> pd.DataFrame:
        """One row per (pattern, strand) with an alt_q<level> column per quality level."""
        alt_columns = [f"alt_q{qual}" for qual in self.alt_allele_basecall_error_phred_prob_levels]
        columns = list(EXPORT_OBSERVATION_SCHEMA.columns) + alt_columns
        patterns = sorted(
            self.observations.items(),
            key=lambda item: (
                item[0].strand0.ref_allele_count,
                item[0].strand0.alt_allele_count,
                item[0].strand1.ref_allele_count,
                item[0].strand1.alt_allele_count,
            ),
        )
        rows = []
        for pattern_index, (pattern, occurrences) in enumerate(patterns):
            for strand_index, strand in enumerate((pattern.strand0, pattern.strand1)):
                rows.append(
                    [pattern_index, occurrences, strand_index, strand.ref_allele_count]
                    + list(strand.alt_allele_count)
                )
        frame = pd.DataFrame(rows, columns=columns).astype("int64")
        EXPORT_OBSERVATION_SCHEMA.validate(frame)
        return frame


class BasecallErrorContextObservationData:
    """Occurrence counts of compressed observation patterns for one context.

    Reference basecall qualities are dropped from each compressed pattern but
    kept in aggregate in ref_allele_basecall_error_phred_probs.
    """

    def __init__(self) -> None:
        self.data: Counter = Counter()
        self.ref_allele_basecall_error_phred_probs: Counter = Counter()

    def add_observation(self, obs: BasecallErrorContextInputObservation) -> None:
        strands = []
        for strand_index in range(STRAND_COUNT):
            self.ref_allele_basecall_error_phred_probs.update(obs.ref[strand_index])
            strands.append(
                StrandBasecallCounts.from_counts(
                    sum(obs.ref[strand_index].values()), obs.alt[strand_index]
                )
            )
        self.data[BasecallErrorContextObservation.from_strands(*strands)] += 1

    def merge(self, other: "BasecallErrorContextObservationData") -> None:
        self.data.update(other.data)
        self.ref_allele_basecall_error_phred_probs.update(other.ref_allele_basecall_error_phred_probs)

    def copy(self) -> "BasecallErrorContextObservationData":
        duplicate = BasecallErrorContextObservationData()
        duplicate.merge(self)
        return duplicate

    def _alt_quality_totals(self) -> Counter:
        totals: Counter = Counter()
        for pattern, occurrences in self.data.items():
            for strand in (pattern.strand0, pattern.strand1):
                for qual, count in strand.alt_allele_count:
                    totals[qual] += count * occurrences
        return totals

    def get_export_data(self) -> BasecallErrorContextObservationExportData:
        """Flatten the aggregated patterns for model fitting.

        Quality levels are those seen in reference evidence; a level seen only
        in alternate evidence is appended with a reference count of zero.
        """
        export_data = BasecallErrorContextObservationExportData()

        ref_levels = set(self.ref_allele_basecall_error_phred_probs)
        alt_only_levels = set(self._alt_quality_totals()) - ref_levels
        if alt_only_levels:
            logger.warning(
                f"Basecall quality levels {sorted(alt_only_levels)} occur only in alternate evidence"
            )

        levels = sorted(ref_levels | alt_only_levels)
        qual_index = {qual: index for index, qual in enumerate(levels)}
        export_data.alt_allele_basecall_error_phred_prob_levels = levels
        export_data.ref_count = [self.ref_allele_basecall_error_phred_probs.get(qual, 0) for qual in levels]

        def to_export_strand(strand: StrandBasecallCounts) -> BasecallErrorContextObservationExportStrandObservation:
            alt_counts = [0] * len(levels)
            for qual, count in strand.alt_allele_count:
                alt_counts[qual_index[qual]] = count
            return BasecallErrorContextObservationExportStrandObservation(
                strand.ref_allele_count, tuple(alt_counts)
            )

        for pattern, occurrences in self.data.items():
            export_pattern = BasecallErrorContextObservationExportObservation(
                to_export_strand(pattern.strand0), to_export_strand(pattern.strand1)
            )
            if export_pattern in export_data.observations:
                msg = "two observation patterns flattened to the same export key"
                raise InternalConsistencyError(msg, {"pattern": str(export_pattern)})
            export_data.observations[export_pattern] = occurrences

        return export_data

    def dump(self, stream: TextIO) -> None:
        tag = "base-error"
        key_count = len(self.data)
        stream.write(f"{tag}KeyCount: {key_count}\n")

        ref_only_key_count = 0
        alt_only_key_count = 0
        total_observations = 0
        total_by_depth: Counter = Counter()
        for pattern, occurrences in self.data.items():
            total_observations += occurrences
            total_by_depth[pattern.depth()] += occurrences
            if not pattern.strand0.has_alt and not pattern.strand1.has_alt:
                ref_only_key_count += 1
            if pattern.strand0.ref_allele_count == 0 and pattern.strand1.ref_allele_count == 0:
                alt_only_key_count += 1

        stream.write(f"{tag}RefOnlyKeyCount: {ref_only_key_count}\n")
        stream.write(f"{tag}AltOnlyKeyCount: {alt_only_key_count}\n")
        stream.write(f"{tag}TotalObservations: {total_observations}\n")
        stream.write(f"{tag}MeanKeyOccupancy: {safe_frac(total_observations, key_count)}\n")

        total_ref = self.ref_allele_basecall_error_phred_probs
        total_alt = self._alt_quality_totals()
        stream.write(f"{tag}Qval\tTotalRef\tTotalAlt\n")
        for qual in sorted(set(total_ref) | set(total_alt)):
            stream.write(f"{tag}Q{qual}\t{total_ref.get(qual, 0)}\t{total_alt.get(qual, 0)}\n")

        for depth in sorted(total_by_depth):
            stream.write(f"DEPTH: {depth}\t{total_by_depth[depth]}\n")


class BasecallErrorData:
    """Observation data plus site skip tallies for one context."""

    def __init__(self) -> None:
        self.counts = BasecallErrorContextObservationData()
        self.excluded_region_skipped = 0
        self.depth_skipped = 0
        self.empty_skipped = 0
        self.noise_skipped = 0

    def merge(self, other: "BasecallErrorData") -> None:
        self.counts.merge(other.counts)
        self.excluded_region_skipped += other.excluded_region_skipped
        self.depth_skipped += other.depth_skipped
        self.empty_skipped += other.empty_skipped
        self.noise_skipped += other.noise_skipped

    def copy(self) -> "BasecallErrorData":
        duplicate = BasecallErrorData()
        duplicate.merge(self)
        return duplicate

    def dump(self, stream: TextIO) -> None:
        stream.write(f"excludedRegionSkippedCount: {self.excluded_region_skipped}\n")
        stream.write(f"depthSkippedCount: {self.depth_skipped}\n")
        stream.write(f"emptySkippedCount: {self.empty_skipped}\n")
        stream.write(f"noiseSkippedCount: {self.noise_skipped}\n")
        self.counts.dump(stream)


class BasecallErrorCounts:
    """Basecall error observations for all contexts seen by one shard.

    Each worker owns its own instance; instances are combined with merge().
    """

    def __init__(self) -> None:
        self._data: Dict[BasecallErrorContext, BasecallErrorData] = {}

    def get_or_insert(self, context: BasecallErrorContext) -> BasecallErrorData:
        """Return the context's accumulator, creating an empty one if needed."""
        return get_or_insert(self._data, context, BasecallErrorData)

    def contexts(self) -> List[BasecallErrorContext]:
        return sorted(self._data)

    def __getitem__(self, context: BasecallErrorContext) -> BasecallErrorData:
        return self._data[context]

    def __len__(self) -> int:
        return len(self._data)

    def add_site_observation(
        self,
        context: BasecallErrorContext,
        site_observation: BasecallErrorContextInputObservation,
    ) -> None:
        self.get_or_insert(context).counts.add_observation(site_observation)

    def add_excluded_region_skip(self, context: BasecallErrorContext) -> None:
        self.get_or_insert(context).excluded_region_skipped += 1

    def add_depth_skip(self, context: BasecallErrorContext) -> None:
        self.get_or_insert(context).depth_skipped += 1

    def add_empty_skip(self, context: BasecallErrorContext) -> None:
        self.get_or_insert(context).empty_skipped += 1

    def add_noise_skip(self, context: BasecallErrorContext) -> None:
        self.get_or_insert(context).noise_skipped += 1

    def merge(self, other: "BasecallErrorCounts") -> None:
        for context, data in other._data.items():
            if context in self._data:
                self._data[context].merge(data)
            else:
                self._data[context] = data.copy()

    @time_it("basecall error export")
    def get_export_data(self) -> Dict[BasecallErrorContext, BasecallErrorContextObservationExportData]:
        return {context: self._data[context].counts.get_export_data() for context in self.contexts()}

    def dump(self, stream: TextIO) -> None:
        stream.write("BasecallErrorCounts DUMP_ON\n")
        stream.write(f"Total Basecall Contexts: {len(self._data)}\n")
        for context in self.contexts():
            stream.write(f"Basecall Context: {context}\n")
            self._data[context].dump(stream)
        stream.write("BasecallErrorCounts DUMP_OFF\n")


def merge_all(shards: Iterable[BasecallErrorCounts]) -> BasecallErrorCounts:
    """Reduce shard accumulators into a new aggregate."""
    total = BasecallErrorCounts()
    shard_count = 0
    for shard in shards:
        total.merge(shard)
        shard_count += 1
    logger.info(f"Merged {shard_count} basecall error shards into {len(total)} contexts")
    return total


def observation_from_pileup(pileup: SnpPosInfo) -> BasecallErrorContextInputObservation:
    """Split a site pileup into reference and alternate basecall counts.

    Raises ValueError for a non-ACGT reference base; skip those sites upstream.
    """
    ref_base_id = BaseId.from_base(pileup.ref_base)
    obs = BasecallErrorContextInputObservation()
    for call in pileup.calls:
        if call.base_id == ref_base_id:
            obs.add_ref_count(call.is_fwd_strand, call.qscore)
        else:
            obs.add_alt_count(call.is_fwd_strand, call.qscore)
    return obs
