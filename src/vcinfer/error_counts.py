"""
Basecall error count aggregation.

Per-site basecall observations are folded into a histogram of quantized,
strand-canonical observation patterns for each repeat context as soon as
the site is committed, so memory is bounded by the number of distinct
patterns rather than by genome size. Aggregators from independent genome
partitions combine with ``merge``, which is associative and commutative
with the empty aggregator as identity.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, TextIO, Tuple, Union

import numpy as np
import pandas as pd

from .config import AggregationConfig
from .exceptions import InvariantViolationError
from .logging_config import time_it
from .schemas import DEPTH_HISTOGRAM_SCHEMA, QUALITY_MARGINAL_SCHEMA
from .stats import safe_frac

logger = logging.getLogger(__name__)

DEFAULT_COMPRESSION_BITS = 4
STRAND_COUNT = 2

QualCounts = Tuple[Tuple[int, int], ...]


def compress_int(value: int, bit_count: int = DEFAULT_COMPRESSION_BITS) -> int:
    """Round ``value`` to its ``bit_count`` most significant bits.

    Values that fit in ``bit_count`` bits are returned unchanged. Larger
    values are rounded to nearest on the retained bits and the lower bits
    are zeroed. Applying the function twice gives the same result as
    applying it once.
    """
    if value < 0:
        raise InvariantViolationError(f"cannot compress negative count {value}")
    total_bits = int(value).bit_length()
    if total_bits <= bit_count:
        return int(value)
    shift = total_bits - bit_count
    return ((int(value) + (1 << (shift - 1))) >> shift) << shift


def _check_counts(counts: Mapping[int, int]) -> None:
    for qual, count in counts.items():
        if count < 0:
            raise InvariantViolationError(
                f"negative basecall count {count} at quality {qual}",
                {"quality": qual, "count": count},
            )


@dataclass(frozen=True, order=True)
class BasecallErrorContext:
    """Repeat context of a genomic position."""
    repeat_unit_length: int = 1
    repeat_count: int = 1

    def __str__(self) -> str:
        return f"{self.repeat_unit_length}x{self.repeat_count}"


ContextLike = Union[BasecallErrorContext, Tuple[int, int]]


def _as_context(context: ContextLike) -> BasecallErrorContext:
    if isinstance(context, BasecallErrorContext):
        return context
    return BasecallErrorContext(*context)


class SkipReason(Enum):
    EXCLUDED_REGION = "excludedRegion"
    LOW_DEPTH = "lowDepth"
    EMPTY_SITE = "emptySite"
    HIGH_NOISE = "highNoise"


_SKIP_DUMP_LABELS = {
    SkipReason.EXCLUDED_REGION: "excludedRegionSkippedCount",
    SkipReason.LOW_DEPTH: "depthSkippedCount",
    SkipReason.EMPTY_SITE: "emptySkippedCount",
    SkipReason.HIGH_NOISE: "noiseSkippedCount",
}


@dataclass(frozen=True, order=True)
class StrandBasecallCounts:
    """Reference count and quality-resolved alt counts for one strand.

    Field order defines the total ordering used for strand canonicalization:
    reference count first, then the sorted (quality, count) alt items.
    """
    ref_allele_count: int = 0
    alt_allele_count: QualCounts = ()

    @classmethod
    def from_counts(cls, ref_allele_count: int, alt_allele_count: Mapping[int, int]) -> "StrandBasecallCounts":
        if ref_allele_count < 0:
            raise InvariantViolationError(f"negative reference count {ref_allele_count}")
        _check_counts(alt_allele_count)
        alt = tuple(sorted((int(q), int(c)) for q, c in alt_allele_count.items() if c > 0))
        return cls(int(ref_allele_count), alt)

    @property
    def alt_counts(self) -> Dict[int, int]:
        return dict(self.alt_allele_count)

    @property
    def has_alt(self) -> bool:
        return bool(self.alt_allele_count)

    @property
    def depth(self) -> int:
        return self.ref_allele_count + sum(count for _, count in self.alt_allele_count)

    def compressed(self, bit_count: int = DEFAULT_COMPRESSION_BITS) -> "StrandBasecallCounts":
        return StrandBasecallCounts(
            compress_int(self.ref_allele_count, bit_count),
            tuple((q, compress_int(c, bit_count)) for q, c in self.alt_allele_count),
        )

    def __str__(self) -> str:
        alts = ",".join(f"{q}:{c}" for q, c in self.alt_allele_count)
        return f"REF:\t{self.ref_allele_count}\tALT:\t{alts}"


@dataclass(frozen=True, order=True)
class BasecallErrorContextObservation:
    """Two-strand observation pattern, hashable for use as a histogram key."""
    strand0: StrandBasecallCounts = StrandBasecallCounts()
    strand1: StrandBasecallCounts = StrandBasecallCounts()

    @classmethod
    def canonical(
        cls,
        strand0: StrandBasecallCounts,
        strand1: StrandBasecallCounts,
        bit_count: int = DEFAULT_COMPRESSION_BITS,
    ) -> "BasecallErrorContextObservation":
        """Quantize and order a strand pair.

        With no alt evidence on either strand, strand information carries
        nothing for error fitting, so all reference counts move to strand0.
        """
        if not strand0.has_alt and not strand1.has_alt:
            strand0 = StrandBasecallCounts(strand0.ref_allele_count + strand1.ref_allele_count)
            strand1 = StrandBasecallCounts()

        strand0 = strand0.compressed(bit_count)
        strand1 = strand1.compressed(bit_count)
        if strand0 < strand1:
            strand0, strand1 = strand1, strand0
        return cls(strand0, strand1)

    def canonicalize(self, bit_count: int = DEFAULT_COMPRESSION_BITS) -> "BasecallErrorContextObservation":
        return self.canonical(self.strand0, self.strand1, bit_count)

    @property
    def strands(self) -> Tuple[StrandBasecallCounts, StrandBasecallCounts]:
        return (self.strand0, self.strand1)

    @property
    def depth(self) -> int:
        return self.strand0.depth + self.strand1.depth


@dataclass
class BasecallErrorContextInputObservation:
    """Raw quality-resolved tallies for one site, before compression.

    Strand index 0 is the forward strand.
    """
    ref: List[Counter] = field(default_factory=lambda: [Counter(), Counter()])
    alt: List[Counter] = field(default_factory=lambda: [Counter(), Counter()])

    @staticmethod
    def _strand_index(is_fwd_strand: bool) -> int:
        return 0 if is_fwd_strand else 1

    def add_ref_count(self, is_fwd_strand: bool, basecall_error_phred_prob: int) -> None:
        self.ref[self._strand_index(is_fwd_strand)][basecall_error_phred_prob] += 1

    def add_alt_count(self, is_fwd_strand: bool, basecall_error_phred_prob: int) -> None:
        self.alt[self._strand_index(is_fwd_strand)][basecall_error_phred_prob] += 1

    def is_empty(self) -> bool:
        return not any(sum(c.values()) for c in self.ref + self.alt)

    def to_strand_counts(self) -> Tuple[StrandBasecallCounts, StrandBasecallCounts]:
        """Strand summaries with reference qualities dropped."""
        strands = []
        for strand_index in range(STRAND_COUNT):
            _check_counts(self.ref[strand_index])
            ref_total = sum(self.ref[strand_index].values())
            strands.append(StrandBasecallCounts.from_counts(ref_total, self.alt[strand_index]))
        return strands[0], strands[1]


@dataclass(frozen=True)
class ExportStrandObservation:
    """Strand counts with alt counts aligned to the exported quality levels."""
    ref_allele_count: int
    alt_allele_count: Tuple[int, ...]

    @property
    def alt_vector(self) -> np.ndarray:
        return np.asarray(self.alt_allele_count, dtype=np.int64)


@dataclass(frozen=True)
class ExportObservation:
    strand0: ExportStrandObservation
    strand1: ExportStrandObservation


@dataclass
class BasecallErrorContextObservationExportData:
    """Tabular form of one context's statistics, as consumed by rate fitting."""
    quality_levels: np.ndarray
    ref_counts: np.ndarray
    observations: Dict[ExportObservation, int]

    def pattern_arrays(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Dense arrays over patterns in deterministic order.

        Returns:
            (ref, alt, occurrences) with shapes (n, 2), (n, 2, n_levels), (n,)
        """
        keys = sorted(
            self.observations,
            key=lambda o: (o.strand0.ref_allele_count, o.strand0.alt_allele_count,
                           o.strand1.ref_allele_count, o.strand1.alt_allele_count),
        )
        n_levels = len(self.quality_levels)
        ref = np.zeros((len(keys), STRAND_COUNT), dtype=np.int64)
        alt = np.zeros((len(keys), STRAND_COUNT, n_levels), dtype=np.int64)
        occurrences = np.zeros(len(keys), dtype=np.int64)
        for i, key in enumerate(keys):
            for s, strand in enumerate((key.strand0, key.strand1)):
                ref[i, s] = strand.ref_allele_count
                alt[i, s, :] = strand.alt_vector
            occurrences[i] = self.observations[key]
        return ref, alt, occurrences


@dataclass
class BasecallErrorContextObservationData:
    """Pattern histogram plus quality-resolved reference totals for one context."""
    data: Counter = field(default_factory=Counter)
    ref_quality_counts: Counter = field(default_factory=Counter)

    def add_observation(
        self,
        obs: BasecallErrorContextInputObservation,
        bit_count: int = DEFAULT_COMPRESSION_BITS,
    ) -> BasecallErrorContextObservation:
        for strand_refs in obs.ref:
            _check_counts(strand_refs)
            self.ref_quality_counts.update(strand_refs)
        # Counter.update keeps zero entries
        self.ref_quality_counts = +self.ref_quality_counts

        strand0, strand1 = obs.to_strand_counts()
        pattern = BasecallErrorContextObservation.canonical(strand0, strand1, bit_count)
        self.data[pattern] += 1
        return pattern

    def merge(self, other: "BasecallErrorContextObservationData") -> None:
        self.data.update(other.data)
        self.ref_quality_counts.update(other.ref_quality_counts)

    @property
    def total_observations(self) -> int:
        return sum(self.data.values())

    def alt_quality_counts(self) -> Counter:
        total_alt = Counter()
        for pattern, obs_count in self.data.items():
            for strand in pattern.strands:
                for qual, count in strand.alt_allele_count:
                    total_alt[qual] += count * obs_count
        return total_alt

    def depth_counts(self) -> Counter:
        by_depth = Counter()
        for pattern, obs_count in self.data.items():
            by_depth[pattern.depth] += obs_count
        return by_depth

    def export_data(self) -> BasecallErrorContextObservationExportData:
        quality_levels = sorted(set(self.ref_quality_counts) | set(self.alt_quality_counts()))
        qual_index = {qual: i for i, qual in enumerate(quality_levels)}
        ref_counts = np.array([self.ref_quality_counts.get(q, 0) for q in quality_levels], dtype=np.int64)

        def export_strand(strand: StrandBasecallCounts) -> ExportStrandObservation:
            alt = [0] * len(quality_levels)
            for qual, count in strand.alt_allele_count:
                alt[qual_index[qual]] = count
            return ExportStrandObservation(strand.ref_allele_count, tuple(alt))

        observations: Dict[ExportObservation, int] = {}
        for pattern in sorted(self.data):
            key = ExportObservation(export_strand(pattern.strand0), export_strand(pattern.strand1))
            if key in observations:
                raise InvariantViolationError(
                    "distinct observation patterns collided on export",
                    {"pattern": str(key)},
                )
            observations[key] = self.data[pattern]

        return BasecallErrorContextObservationExportData(
            quality_levels=np.array(quality_levels, dtype=np.int64),
            ref_counts=ref_counts,
            observations=observations,
        )

    def quality_marginals(self) -> pd.DataFrame:
        total_alt = self.alt_quality_counts()
        quals = sorted(set(self.ref_quality_counts) | set(total_alt))
        frame = pd.DataFrame(
            {
                "quality": pd.Series(quals, dtype="int64"),
                "total_ref": pd.Series([self.ref_quality_counts.get(q, 0) for q in quals], dtype="int64"),
                "total_alt": pd.Series([total_alt.get(q, 0) for q in quals], dtype="int64"),
            }
        )
        QUALITY_MARGINAL_SCHEMA.validate(frame)
        return frame

    def depth_histogram(self) -> pd.DataFrame:
        by_depth = self.depth_counts()
        depths = sorted(by_depth)
        frame = pd.DataFrame(
            {
                "depth": pd.Series(depths, dtype="int64"),
                "observations": pd.Series([by_depth[d] for d in depths], dtype="int64"),
            }
        )
        DEPTH_HISTOGRAM_SCHEMA.validate(frame)
        return frame

    def dump(self, os: TextIO) -> None:
        tag = "base-error"
        key_count = len(self.data)
        os.write(f"{tag}KeyCount: {key_count}\n")

        ref_only = sum(1 for p in self.data if not p.strand0.has_alt and not p.strand1.has_alt)
        alt_only = sum(
            1 for p in self.data
            if p.strand0.ref_allele_count == 0 and p.strand1.ref_allele_count == 0
        )
        total = self.total_observations
        os.write(f"{tag}RefOnlyKeyCount: {ref_only}\n")
        os.write(f"{tag}AltOnlyKeyCount: {alt_only}\n")
        os.write(f"{tag}TotalObservations: {total}\n")
        os.write(f"{tag}MeanKeyOccupancy: {safe_frac(total, key_count)}\n")

        os.write(f"{tag}Qval\tTotalRef\tTotalAlt\n")
        for row in self.quality_marginals().itertuples(index=False):
            os.write(f"{tag}Q{row.quality}\t{row.total_ref}\t{row.total_alt}\n")

        for row in self.depth_histogram().itertuples(index=False):
            os.write(f"DEPTH: {row.depth}\t{row.observations}\n")


@dataclass
class BasecallErrorData:
    """Statistics and skip counters for one context."""
    counts: BasecallErrorContextObservationData = field(default_factory=BasecallErrorContextObservationData)
    skipped: Counter = field(default_factory=Counter)

    def merge(self, other: "BasecallErrorData") -> None:
        self.counts.merge(other.counts)
        self.skipped.update(other.skipped)

    def skip_count(self, reason: SkipReason) -> int:
        return self.skipped.get(SkipReason(reason), 0)

    def dump(self, os: TextIO) -> None:
        for reason in SkipReason:
            os.write(f"{_SKIP_DUMP_LABELS[reason]}: {self.skip_count(reason)}\n")
        self.counts.dump(os)


class BasecallErrorCounts:
    """Basecall error statistics for all contexts seen by one scan.

    An instance is owned by a single scanning worker; partial results from
    different workers are combined with :meth:`merge`. Merging the same
    partition twice double counts it.
    """

    def __init__(self, compression_bits: int = DEFAULT_COMPRESSION_BITS):
        if compression_bits < 1:
            raise ValueError("compression_bits must be positive")
        self.compression_bits = compression_bits
        self._data: Dict[BasecallErrorContext, BasecallErrorData] = {}
        self._pending: Dict[BasecallErrorContext, BasecallErrorContextInputObservation] = {}

    @classmethod
    def from_config(cls, config: AggregationConfig) -> "BasecallErrorCounts":
        return cls(compression_bits=config.compression_bits)

    def _context_data(self, context: ContextLike) -> BasecallErrorData:
        context = _as_context(context)
        if context not in self._data:
            self._data[context] = BasecallErrorData()
        return self._data[context]

    def _pending_observation(self, context: ContextLike) -> BasecallErrorContextInputObservation:
        context = _as_context(context)
        if context not in self._pending:
            self._pending[context] = BasecallErrorContextInputObservation()
        return self._pending[context]

    # per-basecall tallies for the site currently being scanned

    def add_reference_observation(self, context: ContextLike, is_fwd_strand: bool, quality: int) -> None:
        self._pending_observation(context).add_ref_count(is_fwd_strand, quality)

    def add_alternate_observation(self, context: ContextLike, is_fwd_strand: bool, quality: int) -> None:
        self._pending_observation(context).add_alt_count(is_fwd_strand, quality)

    def commit_pending(self, context: ContextLike) -> Optional[BasecallErrorContextObservation]:
        """Commit and clear the tally built by the ``add_*_observation`` calls.

        An empty tally is recorded as an empty-site skip.
        """
        context = _as_context(context)
        obs = self._pending.pop(context, None)
        if obs is None or obs.is_empty():
            self.add_empty_skip(context)
            return None
        return self.add_site_observation(context, obs)

    def add_site_observation(
        self,
        context: ContextLike,
        site_observation: BasecallErrorContextInputObservation,
    ) -> BasecallErrorContextObservation:
        return self._context_data(context).counts.add_observation(site_observation, self.compression_bits)

    commit_site_observation = add_site_observation

    def record_skip(self, context: ContextLike, reason: Union[SkipReason, str]) -> None:
        self._context_data(context).skipped[SkipReason(reason)] += 1

    def add_excluded_region_skip(self, context: ContextLike) -> None:
        self.record_skip(context, SkipReason.EXCLUDED_REGION)

    def add_depth_skip(self, context: ContextLike) -> None:
        self.record_skip(context, SkipReason.LOW_DEPTH)

    def add_empty_skip(self, context: ContextLike) -> None:
        self.record_skip(context, SkipReason.EMPTY_SITE)

    def add_noise_skip(self, context: ContextLike) -> None:
        self.record_skip(context, SkipReason.HIGH_NOISE)

    def merge(self, other: "BasecallErrorCounts") -> "BasecallErrorCounts":
        """Add ``other``'s committed statistics into this instance."""
        if other.compression_bits != self.compression_bits:
            raise InvariantViolationError(
                "cannot merge error counts with different compression",
                {"self": self.compression_bits, "other": other.compression_bits},
            )
        for context, data in other._data.items():
            self._context_data(context).merge(data)
        logger.debug(f"Merged {len(other._data)} contexts, now {len(self._data)}")
        return self

    @classmethod
    def combine(
        cls,
        parts: Iterable["BasecallErrorCounts"],
        compression_bits: int = DEFAULT_COMPRESSION_BITS,
    ) -> "BasecallErrorCounts":
        merged = cls(compression_bits)
        for part in parts:
            merged.merge(part)
        return merged

    def contexts(self) -> List[BasecallErrorContext]:
        return sorted(self._data)

    def get_context_data(self, context: ContextLike) -> BasecallErrorData:
        context = _as_context(context)
        if context not in self._data:
            return BasecallErrorData()
        return self._data[context]

    def total_observations(self, context: ContextLike) -> int:
        return self.get_context_data(context).counts.total_observations

    def skip_count(self, context: ContextLike, reason: Union[SkipReason, str]) -> int:
        return self.get_context_data(context).skip_count(SkipReason(reason))

    def quality_marginals(self, context: ContextLike) -> pd.DataFrame:
        return self.get_context_data(context).counts.quality_marginals()

    def depth_histogram(self, context: ContextLike) -> pd.DataFrame:
        return self.get_context_data(context).counts.depth_histogram()

    @time_it("basecall error export")
    def export_for_fitting(self, context: ContextLike) -> BasecallErrorContextObservationExportData:
        return self.get_context_data(context).counts.export_data()

    def dump(self, os: TextIO) -> None:
        os.write("BasecallErrorCounts DUMP_ON\n")
        os.write(f"Total Basecall Contexts: {len(self._data)}\n")
        for context in self.contexts():
            os.write(f"Basecall Context: {context}\n")
            self._data[context].dump(os)
        os.write("BasecallErrorCounts DUMP_OFF\n")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BasecallErrorCounts):
            return NotImplemented
        return self.compression_bits == other.compression_bits and self._data == other._data

    def __repr__(self) -> str:
        return f"BasecallErrorCounts(contexts={len(self._data)}, bits={self.compression_bits})"
