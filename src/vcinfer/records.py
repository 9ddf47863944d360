"""Locus and allele records exchanged with pileup and VCF collaborators."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, List, Optional

from .filters import FilterKeeper
from .stats import safe_frac


class BaseId(IntEnum):
    A = 0
    C = 1
    G = 2
    T = 3


def base_to_id(base: str) -> BaseId:
    """Map a nucleotide character to its ``BaseId``."""
    try:
        return BaseId[base.upper()]
    except KeyError:
        raise ValueError(f"unsupported base: {base!r}") from None


class IndelType(IntEnum):
    """Direction of a simple indel; the enum value indexes rate tables."""
    INSERT = 0
    DELETE = 1

    def reverse(self) -> "IndelType":
        return IndelType.INSERT if self is IndelType.DELETE else IndelType.DELETE


@dataclass(frozen=True)
class BaseCall:
    """One read's base call at a pileup position."""
    base_id: BaseId
    is_fwd_strand: bool
    qscore: int = 30


@dataclass
class SampleInfo:
    """Per-sample values set while scoring a locus."""
    gq: int = 0
    filters: FilterKeeper = field(default_factory=FilterKeeper)


@dataclass
class SiteAlleleInfo:
    """A single-base allele reported at a site."""
    total_depth: int
    allele_count: int
    base_id: BaseId
    gqx: int = 0
    strand_bias: float = 0.0

    @property
    def variant_frequency(self) -> float:
        return safe_frac(self.allele_count, self.total_depth)


@dataclass
class SiteLocusInfo:
    """Pileup summary for one reference position."""
    ref: str
    allele_observation_counts: Dict[BaseId, int]
    spanning_deletions: int = 0
    samples: List[SampleInfo] = field(default_factory=lambda: [SampleInfo()])
    is_forced_output: bool = False
    alt_alleles: List[SiteAlleleInfo] = field(default_factory=list)
    is_snp: bool = False
    any_variant_allele_quality: int = 0

    def allele_count(self, base_id: BaseId) -> int:
        return self.allele_observation_counts.get(BaseId(base_id), 0)

    @property
    def total_depth(self) -> int:
        return self.spanning_deletions + sum(self.allele_count(b) for b in BaseId)


@dataclass(frozen=True)
class IndelKey:
    """Indel identity by its inserted and deleted lengths.

    Pure insertions or deletions are simple; anything replacing bases with
    other bases is complex.
    """
    pos: int
    insert_length: int = 0
    delete_length: int = 0
    insert_sequence: str = ""

    @property
    def indel_type(self) -> Optional[IndelType]:
        if self.insert_length > 0 and self.delete_length == 0:
            return IndelType.INSERT
        if self.delete_length > 0 and self.insert_length == 0:
            return IndelType.DELETE
        return None

    @property
    def is_simple(self) -> bool:
        return self.indel_type is not None


@dataclass(frozen=True)
class IndelReportInfo:
    """Repeat context of an indel allele."""
    repeat_unit_length: int = 0
    ref_repeat_count: int = 0
    indel_repeat_count: int = 0
    repeat_unit: str = ""


@dataclass(frozen=True)
class IndelSampleReportInfo:
    """Read support for an indel in one sample."""
    n_confident_indel_reads: int = 0
    n_confident_ref_reads: int = 0
    n_confident_alt_reads: int = 0

    @property
    def total_confident_reads(self) -> int:
        return self.n_confident_indel_reads + self.n_confident_ref_reads + self.n_confident_alt_reads


@dataclass(frozen=True)
class IndelData:
    """Caller-side state attached to an indel candidate."""
    is_forced_output: bool = False


@dataclass
class IndelAlleleInfo:
    """An indel allele reported at a locus."""
    total_depth: int
    allele_count: int
    indel_key: IndelKey
    report_info: IndelReportInfo
    sample_report_info: IndelSampleReportInfo
    gqx: int = 0
    ref_to_indel_error_prob: Optional[float] = None
    indel_to_ref_error_prob: Optional[float] = None

    @property
    def variant_frequency(self) -> float:
        return safe_frac(self.allele_count, self.total_depth)


@dataclass
class IndelLocusInfo:
    """Indel locus accumulating alleles as they are called."""
    samples: List[SampleInfo] = field(default_factory=lambda: [SampleInfo()])
    alt_alleles: List[IndelAlleleInfo] = field(default_factory=list)
    is_het: bool = False
    any_variant_allele_quality: int = 0
