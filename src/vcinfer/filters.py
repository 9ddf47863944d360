"""
VCF filter labels for called variants.

The set of filters is closed; each record keeps a set of raised filters and
renders them as a semicolon-joined label list, or ``PASS`` when none apply.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Iterator, Set

from .exceptions import InvariantViolationError

PASS_LABEL = "PASS"


class VcfFilter(IntEnum):
    # SNVs and indels
    HIGH_DEPTH = 0
    LOW_EVS = 1
    # SNVs only
    BC_NOISE = 2
    SPAN_DEL = 3
    QSS_REF = 4
    # indels only
    REPEAT = 5
    IHPOL = 6
    INDEL_BC_NOISE = 7
    QSI_REF = 8
    NONREF = 9

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS = {
    VcfFilter.HIGH_DEPTH: "HighDepth",
    VcfFilter.LOW_EVS: "LowEVS",
    VcfFilter.BC_NOISE: "BCNoise",
    VcfFilter.SPAN_DEL: "SpanDel",
    VcfFilter.QSS_REF: "QSS_ref",
    VcfFilter.REPEAT: "Repeat",
    VcfFilter.IHPOL: "iHpol",
    VcfFilter.INDEL_BC_NOISE: "BCNoise",
    VcfFilter.QSI_REF: "QSI_ref",
    VcfFilter.NONREF: "Nonref",
}


class FilterKeeper:
    """Filters raised on a single record."""

    def __init__(self) -> None:
        self._filters: Set[VcfFilter] = set()

    def set(self, vcf_filter: VcfFilter) -> None:
        vcf_filter = VcfFilter(vcf_filter)
        if vcf_filter in self._filters:
            raise InvariantViolationError(
                f"filter {vcf_filter.name} set twice on one record",
                {"filter": vcf_filter.name},
            )
        self._filters.add(vcf_filter)

    def test(self, vcf_filter: VcfFilter) -> bool:
        return VcfFilter(vcf_filter) in self._filters

    def none(self) -> bool:
        return not self._filters

    def clear(self) -> None:
        self._filters.clear()

    def __iter__(self) -> Iterator[VcfFilter]:
        return iter(sorted(self._filters))

    def __repr__(self) -> str:
        return f"FilterKeeper({self.render()!r})"

    def render(self) -> str:
        if not self._filters:
            return PASS_LABEL
        return ";".join(f.label for f in self)
