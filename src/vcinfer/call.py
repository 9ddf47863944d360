"""Continuous-frequency allele calling and scoring."""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from .config import CallerConfig
from .indel_error_model import IndelErrorModel
from .records import (
    BaseCall,
    BaseId,
    IndelAlleleInfo,
    IndelData,
    IndelKey,
    IndelLocusInfo,
    IndelReportInfo,
    IndelSampleReportInfo,
    SiteAlleleInfo,
    SiteLocusInfo,
    base_to_id,
)
from .stats import binomial_log_likelihood, error_prob_to_qphred, poisson_pvalue, safe_frac

logger = logging.getLogger(__name__)

DEFAULT_MAX_QSCORE = 40


def quality_score(
    observed_count: int,
    coverage: int,
    estimated_quality: float,
    max_score: int = DEFAULT_MAX_QSCORE,
) -> int:
    """Phred-scaled significance of ``observed_count`` calls among ``coverage``.

    A p-value that underflows to zero saturates at ``max_score``. With no
    observations the p-value is 1.0, which scores 0.
    """
    p_value = poisson_pvalue(observed_count, coverage, estimated_quality)
    if p_value <= 0:
        return max_score
    return min(max_score, error_prob_to_qphred(p_value))


def strand_bias(
    fwd_alt: int,
    rev_alt: int,
    fwd_other: int,
    rev_other: int,
    noise: Optional[float] = None,
) -> float:
    """Log-likelihood excess of a single-strand explanation of the alt calls.

    ``L_both`` is the binomial likelihood of all alt calls under the pooled
    alt frequency; ``L_fwd`` and ``L_rev`` score each strand at its own alt
    frequency. The statistic is ``max(log L_fwd, log L_rev) - log L_both``,
    so alt support confined to one strand scores high and evenly split
    support scores near zero. Scoring the single-strand terms at the pooled
    frequency instead would rank one-sided support below balanced support.

    ``noise`` is accepted for interface compatibility; the two-term
    statistic does not use a noise floor.
    """
    fwd_total = fwd_alt + fwd_other
    rev_total = rev_alt + rev_other
    total = fwd_total + rev_total
    if total == 0 or fwd_alt + rev_alt == 0:
        return 0.0

    expected_vf = (fwd_alt + rev_alt) / total

    fwd = binomial_log_likelihood(fwd_total, fwd_alt, safe_frac(fwd_alt, fwd_total))
    rev = binomial_log_likelihood(rev_total, rev_alt, safe_frac(rev_alt, rev_total))
    both = binomial_log_likelihood(total, fwd_alt + rev_alt, expected_vf)
    return max(fwd, rev) - both


class ContinuousVariantCaller:
    """Reports every allele above a variant-frequency threshold.

    Args:
        config: Caller thresholds
        indel_model: Optional indel error model; when present each indel
            allele is annotated with its repeat-context error probabilities
    """

    def __init__(
        self,
        config: Optional[CallerConfig] = None,
        indel_model: Optional[IndelErrorModel] = None,
    ):
        self.config = config or CallerConfig()
        self.indel_model = indel_model

    def quality_score(self, observed_count: int, coverage: int) -> int:
        return quality_score(observed_count, coverage, self.config.min_qscore, self.config.max_qscore)

    def call_site(self, locus: SiteLocusInfo, base_calls: Iterable[BaseCall] = ()) -> SiteLocusInfo:
        """Score every base at a site and record the reportable alleles."""
        opt = self.config
        base_calls = list(base_calls)
        total_depth = locus.total_depth
        ref_base_id = base_to_id(locus.ref)

        for sample in locus.samples:
            sample.gq = 0

        def generate_allele_info(base_id: BaseId, is_forced_output: bool) -> None:
            count = locus.allele_count(base_id)
            vf = safe_frac(count, total_depth)
            if not (vf > opt.min_het_vf or is_forced_output):
                return

            allele = SiteAlleleInfo(total_depth, count, base_id)
            allele.gqx = self.quality_score(count, total_depth)
            for sample in locus.samples:
                sample.gq = max(sample.gq, allele.gqx)

            if base_id != ref_base_id:
                # any non-reference allele above threshold makes this a SNP site
                locus.is_snp = locus.is_snp or vf > opt.min_het_vf
                allele.strand_bias = self._site_strand_bias(base_calls, base_id)
            locus.alt_alleles.append(allele)

        for base_id in BaseId:
            generate_allele_info(base_id, locus.is_forced_output)
        if not locus.alt_alleles:
            # filters are attached to alleles, so always emit the reference
            logger.debug(f"No allele above vf {opt.min_het_vf} at depth {total_depth}, forcing reference")
            generate_allele_info(ref_base_id, True)

        locus.any_variant_allele_quality = max(
            [0] + [sample.gq for sample in locus.samples] + [a.gqx for a in locus.alt_alleles]
        )
        return locus

    def _site_strand_bias(self, base_calls: Iterable[BaseCall], base_id: BaseId) -> float:
        fwd_alt = rev_alt = fwd_other = rev_other = 0
        for call in base_calls:
            is_alt = call.base_id == base_id
            if call.is_fwd_strand:
                if is_alt:
                    fwd_alt += 1
                else:
                    fwd_other += 1
            elif is_alt:
                rev_alt += 1
            else:
                rev_other += 1
        return strand_bias(fwd_alt, rev_alt, fwd_other, rev_other, self.config.noise_floor)

    def call_indel(
        self,
        indel_key: IndelKey,
        indel_data: IndelData,
        report_info: IndelReportInfo,
        sample_report_info: IndelSampleReportInfo,
        locus: IndelLocusInfo,
    ) -> IndelLocusInfo:
        """Add an indel allele to ``locus`` if it clears the threshold."""
        opt = self.config
        total_reads = sample_report_info.total_confident_reads
        indel_reads = sample_report_info.n_confident_indel_reads
        vf = safe_frac(indel_reads, total_reads)

        if vf > opt.min_het_vf or indel_data.is_forced_output:
            allele = IndelAlleleInfo(total_reads, indel_reads, indel_key, report_info, sample_report_info)
            allele.gqx = self.quality_score(indel_reads, total_reads)
            if self.indel_model is not None:
                allele.ref_to_indel_error_prob, allele.indel_to_ref_error_prob = (
                    self.indel_model.get_indel_error_rate(indel_key, report_info)
                )
            for sample in locus.samples:
                sample.gq = max(sample.gq, allele.gqx)
            locus.alt_alleles.append(allele)

        if locus.alt_alleles:
            locus.is_het = (
                len(locus.alt_alleles) > 1
                or locus.alt_alleles[0].variant_frequency < (1.0 - opt.min_het_vf)
            )

        locus.any_variant_allele_quality = max(
            [0] + [sample.gq for sample in locus.samples] + [a.gqx for a in locus.alt_alleles]
        )
        return locus
