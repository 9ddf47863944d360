"""
Statistical primitives for continuous-frequency variant calling.

This module provides:
- Phred scale conversions
- Poisson-tail significance of an observed allele count
- Binomial log-likelihoods used by the strand bias statistic
"""

from __future__ import annotations

import math

from scipy import special, stats

from .exceptions import StatisticalError


def qphred_to_error_prob(qscore: float) -> float:
    """Convert a phred-scaled quality to an error probability."""
    return 10.0 ** (-qscore / 10.0)


def error_prob_to_qphred(prob: float) -> int:
    """Convert an error probability to the nearest integer phred score."""
    if prob <= 0:
        raise StatisticalError(f"cannot phred-scale non-positive probability {prob}")
    return int(math.floor(-10.0 * math.log10(prob) + 0.5))


def poisson_pvalue(observed_count: int, coverage: int, estimated_quality: float) -> float:
    """Probability of seeing at least ``observed_count`` error calls.

    Errors are modelled as Poisson with mean ``coverage * error_rate`` where
    the error rate comes from ``estimated_quality``. The upper Poisson tail
    equals the regularized lower incomplete gamma function P(k, lambda).
    No observations give a p-value of exactly 1.0.
    """
    if observed_count < 0 or coverage < 0:
        raise StatisticalError(
            "counts must be non-negative",
            {"observed_count": observed_count, "coverage": coverage},
        )
    if observed_count == 0:
        return 1.0

    error_rate = qphred_to_error_prob(estimated_quality)
    return float(special.gammainc(observed_count, coverage * error_rate))


def binomial_log_likelihood(trials: int, successes: int, prob: float) -> float:
    """Log binomial pmf, with zero trials treated as a certain outcome."""
    if trials == 0:
        return 0.0
    return float(stats.binom.logpmf(successes, trials, prob))


def safe_frac(numerator: float, denominator: float) -> float:
    """Ratio that evaluates to 0.0 for a zero denominator."""
    if denominator == 0:
        return 0.0
    return numerator / denominator


def log_space_linear_fit(x: float, x1: float, y1: float, x2: float, y2: float) -> float:
    """Evaluate the line through (x1, y1) and (x2, y2) at ``x``."""
    return ((y2 - y1) * x + (x2 * y1 - x1 * y2)) / (x2 - x1)

