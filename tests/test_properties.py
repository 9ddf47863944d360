"""
Property-based tests for aggregation and rate model invariants.
"""

import math

from hypothesis import given, settings, strategies as st

from conftest import make_site
from vcinfer.call import quality_score, strand_bias
from vcinfer.error_counts import (
    BasecallErrorContext,
    BasecallErrorContextObservation,
    BasecallErrorCounts,
    StrandBasecallCounts,
    compress_int,
)
from vcinfer.indel_error_model import build_adaptive_default_rates, build_log_linear_rates
from vcinfer.records import IndelType

qualities = st.sampled_from([10, 20, 30, 40])
qual_counts = st.dictionaries(qualities, st.integers(min_value=1, max_value=200), max_size=3)
strand_counts = st.builds(
    StrandBasecallCounts.from_counts,
    st.integers(min_value=0, max_value=500),
    qual_counts,
)
contexts = st.builds(
    BasecallErrorContext,
    st.integers(min_value=1, max_value=2),
    st.integers(min_value=1, max_value=6),
)
sites = st.builds(make_site, qual_counts, qual_counts, qual_counts, qual_counts)
partitions = st.lists(st.tuples(contexts, sites), max_size=6)


def build_counts(observations):
    counts = BasecallErrorCounts()
    for context, site in observations:
        counts.add_site_observation(context, site)
    return counts


class TestCompressionProperties:
    """Test count compression invariants."""

    @given(value=st.integers(min_value=0, max_value=10**9), bits=st.integers(min_value=1, max_value=12))
    def test_idempotent(self, value, bits):
        once = compress_int(value, bits)
        assert compress_int(once, bits) == once

    @given(value=st.integers(min_value=1, max_value=10**9))
    def test_relative_error_bounded(self, value):
        assert abs(compress_int(value, 4) - value) / value <= 1 / 16

    @given(value=st.integers(min_value=0, max_value=10**6))
    def test_monotone(self, value):
        assert compress_int(value) <= compress_int(value + 1)


class TestPatternProperties:
    """Test canonical pattern invariants."""

    @given(s0=strand_counts, s1=strand_counts)
    def test_strand_swap_invariance(self, s0, s1):
        assert (BasecallErrorContextObservation.canonical(s0, s1)
                == BasecallErrorContextObservation.canonical(s1, s0))

    @given(s0=strand_counts, s1=strand_counts)
    def test_canonical_is_fixed_point(self, s0, s1):
        pattern = BasecallErrorContextObservation.canonical(s0, s1)
        assert pattern.canonicalize() == pattern
        assert pattern.strand0 >= pattern.strand1


class TestMergeProperties:
    """Test merge algebra over partitions."""

    @given(a=partitions, b=partitions)
    @settings(max_examples=50, deadline=None)
    def test_commutative(self, a, b):
        assert build_counts(a).merge(build_counts(b)) == build_counts(b).merge(build_counts(a))

    @given(a=partitions, b=partitions, c=partitions)
    @settings(max_examples=50, deadline=None)
    def test_associative(self, a, b, c):
        left = build_counts(a).merge(build_counts(b)).merge(build_counts(c))
        right = build_counts(a).merge(build_counts(b).merge(build_counts(c)))
        assert left == right

    @given(a=partitions, b=partitions)
    @settings(max_examples=50, deadline=None)
    def test_partition_independent(self, a, b):
        assert build_counts(a).merge(build_counts(b)) == build_counts(a + b)


class TestScoringProperties:
    """Test scoring bounds."""

    @given(
        observed=st.integers(min_value=0, max_value=5000),
        extra=st.integers(min_value=0, max_value=5000),
        quality=st.integers(min_value=1, max_value=60),
    )
    @settings(deadline=None)
    def test_quality_score_bounds(self, observed, extra, quality):
        score = quality_score(observed, observed + extra, quality)
        assert 0 <= score <= 40

    @given(counts=st.tuples(*[st.integers(min_value=0, max_value=300)] * 4))
    @settings(deadline=None)
    def test_strand_bias_finite_and_strand_symmetric(self, counts):
        fwd_alt, rev_alt, fwd_other, rev_other = counts
        value = strand_bias(fwd_alt, rev_alt, fwd_other, rev_other)
        assert math.isfinite(value)
        assert value == strand_bias(rev_alt, fwd_alt, rev_other, fwd_other)


class TestRateModelProperties:
    """Test monotone rate ramps."""

    @given(repeat_count=st.integers(min_value=1, max_value=40))
    def test_log_linear_monotone(self, repeat_count):
        rates = build_log_linear_rates()
        rates.finalize_rates()
        assert (rates.get_rate(1, repeat_count, IndelType.INSERT)
                <= rates.get_rate(1, repeat_count + 1, IndelType.INSERT))

    @given(
        pattern_size=st.sampled_from([1, 2]),
        repeat_count=st.integers(min_value=2, max_value=40),
    )
    def test_adaptive_monotone_above_non_str(self, pattern_size, repeat_count):
        rates = build_adaptive_default_rates()
        rates.finalize_rates()
        assert (rates.get_rate(pattern_size, repeat_count, IndelType.DELETE)
                <= rates.get_rate(pattern_size, repeat_count + 1, IndelType.DELETE))
