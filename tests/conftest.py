"""
Test configuration and fixtures for vcinfer tests.
"""

import json

import pytest

from vcinfer.error_counts import (
    BasecallErrorContext,
    BasecallErrorContextInputObservation,
    BasecallErrorCounts,
)


def make_site(fwd_ref=None, rev_ref=None, fwd_alt=None, rev_alt=None):
    """Build a site tally from quality -> count mappings per strand."""
    obs = BasecallErrorContextInputObservation()
    for strand, counts in ((True, fwd_ref), (False, rev_ref)):
        for qual, count in (counts or {}).items():
            for _ in range(count):
                obs.add_ref_count(strand, qual)
    for strand, counts in ((True, fwd_alt), (False, rev_alt)):
        for qual, count in (counts or {}).items():
            for _ in range(count):
                obs.add_alt_count(strand, qual)
    return obs


@pytest.fixture
def homopolymer_context():
    return BasecallErrorContext(repeat_unit_length=1, repeat_count=5)


@pytest.fixture
def non_str_context():
    return BasecallErrorContext(repeat_unit_length=1, repeat_count=1)


@pytest.fixture
def populated_counts(homopolymer_context, non_str_context):
    """Error counts with a few sites in two contexts."""
    counts = BasecallErrorCounts()
    counts.add_site_observation(homopolymer_context, make_site({30: 3}, {30: 2}, {20: 1}))
    counts.add_site_observation(homopolymer_context, make_site({30: 4}, {30: 4}))
    counts.add_site_observation(non_str_context, make_site({35: 10}, {35: 9}, None, {35: 2}))
    counts.add_depth_skip(homopolymer_context)
    return counts


@pytest.fixture
def write_model_file(tmp_path):
    """Write a JSON indel model file and return its path."""
    def _write(payload, name="model.json"):
        path = tmp_path / name
        if isinstance(payload, str):
            path.write_text(payload, encoding="utf-8")
        else:
            path.write_text(json.dumps(payload), encoding="utf-8")
        return path
    return _write
