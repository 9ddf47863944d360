"""vcinfer: statistical core for continuous-frequency small variant calling."""

from __future__ import annotations

__version__ = "0.1.0"

# Error count aggregation
from .error_counts import (
    BasecallErrorContext,
    BasecallErrorContextInputObservation,
    BasecallErrorContextObservation,
    BasecallErrorCounts,
    SkipReason,
    StrandBasecallCounts,
    compress_int,
)

# Indel error rates
from .indel_error_model import (
    AdaptiveIndelErrorModel,
    IndelErrorModel,
    IndelErrorRateSet,
    load_indel_error_rates,
)

# Calling
from .call import ContinuousVariantCaller, quality_score, strand_bias
from .filters import FilterKeeper, VcfFilter

# Configuration
from .config import EngineConfig, load_config, dump_config
from .logging_config import setup_logging

__all__ = [
    "__version__",
    # Aggregation
    "BasecallErrorContext",
    "BasecallErrorContextInputObservation",
    "BasecallErrorContextObservation",
    "BasecallErrorCounts",
    "SkipReason",
    "StrandBasecallCounts",
    "compress_int",
    # Indel model
    "AdaptiveIndelErrorModel",
    "IndelErrorModel",
    "IndelErrorRateSet",
    "load_indel_error_rates",
    # Calling
    "ContinuousVariantCaller",
    "quality_score",
    "strand_bias",
    "FilterKeeper",
    "VcfFilter",
    # Configuration
    "EngineConfig",
    "load_config",
    "dump_config",
    "setup_logging",
]
