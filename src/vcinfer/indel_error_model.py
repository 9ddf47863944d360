"""
Indel error rates indexed by repeat context.

Every rate source (the built-in log-linear ramp, the built-in adaptive
parameters, or a JSON parameter file) produces one ``IndelErrorRateSet``
which is locked after construction and queried through ``get_rate``.
"""

from __future__ import annotations

import json
import logging
import math
from bisect import bisect_right
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

import jsonschema
import pandas as pd

from .config import IndelModelConfig
from .exceptions import ConfigurationError, InvariantViolationError, ModelFileError
from .logging_config import PerformanceLogger
from .records import IndelKey, IndelReportInfo, IndelType
from .schemas import INDEL_RATE_TABLE_SCHEMA
from .stats import log_space_linear_fit

logger = logging.getLogger(__name__)

MODEL_SCHEMA_NAME = "indel_error_model.schema.json"
DEFAULT_LOW_REPEAT_COUNT = 2


@dataclass(frozen=True)
class IndelErrorRates:
    insert_rate: float
    delete_rate: float
    noisy_locus_rate: float = 0.0

    def rate(self, indel_type: IndelType) -> float:
        return self.insert_rate if indel_type == IndelType.INSERT else self.delete_rate


class IndelErrorRateSet:
    """Error rates keyed by (repeat pattern size, repeat count).

    Lookups require the set to be finalized, after which it can no longer
    change. A repeat count above (below) the tabulated range of its pattern
    size uses the largest (smallest) tabulated count, a count inside a gap
    uses the nearest smaller one, and an untabulated pattern size falls back
    to the pattern size 1 rates.
    """

    def __init__(self) -> None:
        self._rates: Dict[Tuple[int, int], IndelErrorRates] = {}
        self._counts_by_pattern: Dict[int, List[int]] = {}
        self._is_finalized = False

    @property
    def is_finalized(self) -> bool:
        return self._is_finalized

    def add_rate(
        self,
        repeat_pattern_size: int,
        repeat_count: int,
        insert_rate: float,
        delete_rate: float,
        noisy_locus_rate: float = 0.0,
    ) -> None:
        if self._is_finalized:
            raise InvariantViolationError("cannot add rates to a finalized indel error rate set")
        if repeat_pattern_size < 1 or repeat_count < 1:
            raise ValueError(
                f"repeat pattern size and count must be positive, got "
                f"({repeat_pattern_size}, {repeat_count})"
            )
        for name, value in (("insert", insert_rate), ("delete", delete_rate), ("noisy locus", noisy_locus_rate)):
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} rate {value} is not a probability")
        self._rates[(int(repeat_pattern_size), int(repeat_count))] = IndelErrorRates(
            float(insert_rate), float(delete_rate), float(noisy_locus_rate)
        )

    def finalize_rates(self) -> None:
        if not self._rates:
            raise InvariantViolationError("indel error rate set has no rates")
        counts: Dict[int, List[int]] = {}
        for pattern_size, repeat_count in self._rates:
            counts.setdefault(pattern_size, []).append(repeat_count)
        self._counts_by_pattern = {size: sorted(c) for size, c in counts.items()}
        self._is_finalized = True

    def _lookup(self, repeat_pattern_size: int, repeat_count: int) -> IndelErrorRates:
        if not self._is_finalized:
            raise InvariantViolationError("indel error rate set queried before finalization")
        if repeat_pattern_size not in self._counts_by_pattern:
            repeat_pattern_size = 1 if 1 in self._counts_by_pattern else min(self._counts_by_pattern)
            repeat_count = 1
        counts = self._counts_by_pattern[repeat_pattern_size]
        index = max(bisect_right(counts, repeat_count) - 1, 0)
        return self._rates[(repeat_pattern_size, counts[index])]

    def get_rate(self, repeat_pattern_size: int, repeat_count: int, indel_type: IndelType) -> float:
        return self._lookup(repeat_pattern_size, repeat_count).rate(indel_type)

    def get_noisy_locus_rate(self, repeat_pattern_size: int, repeat_count: int) -> float:
        return self._lookup(repeat_pattern_size, repeat_count).noisy_locus_rate

    def items(self) -> Iterator[Tuple[Tuple[int, int], IndelErrorRates]]:
        for key in sorted(self._rates):
            yield key, self._rates[key]

    def __len__(self) -> int:
        return len(self._rates)

    def to_json_dict(self) -> Dict[str, Any]:
        """Serialize to the parameter file format read by ``load_indel_error_rates``.

        The file format carries one indel rate per context, so insertion and
        deletion rates must agree.
        """
        motifs = []
        for (pattern_size, repeat_count), rates in self.items():
            if rates.insert_rate != rates.delete_rate:
                raise ValueError(
                    f"cannot serialize asymmetric indel rates at "
                    f"({pattern_size}, {repeat_count})"
                )
            motifs.append(
                {
                    "repeatPatternSize": pattern_size,
                    "repeatCount": repeat_count,
                    "indelRate": rates.insert_rate,
                    "noisyLocusRate": rates.noisy_locus_rate,
                }
            )
        return {"motifs": motifs}

    def write_json(self, path: str | Path) -> Path:
        path = Path(path)
        path.write_text(json.dumps(self.to_json_dict(), indent=2), encoding="utf-8")
        return path

    def to_frame(self) -> pd.DataFrame:
        rows = []
        for (pattern_size, repeat_count), rates in self.items():
            for indel_type in IndelType:
                rows.append(
                    {
                        "repeat_pattern_size": pattern_size,
                        "repeat_count": repeat_count,
                        "indel_type": indel_type.name,
                        "error_rate": rates.rate(indel_type),
                        "noisy_locus_rate": rates.noisy_locus_rate,
                    }
                )
        frame = pd.DataFrame(rows, columns=INDEL_RATE_TABLE_SCHEMA.schema.names())
        INDEL_RATE_TABLE_SCHEMA.validate(frame)
        return frame


@dataclass(frozen=True)
class AdaptiveIndelErrorModelLogParams:
    log_error_rate: float
    log_noisy_locus_rate: Optional[float] = None


@dataclass(frozen=True)
class AdaptiveIndelErrorModel:
    """Log-linear ramp between a low and a high repeat-count anchor."""
    repeat_pattern_size: int
    high_repeat_count: int
    low_log_params: AdaptiveIndelErrorModelLogParams
    high_log_params: AdaptiveIndelErrorModelLogParams
    low_repeat_count: int = DEFAULT_LOW_REPEAT_COUNT

    def _interpolate(self, repeat_count: int, low_log: float, high_log: float) -> float:
        if repeat_count <= 1:
            raise InvariantViolationError(
                f"adaptive indel rates are undefined for repeat count {repeat_count}"
            )
        if repeat_count >= self.high_repeat_count:
            return math.exp(high_log)
        if self.low_repeat_count == self.high_repeat_count:
            raise InvariantViolationError(
                "adaptive indel model anchors share the same repeat count",
                {"repeat_count": self.low_repeat_count},
            )
        return math.exp(
            log_space_linear_fit(
                repeat_count, self.low_repeat_count, low_log, self.high_repeat_count, high_log
            )
        )

    def error_rate(self, repeat_count: int) -> float:
        return self._interpolate(
            repeat_count, self.low_log_params.log_error_rate, self.high_log_params.log_error_rate
        )

    def noisy_locus_rate(self, repeat_count: int) -> float:
        low = self.low_log_params.log_noisy_locus_rate
        high = self.high_log_params.log_noisy_locus_rate
        if low is None or high is None:
            return 0.0
        return self._interpolate(repeat_count, low, high)


def build_log_linear_rates() -> IndelErrorRateSet:
    """Homopolymer-only log-linear ramp over repeat counts 1-16.

    Rates climb from 5e-5 at a single base to 3e-4 at an homopolymer of 16,
    with insertion and deletion rates equal.
    """
    log_low_error_rate = math.log(5e-5)
    log_high_error_rate = math.log(3e-4)
    # zero-indexed end of the ramp
    repeat_count_switch_point = 15
    repeating_pattern_size = 1

    rates = IndelErrorRateSet()
    for repeat_count in range(1, repeat_count_switch_point + 2):
        high_error_frac = min(repeat_count - 1, repeat_count_switch_point) / repeat_count_switch_point
        log_error_rate = (1.0 - high_error_frac) * log_low_error_rate + high_error_frac * log_high_error_rate
        error_rate = math.exp(log_error_rate)
        rates.add_rate(repeating_pattern_size, repeat_count, error_rate, error_rate)
    return rates


def build_adaptive_default_rates(low_repeat_count: int = DEFAULT_LOW_REPEAT_COUNT) -> IndelErrorRateSet:
    """Preset adaptive-model rates for homopolymers and dinucleotide repeats.

    A single non-STR rate is used at repeat count 1; above that each
    pattern size follows its own log-linear ramp up to a switch point.
    """
    non_str_rate = 8e-3
    presets = (
        # pattern size, low rate, high rate, switch point
        (1, 4.9e-3, 4.5e-2, 16),
        (2, 1.0e-2, 1.8e-2, 9),
    )

    rates = IndelErrorRateSet()
    for pattern_size, low_rate, high_rate, switch_point in presets:
        model = AdaptiveIndelErrorModel(
            repeat_pattern_size=pattern_size,
            high_repeat_count=switch_point,
            low_log_params=AdaptiveIndelErrorModelLogParams(math.log(low_rate)),
            high_log_params=AdaptiveIndelErrorModelLogParams(math.log(high_rate)),
            low_repeat_count=low_repeat_count,
        )
        rates.add_rate(pattern_size, 1, non_str_rate, non_str_rate)
        for repeat_count in range(low_repeat_count, switch_point + 1):
            error_rate = model.error_rate(repeat_count)
            rates.add_rate(pattern_size, repeat_count, error_rate, error_rate)
    return rates


BUILTIN_MODELS: Dict[str, Callable[[int], IndelErrorRateSet]] = {
    "logLinear": lambda low_repeat_count: build_log_linear_rates(),
    "adaptiveDefault": build_adaptive_default_rates,
}


def _load_model_schema() -> Dict[str, Any]:
    resource = resources.files("vcinfer.assets.schemas") / MODEL_SCHEMA_NAME
    return json.loads(resource.read_text(encoding="utf-8"))


def rates_from_json_dict(payload: Any, model_filename: str = "<memory>") -> IndelErrorRateSet:
    """Build an unfinalized rate set from a parsed parameter file."""
    if not isinstance(payload, dict) or not payload.get("motifs"):
        raise ModelFileError(f"no motifs in model file '{model_filename}'", model_filename)

    try:
        jsonschema.validate(payload, _load_model_schema())
    except jsonschema.ValidationError as exc:
        raise ModelFileError(
            f"Malformed indel error model file '{model_filename}': {exc.message}", model_filename
        ) from exc

    rates = IndelErrorRateSet()
    for motif in payload["motifs"]:
        indel_rate = float(motif["indelRate"])
        try:
            rates.add_rate(
                int(motif["repeatPatternSize"]),
                int(motif["repeatCount"]),
                indel_rate,
                indel_rate,
                float(motif["noisyLocusRate"]),
            )
        except ValueError as exc:
            raise ModelFileError(
                f"Malformed indel error model file '{model_filename}': {exc}", model_filename
            ) from exc
    return rates


def load_indel_error_rates(model_filename: str | Path) -> IndelErrorRateSet:
    """Read a JSON indel error model parameter file."""
    try:
        json_string = Path(model_filename).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ModelFileError(
            f"Failed to read indel error model file '{model_filename}': {exc}", str(model_filename)
        ) from exc

    try:
        payload = json.loads(json_string)
    except json.JSONDecodeError as exc:
        raise ModelFileError(f"Failed to parse JSON {model_filename} {exc}", str(model_filename)) from exc

    return rates_from_json_dict(payload, str(model_filename))


class IndelErrorModel:
    """Indel error probabilities for genotyping and candidate generation.

    Args:
        model_name: Built-in model used when no file is given
        model_filename: JSON parameter file, takes priority over model_name
        low_repeat_count: Low anchor of the adaptive model ramps
    """

    def __init__(
        self,
        model_name: str = "logLinear",
        model_filename: Optional[str | Path] = None,
        low_repeat_count: int = DEFAULT_LOW_REPEAT_COUNT,
    ):
        source = str(model_filename) if model_filename else model_name
        with PerformanceLogger(logger, f"indel error model construction ({source})") as timer:
            if model_filename:
                self._error_rates = load_indel_error_rates(model_filename)
            elif model_name in BUILTIN_MODELS:
                self._error_rates = BUILTIN_MODELS[model_name](low_repeat_count)
            else:
                raise ConfigurationError(
                    f"unrecognized indel error model name: '{model_name}'",
                    {"model_name": model_name, "known": sorted(BUILTIN_MODELS)},
                )
            self._error_rates.finalize_rates()

            # candidate generation always uses the log-linear ramp
            self._candidate_error_rates = build_log_linear_rates()
            self._candidate_error_rates.finalize_rates()

        self.source = source
        logger.info(
            f"Loaded indel error model '{source}' with {len(self._error_rates)} contexts "
            f"in {timer.duration:.3f}s"
        )

    @classmethod
    def from_config(cls, config: IndelModelConfig) -> "IndelErrorModel":
        return cls(
            model_name=config.model_name,
            model_filename=config.model_file,
            low_repeat_count=config.low_repeat_count,
        )

    @property
    def error_rates(self) -> IndelErrorRateSet:
        return self._error_rates

    @property
    def candidate_error_rates(self) -> IndelErrorRateSet:
        return self._candidate_error_rates

    def get_indel_error_rate(
        self,
        indel_key: IndelKey,
        report_info: IndelReportInfo,
        use_candidate_rates: bool = False,
    ) -> Tuple[float, float]:
        """Error probabilities for an indel allele.

        Returns:
            (ref_to_indel_prob, indel_to_ref_prob)
        """
        error_rates = self._candidate_error_rates if use_candidate_rates else self._error_rates

        indel_type = indel_key.indel_type
        if indel_type is None:
            # no repeat-context estimates exist for complex indels
            baseline = max(
                error_rates.get_rate(1, 1, IndelType.INSERT),
                error_rates.get_rate(1, 1, IndelType.DELETE),
            )
            return baseline, baseline

        repeating_pattern_size = max(report_info.repeat_unit_length, 1)
        ref_repeat_count = max(report_info.ref_repeat_count, 1)
        indel_repeat_count = max(report_info.indel_repeat_count, 1)

        ref_to_indel = error_rates.get_rate(repeating_pattern_size, ref_repeat_count, indel_type)
        indel_to_ref = error_rates.get_rate(repeating_pattern_size, indel_repeat_count, indel_type.reverse())
        return ref_to_indel, indel_to_ref
