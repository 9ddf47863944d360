"""Configuration management for the vcinfer calling core."""

from __future__ import annotations

import hashlib
import json
import yaml
from dataclasses import dataclass, asdict, field
from pathlib import Path
from typing import Any, Dict, Optional

from .exceptions import ConfigurationError


@dataclass
class CallerConfig:
    """Thresholds used by the continuous-frequency allele caller."""
    min_het_vf: float = 0.01
    min_qscore: int = 17
    max_qscore: int = 40
    noise_floor: float = 0.01


@dataclass
class IndelModelConfig:
    """Selection of the indel error rate source.

    ``model_file`` takes priority over ``model_name`` when set.
    """
    model_name: str = "logLinear"
    model_file: Optional[str] = None
    low_repeat_count: int = 2


@dataclass
class AggregationConfig:
    """Settings for basecall error count aggregation."""
    compression_bits: int = 4


@dataclass
class EngineConfig:
    """Main configuration."""
    run_id: str = "default"
    caller: CallerConfig = field(default_factory=CallerConfig)
    indel_model: IndelModelConfig = field(default_factory=IndelModelConfig)
    aggregation: AggregationConfig = field(default_factory=AggregationConfig)

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return asdict(self)

    def config_hash(self) -> str:
        """Compute deterministic hash of configuration."""
        config_str = json.dumps(self.to_dict(), sort_keys=True)
        return hashlib.sha256(config_str.encode()).hexdigest()[:16]


def config_from_dict(data: Dict[str, Any]) -> EngineConfig:
    """Build an ``EngineConfig`` from a plain dictionary after validation."""
    from .config_validator import ConfigValidator

    is_valid, errors, _ = ConfigValidator().validate_config(data)
    if not is_valid:
        raise ConfigurationError(
            f"Invalid configuration: {'; '.join(errors)}",
            {"errors": errors},
        )

    return EngineConfig(
        run_id=data.get('run_id', 'default'),
        caller=CallerConfig(**data.get('caller', {})),
        indel_model=IndelModelConfig(**data.get('indel_model', {})),
        aggregation=AggregationConfig(**data.get('aggregation', {})),
    )


def load_config(path: str | Path) -> EngineConfig:
    """Load configuration from YAML file."""
    try:
        with open(path, 'r') as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Failed to load configuration {path}: {exc}") from exc

    return config_from_dict(data or {})


def dump_config(config: EngineConfig, path: str | Path) -> None:
    """Save configuration to YAML file."""
    with open(path, 'w') as f:
        yaml.safe_dump(config.to_dict(), f, default_flow_style=False)
