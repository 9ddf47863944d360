"""
Configuration validation for the vcinfer calling core.

Collects every problem in a configuration dictionary instead of stopping at
the first one, separating hard errors from advisory warnings.
"""

from typing import Dict, Any, List, Tuple
import logging

KNOWN_INDEL_MODELS = ('logLinear', 'adaptiveDefault')
KNOWN_SECTIONS = ('run_id', 'caller', 'indel_model', 'aggregation')


class ConfigValidator:
    """Validate configuration parameters."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self.errors = []
        self.warnings = []

    def validate_config(self, config: Dict[str, Any]) -> Tuple[bool, List[str], List[str]]:
        """Validate complete configuration.

        Args:
            config: Configuration dictionary to validate

        Returns:
            Tuple of (is_valid, errors, warnings)
        """
        self.errors = []
        self.warnings = []

        if not isinstance(config, dict):
            self.errors.append("Configuration must be a dictionary")
            return False, self.errors, self.warnings

        for key in config:
            if key not in KNOWN_SECTIONS:
                self.errors.append(f"Unknown configuration key: {key}")

        if 'caller' in config:
            self._validate_caller_config(config['caller'])

        if 'indel_model' in config:
            self._validate_indel_model_config(config['indel_model'])

        if 'aggregation' in config:
            self._validate_aggregation_config(config['aggregation'])

        if 'run_id' in config:
            run_id = config['run_id']
            if not isinstance(run_id, str):
                self.errors.append("run_id must be a string")
            elif not run_id.strip():
                self.errors.append("run_id cannot be empty")

        for warning in self.warnings:
            self.logger.warning(warning)

        is_valid = len(self.errors) == 0
        return is_valid, self.errors, self.warnings

    def _check_section(self, name: str, section: Any, allowed: Tuple[str, ...]) -> bool:
        if not isinstance(section, dict):
            self.errors.append(f"{name} must be a mapping")
            return False
        for key in section:
            if key not in allowed:
                self.errors.append(f"Unknown key {name}.{key}")
        return True

    def _validate_caller_config(self, caller_config: Any) -> None:
        """Validate caller thresholds."""
        allowed = ('min_het_vf', 'min_qscore', 'max_qscore', 'noise_floor')
        if not self._check_section('caller', caller_config, allowed):
            return

        if 'min_het_vf' in caller_config:
            vf = caller_config['min_het_vf']
            if not isinstance(vf, (int, float)):
                self.errors.append("caller.min_het_vf must be numeric")
            elif not 0.0 <= vf < 1.0:
                self.errors.append("caller.min_het_vf must be in [0.0, 1.0)")
            elif vf > 0.5:
                self.warnings.append(f"caller.min_het_vf is high ({vf}), most het calls will be lost")

        for key in ('min_qscore', 'max_qscore'):
            if key in caller_config:
                value = caller_config[key]
                if not isinstance(value, int):
                    self.errors.append(f"caller.{key} must be an integer")
                elif value < 0:
                    self.errors.append(f"caller.{key} cannot be negative")

        max_qscore = caller_config.get('max_qscore')
        if isinstance(max_qscore, int) and max_qscore == 0:
            self.errors.append("caller.max_qscore must be positive")

        if 'noise_floor' in caller_config:
            noise = caller_config['noise_floor']
            if not isinstance(noise, (int, float)):
                self.errors.append("caller.noise_floor must be numeric")
            elif not 0.0 <= noise <= 1.0:
                self.errors.append("caller.noise_floor must be between 0.0 and 1.0")

    def _validate_indel_model_config(self, model_config: Any) -> None:
        """Validate indel error model selection."""
        allowed = ('model_name', 'model_file', 'low_repeat_count')
        if not self._check_section('indel_model', model_config, allowed):
            return

        model_file = model_config.get('model_file')
        if model_file is not None and not isinstance(model_file, str):
            self.errors.append("indel_model.model_file must be a string path")

        if 'model_name' in model_config:
            name = model_config['model_name']
            if not isinstance(name, str):
                self.errors.append("indel_model.model_name must be a string")
            elif model_file is None and name not in KNOWN_INDEL_MODELS:
                self.errors.append(
                    f"indel_model.model_name must be one of {', '.join(KNOWN_INDEL_MODELS)}"
                )
            elif model_file is not None:
                self.warnings.append("indel_model.model_file overrides indel_model.model_name")

        if 'low_repeat_count' in model_config:
            low = model_config['low_repeat_count']
            if not isinstance(low, int):
                self.errors.append("indel_model.low_repeat_count must be an integer")
            elif low < 2:
                self.errors.append("indel_model.low_repeat_count must be at least 2")

    def _validate_aggregation_config(self, agg_config: Any) -> None:
        """Validate error count aggregation settings."""
        if not self._check_section('aggregation', agg_config, ('compression_bits',)):
            return

        if 'compression_bits' in agg_config:
            bits = agg_config['compression_bits']
            if not isinstance(bits, int):
                self.errors.append("aggregation.compression_bits must be an integer")
            elif bits < 1:
                self.errors.append("aggregation.compression_bits must be positive")
            elif bits > 16:
                self.warnings.append(
                    f"aggregation.compression_bits is large ({bits}), pattern tables may grow quickly"
                )
