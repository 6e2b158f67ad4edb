"""
Configuration validation for the precise-varcall engine.

Collects every problem in a configuration dictionary instead of stopping
at the first one, so a single run reports all of them.
"""

from typing import Dict, Any, List, Tuple
import logging

from .enums import IndelErrorModelName


_CALLER_KEYS = {'min_het_vf', 'min_qscore', 'noise_floor', 'max_qscore'}
_MODEL_KEYS = {'model_name', 'model_path'}


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
        
        if 'run_id' not in config:
            self.errors.append("Missing required configuration key: run_id")
        
        if 'caller' in config:
            self._validate_caller_config(config['caller'])
            
        if 'indel_error_model' in config:
            self._validate_model_config(config['indel_error_model'])
        
        for warning in self.warnings:
            self.logger.warning(warning)
        
        is_valid = len(self.errors) == 0
        return is_valid, self.errors, self.warnings
    
    def _validate_caller_config(self, caller_config: Dict[str, Any]) -> None:
        """Validate caller thresholds."""
        if not isinstance(caller_config, dict):
            self.errors.append("caller must be a mapping")
            return
        
        for key in sorted(set(caller_config) - _CALLER_KEYS):
            self.errors.append(f"Unknown caller option: caller.{key}")
        
        for key in ('min_het_vf', 'noise_floor'):
            if key in caller_config:
                value = caller_config[key]
                if not isinstance(value, (int, float)) or isinstance(value, bool):
                    self.errors.append(f"caller.{key} must be numeric")
                elif not 0 <= value < 1:
                    self.errors.append(f"caller.{key} must be in [0, 1)")
        
        if 'min_het_vf' in caller_config:
            value = caller_config['min_het_vf']
            if isinstance(value, (int, float)) and 0.5 <= value < 1:
                self.warnings.append(
                    f"caller.min_het_vf is high ({value}), heterozygous calls will be suppressed"
                )
        
        for key in ('min_qscore', 'max_qscore'):
            if key in caller_config:
                value = caller_config[key]
                if not isinstance(value, int) or isinstance(value, bool):
                    self.errors.append(f"caller.{key} must be an integer")
                elif value < 0:
                    self.errors.append(f"caller.{key} must be non-negative")
    
    def _validate_model_config(self, model_config: Dict[str, Any]) -> None:
        """Validate indel error model selection."""
        if not isinstance(model_config, dict):
            self.errors.append("indel_error_model must be a mapping")
            return
        
        for key in sorted(set(model_config) - _MODEL_KEYS):
            self.errors.append(f"Unknown indel error model option: indel_error_model.{key}")
        
        model_path = model_config.get('model_path')
        if model_path is not None and not isinstance(model_path, str):
            self.errors.append("indel_error_model.model_path must be a string")
        
        model_name = model_config.get('model_name', IndelErrorModelName.LOG_LINEAR.value)
        valid_names = [name.value for name in IndelErrorModelName]
        if model_path is None and model_name not in valid_names:
            self.errors.append(
                f"indel_error_model.model_name '{model_name}' is not one of {valid_names}"
            )
        elif model_path is not None and 'model_name' in model_config:
            self.warnings.append(
                "indel_error_model.model_name is ignored when model_path is given"
            )
