"""Configuration management for the precise-varcall engine."""

from __future__ import annotations

import hashlib
import json
import yaml
from dataclasses import dataclass, asdict, field
from pathlib import Path
from typing import Any, Dict, Optional

from .config_validator import ConfigValidator
from .enums import IndelErrorModelName
from .exceptions import ConfigurationError


@dataclass(frozen=True)
class CallerOptions:
    """Thresholds consumed by the continuous-frequency caller."""
    min_het_vf: float = 0.01
    min_qscore: int = 17
    noise_floor: float = 0.005
    max_qscore: int = 40


@dataclass(frozen=True)
class IndelErrorModelConfig:
    """Selects the report-time indel error model.

    A model_path takes precedence over model_name.
    """
    model_name: str = IndelErrorModelName.LOG_LINEAR.value
    model_path: Optional[str] = None


@dataclass(frozen=True)
class PipelineConfig:
    """Main configuration."""
    run_id: str
    caller: CallerOptions = field(default_factory=CallerOptions)
    indel_error_model: IndelErrorModelConfig = field(default_factory=IndelErrorModelConfig)
    
    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return asdict(self)
    
    def config_hash(self) -> str:
        """Compute deterministic hash of configuration."""
        config_str = json.dumps(self.to_dict(), sort_keys=True)
        return hashlib.sha256(config_str.encode()).hexdigest()[:16]


def config_from_dict(data: Dict[str, Any]) -> PipelineConfig:
    """Build a validated PipelineConfig from a plain dictionary."""
    is_valid, errors, _ = ConfigValidator().validate_config(data)
    if not is_valid:
        msg = "invalid configuration: " + "; ".join(errors)
        raise ConfigurationError(msg, {"errors": errors})

    return PipelineConfig(
        run_id=data['run_id'],
        caller=CallerOptions(**data.get('caller', {})),
        indel_error_model=IndelErrorModelConfig(**data.get('indel_error_model', {})),
    )


def load_config(path: str | Path) -> PipelineConfig:
    """Load configuration from YAML file."""
    try:
        with open(path, 'r') as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as exc:
        msg = f"cannot read configuration file '{path}': {exc}"
        raise ConfigurationError(msg, {"path": str(path)}) from exc

    if not isinstance(data, dict):
        msg = f"configuration file '{path}' does not contain a mapping"
        raise ConfigurationError(msg, {"path": str(path)})
    return config_from_dict(data)


def dump_config(config: PipelineConfig, path: str | Path) -> None:
    """Save configuration to YAML file."""
    with open(path, 'w') as f:
        yaml.safe_dump(config.to_dict(), f, default_flow_style=False)
