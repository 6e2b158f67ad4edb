"""Precise varcall: indel error models, basecall error aggregation and continuous-frequency calling."""

from __future__ import annotations

__version__ = "0.1.0"

# Error-rate models
from .indel_error_rates import IndelErrorRates, IndelErrorRateSet
from .indel_error_model import (
    AdaptiveIndelErrorModel,
    AdaptiveIndelErrorModelLogParams,
    IndelErrorModel,
    IndelKey,
    IndelReportInfo,
    adaptive_default_rates,
    dump_indel_error_rates_json,
    load_indel_error_rates_json,
    log_linear_rates,
)

# Observation aggregation
from .basecall_errors import (
    BasecallErrorContext,
    BasecallErrorContextInputObservation,
    BasecallErrorCounts,
    StrandBasecallCounts,
    merge_all,
    observation_from_pileup,
)

# Calling
from .continuous_caller import (
    ContinuousVariantCaller,
    add_indel_call,
    call_sites,
    poisson_qscore,
    position_snp_call_continuous,
    strand_bias,
)

# Configuration
from .config import CallerOptions, IndelErrorModelConfig, PipelineConfig, load_config, dump_config
from .exceptions import ConfigurationError, InternalConsistencyError, PreciseVarcallError
from .logging_config import setup_logging

__all__ = [
    "__version__",
    # Error-rate models
    "IndelErrorRates",
    "IndelErrorRateSet",
    "AdaptiveIndelErrorModel",
    "AdaptiveIndelErrorModelLogParams",
    "IndelErrorModel",
    "IndelKey",
    "IndelReportInfo",
    "adaptive_default_rates",
    "dump_indel_error_rates_json",
    "load_indel_error_rates_json",
    "log_linear_rates",
    # Aggregation
    "BasecallErrorContext",
    "BasecallErrorContextInputObservation",
    "BasecallErrorCounts",
    "StrandBasecallCounts",
    "merge_all",
    "observation_from_pileup",
    # Calling
    "ContinuousVariantCaller",
    "add_indel_call",
    "call_sites",
    "poisson_qscore",
    "position_snp_call_continuous",
    "strand_bias",
    # Configuration
    "CallerOptions",
    "IndelErrorModelConfig",
    "PipelineConfig",
    "load_config",
    "dump_config",
    "ConfigurationError",
    "InternalConsistencyError",
    "PreciseVarcallError",
    "setup_logging",
]
