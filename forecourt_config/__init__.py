"""
Forecourt configuration.

Typed configuration objects and the YAML loader.  Build an ``EngineConfig``
once at startup (``load_config(path)`` or ``EngineConfig.with_defaults()``)
and pass it, or its parts, into calculators and services.
"""

from forecourt_config.loader import (
    ConfigurationError,
    compute_checksum,
    load_config,
    load_default_config,
)
from forecourt_config.schema import (
    EngineConfig,
    InvoicingPolicy,
    LoanPolicy,
    StatutoryRates,
)

__all__ = [
    "ConfigurationError",
    "EngineConfig",
    "InvoicingPolicy",
    "LoanPolicy",
    "StatutoryRates",
    "compute_checksum",
    "load_config",
    "load_default_config",
]
