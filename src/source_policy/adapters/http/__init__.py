"""Public interface for the HTTP source adapter."""

from __future__ import annotations

from .headers import vary_header_attrs, volatility_reason
from .resolver import HttpSourceResolver
from .strategies import DEFAULT_STRATEGIES, ChecksumStrategy, StrategyContext, StrategyResult

__all__ = [
    "DEFAULT_STRATEGIES",
    "ChecksumStrategy",
    "HttpSourceResolver",
    "StrategyContext",
    "StrategyResult",
    "vary_header_attrs",
    "volatility_reason",
]
