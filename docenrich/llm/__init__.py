"""LLM call layer - multi-provider document analysis with rate limit handling."""

from .client import DocumentAnalyzer
from .config import AppConfig, load_config, load_config_from_env
from .errors import (
    ClientNotInitialized,
    InvalidResponseStructure,
    LLMError,
    RateLimited,
    TokenizerInitError,
    TransportFailure,
)
from .response import AnalysisResult, PlaygroundResult, UsageMetrics

__all__ = [
    "DocumentAnalyzer",
    "AppConfig",
    "load_config",
    "load_config_from_env",
    "AnalysisResult",
    "PlaygroundResult",
    "UsageMetrics",
    "LLMError",
    "ClientNotInitialized",
    "RateLimited",
    "InvalidResponseStructure",
    "TransportFailure",
    "TokenizerInitError",
]
